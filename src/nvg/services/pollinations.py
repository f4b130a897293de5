"""Pollinations image client (single GET, key optional)."""

import logging
from pathlib import Path
from urllib.parse import quote

from ..config import Config
from ..errors import InvalidInputError
from . import http
from .base import ImageAsset, ImageProvider
from .credentials import CredentialResolver

logger = logging.getLogger(__name__)


class PollinationsClient(ImageProvider):
    """Pollinations flux model. Uses the authenticated gateway when a key is set."""

    name = "pollinations"
    extension = ".jpg"
    PUBLIC_URL = "https://image.pollinations.ai/prompt/{prompt}"
    GATEWAY_URL = "https://gen.pollinations.ai/image/{prompt}"
    MODEL = "flux"
    NEGATIVE_PROMPT = "worst quality, blurry"

    def __init__(self, credentials: CredentialResolver, config: Config) -> None:
        self._credentials = credentials
        self._config = config

    def synthesize_image(
        self,
        prompt: str,
        width: int,
        height: int,
        seed: int,
        output_path: Path,
    ) -> ImageAsset:
        if not prompt.strip():
            raise InvalidInputError("Image prompt is empty", provider=self.name, category="image")

        api_key = self._credentials.get(self.name)
        template = self.GATEWAY_URL if api_key else self.PUBLIC_URL
        url = template.format(prompt=quote(prompt, safe=""))
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        params = {
            "model": self.MODEL,
            "width": width,
            "height": height,
            "seed": seed,
            "enhance": "false",
            "negative_prompt": self.NEGATIVE_PROMPT,
            "safe": "false",
        }

        logger.info(f"Generating image with Pollinations: {prompt[:50]}...")
        response = http.send(
            "GET",
            url,
            provider=self.name,
            category="image",
            timeout=self._config.provider_timeout,
            headers=headers,
            params=params,
        )
        if not response.headers.get("content-type", "").startswith("image/"):
            raise InvalidInputError(
                f"Pollinations returned non-image content: {response.text[:200]}",
                provider=self.name,
                category="image",
            )

        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "wb") as f:
            f.write(response.content)
        logger.info(f"Saved image to {output_path}")
        return ImageAsset(path=output_path)
