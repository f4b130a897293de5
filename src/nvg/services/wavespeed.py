"""WaveSpeed image generation client (submit, then poll for the result)."""

import logging
import time
from pathlib import Path

from ..config import Config
from ..errors import InvalidInputError, TransientError
from . import http
from .base import ImageAsset, ImageProvider
from .credentials import CredentialResolver

logger = logging.getLogger(__name__)


def wavespeed_size(width: int, height: int) -> str:
    """WaveSpeed accepts a fixed set of sizes; pick by orientation."""
    if width > height:
        return "1280*720"
    if width < height:
        return "720*1280"
    return "1024*1024"


class WaveSpeedClient(ImageProvider):
    """WaveSpeed z-image turbo model."""

    name = "wavespeed"
    extension = ".jpg"
    SUBMIT_URL = "https://api.wavespeed.ai/api/v3/wavespeed-ai/z-image/turbo"
    RESULT_URL = "https://api.wavespeed.ai/api/v3/predictions/{id}/result"

    def __init__(
        self,
        credentials: CredentialResolver,
        config: Config,
        poll_interval: float = 1.0,
    ) -> None:
        self._credentials = credentials
        self._config = config
        self._poll_interval = poll_interval

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
        api_key = self._credentials.require(self.name, category="image")
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

        logger.info(f"Submitting WaveSpeed task: {prompt[:50]}...")
        response = http.send(
            "POST",
            self.SUBMIT_URL,
            provider=self.name,
            category="image",
            timeout=self._config.provider_timeout,
            headers=headers,
            json={
                "enable_base64_output": False,
                "enable_sync_mode": False,
                "output_format": "jpeg",
                "prompt": prompt,
                "seed": seed,
                "size": wavespeed_size(width, height),
            },
        )
        request_id = (response.json().get("data") or {}).get("id")
        if not request_id:
            raise TransientError("WaveSpeed returned no task id", provider=self.name, category="image")

        image_url = self._poll(request_id, headers)
        content = http.download(image_url, self.name, "image", self._config.provider_timeout)

        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "wb") as f:
            f.write(content)
        logger.info(f"Saved image to {output_path}")
        return ImageAsset(path=output_path)

    def _poll(self, request_id: str, headers: dict) -> str:
        """Poll until the task completes and return the output URL."""
        deadline = time.monotonic() + self._config.provider_timeout
        url = self.RESULT_URL.format(id=request_id)
        while time.monotonic() < deadline:
            response = http.send(
                "GET", url, provider=self.name, category="image",
                timeout=self._config.provider_timeout, headers=headers,
            )
            data = response.json().get("data") or {}
            status = data.get("status")
            if status == "completed":
                outputs = data.get("outputs") or []
                if not outputs:
                    raise InvalidInputError("WaveSpeed task produced no output", provider=self.name, category="image")
                return outputs[0]
            if status == "failed":
                raise InvalidInputError(
                    f"WaveSpeed task failed: {data.get('error') or 'unknown error'}",
                    provider=self.name,
                    category="image",
                )
            time.sleep(self._poll_interval)
        raise TransientError(f"WaveSpeed task {request_id} timed out", provider=self.name, category="image")
