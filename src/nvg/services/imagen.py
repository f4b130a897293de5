"""Google Imagen API client wrapper via Vertex AI."""

import base64
import logging
from pathlib import Path

import google.auth
import google.auth.transport.requests
from google.auth import exceptions as auth_exceptions

from ..config import Config
from ..errors import InvalidInputError, ProviderUnavailableError
from . import http
from .base import ImageAsset, ImageProvider
from .credentials import CredentialResolver

logger = logging.getLogger(__name__)


def aspect_ratio_for(width: int, height: int) -> str:
    """Closest aspect ratio Imagen accepts."""
    ratio = width / height
    supported = {"1:1": 1.0, "16:9": 16 / 9, "9:16": 9 / 16, "4:3": 4 / 3, "3:4": 3 / 4}
    return min(supported, key=lambda name: abs(supported[name] - ratio))


class ImagenClient(ImageProvider):
    """Client wrapper for Google Imagen image generation via Vertex AI."""

    name = "imagen"
    DEFAULT_LOCATION = "us-central1"
    DEFAULT_MODEL = "imagen-3.0-generate-001"

    def __init__(
        self,
        credentials: CredentialResolver,
        config: Config,
        location: str = DEFAULT_LOCATION,
        model: str = DEFAULT_MODEL,
    ) -> None:
        """Initialize the Imagen client.

        Args:
            credentials: Resolver for the Google Cloud project id.
            config: Application config (timeout).
            location: GCP region for Vertex AI.
            model: Imagen model name.
        """
        self._credentials = credentials
        self._config = config
        self._location = location
        self._model = model

    @property
    def model(self) -> str:
        return self._model

    def _access_token(self) -> str:
        scopes = ["https://www.googleapis.com/auth/cloud-platform"]
        try:
            credentials, _ = google.auth.default(scopes=scopes)
            credentials.refresh(google.auth.transport.requests.Request())
        except auth_exceptions.GoogleAuthError as e:
            raise ProviderUnavailableError(
                f"Google credentials unavailable: {e}", provider=self.name, category="image"
            ) from e
        return credentials.token

    def synthesize_image(
        self,
        prompt: str,
        width: int,
        height: int,
        seed: int,
        output_path: Path,
    ) -> ImageAsset:
        """Generate an image from a text prompt.

        Imagen sizes images by aspect ratio, so width and height only pick the
        closest supported ratio.
        """
        if not prompt.strip():
            raise InvalidInputError("Image prompt is empty", provider=self.name, category="image")
        project_id = self._credentials.require(self.name, category="image")
        token = self._access_token()

        # Imagen API endpoint
        url = (
            f"https://{self._location}-aiplatform.googleapis.com/v1/"
            f"projects/{project_id}/locations/{self._location}/"
            f"publishers/google/models/{self._model}:predict"
        )
        request_body = {
            "instances": [{"prompt": prompt}],
            "parameters": {
                "sampleCount": 1,
                "aspectRatio": aspect_ratio_for(width, height),
                "seed": seed,
                "addWatermark": False,
            },
        }

        logger.info(f"Generating image with Imagen: {prompt[:50]}...")
        response = http.send(
            "POST",
            url,
            provider=self.name,
            category="image",
            timeout=self._config.provider_timeout,
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            },
            json=request_body,
        )

        predictions = response.json().get("predictions", [])
        if not predictions or not predictions[0].get("bytesBase64Encoded"):
            # Imagen drops predictions that trip its safety filter
            raise InvalidInputError("No image data in Imagen response", provider=self.name, category="image")

        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "wb") as f:
            f.write(base64.b64decode(predictions[0]["bytesBase64Encoded"]))

        logger.info(f"Saved image to {output_path}")
        return ImageAsset(path=output_path)
