"""Anthropic Claude API client wrapper."""

import logging
from typing import Optional

from anthropic import (
    Anthropic,
    APIConnectionError,
    APIStatusError,
    AuthenticationError,
    PermissionDeniedError,
    RateLimitError,
)

from ..config import Config
from ..errors import InvalidInputError, ProviderUnavailableError, TransientError
from .credentials import CredentialResolver

logger = logging.getLogger(__name__)


class AnthropicClient:
    """Client wrapper for Anthropic Claude API.

    Failures are classified instead of retried here; the orchestrator owns the
    retry policy.
    """

    provider = "anthropic"

    def __init__(
        self,
        credentials: CredentialResolver,
        config: Config,
        model: Optional[str] = None,
    ) -> None:
        """Initialize the Anthropic client.

        Args:
            credentials: Resolver for the Anthropic API key.
            config: Application config (model and timeout defaults).
            model: Model to use. Defaults to config.default_model.
        """
        self._credentials = credentials
        self._model = model or config.default_model
        self._timeout = config.provider_timeout
        self._client: Optional[Anthropic] = None

    @property
    def model(self) -> str:
        """Return the model being used."""
        return self._model

    def _get_client(self) -> Anthropic:
        if self._client is None:
            api_key = self._credentials.require(self.provider, category="script")
            self._client = Anthropic(api_key=api_key, max_retries=0, timeout=self._timeout)
        return self._client

    def create_message(
        self,
        prompt: str,
        max_tokens: int = 4096,
        system: Optional[str] = None,
        temperature: float = 0.7,
    ) -> str:
        """Create a message using Claude.

        Args:
            prompt: The user prompt to send.
            max_tokens: Maximum tokens in the response.
            system: Optional system prompt.
            temperature: Sampling temperature (0.0-1.0).

        Returns:
            The text content of Claude's response.

        Raises:
            TransientError: Connection failure, timeout, rate limit or 5xx.
            ProviderUnavailableError: Missing or rejected API key.
            InvalidInputError: The request was rejected.
        """
        client = self._get_client()
        kwargs = {
            "model": self._model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
        }
        if system:
            kwargs["system"] = system

        logger.debug(f"Sending request to Claude ({self._model})")
        try:
            response = client.messages.create(**kwargs)
        except RateLimitError as e:
            raise TransientError(f"Claude rate limited: {e}", provider=self.provider, category="script") from e
        except APIConnectionError as e:
            raise TransientError(f"Claude connection error: {e}", provider=self.provider, category="script") from e
        except (AuthenticationError, PermissionDeniedError) as e:
            raise ProviderUnavailableError(
                f"Claude rejected the API key: {e}", provider=self.provider, category="script"
            ) from e
        except APIStatusError as e:
            if e.status_code >= 500:
                raise TransientError(f"Claude API error: {e}", provider=self.provider, category="script") from e
            raise InvalidInputError(f"Claude API error: {e}", provider=self.provider, category="script") from e

        # Extract text content from response
        content = response.content[0]
        if hasattr(content, "text"):
            return content.text
        return str(content)
