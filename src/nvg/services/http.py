"""Shared HTTP handling for REST providers.

Transport failures are translated into the provider error taxonomy here so
each client only has to describe its request and parse its response.
"""

import logging
from typing import Any

import requests

from ..errors import InvalidInputError, ProviderError, ProviderUnavailableError, TransientError

logger = logging.getLogger(__name__)

TRANSIENT_STATUS = {408, 425, 429}
UNAVAILABLE_STATUS = {401, 402, 403}


def classify_status(status_code: int, body: str, provider: str, category: str) -> ProviderError:
    """Map an HTTP error status to a classified provider error."""
    message = f"{provider} returned {status_code}: {body[:300]}"
    if status_code in TRANSIENT_STATUS or status_code >= 500:
        return TransientError(message, provider=provider, category=category)
    if status_code in UNAVAILABLE_STATUS:
        return ProviderUnavailableError(message, provider=provider, category=category)
    return InvalidInputError(message, provider=provider, category=category)


def send(
    method: str,
    url: str,
    provider: str,
    category: str,
    timeout: float,
    **kwargs: Any,
) -> requests.Response:
    """Send a request and raise a classified error for any failure.

    Args:
        method: HTTP method.
        url: Request URL.
        provider: Provider id, used in error messages.
        category: Log category of the calling stage.
        timeout: Request timeout in seconds.
        **kwargs: Forwarded to requests.request.

    Returns:
        The successful response.

    Raises:
        TransientError: Connection failure, timeout, 408/429/5xx.
        ProviderUnavailableError: 401/402/403.
        InvalidInputError: Any other 4xx.
    """
    try:
        response = requests.request(method, url, timeout=timeout, **kwargs)
    except requests.Timeout as e:
        raise TransientError(f"{provider} timed out: {e}", provider=provider, category=category) from e
    except requests.ConnectionError as e:
        raise TransientError(f"{provider} connection error: {e}", provider=provider, category=category) from e
    except requests.RequestException as e:
        raise TransientError(f"{provider} request failed: {e}", provider=provider, category=category) from e

    if response.status_code >= 400:
        error = classify_status(response.status_code, response.text, provider, category)
        logger.warning(f"{provider} API error: {error}")
        raise error
    return response


def download(url: str, provider: str, category: str, timeout: float) -> bytes:
    """Fetch a generated asset by URL."""
    return send("GET", url, provider, category, timeout).content
