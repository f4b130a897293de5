"""Provider credential lookup."""

from typing import Dict, Optional

from ..config import Config
from ..errors import ProviderUnavailableError

# Provider id -> Config attribute holding its key
CREDENTIAL_FIELDS = {
    "anthropic": "anthropic_api_key",
    "speechify": "speechify_api_key",
    "inworld": "inworld_api_key",
    "wavespeed": "wavespeed_api_key",
    "pollinations": "pollinations_api_key",
    "imagen": "google_cloud_project",
}


class CredentialResolver:
    """Looks up a provider key in per-user overrides, then in Config."""

    def __init__(self, config: Config, overrides: Optional[Dict[str, str]] = None) -> None:
        self._config = config
        self._overrides = dict(overrides or {})

    def get(self, provider: str) -> Optional[str]:
        value = self._overrides.get(provider)
        if value:
            return value
        field_name = CREDENTIAL_FIELDS.get(provider)
        if field_name is None:
            return None
        return getattr(self._config, field_name) or None

    def require(self, provider: str, category: str = "system") -> str:
        """Return the key or raise ProviderUnavailableError."""
        value = self.get(provider)
        if not value:
            field_name = CREDENTIAL_FIELDS.get(provider, provider)
            raise ProviderUnavailableError(
                f"No credential configured for {provider}. Set {field_name.upper()}.",
                provider=provider,
                category=category,
            )
        return value

    def with_overrides(self, overrides: Dict[str, str]) -> "CredentialResolver":
        merged = {**self._overrides, **overrides}
        return CredentialResolver(self._config, merged)

    def configured(self) -> Dict[str, bool]:
        """Which providers currently have a credential."""
        return {provider: bool(self.get(provider)) for provider in CREDENTIAL_FIELDS}
