from __future__ import annotations
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from connectors.base import Entry, Provider, Token
from connectors.errors import AuthorizationError, LocationError, UnknownProviderError
from connectors.registry import build_providers
from core.location import parse_location
from infra.retrieval.descriptor import ResourceDescriptor

logger = logging.getLogger(__name__)


class Browser:
    """Configured providers keyed by short identifier, addressed by location."""

    def __init__(self, providers_config: Mapping[str, Mapping[str, Any]], *, transport=None):
        self.providers: Dict[str, Provider] = build_providers(providers_config, transport=transport)
        logger.info("Browser configured with providers: %s", ", ".join(self.providers) or "none")

    @classmethod
    def from_settings(cls, settings) -> "Browser":
        return cls(settings.providers_config())

    def provider(self, key: str) -> Provider:
        try:
            return self.providers[key]
        except KeyError:
            raise UnknownProviderError(key) from None

    def resolve(self, location: str) -> Tuple[Provider, str]:
        key, resource_id = parse_location(location)
        return self.provider(key), resource_id

    def contents(self, location: str) -> List[Entry]:
        provider, container_id = self.resolve(location)
        return provider.contents(container_id)

    def link_for(self, location: str) -> Tuple[str, dict]:
        provider, resource_id = self.resolve(location)
        if not resource_id:
            raise LocationError(f"Location {location!r} is a root container, not a file")
        return provider.link_for(resource_id)

    def connect(
        self,
        auth_params: Mapping[str, Any],
        session_id: Optional[str] = None,
        base_url: Optional[str] = None,
    ) -> Token:
        """Complete an OAuth callback, routed by the ``state`` the auth link embedded."""
        state = auth_params.get("state")
        if not state:
            raise AuthorizationError("OAuth callback is missing the state parameter")
        return self.provider(state).connect(auth_params, session_id, base_url)

    def descriptor_for(self, location: str) -> ResourceDescriptor:
        url, info = self.link_for(location)
        return ResourceDescriptor(
            url=url,
            auth_header=info.get("auth_header") or {},
            expires=info.get("expires"),
            file_name=info.get("file_name"),
            file_size=info.get("file_size"),
        )


_browser: Browser | None = None


def get_browser() -> Browser:
    global _browser
    if _browser is None:
        from config.settings import settings

        _browser = Browser.from_settings(settings)
    return _browser
