from __future__ import annotations
import abc
from dataclasses import dataclass
from datetime import datetime
import logging
import threading
import time
from typing import Any, List, Mapping, Optional, Protocol, Tuple, Union
from urllib.parse import urljoin

from connectors.errors import AuthorizationError, InitializationError, ProviderError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Entry:
    """Normalized listing item returned by every provider.

    ``location`` is ``"<provider_key>:<id>"`` and round-trips to exactly one
    provider/id pair. Containers never resolve to a download link.
    """

    id: str
    location: str
    name: str
    size: int
    type: str
    is_container: bool
    path: Optional[str] = None
    mtime: Optional[datetime] = None


@dataclass(frozen=True)
class Token:
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None  # epoch seconds

    def is_valid(self, now: Optional[float] = None) -> bool:
        # Expiry must be explicit: a token without expires_at is never valid.
        if not self.access_token or self.expires_at is None:
            return False
        return self.expires_at > (time.time() if now is None else now)

    @classmethod
    def from_response(cls, payload: Any, now: Optional[float] = None) -> "Token":
        """Build a token from an OAuth token endpoint JSON body."""
        if not isinstance(payload, Mapping) or not payload.get("access_token"):
            raise ProviderError("Token endpoint returned a malformed payload")
        try:
            expires_in = int(payload.get("expires_in", 3600))
        except (TypeError, ValueError):
            raise ProviderError("Token endpoint returned a malformed payload") from None
        issued = time.time() if now is None else now
        return cls(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            expires_at=int(issued + expires_in),
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Token":
        # Hosts persist tokens as plain dicts; older records use "token".
        expires_at = data.get("expires_at")
        return cls(
            access_token=data.get("access_token") or data.get("token") or "",
            refresh_token=data.get("refresh_token"),
            expires_at=int(expires_at) if expires_at is not None else None,
        )


class Provider(Protocol):
    key: str
    name: str

    # OAuth
    def auth_link(self, state: Optional[str] = None) -> str: ...
    @property
    def authorized(self) -> bool: ...
    def connect(
        self,
        auth_params: Mapping[str, Any],
        session_id: Optional[str] = None,
        base_url: Optional[str] = None,
    ) -> Token: ...

    # Data plane
    def contents(self, container_id: str = "") -> List[Entry]: ...
    def link_for(self, resource_id: str) -> Tuple[str, dict]: ...


class OAuthProvider(abc.ABC):
    """Shared token lifecycle for OAuth authorization-code drivers.

    Subclasses implement ``auth_link``, ``connect``, ``contents``,
    ``link_for`` and ``_refresh_token``.
    """

    key: str = ""
    name: str = ""
    required_config: Tuple[str, ...] = ("client_id", "client_secret", "redirect_uri")

    def __init__(self, config: Optional[Mapping[str, Any]], *, key: Optional[str] = None, transport=None):
        self.validate_config(config)
        self.config = dict(config or {})
        if key:
            self.key = key
        self._transport = transport
        self._token: Optional[Token] = None
        self._token_lock = threading.Lock()

    @classmethod
    def validate_config(cls, config: Optional[Mapping[str, Any]]) -> None:
        config = config or {}
        missing = [k for k in cls.required_config if not config.get(k)]
        if missing:
            raise InitializationError(
                f"{cls.name or cls.__name__} driver requires {', '.join(missing)}"
            )

    @property
    def token(self) -> Optional[Token]:
        return self._token

    @token.setter
    def token(self, value: Union[Token, Mapping[str, Any], None]) -> None:
        if value is not None and not isinstance(value, Token):
            value = Token.from_mapping(value)
        self._token = value

    @property
    def authorized(self) -> bool:
        return self._token is not None and self._token.is_valid()

    def callback_url(self, base_url: Optional[str] = None) -> str:
        redirect_uri = self.config["redirect_uri"]
        if base_url and redirect_uri.startswith("/"):
            return urljoin(base_url, redirect_uri)
        return redirect_uri

    def ensure_authorized(self) -> Token:
        """Return a valid token, refreshing it at most once.

        The check-then-refresh sequence runs under a lock so concurrent
        callers sharing this instance never refresh twice.
        """
        with self._token_lock:
            if self.authorized:
                return self._token
            current = self._token
            if current is not None and current.refresh_token:
                logger.info("Refreshing expired %s access token", self.key)
                self._token = self._refresh_token(current.refresh_token)
            if not self.authorized:
                raise AuthorizationError(f"{self.name or self.key} is not authorized")
            return self._token

    @abc.abstractmethod
    def _refresh_token(self, refresh_token: str) -> Token:
        """Exchange ``refresh_token`` for a new Token at the provider's token endpoint."""
