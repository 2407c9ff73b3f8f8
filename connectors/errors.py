from __future__ import annotations
from typing import Optional


class BrowseError(Exception):
    """Base class for every error raised by providers, the browser and the retriever."""


class InitializationError(BrowseError):
    """Provider configuration is missing or invalid. Raised at construction."""


class AuthorizationError(BrowseError):
    """Operation attempted without a valid token. Recover by reconnecting."""


class ProviderError(BrowseError):
    """The remote API answered with an unexpected status or payload shape."""

    def __init__(self, message: str, *, resource_id: Optional[str] = None, status: Optional[int] = None):
        if resource_id is not None:
            message = f"{message} (resource {resource_id!r})"
        if status is not None:
            message = f"{message} [HTTP {status}]"
        super().__init__(message)
        self.resource_id = resource_id
        self.status = status


class UnsupportedSchemeError(BrowseError, ValueError):
    def __init__(self, scheme: str):
        super().__init__(f"Unknown URI scheme: {scheme}")
        self.scheme = scheme


class DownloadError(BrowseError):
    def __init__(self, url: str, status: Optional[int] = None, reason: Optional[str] = None):
        detail = f"status {status}" if status is not None else (reason or "transport failure")
        if status is not None and reason:
            detail = f"{detail} ({reason})"
        super().__init__(f"Failed to download {url}: {detail}")
        self.url = url
        self.status = status
        self.reason = reason


class LinkExpiredError(DownloadError):
    pass


class LocationError(BrowseError, ValueError):
    pass


class UnknownProviderError(BrowseError, KeyError):
    def __init__(self, key: str):
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"Provider '{self.key}' is not configured"
