from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Union
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ResourceDescriptor(BaseModel):
    """What to fetch and how: URL, extra request headers, size and expiry hints."""

    model_config = ConfigDict(extra="ignore")

    url: str
    auth_header: Dict[str, str] = Field(default_factory=dict)
    expires: Optional[datetime] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None

    @field_validator("file_size", "expires", mode="before")
    @classmethod
    def _blank_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @classmethod
    def coerce(cls, value: Union["ResourceDescriptor", Mapping[str, Any]]) -> "ResourceDescriptor":
        if isinstance(value, cls):
            return value
        return cls.model_validate(dict(value))

    @property
    def scheme(self) -> str:
        return urlparse(self.url).scheme.lower()

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires is None:
            return False
        expires = self.expires
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return expires <= (now or datetime.now(timezone.utc))
