from __future__ import annotations
from typing import Tuple

from connectors.errors import LocationError

SEPARATOR = ":"


def make_location(provider_key: str, resource_id: str) -> str:
    return f"{provider_key}{SEPARATOR}{resource_id}"


def parse_location(location: str) -> Tuple[str, str]:
    """Split ``"<provider_key>:<id>"`` on the first separator.

    A bare key (``"box"`` or ``"box:"``) addresses the provider's root
    container, returned as id ``""``.
    """
    key, _, resource_id = (location or "").partition(SEPARATOR)
    if not key:
        raise LocationError(f"Location {location!r} does not name a provider")
    return key, resource_id
