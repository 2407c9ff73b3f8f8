from __future__ import annotations
import importlib
from typing import Any, Dict, Mapping

from connectors.base import Provider
from connectors.errors import InitializationError


_REGISTRY: Dict[str, type] = {}

_BUILTIN_DRIVERS = ("connectors.box.connector",)


def register(key: str):
    """Decorator to register a provider driver class by key."""
    def _wrap(cls):
        cls.key = key
        _REGISTRY[key] = cls
        return cls

    return _wrap


def _load_builtin_drivers() -> None:
    for module in _BUILTIN_DRIVERS:
        importlib.import_module(module)


def get_provider_class(key: str) -> type:
    _load_builtin_drivers()
    if key not in _REGISTRY:
        raise InitializationError(f"Provider driver '{key}' is not registered")
    return _REGISTRY[key]


def list_providers() -> list[str]:
    _load_builtin_drivers()
    return sorted(_REGISTRY.keys())


def build_providers(config: Mapping[str, Mapping[str, Any]], *, transport=None) -> Dict[str, Provider]:
    """Instantiate one provider per configured key.

    A config entry may name its driver explicitly with ``"driver"``, which lets
    two accounts of the same backend live under different keys.
    """
    providers: Dict[str, Provider] = {}
    for key, provider_config in config.items():
        provider_config = dict(provider_config or {})
        driver = provider_config.pop("driver", key)
        cls = get_provider_class(driver)
        providers[key] = cls(provider_config, key=key, transport=transport)
    return providers
