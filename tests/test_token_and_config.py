from __future__ import annotations

import time

import pytest

from connectors.base import OAuthProvider, Token
from connectors.errors import InitializationError, ProviderError
from connectors.registry import get_provider_class
from conftest import BOX_CONFIG


def test_empty_config_raises_initialization_error():
    with pytest.raises(InitializationError):
        get_provider_class("box")({})


@pytest.mark.parametrize("missing", ["client_id", "client_secret", "redirect_uri"])
def test_each_credential_is_required(missing):
    config = {k: v for k, v in BOX_CONFIG.items() if k != missing}
    with pytest.raises(InitializationError, match=missing):
        get_provider_class("box")(config)


def test_not_authorized_without_token(box_provider):
    assert box_provider.token is None
    assert box_provider.authorized is False


def test_authorized_with_future_expiry(box_provider):
    box_provider.token = {"token": "TOKEN", "refresh_token": "REFRESH_TOKEN", "expires_at": int(time.time()) + 360}
    assert box_provider.authorized is True


def test_not_authorized_without_expiry(box_provider):
    box_provider.token = {"token": "TOKEN", "refresh_token": "REFRESH_TOKEN"}
    assert box_provider.authorized is False


def test_not_authorized_when_expired(box_provider):
    box_provider.token = {"token": "TOKEN", "refresh_token": "REFRESH_TOKEN", "expires_at": int(time.time()) - 360}
    assert box_provider.authorized is False


def test_token_expiry_is_strict():
    token = Token(access_token="TOKEN", expires_at=1000)
    assert token.is_valid(now=999) is True
    assert token.is_valid(now=1000) is False


def test_token_from_response_computes_absolute_expiry():
    token = Token.from_response(
        {"access_token": "TOKEN", "expires_in": 3762, "refresh_token": "REFRESH_TOKEN", "token_type": "bearer"},
        now=1_000_000,
    )
    assert token == Token("TOKEN", "REFRESH_TOKEN", 1_003_762)


def test_token_from_malformed_response():
    with pytest.raises(ProviderError):
        Token.from_response({"error": "invalid_grant"})


@pytest.mark.parametrize("expires_in", [None, "soon", [3600]])
def test_token_from_response_with_bad_expiry(expires_in):
    with pytest.raises(ProviderError, match="malformed"):
        Token.from_response({"access_token": "TOKEN", "expires_in": expires_in})


def test_token_from_response_accepts_numeric_string_expiry():
    token = Token.from_response({"access_token": "TOKEN", "expires_in": "60"}, now=1000)
    assert token.expires_at == 1060


def test_driver_must_implement_refresh():
    class NoRefresh(OAuthProvider):
        pass

    with pytest.raises(TypeError):
        NoRefresh(dict(BOX_CONFIG))
