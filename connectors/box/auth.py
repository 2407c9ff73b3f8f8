from __future__ import annotations
import logging
from typing import Dict
from urllib.parse import urlencode

import httpx

from connectors.base import Token
from connectors.errors import ProviderError

logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://account.box.com/api/oauth2/authorize"
TOKEN_URL = "https://api.box.com/oauth2/token"


def build_authorize_url(*, client_id: str, redirect_uri: str, state: str) -> str:
    params = {
        "response_type": "code",
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "state": state,
    }
    return f"{AUTHORIZE_URL}?{urlencode(params)}"


async def _request_token(data: Dict[str, str]) -> Token:
    async with httpx.AsyncClient(timeout=30) as client:
        resp = await client.post(TOKEN_URL, data=data)
    if not 200 <= resp.status_code < 300:
        raise ProviderError(
            f"Box token endpoint rejected {data['grant_type']} grant", status=resp.status_code
        )
    try:
        payload = resp.json()
    except ValueError as e:
        raise ProviderError("Box token endpoint returned invalid JSON") from e
    return Token.from_response(payload)


async def exchange_code_for_tokens_async(
    *, client_id: str, client_secret: str, code: str, redirect_uri: str
) -> Token:
    logger.debug("Exchanging Box authorization code")
    return await _request_token(
        {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": client_id,
            "client_secret": client_secret,
            "redirect_uri": redirect_uri,
        }
    )


async def refresh_tokens_async(*, client_id: str, client_secret: str, refresh_token: str) -> Token:
    logger.debug("Refreshing Box access token")
    return await _request_token(
        {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": client_id,
            "client_secret": client_secret,
        }
    )
