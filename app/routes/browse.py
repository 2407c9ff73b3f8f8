from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, ConfigDict

from connectors.errors import (
    AuthorizationError,
    LocationError,
    ProviderError,
    UnknownProviderError,
    UnsupportedSchemeError,
)
from core.browser import Browser, get_browser
from core.location import make_location
from infra.retrieval.descriptor import ResourceDescriptor

# Handlers are plain defs: providers call anyio.run, which cannot nest inside the event loop.
router = APIRouter()


class ProviderOut(BaseModel):
    key: str
    name: str
    authorized: bool


class AuthLinkResponse(BaseModel):
    provider: str
    auth_link: str


class ConnectResponse(BaseModel):
    provider: str
    authorized: bool
    expires_at: Optional[int] = None


class EntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    location: str
    name: str
    size: int
    type: str
    is_container: bool
    path: Optional[str] = None
    mtime: Optional[datetime] = None


class ResolveRequest(BaseModel):
    locations: List[str]


@contextmanager
def _http_errors():
    try:
        yield
    except UnknownProviderError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except AuthorizationError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except (LocationError, UnsupportedSchemeError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ProviderError as e:
        # Surface backend failures as a bad gateway
        raise HTTPException(status_code=502, detail=str(e))


@router.get("/providers", response_model=List[ProviderOut])
def list_providers(browser: Browser = Depends(get_browser)) -> List[ProviderOut]:
    return [
        ProviderOut(key=key, name=provider.name, authorized=provider.authorized)
        for key, provider in browser.providers.items()
    ]


@router.get("/connect", response_model=ConnectResponse)
def connect(
    request: Request,
    state: str,
    code: Optional[str] = None,
    error: Optional[str] = None,
    browser: Browser = Depends(get_browser),
) -> ConnectResponse:
    """OAuth callback shared by every provider; ``state`` names the provider."""
    if error:
        raise HTTPException(status_code=401, detail=f"Authorization denied: {error}")
    with _http_errors():
        token = browser.connect(
            {"code": code, "state": state},
            session_id=request.cookies.get("session_id"),
            base_url=str(request.base_url),
        )
    return ConnectResponse(provider=state, authorized=token.is_valid(), expires_at=token.expires_at)


@router.post("/resolve", response_model=List[ResourceDescriptor])
def resolve(body: ResolveRequest, browser: Browser = Depends(get_browser)) -> List[ResourceDescriptor]:
    with _http_errors():
        return [browser.descriptor_for(location) for location in body.locations]


@router.get("/{provider}/auth", response_model=AuthLinkResponse)
def auth_link(provider: str, browser: Browser = Depends(get_browser)) -> AuthLinkResponse:
    with _http_errors():
        link = browser.provider(provider).auth_link()
    return AuthLinkResponse(provider=provider, auth_link=link)


@router.get("/{provider}/contents", response_model=List[EntryOut])
def contents(
    provider: str,
    id: str = Query(default=""),
    browser: Browser = Depends(get_browser),
) -> List[EntryOut]:
    with _http_errors():
        entries = browser.contents(make_location(provider, id))
    return [EntryOut.model_validate(entry) for entry in entries]
