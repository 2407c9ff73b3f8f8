from __future__ import annotations
from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

import anyio
import httpx

from connectors.base import Entry, OAuthProvider, Token
from connectors.box import auth as box_auth
from connectors.errors import AuthorizationError, ProviderError
from connectors.mime import FOLDER_MIME_TYPE, mime_type_for
from connectors.registry import register
from core.location import make_location

logger = logging.getLogger(__name__)

API_BASE = "https://api.box.com/2.0"
ROOT_FOLDER_ID = "0"
# Box caps a page at 1000 items; most folders fit in one request.
PAGE_SIZE = 1000
LISTING_FIELDS = "name,size,created_at,modified_at"
# Box download URLs are short lived and the API does not state their lifetime.
LINK_LIFETIME = timedelta(minutes=15)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


@register("box")
class BoxProvider(OAuthProvider):
    name = "Box"

    # OAuth
    def auth_link(self, state: Optional[str] = None) -> str:
        return box_auth.build_authorize_url(
            client_id=self.config["client_id"],
            redirect_uri=self.callback_url(),
            state=state or self.key,
        )

    def connect(
        self,
        auth_params: Mapping[str, Any],
        session_id: Optional[str] = None,
        base_url: Optional[str] = None,
    ) -> Token:
        code = auth_params.get("code")
        if not code:
            raise AuthorizationError("Box callback did not include an authorization code")

        async def _run():
            return await box_auth.exchange_code_for_tokens_async(
                client_id=self.config["client_id"],
                client_secret=self.config["client_secret"],
                code=code,
                redirect_uri=self.callback_url(base_url),
            )

        token = anyio.run(_run)
        with self._token_lock:
            self._token = token
        logger.info("Connected %s provider for session %s", self.key, session_id)
        return token

    def _refresh_token(self, refresh_token: str) -> Token:
        async def _run():
            return await box_auth.refresh_tokens_async(
                client_id=self.config["client_id"],
                client_secret=self.config["client_secret"],
                refresh_token=refresh_token,
            )

        return anyio.run(_run)

    # Data plane
    def contents(self, container_id: str = "") -> List[Entry]:
        """List one folder. Entries keep the order Box returns them in."""
        token = self.ensure_authorized()
        folder_id = container_id or ROOT_FOLDER_ID
        entries: List[Entry] = []
        with self._client(token) as client:
            folder = self._get_json(client, f"/folders/{folder_id}", folder_id)
            if folder.get("type") != "folder":
                raise ProviderError("Box item is not a folder", resource_id=folder_id)
            parent_path = self._folder_path(folder)

            offset = 0
            while True:
                page = self._get_json(
                    client,
                    f"/folders/{folder_id}/items",
                    folder_id,
                    params={"fields": LISTING_FIELDS, "limit": PAGE_SIZE, "offset": offset},
                )
                items = page.get("entries")
                if not isinstance(items, list):
                    raise ProviderError("Box listing has no entries collection", resource_id=folder_id)
                entries.extend(self._to_entry(item, parent_path, folder_id) for item in items)
                offset += len(items)
                total = page.get("total_count")
                if not items or not isinstance(total, int) or offset >= total:
                    break
        logger.debug("Listed %d items in %s folder %s", len(entries), self.key, folder_id)
        return entries

    def link_for(self, resource_id: str) -> Tuple[str, Dict[str, Any]]:
        """Resolve a file id to a short-lived direct download URL.

        Box answers the content endpoint with a redirect; its Location header
        is the download URL and is not followed here.
        """
        token = self.ensure_authorized()
        with self._client(token) as client:
            meta = self._get_json(client, f"/files/{resource_id}", resource_id, params={"fields": "name,size"})
            resp = self._get(client, f"/files/{resource_id}/content", resource_id, follow_redirects=False)

        if resp.status_code == 202:
            raise ProviderError(
                f"Box file content is not ready yet, retry after {resp.headers.get('retry-after', '?')}s",
                resource_id=resource_id,
                status=resp.status_code,
            )
        if not 300 <= resp.status_code < 400:
            raise ProviderError(
                "Box content endpoint did not answer with a redirect",
                resource_id=resource_id,
                status=resp.status_code,
            )
        download_url = resp.headers.get("location")
        if not download_url:
            raise ProviderError("Box redirect has no Location header", resource_id=resource_id)

        expires = datetime.now(timezone.utc) + LINK_LIFETIME
        return download_url, {
            "expires": expires.isoformat(),
            "file_name": meta.get("name"),
            "file_size": meta.get("size"),
        }

    # HTTP helpers
    def _client(self, token: Token) -> httpx.Client:
        return httpx.Client(
            base_url=API_BASE,
            headers={"Authorization": f"Bearer {token.access_token}"},
            timeout=60,
            transport=self._transport,
        )

    def _get(self, client: httpx.Client, path: str, resource_id: str, **kwargs) -> httpx.Response:
        try:
            resp = client.get(path, **kwargs)
        except httpx.TransportError as e:
            raise ProviderError(f"Box request {path} failed: {e}", resource_id=resource_id) from e
        if resp.status_code == 401:
            raise AuthorizationError(f"Box rejected the access token for {resource_id!r}")
        return resp

    def _get_json(self, client: httpx.Client, path: str, resource_id: str, **kwargs) -> Dict[str, Any]:
        resp = self._get(client, path, resource_id, **kwargs)
        if resp.status_code != 200:
            raise ProviderError(f"Box GET {path} failed", resource_id=resource_id, status=resp.status_code)
        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderError(f"Box GET {path} returned invalid JSON", resource_id=resource_id) from e
        if not isinstance(data, dict):
            raise ProviderError(f"Box GET {path} returned an unexpected payload", resource_id=resource_id)
        return data

    # Mapping
    @staticmethod
    def _folder_path(folder: Dict[str, Any]) -> str:
        parents = (folder.get("path_collection") or {}).get("entries") or []
        names = [p.get("name") or "" for p in parents]
        names.append(folder.get("name") or "")
        return "/".join(n for n in names if n)

    def _to_entry(self, item: Any, parent_path: str, folder_id: str) -> Entry:
        if not isinstance(item, dict) or not item.get("id"):
            raise ProviderError("Box listing contains an item without an id", resource_id=folder_id)
        item_id = str(item["id"])
        name = item.get("name") or ""
        is_container = item.get("type") == "folder"
        return Entry(
            id=item_id,
            location=make_location(self.key, item_id),
            name=name,
            size=int(item.get("size") or 0),
            type=FOLDER_MIME_TYPE if is_container else mime_type_for(name),
            is_container=is_container,
            path=f"{parent_path}/{name}" if parent_path else name,
            mtime=_parse_timestamp(item.get("modified_at") or item.get("created_at")),
        )
