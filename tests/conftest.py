from __future__ import annotations

import time

import httpx
import pytest

from connectors.base import Token
from connectors.registry import get_provider_class

BOX_CONFIG = {
    "client_id": "CLIENTID",
    "client_secret": "CLIENTSECRET",
    "redirect_uri": "http://example.com/browse/connect",
}

DOWNLOAD_HOST = "https://dl.boxcloud.com/d/1"

ROOT_ITEMS = [
    ("folder", "20375782799", "A very looooooooooooong box folder, why so loooooooong", 0),
    ("folder", "2571160559", "Apps Team - Shared", 1249),
    ("folder", "20194542723", "DSRD - W Pattee 3", 2949416),
    ("folder", "20284062015", "My Box Notes", 0),
    ("folder", "11305958926", "PCDM-Sufia", 650658),
    ("folder", "4227519189", "refactor", 8766),
    ("folder", "2459961273", "SaS - Development Team", 152720753),
    ("folder", "3399219062", "Scholarsphere - Migration", 270984),
    ("folder", "1168461187", "test", 20625445557),
    ("folder", "3055812547", "UX Artifacts", 3801994),
    ("file", "25581309763", "failed.tar.gz", 28650839),
    ("file", "25588823531", "scholarsphere_5712md360.xml", 97038),
    ("file", "113711622968", "test.txt", 0),
]

SAS_ITEMS = [
    ("folder", "2459974427", "Apps&Int", 14341346),
    ("folder", "11217040834", "Credentials", 12603),
    ("file", "75228871930", "99bottles (1).epub", 1013573),
    ("file", "106651625938", "Digital Scholarship and Repository Development (DSRD) Org Chart 2016.pdf", 17677),
    ("file", "76960974625", "Equipment.boxnote", 10140),
    ("file", "22182934895", "TimeBox.xlsx", 21864),
]

FOLDERS = {
    "0": {"name": "All Files", "parents": [], "items": ROOT_ITEMS},
    "2459961273": {"name": "SaS - Development Team", "parents": ["All Files"], "items": SAS_ITEMS},
}

FILES = {
    "25581309763": {"name": "failed.tar.gz", "size": 28650839},
    "76960974625": {"name": "Equipment.boxnote", "size": 10140},
}


class FakeBoxApi:
    """Minimal Box 2.0 API served through httpx.MockTransport."""

    def __init__(self, access_token: str = "TOKEN"):
        self.access_token = access_token
        self.requests: list[httpx.Request] = []
        self.content_status = 302

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.headers.get("authorization") != f"Bearer {self.access_token}":
            return httpx.Response(401, json={"type": "error", "status": 401})
        parts = request.url.path.strip("/").split("/")
        if parts[:2] == ["2.0", "folders"] and len(parts) == 3:
            return self._folder(parts[2])
        if parts[:2] == ["2.0", "folders"] and parts[3:] == ["items"]:
            return self._items(parts[2], request)
        if parts[:2] == ["2.0", "files"] and len(parts) == 3:
            return self._file(parts[2])
        if parts[:2] == ["2.0", "files"] and parts[3:] == ["content"]:
            return self._content(parts[2])
        return httpx.Response(404, json={"type": "error", "status": 404})

    def _folder(self, folder_id):
        folder = FOLDERS.get(folder_id)
        if folder is None:
            return httpx.Response(404, json={"type": "error", "status": 404})
        return httpx.Response(
            200,
            json={
                "type": "folder",
                "id": folder_id,
                "name": folder["name"],
                "path_collection": {
                    "total_count": len(folder["parents"]),
                    "entries": [{"type": "folder", "name": n} for n in folder["parents"]],
                },
            },
        )

    def _items(self, folder_id, request):
        folder = FOLDERS.get(folder_id)
        if folder is None:
            return httpx.Response(404, json={"type": "error", "status": 404})
        offset = int(request.url.params.get("offset", 0))
        limit = int(request.url.params.get("limit", 100))
        entries = [
            {"type": t, "id": i, "name": n, "size": s, "created_at": "2015-01-29T05:18:43-08:00"}
            for t, i, n, s in folder["items"]
        ]
        return httpx.Response(
            200,
            json={
                "total_count": len(entries),
                "entries": entries[offset:offset + limit],
                "offset": offset,
                "limit": limit,
                "order": [{"by": "type", "direction": "ASC"}, {"by": "name", "direction": "ASC"}],
            },
        )

    def _file(self, file_id):
        meta = FILES.get(file_id)
        if meta is None:
            return httpx.Response(404, json={"type": "error", "status": 404})
        return httpx.Response(200, json={"type": "file", "id": file_id, **meta})

    def _content(self, file_id):
        if self.content_status == 302:
            return httpx.Response(302, headers={"location": f"{DOWNLOAD_HOST}/{file_id}/download"})
        return httpx.Response(self.content_status, headers={"retry-after": "5"})


@pytest.fixture
def box_api() -> FakeBoxApi:
    return FakeBoxApi()


@pytest.fixture
def box_provider(box_api):
    cls = get_provider_class("box")
    return cls(dict(BOX_CONFIG), transport=box_api.transport())


@pytest.fixture
def valid_token() -> Token:
    return Token(access_token="TOKEN", refresh_token="REFRESH_TOKEN", expires_at=int(time.time()) + 360)
