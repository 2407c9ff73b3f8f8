from __future__ import annotations

from datetime import datetime, timezone

import pytest

from connectors.errors import AuthorizationError, ProviderError
from conftest import DOWNLOAD_HOST


@pytest.mark.parametrize("file_id", ["25581309763", "76960974625"])
def test_link_for_returns_redirect_target(box_provider, box_api, valid_token, file_id):
    box_provider.token = valid_token
    url, info = box_provider.link_for(file_id)

    assert url.startswith(DOWNLOAD_HOST)
    assert "expires" in info
    assert datetime.fromisoformat(info["expires"]) > datetime.now(timezone.utc)

    # metadata first, then the content endpoint; the redirect is never followed
    paths = [r.url.path for r in box_api.requests]
    assert paths == [f"/2.0/files/{file_id}", f"/2.0/files/{file_id}/content"]
    assert all(r.url.host == "api.box.com" for r in box_api.requests)


def test_link_for_carries_file_metadata(box_provider, valid_token):
    box_provider.token = valid_token
    _, info = box_provider.link_for("25581309763")
    assert info["file_name"] == "failed.tar.gz"
    assert info["file_size"] == 28650839


def test_link_for_requires_authorization(box_provider, box_api):
    with pytest.raises(AuthorizationError):
        box_provider.link_for("25581309763")
    assert box_api.requests == []


def test_link_for_without_redirect_names_the_file(box_provider, box_api, valid_token):
    box_api.content_status = 200
    box_provider.token = valid_token
    with pytest.raises(ProviderError, match="25581309763") as exc_info:
        box_provider.link_for("25581309763")
    assert exc_info.value.status == 200
    assert exc_info.value.resource_id == "25581309763"


def test_link_for_content_not_ready(box_provider, box_api, valid_token):
    box_api.content_status = 202
    box_provider.token = valid_token
    with pytest.raises(ProviderError, match="retry after 5s"):
        box_provider.link_for("25581309763")


def test_link_for_unknown_file(box_provider, valid_token):
    box_provider.token = valid_token
    with pytest.raises(ProviderError, match="404"):
        box_provider.link_for("123")


def test_rejected_token_surfaces_as_authorization_error(box_provider, box_api, valid_token):
    box_api.access_token = "SOMETHING_ELSE"
    box_provider.token = valid_token
    with pytest.raises(AuthorizationError):
        box_provider.link_for("25581309763")
