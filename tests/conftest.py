"""Shared fixtures: an in-memory Confluence API served through httpx.MockTransport."""

from __future__ import annotations

import itertools
import re

import httpx
import pytest

from atlasctl.config import FetchCredentials
from atlasctl.confluence.client import ConfluenceClient

_CHILD_COMMENTS_RE = re.compile(r"/wiki/rest/api/content/(\d+)/child/comment")
_CONTENT_RE = re.compile(r"/wiki/rest/api/content/(\d+)")


def make_comment(comment_id: str, **overrides) -> dict:
    raw = {
        "id": comment_id,
        "type": "comment",
        "title": f"Re: comment {comment_id}",
        "version": {
            "by": {"displayName": f"Author {comment_id}"},
            "when": "2024-05-01T10:00:00.000Z",
            "number": 1,
        },
        "body": {"storage": {"value": f"<p>Body {comment_id}</p>", "representation": "storage"}},
    }
    raw.update(overrides)
    return raw


class FakeConfluence:
    """Serve pages and paginated child-comment listings from dictionaries."""

    def __init__(self, page_size: int = 100) -> None:
        self.page_size = page_size
        self.pages: dict[str, dict] = {}
        self.children: dict[str, list[dict]] = {}
        self.failures: dict[str, int] = {}
        self.requests: list[httpx.Request] = []
        self._ids = itertools.count(1000)

    def add_page(self, page_id: str, **fields) -> dict:
        raw = {
            "id": page_id,
            "type": "page",
            "title": f"Page {page_id}",
            "space": {"key": "ENG"},
            "version": {
                "by": {"displayName": "Page Owner"},
                "when": "2024-06-01T12:00:00.000Z",
                "number": 4,
            },
            "history": {"createdDate": "2024-01-01T09:00:00.000Z"},
            "metadata": {"labels": {"results": [{"name": "design"}, {"name": "draft"}]}},
            "body": {"storage": {"value": "<p>Hello</p>"}},
            "_links": {"webui": f"/spaces/ENG/pages/{page_id}/Page"},
        }
        raw.update(fields)
        self.pages[page_id] = raw
        self.children.setdefault(page_id, [])
        return raw

    def add_comment(self, parent_id: str, comment_id: str | None = None, **overrides) -> str:
        comment_id = comment_id or str(next(self._ids))
        self.children.setdefault(parent_id, []).append(make_comment(comment_id, **overrides))
        self.children.setdefault(comment_id, [])
        return comment_id

    def add_tree(self, parent_id: str, *, depth: int, fanout: int) -> None:
        if depth == 0:
            return
        for _ in range(fanout):
            child_id = self.add_comment(parent_id)
            self.add_tree(child_id, depth=depth - 1, fanout=fanout)

    def fail(self, path: str, status_code: int) -> None:
        self.failures[path] = status_code

    @property
    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path in self.failures:
            return httpx.Response(self.failures[path])

        match = _CHILD_COMMENTS_RE.fullmatch(path)
        if match:
            items = self.children.get(match.group(1))
            if items is None:
                return httpx.Response(404)
            start = int(request.url.params.get("start", "0"))
            chunk = items[start : start + self.page_size]
            body: dict = {"results": chunk, "size": len(chunk), "_links": {}}
            if start + self.page_size < len(items):
                body["_links"]["next"] = (
                    f"/wiki/rest/api/content/{match.group(1)}/child/comment"
                    f"?expand=body.storage&limit={self.page_size}&start={start + self.page_size}"
                )
            return httpx.Response(200, json=body)

        match = _CONTENT_RE.fullmatch(path)
        if match and match.group(1) in self.pages:
            return httpx.Response(200, json=self.pages[match.group(1)])
        return httpx.Response(404)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch):
    for name in ("ATLASCTL_CONFIG", "ATLASCTL_SITE", "ATLASCTL_EMAIL", "ATLASCTL_APIKEY"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fake_confluence() -> FakeConfluence:
    return FakeConfluence()


@pytest.fixture
def credentials() -> FetchCredentials:
    return FetchCredentials(site="example.atlassian.net", email="user@example.com", apikey="secret-token")


@pytest.fixture
def client(fake_confluence, credentials):
    with ConfluenceClient.from_credentials(credentials, transport=fake_confluence.transport()) as client:
        yield client
