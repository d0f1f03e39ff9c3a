import json
import logging

import pytest

from atlasctl.confluence.models import Comment, count_comments
from atlasctl.errors import HostMismatchError, TransportError
from atlasctl.export.service import ExportService, fetch_confluence_page

FIXED_NOW = "2026-01-01T00:00:00.000Z"


def _service(client):
    return ExportService(client, clock=lambda: FIXED_NOW)


def test_page_without_comments(client, fake_confluence):
    fake_confluence.add_page("55")

    export = _service(client).fetch_export("55")

    payload = export.to_dict()
    assert payload["comments"] == []
    assert payload["meta"] == {"fetchedAt": FIXED_NOW, "totalComments": 0}
    assert payload["page"]["id"] == "55"
    assert payload["page"]["url"] == "https://example.atlassian.net/wiki/spaces/ENG/pages/55/Page"
    assert payload["page"]["labels"] == ["design", "draft"]
    assert payload["page"]["version"] == 4


def test_page_request_expands_metadata(client, fake_confluence):
    fake_confluence.add_page("55")

    _service(client).fetch_export("55")

    page_request = fake_confluence.requests[0]
    assert page_request.url.path == "/wiki/rest/api/content/55"
    assert page_request.url.params["expand"] == "body.storage,version,history,space,metadata.labels"
    comments_request = fake_confluence.requests[1]
    assert comments_request.url.params["expand"] == (
        "body.storage,version,extensions.inlineProperties,extensions.resolution"
    )
    assert comments_request.url.params["limit"] == "100"


def test_total_comments_for_depth_three_fanout_two(client, fake_confluence):
    fake_confluence.add_page("55")
    fake_confluence.add_tree("55", depth=3, fanout=2)

    export = _service(client).fetch_export("55")

    assert len(export.comments) == 2
    assert all(len(comment.children) == 2 for comment in export.comments)
    assert export.meta.total_comments == 14
    # One page request, one listing for the page and one per comment.
    assert len(fake_confluence.requests) == 1 + 1 + 14


def test_tree_preserves_order_and_fetches_depth_first(client, fake_confluence):
    fake_confluence.add_page("1")
    fake_confluence.add_comment("1", "10")
    fake_confluence.add_comment("1", "20")
    fake_confluence.add_comment("10", "11")
    fake_confluence.add_comment("10", "12")
    fake_confluence.add_comment("11", "111")

    comments = _service(client).build_comments("1")

    assert [c.id for c in comments] == ["10", "20"]
    assert [c.id for c in comments[0].children] == ["11", "12"]
    assert [c.id for c in comments[0].children[0].children] == ["111"]
    assert comments[1].children == []
    assert fake_confluence.paths == [
        "/wiki/rest/api/content/1/child/comment",
        "/wiki/rest/api/content/10/child/comment",
        "/wiki/rest/api/content/11/child/comment",
        "/wiki/rest/api/content/111/child/comment",
        "/wiki/rest/api/content/12/child/comment",
        "/wiki/rest/api/content/20/child/comment",
    ]


def test_replies_follow_pagination(client, fake_confluence):
    fake_confluence.page_size = 2
    fake_confluence.add_page("1")
    parent = fake_confluence.add_comment("1", "10")
    for reply_id in ("21", "22", "23", "24", "25"):
        fake_confluence.add_comment(parent, reply_id)

    replies = _service(client).build_replies("10")

    assert [reply.id for reply in replies] == ["21", "22", "23", "24", "25"]


def test_deep_reply_chain_does_not_recurse(client, fake_confluence):
    fake_confluence.add_page("1")
    parent = "1"
    for index in range(1500):
        parent = fake_confluence.add_comment(parent, str(5000 + index))

    export = _service(client).fetch_export("1")

    assert export.meta.total_comments == 1500
    payload = export.to_dict()
    node = payload["comments"][0]
    depth = 1
    while node["children"]:
        node = node["children"][0]
        depth += 1
    assert depth == 1500


def test_subtree_failure_fails_whole_export(client, fake_confluence):
    fake_confluence.add_page("1")
    fake_confluence.add_comment("1", "10")
    fake_confluence.add_comment("10", "11")
    fake_confluence.fail("/wiki/rest/api/content/11/child/comment", 502)

    with pytest.raises(TransportError) as excinfo:
        _service(client).fetch_export("1")

    assert excinfo.value.status_code == 502


def test_fetched_at_is_stamped_after_comments(client, fake_confluence):
    fake_confluence.add_page("1")
    fake_confluence.add_comment("1", "10")
    calls = []

    def clock():
        calls.append(len(fake_confluence.requests))
        return FIXED_NOW

    ExportService(client, clock=clock).fetch_export("1")

    assert calls == [len(fake_confluence.requests)]


def test_count_comments_counts_every_level():
    tree = [
        Comment(id="1", children=[Comment(id="2"), Comment(id="3", children=[Comment(id="4")])]),
        Comment(id="5"),
    ]

    assert count_comments(tree) == 5
    assert count_comments([]) == 0


def test_fetch_confluence_page_by_numeric_id(credentials, fake_confluence):
    fake_confluence.add_page("22982787097")
    fake_confluence.add_comment(
        "22982787097",
        "1",
        extensions={
            "inlineProperties": {"originalSelection": "Hello", "markerRef": "m-1"},
            "resolution": {"status": "resolved"},
        },
    )

    export = fetch_confluence_page(credentials, "22982787097", transport=fake_confluence.transport())

    payload = json.loads(json.dumps(export.to_dict()))
    assert payload["page"]["id"] == "22982787097"
    assert payload["comments"][0]["inlineContext"] == {
        "textSelection": "Hello",
        "markerRef": "m-1",
        "resolved": True,
    }
    assert payload["meta"]["totalComments"] == 1
    assert payload["meta"]["fetchedAt"].endswith("Z")


def test_fetch_confluence_page_by_url(credentials, fake_confluence):
    fake_confluence.add_page("77")

    export = fetch_confluence_page(
        credentials,
        "https://example.atlassian.net/wiki/spaces/ENG/pages/77/Title",
        transport=fake_confluence.transport(),
    )

    assert export.page.id == "77"


def test_host_mismatch_is_raised_before_any_request(credentials, fake_confluence):
    fake_confluence.add_page("55")

    with pytest.raises(HostMismatchError):
        fetch_confluence_page(
            credentials,
            "https://other.atlassian.net/wiki/pages/viewpage.action?pageId=55",
            transport=fake_confluence.transport(),
        )

    assert fake_confluence.requests == []


def test_export_logs_comment_count(client, fake_confluence, caplog):
    fake_confluence.add_page("1")
    fake_confluence.add_comment("1", "10")
    caplog.set_level(logging.INFO, logger="atlasctl")

    _service(client).fetch_export("1")

    assert "Fetched 1 comments for page 1" in caplog.text
