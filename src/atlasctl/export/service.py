"""Export a Confluence page together with its full comment tree."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

import httpx

from atlasctl.config import FetchCredentials
from atlasctl.confluence.client import DEFAULT_PAGE_SIZE, ConfluenceClient
from atlasctl.confluence.fields import parse_comment, parse_page
from atlasctl.confluence.models import Comment, ExportMeta, PageExport, count_comments
from atlasctl.confluence.page_input import resolve_page_id_for_site

logger = logging.getLogger(__name__)

COMMENT_EXPAND_FIELDS = (
    "body.storage",
    "version",
    "extensions.inlineProperties",
    "extensions.resolution",
)
PAGE_EXPAND_FIELDS = ("body.storage", "version", "history", "space", "metadata.labels")


def _utc_now_iso() -> str:
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ExportService:
    """Fetch page metadata and comments through a :class:`ConfluenceClient`.

    Requests are issued one at a time: first the page, then each listing of
    child comments in depth-first order.
    """

    def __init__(
        self,
        client: ConfluenceClient,
        *,
        clock: Callable[[], str] = _utc_now_iso,
    ) -> None:
        self.client = client
        self.clock = clock

    # ------------------------------------------------------------------
    # Comment tree
    # ------------------------------------------------------------------
    def fetch_child_comments(self, parent_id: str) -> list[Comment]:
        """Return the direct comments of a page or replies of a comment, without nesting."""

        raw_comments = self.client.fetch_all(
            f"/rest/api/content/{parent_id}/child/comment",
            params={"expand": ",".join(COMMENT_EXPAND_FIELDS), "limit": DEFAULT_PAGE_SIZE},
        )
        return [parse_comment(raw) for raw in raw_comments]

    def build_replies(self, parent_id: str) -> list[Comment]:
        """Return the complete reply tree below ``parent_id``.

        The tree is walked with an explicit stack instead of recursion so
        arbitrarily deep reply chains are safe. Fetch order is depth-first
        pre-order and siblings keep the order the API returned them in.
        """

        roots = self.fetch_child_comments(parent_id)
        pending: list[Comment] = list(reversed(roots))
        while pending:
            comment = pending.pop()
            comment.children = self.fetch_child_comments(comment.id)
            pending.extend(reversed(comment.children))
        return roots

    def build_comments(self, page_id: str) -> list[Comment]:
        """Return the top-level comments of a page, with replies nested."""

        return self.build_replies(page_id)

    # ------------------------------------------------------------------
    # Page export
    # ------------------------------------------------------------------
    def fetch_export(self, page_id: str) -> PageExport:
        raw_page = self.client.get_json(
            f"/rest/api/content/{page_id}",
            params={"expand": ",".join(PAGE_EXPAND_FIELDS)},
        )
        page = parse_page(raw_page, base_url=self.client.base_url)
        logger.info("Fetched page %s (%s)", page.id, page.title)

        comments = self.build_comments(page_id)
        total = count_comments(comments)
        logger.info("Fetched %d comments for page %s", total, page.id)

        return PageExport(
            page=page,
            comments=comments,
            meta=ExportMeta(fetched_at=self.clock(), total_comments=total),
        )


def fetch_confluence_page(
    credentials: FetchCredentials,
    id_or_url: str,
    *,
    timeout: Optional[float] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> PageExport:
    """Resolve ``id_or_url`` against the configured site and export that page."""

    page_id = resolve_page_id_for_site(id_or_url, credentials.site)
    with ConfluenceClient.from_credentials(
        credentials, timeout=timeout, transport=transport
    ) as client:
        return ExportService(client).fetch_export(page_id)
