"""Field fallback chains for raw Confluence REST records.

Each normalized field is described by an ordered tuple of key paths. The
first path that resolves to a present (non-``None``) value wins; when none
does, the field's default is used.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional, Sequence

from .models import Comment, InlineContext, PageInfo

KeyPath = Sequence[str]

COMMENT_TITLE: tuple[KeyPath, ...] = (("title",),)
COMMENT_AUTHOR: tuple[KeyPath, ...] = (
    ("version", "by", "displayName"),
    ("history", "createdBy", "displayName"),
)
COMMENT_CREATED: tuple[KeyPath, ...] = (
    ("version", "when"),
    ("history", "createdDate"),
)
COMMENT_UPDATED: tuple[KeyPath, ...] = (("version", "when"),)
COMMENT_BODY: tuple[KeyPath, ...] = (
    ("body", "storage", "value"),
    ("body", "view", "value"),
)

INLINE_PROPERTIES: KeyPath = ("extensions", "inlineProperties")
INLINE_SELECTION: tuple[KeyPath, ...] = (("originalSelection",),)
INLINE_MARKER_REF: tuple[KeyPath, ...] = (("markerRef",),)
RESOLUTION_STATUS: KeyPath = ("extensions", "resolution", "status")

PAGE_TITLE: tuple[KeyPath, ...] = (("title",),)
PAGE_SPACE: tuple[KeyPath, ...] = (("space", "key"),)
PAGE_AUTHOR: tuple[KeyPath, ...] = (("version", "by", "displayName"),)
PAGE_CREATED: tuple[KeyPath, ...] = (
    ("history", "createdDate"),
    ("version", "when"),
)
PAGE_UPDATED: tuple[KeyPath, ...] = (("version", "when"),)
PAGE_VERSION: tuple[KeyPath, ...] = (("version", "number"),)
PAGE_LABELS: KeyPath = ("metadata", "labels", "results")
PAGE_BODY: tuple[KeyPath, ...] = (("body", "storage", "value"),)
PAGE_WEBUI: tuple[KeyPath, ...] = (("_links", "webui"),)


def dig(record: Any, path: KeyPath) -> Optional[Any]:
    """Follow ``path`` through nested mappings, returning ``None`` on any gap."""

    current = record
    for key in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
        if current is None:
            return None
    return current


def first_present(record: Any, paths: Iterable[KeyPath], default: Any = "") -> Any:
    for path in paths:
        value = dig(record, path)
        if value is not None:
            return value
    return default


def parse_inline_context(raw: Mapping[str, Any]) -> Optional[InlineContext]:
    properties = dig(raw, INLINE_PROPERTIES)
    if not isinstance(properties, Mapping):
        return None
    return InlineContext(
        text_selection=first_present(properties, INLINE_SELECTION),
        marker_ref=first_present(properties, INLINE_MARKER_REF),
        resolved=dig(raw, RESOLUTION_STATUS) == "resolved",
    )


def parse_comment(raw: Mapping[str, Any]) -> Comment:
    """Normalize one raw comment record. ``children`` is always left empty."""

    return Comment(
        id=str(raw["id"]),
        title=first_present(raw, COMMENT_TITLE),
        author=first_present(raw, COMMENT_AUTHOR, default="unknown"),
        created=first_present(raw, COMMENT_CREATED),
        updated=first_present(raw, COMMENT_UPDATED),
        body_html=first_present(raw, COMMENT_BODY),
        inline_context=parse_inline_context(raw),
    )


def parse_page(raw: Mapping[str, Any], *, base_url: str) -> PageInfo:
    labels = dig(raw, PAGE_LABELS) or []
    return PageInfo(
        id=str(raw["id"]),
        title=first_present(raw, PAGE_TITLE),
        space_key=first_present(raw, PAGE_SPACE),
        url=base_url + first_present(raw, PAGE_WEBUI),
        author=first_present(raw, PAGE_AUTHOR, default="unknown"),
        created=first_present(raw, PAGE_CREATED),
        last_updated=first_present(raw, PAGE_UPDATED),
        version=first_present(raw, PAGE_VERSION, default=1),
        labels=[label["name"] for label in labels if isinstance(label, Mapping) and "name" in label],
        body_html=first_present(raw, PAGE_BODY),
    )
