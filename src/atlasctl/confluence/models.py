"""Typed models for exported Confluence pages and comment trees."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional


@dataclass(slots=True)
class InlineContext:
    """Text selection an inline comment is anchored to."""

    text_selection: str = ""
    marker_ref: str = ""
    resolved: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "textSelection": self.text_selection,
            "markerRef": self.marker_ref,
            "resolved": self.resolved,
        }


@dataclass(slots=True)
class Comment:
    """A page comment or reply, with its replies nested in ``children``."""

    id: str
    title: str = ""
    author: str = "unknown"
    created: str = ""
    updated: str = ""
    body_html: str = ""
    inline_context: Optional[InlineContext] = None
    children: list["Comment"] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Serialize this comment and its replies.

        ``inlineContext`` is left out entirely for comments that are not
        inline annotations. Conversion walks the tree with an explicit
        stack, so reply depth is not limited by the interpreter.
        """

        root = self._shallow_dict()
        stack: list[tuple[Comment, dict[str, Any]]] = [(self, root)]
        while stack:
            comment, payload = stack.pop()
            for child in comment.children:
                child_payload = child._shallow_dict()
                payload["children"].append(child_payload)
                stack.append((child, child_payload))
        return root

    def _shallow_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "created": self.created,
            "updated": self.updated,
            "bodyHtml": self.body_html,
        }
        if self.inline_context is not None:
            payload["inlineContext"] = self.inline_context.to_dict()
        payload["children"] = []
        return payload


@dataclass(slots=True)
class PageInfo:
    """Page metadata included at the top of an export."""

    id: str
    title: str
    space_key: str
    url: str
    author: str
    created: str
    last_updated: str
    version: int = 1
    labels: list[str] = field(default_factory=list)
    body_html: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "space": self.space_key,
            "url": self.url,
            "author": self.author,
            "created": self.created,
            "lastUpdated": self.last_updated,
            "version": self.version,
            "labels": list(self.labels),
            "bodyHtml": self.body_html,
        }


@dataclass(slots=True)
class ExportMeta:
    fetched_at: str
    total_comments: int

    def to_dict(self) -> dict[str, Any]:
        return {"fetchedAt": self.fetched_at, "totalComments": self.total_comments}


@dataclass(slots=True)
class PageExport:
    """Full export document: page metadata, comment tree and fetch metadata."""

    page: PageInfo
    comments: list[Comment]
    meta: ExportMeta

    def to_dict(self) -> dict[str, Any]:
        return {
            "page": self.page.to_dict(),
            "comments": [comment.to_dict() for comment in self.comments],
            "meta": self.meta.to_dict(),
        }

    def iter_json(self, indent: Optional[int] = None) -> Iterator[str]:
        """Yield the JSON text of this export in chunks."""

        return iter_json(self.to_dict(), indent=indent)


def count_comments(comments: list[Comment]) -> int:
    """Return the number of nodes in ``comments`` including every nested reply."""

    total = 0
    pending = list(comments)
    while pending:
        comment = pending.pop()
        total += 1
        pending.extend(comment.children)
    return total


def _line_break(depth: int, indent: Optional[int]) -> str:
    if indent is None:
        return ""
    return "\n" + " " * (indent * depth)


def iter_json(value: Any, *, indent: Optional[int] = None) -> Iterator[str]:
    """Encode ``value`` as JSON text without recursing into nested containers.

    The output matches ``json.dumps`` with ``ensure_ascii=False`` and either
    compact separators (``indent=None``) or the given indent.
    """

    key_separator = ": " if indent is not None else ":"
    # Entries are (literal text, None) or (value to encode, depth).
    pending: list[tuple[Any, Optional[int]]] = [(value, 0)]
    while pending:
        item, depth = pending.pop()
        if depth is None:
            yield item
            continue

        if isinstance(item, dict) and item:
            tokens: list[tuple[Any, Optional[int]]] = [("{", None)]
            for index, (key, child) in enumerate(item.items()):
                prefix = "," if index else ""
                key_text = json.dumps(str(key), ensure_ascii=False)
                tokens.append((prefix + _line_break(depth + 1, indent) + key_text + key_separator, None))
                tokens.append((child, depth + 1))
            tokens.append((_line_break(depth, indent) + "}", None))
            pending.extend(reversed(tokens))
        elif isinstance(item, (list, tuple)) and item:
            tokens = [("[", None)]
            for index, child in enumerate(item):
                prefix = "," if index else ""
                tokens.append((prefix + _line_break(depth + 1, indent), None))
                tokens.append((child, depth + 1))
            tokens.append((_line_break(depth, indent) + "]", None))
            pending.extend(reversed(tokens))
        else:
            yield json.dumps(item, ensure_ascii=False)
