"""Resolve user supplied page identifiers into Confluence page IDs."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qs, urlsplit

from atlasctl.errors import HostMismatchError, InvalidInputError

_DIGITS_RE = re.compile(r"[0-9]+")
_PAGES_PATH_RE = re.compile(r"/pages/([0-9]+)(?:/|$)")
_DEFAULT_PORTS = {"http": 80, "https": 443}


@dataclass(slots=True, frozen=True)
class ParsedPageInput:
    """A page ID plus the host it came from, when the input was a URL."""

    page_id: str
    host_from_url: Optional[str] = None


def parse_page_input(id_or_url: str) -> ParsedPageInput:
    """Accept a numeric page ID or a full page URL.

    URLs are searched for a ``/pages/<digits>`` path segment first and a
    ``pageId`` query parameter second.
    """

    value = id_or_url.strip()
    if _DIGITS_RE.fullmatch(value):
        return ParsedPageInput(page_id=value)

    try:
        url = urlsplit(value)
        host = url.hostname
        port = url.port
    except ValueError as exc:
        raise InvalidInputError(
            "Invalid page identifier. Provide a numeric page ID or a full Confluence page URL."
        ) from exc
    if not url.scheme or not host:
        raise InvalidInputError(
            "Invalid page identifier. Provide a numeric page ID or a full Confluence page URL."
        )

    match = _PAGES_PATH_RE.search(url.path)
    if match:
        page_id = match.group(1)
    else:
        page_id = parse_qs(url.query).get("pageId", [""])[0]

    if not _DIGITS_RE.fullmatch(page_id):
        raise InvalidInputError("Could not extract a numeric page ID from the provided URL.")

    if ":" in host:
        host = f"[{host}]"
    if port is not None and port != _DEFAULT_PORTS.get(url.scheme.lower()):
        host = f"{host}:{port}"
    return ParsedPageInput(page_id=page_id, host_from_url=host)


def resolve_page_id_for_site(id_or_url: str, configured_site: str) -> str:
    """Resolve ``id_or_url`` and refuse URLs that point at another site.

    Runs before any request is made so credentials are never sent to a
    host other than the configured one.
    """

    parsed = parse_page_input(id_or_url)
    if parsed.host_from_url and parsed.host_from_url != configured_site.lower():
        raise HostMismatchError(parsed.host_from_url, configured_site)
    return parsed.page_id
