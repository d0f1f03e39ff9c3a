"""HTTP client wrapper for reading from the Confluence REST API."""

from __future__ import annotations

import logging
from typing import Any, Iterator, Optional

import httpx

from atlasctl.config import FetchCredentials
from atlasctl.errors import InvalidResponseError, NetworkError, TransportError

logger = logging.getLogger(__name__)

API_ROOT_PREFIX = "/wiki"
DEFAULT_PAGE_SIZE = 100


def normalize_pagination_link(next_link: str) -> str:
    """Make a ``_links.next`` value usable against the ``/wiki`` base URL."""

    if next_link.startswith(("http://", "https://")):
        return next_link
    if next_link.startswith(API_ROOT_PREFIX + "/"):
        return next_link[len(API_ROOT_PREFIX):]
    return next_link


class ConfluenceClient:
    """Thin read-only wrapper above the Confluence REST API."""

    def __init__(
        self,
        *,
        site: str,
        email: str,
        apikey: str,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = f"https://{site}{API_ROOT_PREFIX}"
        self._client = httpx.Client(
            base_url=self.base_url,
            auth=(email, apikey),
            headers={"Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_credentials(cls, credentials: FetchCredentials, **kwargs: Any) -> "ConfluenceClient":
        return cls(
            site=credentials.site,
            email=credentials.email,
            apikey=credentials.apikey,
            **kwargs,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "ConfluenceClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: D401 - standard context manager signature
        self.close()

    # ------------------------------------------------------------------
    # Low-level helpers
    # ------------------------------------------------------------------
    def get_json(self, path_or_url: str, *, params: Optional[dict] = None) -> Any:
        """GET ``path_or_url`` and return the decoded body.

        Relative paths are resolved against the ``/wiki`` base URL; absolute
        URLs are used as-is.
        """

        request = self._client.build_request("GET", path_or_url, params=params)
        url = str(request.url)
        logger.debug("GET %s", url)
        try:
            response = self._client.send(request)
        except httpx.RequestError as exc:
            raise NetworkError("GET", url, str(exc) or type(exc).__name__) from exc

        if not response.is_success:
            raise TransportError(
                response.status_code,
                response.reason_phrase,
                "GET",
                url,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise InvalidResponseError("GET", url, "body is not valid JSON") from exc

    def iter_paginated(self, path: str, *, params: Optional[dict] = None) -> Iterator[dict]:
        """Yield every item of a listing endpoint, following ``_links.next``."""

        next_url: Optional[str] = path
        next_params = params
        while next_url:
            data = self.get_json(next_url, params=next_params)
            if not isinstance(data, dict):
                raise InvalidResponseError("GET", next_url, "expected a JSON object")
            results = data.get("results")
            if isinstance(results, list):
                yield from results
            next_link = (data.get("_links") or {}).get("next")
            next_url = normalize_pagination_link(next_link) if next_link else None
            # The next link already carries the query string.
            next_params = None

    def fetch_all(self, path: str, *, params: Optional[dict] = None) -> list[dict]:
        """Collect a whole listing; any failing page aborts the fetch."""

        return list(self.iter_paginated(path, params=params))
