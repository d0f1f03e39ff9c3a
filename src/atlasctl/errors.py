"""Typed exception hierarchy for atlasctl.

Every failure raised by the export pipeline or the configuration layer
derives from :class:`AtlasctlError`, so the command surface can catch one
type, print its message and exit non-zero.
"""

from __future__ import annotations

from typing import Sequence


class AtlasctlError(Exception):
    """Base exception for all atlasctl errors."""


class InvalidInputError(AtlasctlError):
    """Raised when a page identifier is neither a numeric ID nor a usable URL."""


class HostMismatchError(AtlasctlError):
    """Raised when a page URL points at a different site than the configured one."""

    def __init__(self, url_host: str, configured_site: str) -> None:
        super().__init__(
            f"URL host mismatch: URL uses {url_host} but config site is {configured_site}."
        )
        self.url_host = url_host
        self.configured_site = configured_site


class TransportError(AtlasctlError):
    """Raised when the Confluence API answers with a non-success status."""

    def __init__(self, status_code: int, reason: str, method: str, url: str) -> None:
        super().__init__(f"Confluence API error {status_code} {reason}: {method} {url}")
        self.status_code = status_code
        self.reason = reason
        self.method = method
        self.url = url


class NetworkError(AtlasctlError):
    """Raised when a request could not be completed at all."""

    def __init__(self, method: str, url: str, detail: str) -> None:
        super().__init__(f"Unable to reach Confluence: {method} {url} ({detail})")
        self.method = method
        self.url = url


class ConfigError(AtlasctlError):
    """Raised when the configuration file or a configuration value is invalid."""


class MissingConfigurationError(ConfigError):
    """Raised when a fetch needs credentials that are not configured."""

    def __init__(self, missing: Sequence[str]) -> None:
        super().__init__(
            f"Missing required config values: {', '.join(missing)}. "
            "Set each with: atlasctl config set <site|email|apikey> <value>"
        )
        self.missing = list(missing)


class InvalidResponseError(AtlasctlError):
    """Raised when a successful response does not carry the expected JSON body."""

    def __init__(self, method: str, url: str, detail: str) -> None:
        super().__init__(f"Unexpected response from Confluence: {method} {url} ({detail})")
        self.method = method
        self.url = url
