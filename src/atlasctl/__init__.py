"""Atlassian CLI for exporting Confluence pages and their comment threads."""

__version__ = "0.3.1"
