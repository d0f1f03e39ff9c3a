"""Read-only access to the Confluence REST API."""
