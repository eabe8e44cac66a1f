"""HTTP transport adapters for the bookmarking API."""
