"""Setup wizard HTTP API."""
