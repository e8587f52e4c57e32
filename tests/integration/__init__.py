"""Integration tests: HTTP API и сквозные сценарии."""
