"""Integration tests against a real SQLite database and the full app."""
