"""HTTP API for Homefence."""
