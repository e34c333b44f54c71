"""API route modules."""

from homefence.api.routes import account, alerts, geocode, location, members, system, tracking

__all__ = ["account", "alerts", "geocode", "location", "members", "system", "tracking"]
