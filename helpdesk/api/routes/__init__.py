"""Route modules exposed by the API package."""

from . import activities, auth, ping, stats, tickets, users

__all__ = ["activities", "auth", "ping", "stats", "tickets", "users"]
