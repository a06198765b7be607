"""Access control for the helpdesk API."""

from .access import AccessGate, Action, AuthContext, Role, authorize

__all__ = ["AccessGate", "Action", "AuthContext", "Role", "authorize"]
