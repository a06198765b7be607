"""Database models and utilities."""

from .models import ActivityTable, CommentTable, TicketTable, UserTable

__all__ = ["ActivityTable", "CommentTable", "TicketTable", "UserTable"]
