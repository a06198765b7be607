"""Wire models. Every field is camelCase on the wire."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from helpdesk.security.access import Role
from helpdesk.tickets.models import (
    ActivityType,
    EnhancedActivity,
    EnhancedComment,
    EnhancedTicket,
    TicketDetail,
    TicketStats,
    User,
)
from helpdesk.tickets.state import TicketPriority, TicketStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class MessageResponse(CamelModel):
    message: str


# Requests


class LoginRequest(CamelModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UserCreateRequest(CamelModel):
    username: str = Field(..., min_length=1, max_length=150)
    password: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    role: Role = Role.CUSTOMER
    avatar_url: str | None = None


class TicketCreateRequest(CamelModel):
    subject: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1, max_length=100)
    priority: TicketPriority = TicketPriority.MEDIUM
    assigned_to_id: int | None = None


class TicketUpdateRequest(CamelModel):
    """Partial update; only fields present in the body are applied."""

    subject: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, min_length=1)
    category: str | None = Field(default=None, min_length=1, max_length=100)
    status: TicketStatus | None = None
    priority: TicketPriority | None = None
    assigned_to_id: int | None = None

    def changes(self) -> dict[str, object]:
        return self.model_dump(exclude_unset=True)


class CommentCreateRequest(CamelModel):
    content: str = Field(..., min_length=1)


# Responses


class UserModel(CamelModel):
    """Public subset of a user; the password never leaves the service."""

    id: int
    username: str
    name: str
    email: str
    role: Role
    avatar_url: str | None = None

    @classmethod
    def from_entity(cls, user: User | None) -> "UserModel | None":
        return None if user is None else cls.model_validate(user)


class TicketModel(CamelModel):
    id: int
    display_id: str
    subject: str
    description: str
    status: TicketStatus
    priority: TicketPriority
    category: str
    created_at: datetime
    updated_at: datetime
    created_by_id: int
    assigned_to_id: int | None = None


class EnhancedTicketModel(TicketModel):
    created_by: UserModel | None = None
    assigned_to: UserModel | None = None
    comment_count: int = 0

    @classmethod
    def from_entity(cls, item: EnhancedTicket) -> "EnhancedTicketModel":
        return cls(
            **TicketModel.model_validate(item.ticket).model_dump(),
            created_by=UserModel.from_entity(item.created_by),
            assigned_to=UserModel.from_entity(item.assigned_to),
            comment_count=item.comment_count,
        )


class PaginationModel(CamelModel):
    total: int
    page: int
    limit: int
    total_pages: int


class TicketListResponse(CamelModel):
    tickets: list[EnhancedTicketModel]
    pagination: PaginationModel


class CommentModel(CamelModel):
    id: int
    content: str
    created_at: datetime
    ticket_id: int
    user_id: int


class CommentWithUserModel(CommentModel):
    user: UserModel | None = None

    @classmethod
    def from_entity(cls, item: EnhancedComment) -> "CommentWithUserModel":
        return cls(**CommentModel.model_validate(item.comment).model_dump(), user=UserModel.from_entity(item.user))


class TicketDetailModel(TicketModel):
    created_by: UserModel
    assigned_to: UserModel | None = None
    comments: list[CommentModel] = Field(default_factory=list)

    @classmethod
    def from_entity(cls, detail: TicketDetail) -> "TicketDetailModel":
        return cls(
            **TicketModel.model_validate(detail.ticket).model_dump(),
            created_by=UserModel.model_validate(detail.created_by),
            assigned_to=UserModel.from_entity(detail.assigned_to),
            comments=[CommentModel.model_validate(comment) for comment in detail.comments],
        )


class ActivityModel(CamelModel):
    id: int
    type: ActivityType
    ticket_id: int | None = None
    user_id: int
    message: str
    created_at: datetime


class ActivityWithUserModel(ActivityModel):
    user: UserModel | None = None

    @classmethod
    def from_entity(cls, item: EnhancedActivity) -> "ActivityWithUserModel":
        return cls(**ActivityModel.model_validate(item.activity).model_dump(), user=UserModel.from_entity(item.user))


class TicketStatsModel(CamelModel):
    total: int
    open_count: int
    in_progress_count: int
    resolved_count: int
    closed_count: int
    high_priority_count: int
    resolved_today: int

    @classmethod
    def from_entity(cls, stats: TicketStats) -> "TicketStatsModel":
        return cls.model_validate(stats)
