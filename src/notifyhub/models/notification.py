"""Pydantic models for notification requests, records, and read-side views."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from notifyhub.models.enums import SortDirection

DEFAULT_PRIORITY = "NORMAL"


class RenderedContent(BaseModel):
    """Subject/body of a notification rendered in one language."""

    subject: str | None = None
    body: str | None = None


class NotificationRequest(BaseModel):
    """Notification request as carried on the request queue.

    Field names are accepted both in snake_case and in the camelCase used by
    external producers (``templateId``, ``userId``).
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    template_id: str | None = None
    user_id: str = Field(..., min_length=1)
    channel: str | None = None
    priority: str | None = None
    source_system: str | None = None
    params: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None


class SendNotificationRequest(NotificationRequest):
    """Body of the synchronous accept endpoint; template and channel are mandatory."""

    template_id: str = Field(..., min_length=1)
    channel: str = Field(..., min_length=1)

    @field_validator("template_id", "user_id", "channel")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class NotificationRecord(BaseModel):
    """Full stored notification document; also the change-feed event body."""

    id: str
    template_id: str | None = None
    user_id: str
    channel: str | None = None
    priority: str = DEFAULT_PRIORITY
    source_system: str | None = None
    params: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)
    rendered_content: dict[str, RenderedContent] = Field(default_factory=dict)
    subject: str | None = None
    body: str | None = None
    sent: bool = False
    read: bool = False
    disabled: bool = False
    created_at: datetime
    sent_at: datetime | None = None
    read_at: datetime | None = None

    @classmethod
    def from_row(cls, row) -> "NotificationRecord":
        return cls(
            id=row.notification_id,
            template_id=row.template_id,
            user_id=row.user_id,
            channel=row.channel,
            priority=row.priority or DEFAULT_PRIORITY,
            source_system=row.source_system,
            params=row.params or {},
            metadata=row.extra_data or {},
            rendered_content=row.rendered_content or {},
            subject=row.subject,
            body=row.body,
            sent=row.sent,
            read=row.read,
            disabled=row.disabled,
            created_at=row.created_at,
            sent_at=row.sent_at,
            read_at=row.read_at,
        )

    def to_row_fields(self) -> dict[str, Any]:
        """Column values for inserting this record as a NotificationRow."""
        return {
            "notification_id": self.id,
            "template_id": self.template_id,
            "user_id": self.user_id,
            "channel": self.channel,
            "priority": self.priority,
            "source_system": self.source_system,
            "params": self.params,
            "extra_data": self.metadata,
            "rendered_content": {
                lang: content.model_dump() for lang, content in self.rendered_content.items()
            },
            "subject": self.subject,
            "body": self.body,
            "sent": self.sent,
            "read": self.read,
            "disabled": self.disabled,
            "created_at": self.created_at,
            "sent_at": self.sent_at,
            "read_at": self.read_at,
        }


class NotificationView(BaseModel):
    """A notification as served to a reader in one language."""

    id: str
    subject: str | None = None
    content: str | None = None
    channel: str | None = None
    priority: str | None = None
    read: bool = False
    created_at: datetime | None = None
    metadata: dict[str, Any] | None = None


class NotificationFilter(BaseModel):
    """Filter, sort and page options for listing a user's notifications."""

    read: bool | None = None
    channel: str | None = None
    priority: str | None = None
    page: int = 0
    size: int = 20
    sort_by: str | None = None
    sort_direction: SortDirection = SortDirection.DESC

    @field_validator("page")
    @classmethod
    def _clamp_page(cls, value: int) -> int:
        return max(0, value)

    @field_validator("size")
    @classmethod
    def _clamp_size(cls, value: int) -> int:
        return max(1, min(100, value))

    @field_validator("sort_direction", mode="before")
    @classmethod
    def _normalize_direction(cls, value):
        # Anything other than ASC/DESC keeps the default direction
        if isinstance(value, str) and value.upper() in ("ASC", "DESC"):
            return value.upper()
        if isinstance(value, SortDirection):
            return value
        return SortDirection.DESC


class NotificationPage(BaseModel):
    """One page of notification views with pagination metadata."""

    notifications: list[NotificationView]
    total_count: int
    current_page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool


class NotificationIdResponse(BaseModel):
    notification_id: str
