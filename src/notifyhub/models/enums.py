"""String enums used across NotifyHub models."""

from enum import StrEnum


class SortField(StrEnum):
    CREATED_AT = "created_at"
    SENT_AT = "sent_at"
    READ_AT = "read_at"
    PRIORITY = "priority"
    CHANNEL = "channel"
    SUBJECT = "subject"


class SortDirection(StrEnum):
    ASC = "ASC"
    DESC = "DESC"


class StreamOutcome(StrEnum):
    """Why a live delivery stream ended. None of these are errors."""

    TIMEOUT = "timeout"
    MAX_DURATION = "max_duration"
    SUPERSEDED = "superseded"
    UNSUBSCRIBED = "unsubscribed"
    CLOSED = "closed"
