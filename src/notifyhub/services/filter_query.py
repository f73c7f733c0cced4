"""Filter/sort/page translation for notification listings.

Every user-supplied sort value is resolved through a closed alias table onto
``SortField`` and then onto a mapped column; the raw string never reaches
the query. Unknown or empty values fall back to creation time.
"""

from sqlalchemy import ColumnElement, Select, func, select

from notifyhub.db.models.notification import NotificationRow
from notifyhub.models.enums import SortDirection, SortField
from notifyhub.models.notification import NotificationFilter, NotificationPage, NotificationView

MAX_PAGE_SIZE = 100

_SORT_ALIASES: dict[str, SortField] = {
    "createdat": SortField.CREATED_AT,
    "created_at": SortField.CREATED_AT,
    "created": SortField.CREATED_AT,
    "timestamps.createdat": SortField.CREATED_AT,
    "sentat": SortField.SENT_AT,
    "sent_at": SortField.SENT_AT,
    "sent": SortField.SENT_AT,
    "timestamps.sentat": SortField.SENT_AT,
    "readat": SortField.READ_AT,
    "read_at": SortField.READ_AT,
    "read": SortField.READ_AT,
    "timestamps.readat": SortField.READ_AT,
    "priority": SortField.PRIORITY,
    "channel": SortField.CHANNEL,
    "subject": SortField.SUBJECT,
}

_SORT_COLUMNS = {
    SortField.CREATED_AT: NotificationRow.created_at,
    SortField.SENT_AT: NotificationRow.sent_at,
    SortField.READ_AT: NotificationRow.read_at,
    SortField.PRIORITY: NotificationRow.priority,
    SortField.CHANNEL: NotificationRow.channel,
    SortField.SUBJECT: NotificationRow.subject,
}


def resolve_sort_field(sort_by: str | None) -> SortField:
    """Map a requested sort name onto the whitelist, defaulting to creation time."""
    if not sort_by or not sort_by.strip():
        return SortField.CREATED_AT
    return _SORT_ALIASES.get(sort_by.strip().lower(), SortField.CREATED_AT)


def build_conditions(user_id: str, filter: NotificationFilter | None) -> list[ColumnElement[bool]]:
    """WHERE clause for a user's visible notifications plus optional equality filters."""
    conditions = [
        NotificationRow.user_id == user_id,
        NotificationRow.disabled == False,
    ]
    if filter is None:
        return conditions
    if filter.read is not None:
        conditions.append(NotificationRow.read == filter.read)
    if filter.channel and filter.channel.strip():
        conditions.append(NotificationRow.channel == filter.channel)
    if filter.priority and filter.priority.strip():
        conditions.append(NotificationRow.priority == filter.priority)
    return conditions


def build_order_by(filter: NotificationFilter | None) -> list:
    field = resolve_sort_field(filter.sort_by if filter else None)
    direction = filter.sort_direction if filter else SortDirection.DESC
    column = _SORT_COLUMNS[field]
    primary = column.asc() if direction == SortDirection.ASC else column.desc()
    # Tie-breaker keeps paging stable when sort values repeat
    tiebreak = (
        NotificationRow.notification_id.asc()
        if direction == SortDirection.ASC
        else NotificationRow.notification_id.desc()
    )
    return [primary, tiebreak]


def build_select(user_id: str, filter: NotificationFilter | None) -> Select:
    filter = filter or NotificationFilter()
    return (
        select(NotificationRow)
        .where(*build_conditions(user_id, filter))
        .order_by(*build_order_by(filter))
        .offset(filter.page * filter.size)
        .limit(filter.size)
    )


def build_count(user_id: str, filter: NotificationFilter | None) -> Select:
    return select(func.count(NotificationRow.notification_id)).where(
        *build_conditions(user_id, filter)
    )


def page_metadata(total_count: int, current_page: int, page_size: int) -> dict:
    """Derive total_pages/has_next/has_previous; total_pages uses ceiling division."""
    page_size = max(1, min(MAX_PAGE_SIZE, page_size))
    current_page = max(0, current_page)
    total_pages = (total_count + page_size - 1) // page_size
    return {
        "total_count": total_count,
        "current_page": current_page,
        "page_size": page_size,
        "total_pages": total_pages,
        "has_next": current_page < total_pages - 1,
        "has_previous": current_page > 0,
    }


def build_page(
    views: list[NotificationView], total_count: int, filter: NotificationFilter
) -> NotificationPage:
    return NotificationPage(
        notifications=views,
        **page_metadata(total_count, filter.page, filter.size),
    )
