"""SQLAlchemy ORM models - import all to register with Base.metadata."""

from notifyhub.db.models.notification import NotificationRow
from notifyhub.db.models.template import TemplateRow

__all__ = ["NotificationRow", "TemplateRow"]
