"""Multi-language template rendering and read-side language fallback.

A notification is rendered once, at processing time, into every language its
template defines; readers later pick the language they want from that cached
bundle. Placeholders look like ``${name}``. A parameter that is missing (or
null) leaves its placeholder in the output untouched so partial renders stay
debuggable.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Mapping

from notifyhub.config import settings
from notifyhub.models.notification import NotificationRecord, NotificationView, RenderedContent
from notifyhub.models.template import Template

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\$\{([^}]+)\}")


def format_instant(value: datetime) -> str:
    """Format a datetime as a UTC instant, e.g. ``2024-05-01T12:30:00Z``.

    Naive datetimes are taken to be UTC. Fractional seconds are printed only
    when present, in millisecond or microsecond precision.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    text = value.strftime("%Y-%m-%dT%H:%M:%S")
    if value.microsecond:
        fraction = f"{value.microsecond:06d}"
        if value.microsecond % 1000 == 0:
            fraction = fraction[:3]
        text += f".{fraction}"
    return text + "Z"


def format_value(value: Any) -> str:
    """Instants in canonical UTC form; numbers and everything else via str()."""
    if isinstance(value, datetime):
        return format_instant(value)
    return str(value)


def render_text(text: str | None, params: Mapping[str, Any] | None) -> str | None:
    """Substitute ``${name}`` placeholders in ``text`` from ``params``."""
    if text is None or params is None:
        return text

    def _replace(match: re.Match) -> str:
        name = match.group(1)
        value = params.get(name)
        if value is None:
            logger.debug("Parameter '%s' not found, keeping placeholder", name)
            return match.group(0)
        return format_value(value)

    return PLACEHOLDER_PATTERN.sub(_replace, text)


def first_available_language(languages) -> str | None:
    """Deterministic 'first available' pick: lowest language code."""
    ordered = sorted(languages)
    return ordered[0] if ordered else None


def missing_required_params(template: Template, params: Mapping[str, Any] | None) -> list[str]:
    """Keys of required template parameters that are absent or null in ``params``."""
    params = params or {}
    return [p.key for p in template.params if p.required and params.get(p.key) is None]


def has_required_params(template: Template, params: Mapping[str, Any] | None) -> bool:
    """Advisory pre-flight check; rendering itself never enforces it."""
    missing = missing_required_params(template, params)
    if missing:
        logger.warning(
            "Required parameters %s missing for template %s", missing, template.id
        )
        return False
    return True


class TemplateRenderingService:
    """Renders notification records against their resolved template."""

    def __init__(self, default_language: str | None = None):
        self.default_language = default_language or settings.default_language

    def render_all_languages(
        self, template: Template, params: Mapping[str, Any] | None
    ) -> dict[str, RenderedContent]:
        rendered: dict[str, RenderedContent] = {}
        for lang, translation in template.translations.items():
            rendered[lang] = RenderedContent(
                subject=render_text(translation.subject, params),
                body=render_text(translation.body, params),
            )
        if not rendered:
            logger.warning("No translations found for template %s", template.id)
        return rendered

    def legacy_content(self, rendered: Mapping[str, RenderedContent]) -> RenderedContent | None:
        """Content for the flat subject/body fields: default language, else first available."""
        content = rendered.get(self.default_language)
        if content is None:
            lang = first_available_language(rendered.keys())
            content = rendered[lang] if lang else None
        return content

    def render(self, record: NotificationRecord, template: Template) -> NotificationRecord:
        """Return a copy of ``record`` carrying content for every template language."""
        channel = record.channel
        if not channel and template.channel:
            channel = template.channel

        rendered = self.render_all_languages(template, record.params)
        legacy = self.legacy_content(rendered)

        update = {"channel": channel, "rendered_content": rendered}
        if legacy is not None:
            update["subject"] = legacy.subject
            update["body"] = legacy.body

        logger.debug("Rendered notification %s in %d languages", record.id, len(rendered))
        return record.model_copy(update=update)


def resolve_content(
    record: NotificationRecord, language: str, default_language: str | None = None
) -> tuple[str | None, str | None]:
    """Pick subject/body for ``language``.

    Order: requested language, default language, first available language,
    then the legacy flat fields.
    """
    default_language = default_language or settings.default_language
    rendered = record.rendered_content
    if rendered:
        content = rendered.get(language)
        if content is None:
            content = rendered.get(default_language)
        if content is None:
            lang = first_available_language(rendered.keys())
            content = rendered[lang] if lang else None
        if content is not None:
            return content.subject, content.body
    return record.subject, record.body


def to_view(
    record: NotificationRecord, language: str, default_language: str | None = None
) -> NotificationView:
    subject, content = resolve_content(record, language, default_language)
    return NotificationView(
        id=record.id,
        subject=subject,
        content=content,
        channel=record.channel,
        priority=record.priority,
        read=record.read,
        created_at=record.created_at,
        metadata=record.metadata or None,
    )
