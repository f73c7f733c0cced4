"""FastAPI dependency injection providers."""

from collections.abc import AsyncGenerator

from fastapi import Header, Request

from notifyhub.config import settings
from notifyhub.errors.exceptions import ValidationError


async def get_db(request: Request) -> AsyncGenerator:
    """Yield a database session from the app's session factory."""
    session_factory = request.app.state.db_session_factory
    async with session_factory() as session:
        yield session


def get_queue(request: Request):
    return request.app.state.notification_queue


def get_merger(request: Request):
    return request.app.state.live_merger


def get_session_manager(request: Request):
    return request.app.state.session_manager


def get_language(accept_language: str | None = Header(None)) -> str:
    """Resolve the Accept-Language header to a supported language code."""
    if not accept_language or not accept_language.strip():
        return settings.default_language
    language = accept_language.strip().lower()
    if language not in settings.supported_languages:
        raise ValidationError(
            f"Unsupported language '{accept_language}'",
            details={"supported": settings.supported_languages},
        )
    return language

