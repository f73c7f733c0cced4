"""Prefixed ID generation utility."""

import uuid


def generate_id(prefix: str, size: int = 16) -> str:
    """Generate a prefixed unique ID.

    Args:
        prefix: The prefix (e.g., "ntf_", "tpl_").
        size: Number of hex characters taken from a random UUID (max 32).

    Returns:
        A string like "ntf_a1b2c3d4e5f6a7b8".
    """
    short_uuid = uuid.uuid4().hex[:size]
    return f"{prefix}{short_uuid}"


def generate_notification_id() -> str:
    """Notification ids are assigned at acceptance time, before processing."""
    return generate_id("ntf_", size=24)
