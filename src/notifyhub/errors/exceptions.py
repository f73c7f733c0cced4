"""Custom exception classes for NotifyHub."""


class NotifyHubError(Exception):
    """Base exception for NotifyHub."""

    def __init__(self, code: str, message: str, details=None, status_code: int = 500):
        self.code = code
        self.message = message
        self.details = details
        self.status_code = status_code
        super().__init__(message)


class ValidationError(NotifyHubError):
    """Request validation failure."""

    def __init__(self, message: str, details=None):
        super().__init__("VALIDATION_ERROR", message, details, status_code=400)


class NotFoundError(NotifyHubError):
    """Resource not found."""

    def __init__(self, resource: str, resource_id: str, code: str = "NOT_FOUND"):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(
            code,
            f"{resource} '{resource_id}' not found",
            details={"resource_id": resource_id},
            status_code=404,
        )


class TemplateNotFoundError(NotFoundError):
    """Template absent from the template store."""

    def __init__(self, template_id: str):
        self.template_id = template_id
        super().__init__("Template", template_id, code="TEMPLATE_NOT_FOUND")


class NotificationNotFoundError(NotFoundError):
    """Notification absent, or disabled and hidden from readers."""

    def __init__(self, notification_id: str):
        self.notification_id = notification_id
        super().__init__("Notification", notification_id, code="NOTIFICATION_NOT_FOUND")


class PublishFailedError(NotifyHubError):
    """The request queue rejected or failed to store a message."""

    def __init__(self, topic: str, message: str | None = None):
        self.topic = topic
        super().__init__(
            "PUBLISH_FAILED",
            message or f"Failed to publish message to topic '{topic}'",
            details={"topic": topic},
            status_code=503,
        )


class ConflictError(NotifyHubError):
    """Resource state conflict."""

    def __init__(self, message: str):
        super().__init__("CONFLICT", message, status_code=409)
