"""
Service-wide exception hierarchy.

Every service raises one of these types; the app factory registers a
single error handler per type so each kind keeps its HTTP status and
machine-readable ``type`` no matter which blueprint it surfaced from.

Usage:
    from board_service.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Story", resource_id=42)
    raise ValidationError("title is required", details={"title": "required"})
"""


class ServiceError(Exception):
    """Base class for all errors the service layer raises on purpose."""

    error_type = "ERR_INTERNAL"

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(ServiceError):
    """Malformed or missing input, or a business rule the payload breaks.

    Raised before anything is written to the store.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown; keys are field names.
    """

    error_type = "ERR_VALIDATION"


class NotFoundError(ServiceError):
    """A referenced entity does not exist or does not belong to the stated parent.

    Cross-project references (e.g. a Sprint from another project) are reported
    the same way as missing rows.

    Args:
        resource: Entity name (e.g. "Sprint", "Issue").
        resource_id: The id that was looked up.
        scope: Optional description of the parent the lookup was scoped to.
    """

    error_type = "ERR_NOT_FOUND"

    def __init__(
        self,
        resource: str,
        resource_id: int | str | None = None,
        scope: str | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.scope = scope
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        if scope:
            msg += f" in {scope}"
        super().__init__(msg)


class AuthorizationError(ServiceError):
    """The actor lacks the role required for the operation.

    The operation is not attempted.
    """

    error_type = "ERR_FORBIDDEN"

    def __init__(self, message: str = "Permission denied", required: list[str] | None = None) -> None:
        self.required = required or []
        details = {"required": self.required} if self.required else None
        super().__init__(message, details)


class ConflictError(ServiceError):
    """A dependency or uniqueness rule blocks the operation.

    ``reason`` is machine-readable:

    * ``CRITICAL_DEPENDENCY`` — nothing the caller can pass to this call fixes it.
    * ``REASSIGNMENT_NEEDED`` — retrying with a replacement user resolves it.
    * ``DUPLICATE`` — a unique value is already taken.
    """

    CRITICAL = "CRITICAL_DEPENDENCY"
    REASSIGNMENT_NEEDED = "REASSIGNMENT_NEEDED"
    DUPLICATE = "DUPLICATE"

    REASONS = frozenset({CRITICAL, REASSIGNMENT_NEEDED, DUPLICATE})

    def __init__(self, message: str, reason: str, details: dict | None = None) -> None:
        if reason not in self.REASONS:
            raise ValueError(f"Unknown conflict reason: {reason}")
        self.reason = reason
        super().__init__(message, details)

    @property
    def error_type(self) -> str:
        if self.reason == self.DUPLICATE:
            return "ERR_CONFLICT_DUPLICATE"
        return self.reason


class TransientError(ServiceError):
    """The entity store failed; nothing was applied and the call may be retried."""

    error_type = "ERR_TRANSIENT"


class AuthenticationError(ServiceError):
    """No usable bearer token: missing, malformed, expired, or naming an unknown user."""

    error_type = "ERR_UNAUTHENTICATED"
