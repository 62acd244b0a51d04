"""
Application-wide exception hierarchy.

Services raise these; blueprints register handlers against them once and
get consistent HTTP status codes and error envelopes everywhere.

Usage:
    from app.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Project", resource_id=42)
    raise ValidationError("title is required", details={"title": "missing"})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist within the caller's scope.

    Used for BOTH genuinely missing records AND records owned by another
    user. A 403 would confirm the resource exists; a 404 does not.

    Args:
        resource: Human-readable entity name (e.g. "Project", "ChangeRequest").
        resource_id: The PK that was looked up. Included in logs, not in HTTP response.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)

    @property
    def public_message(self) -> str:
        """Message safe to return to the client (no ids)."""
        return f"{self.resource} not found"


class ValidationError(Exception):
    """Raised when input or a state transition fails a business rule. Maps to 400.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would duplicate a unique value. Maps to 409."""

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class AIServiceError(Exception):
    """Raised when the completion provider is unavailable or the call fails.

    The original error is kept in ``__cause__`` for logs; clients only see
    a generic message.
    """


class UpstreamContractError(Exception):
    """Raised when the completion provider returns a payload that does not
    match the expected response schema.

    Args:
        purpose: Which prompt produced the payload (e.g. "change_impact").
        errors: Schema violations, one string per offending field.
    """

    def __init__(self, purpose: str, errors: list[str] | None = None) -> None:
        self.purpose = purpose
        self.errors = errors or []
        msg = f"AI response for '{purpose}' did not match the expected schema"
        super().__init__(msg)


class FileParseError(Exception):
    """Raised when an uploaded document cannot be validated or converted to text.

    Args:
        message: Client-facing explanation.
        status: 400 for rejected uploads, 500 for parser failures.
    """

    def __init__(self, message: str, status: int = 500) -> None:
        self.status = status
        super().__init__(message)
