"""
Pitchboard exception hierarchy.

Services raise these types; the contest blueprint registers one handler per
type and maps them to the standard JSON error envelope.

Usage:
    from pitchboard.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Winner", resource_id="9f1c…")
    raise ValidationError("Record is invalid", details={"name": "required"})
"""


class NotFoundError(Exception):
    """Raised when a requested record is not present in the current view.

    Args:
        resource: Human-readable record kind (e.g. "Winner").
        resource_id: The id that was looked up.
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when a record or payload fails validation before submission.

    Maps to HTTP 400 in the contest blueprint.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names;
                 values are error descriptions.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class StoreUnavailableError(Exception):
    """Raised by the restore orchestrator when the primary store cannot be reached.

    Never escapes RestoreOrchestrator.restore(); it switches the restore to
    the wholesale local fallback.
    """

    def __init__(self, collection: str, error: str | None = None) -> None:
        self.collection = collection
        self.error = error
        super().__init__(f"Primary store unavailable for {collection}: {error or 'unknown error'}")
