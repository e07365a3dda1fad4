"""
Platform-wide exception hierarchy.

Every service in the pipeline raises one of these types. Blueprints register
handlers against them once and get consistent HTTP status codes everywhere,
and any other UI binding can map them to its own messages the same way.

Domain errors (validation, permission, not-found, invalid transition,
conflict) are never retryable: repeating the same call fails the same way.
Store errors describe the persistence collaborator and are retryable.

Usage:
    from ideaflow.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Idea", resource_id="IDEA-JUST-123")
    raise ValidationError("reason is required", details={"reason": "empty"})
"""


class DomainError(Exception):
    """Base class for business-rule failures raised by the service layer."""

    retryable = False


class NotFoundError(DomainError):
    """Raised when an idea, student, event or unit id does not resolve.

    Args:
        resource: Human-readable entity name (e.g. "Idea", "Student").
        resource_id: The key that was looked up.
        university: Optional tenant scope that was enforced. For logs only.
    """

    def __init__(
        self,
        resource: str,
        resource_id: int | str | None = None,
        university: str | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.university = university
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        if university is not None:
            msg += f" (university={university})"
        super().__init__(msg)


class ValidationError(DomainError):
    """Raised when input is missing or malformed.

    Required intake field absent, empty reason string, ancillary link missing
    where the holding unit requires one, unknown tier name, ...

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class PermissionDenied(DomainError):
    """Raised when the acting unit lacks the requested capability.

    Args:
        unit_id: The unit that attempted the action (None when the idea is
                 not held by any unit).
        capability: The PermissionSet flag or membership rule that failed.
    """

    def __init__(self, unit_id: str | None, capability: str, reason: str | None = None) -> None:
        self.unit_id = unit_id
        self.capability = capability
        self.reason = reason
        msg = f"Unit '{unit_id}' is not allowed to {capability}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class InvalidTransitionError(DomainError):
    """Raised when an operation has no valid path from the idea's current state.

    Returning from ``submitted`` or ``academic-review``, publishing outside
    the Systems stage, or any operation on a rejected/completed idea.
    """

    def __init__(self, idea_id: str, action: str, current_status: str | None, reason: str | None = None):
        msg = f"Cannot '{action}' idea {idea_id} (status={current_status})"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.idea_id = idea_id
        self.action = action
        self.current_status = current_status
        self.reason = reason


class ConflictError(DomainError):
    """Raised when an operation would create a duplicate record.

    Args:
        resource: Entity name.
        field: The unique field that would be duplicated.
        value: The conflicting value.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class ConfigurationError(Exception):
    """Raised at startup when static configuration is inconsistent."""


# ── Persistence collaborator errors ──────────────────────────────────────────


class StoreError(Exception):
    """Base class for failures of the document store itself."""

    retryable = True


class StaleWriteError(StoreError):
    """Raised by a compare-and-swap write whose expected version is outdated."""

    def __init__(self, collection: str, doc_id: str, expected: int | None, actual: int | None) -> None:
        self.collection = collection
        self.doc_id = doc_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Stale write to {collection}/{doc_id}: expected version {expected}, found {actual}"
        )


class StoreUnavailableError(StoreError):
    """Raised when the store cannot be reached (network, locked database, ...)."""
