"""
Shared error types for core services.
"""


class InventoryIssue(Exception):
    """Expected, caller-recoverable outcome raised inside the core."""

    error_type = "error"

    def payload(self) -> dict:
        return {}


class ValidationIssue(InventoryIssue, ValueError):
    error_type = "validation_error"

    def __init__(
        self,
        message: str,
        field: str = "unknown",
        error_type: str = "invalid",
    ):
        super().__init__(message)
        self.field = field
        self.issue_type = error_type

    def payload(self) -> dict:
        return {"field": self.field, "issue": self.issue_type}


class NotFoundIssue(InventoryIssue, LookupError):
    """The id does not resolve within the caller's tenant scope."""

    error_type = "not_found"

    def __init__(self, entity: str, entity_id):
        super().__init__(f"{entity.capitalize()} not found")
        self.entity = entity
        self.entity_id = entity_id

    def payload(self) -> dict:
        return {"entity": self.entity, "id": str(self.entity_id)}


class ConflictIssue(InventoryIssue):
    """Uniqueness violation, dependent-entity block or capacity limit."""

    error_type = "conflict"

    def __init__(self, message: str, reason: str, details: dict | None = None):
        super().__init__(message)
        self.reason = reason
        self.details = details or {}

    def payload(self) -> dict:
        return {"reason": self.reason, "details": dict(self.details)}


class InvalidReferenceIssue(InventoryIssue):
    """A reference field points at a missing or foreign-owned entity."""

    error_type = "invalid_reference"

    def __init__(self, field: str, entity: str, entity_id, message: str | None = None):
        super().__init__(message or f"{field} does not reference an existing {entity}")
        self.field = field
        self.entity = entity
        self.entity_id = entity_id

    def payload(self) -> dict:
        return {"field": self.field, "entity": self.entity, "id": str(self.entity_id)}


class BlobStorageError(RuntimeError):
    """Raised when the blob storage service is unavailable or rejects a call."""
