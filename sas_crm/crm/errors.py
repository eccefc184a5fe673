from __future__ import annotations


class CrmError(Exception):
    """Base error for CRM lifecycle and invariant failures."""


class EntityNotFoundError(CrmError):
    def __init__(self, entity_type: str, entity_id: str) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} '{entity_id}' not found")


class DuplicateEntityError(CrmError):
    """Raised when a value that must be unique is already taken."""

    def __init__(self, entity_type: str, field: str, value: str) -> None:
        self.entity_type = entity_type
        self.field = field
        self.value = value
        super().__init__(f"{entity_type} with {field} '{value}' already exists")


class InvalidReferenceError(CrmError):
    """Raised when an entity points at something that does not exist in the tenant."""

    def __init__(self, entity_type: str, field: str, reference: str) -> None:
        self.entity_type = entity_type
        self.field = field
        self.reference = reference
        super().__init__(f"{entity_type}.{field} references unknown '{reference}'")
