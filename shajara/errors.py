import enum
from typing import Any, Dict, Optional


class ErrorKind(str, enum.Enum):
    VALIDATION = "VALIDATION"
    STATE = "STATE"
    DUPLICATE_RELATION = "DUPLICATE_RELATION"
    INVALID_RELATION = "INVALID_RELATION"
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_STATE = "INVALID_STATE"
    DATABASE = "DATABASE"


class FamilyTreeError(Exception):
    """
    Base class for every failure the core signals to its callers.
    The messaging layer decides how to present each kind; the core only
    carries the kind, a short message and optional context.
    """
    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __repr__(self):
        return f"{type(self).__name__}({self.message!r}, kind={self.kind.value})"


class ValidationError(FamilyTreeError, ValueError):
    kind = ErrorKind.VALIDATION


class InviteExpiredError(ValidationError):
    pass


class StateError(FamilyTreeError):
    kind = ErrorKind.STATE


class DuplicateRelationError(FamilyTreeError):
    kind = ErrorKind.DUPLICATE_RELATION


class InvalidRelationError(FamilyTreeError):
    kind = ErrorKind.INVALID_RELATION


class NotFoundError(FamilyTreeError):
    kind = ErrorKind.NOT_FOUND


class UnauthorizedError(FamilyTreeError):
    kind = ErrorKind.UNAUTHORIZED


class InvalidStateError(FamilyTreeError):
    kind = ErrorKind.INVALID_STATE


class DatabaseError(FamilyTreeError):
    kind = ErrorKind.DATABASE
