"""Domain errors raised by Signify services.

Every error carries the HTTP status it maps to and a short machine code, so
the API layer can render them without knowing about individual services.
"""

from typing import Any


class SignifyError(Exception):
    """Base class for all domain errors."""

    status_code: int = 400
    code: str = "error"

    def __init__(self, message: str = "", fields: dict[str, list[str]] | None = None):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.fields = fields or {}

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.code, "detail": self.message}
        if self.fields:
            body["fields"] = self.fields
        return body


class ValidationError(SignifyError):
    """Malformed or incomplete input; the whole batch is rejected."""

    status_code = 422
    code = "validation_error"


class DuplicateSequence(SignifyError):
    """A sequence number already exists for the owner."""

    status_code = 409
    code = "duplicate_sequence"

    def __init__(self, sequence_numbers: list[int] | None = None):
        self.sequence_numbers = sorted(sequence_numbers or [])
        message = "Sequence number already recorded"
        if self.sequence_numbers:
            message += ": " + ", ".join(str(n) for n in self.sequence_numbers)
        super().__init__(message)


class OwnerNotFound(SignifyError):
    status_code = 404
    code = "not_found"

    def __init__(self, message: str = "Not found"):
        super().__init__(message)


class OwnerNotPublic(OwnerNotFound):
    """Owner exists but is not publicly visible.

    Rendered exactly like OwnerNotFound so existence is never leaked.
    """


class DocumentLocked(SignifyError):
    """Published documents are append-only."""

    status_code = 409
    code = "document_locked"


class PublishRequirementsNotMet(SignifyError):
    status_code = 422
    code = "publish_requirements_not_met"


class AggregationInconsistency(SignifyError):
    """Derived statistics could not be computed."""

    status_code = 500
    code = "aggregation_inconsistency"


class Unauthorized(SignifyError):
    status_code = 401
    code = "unauthorized"


class Conflict(SignifyError):
    status_code = 409
    code = "conflict"
