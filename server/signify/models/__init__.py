"""Models module."""

from signify.models.document import (
    Document,
    DocumentCreate,
    DocumentResponse,
    DocumentStatus,
    DocumentUpdate,
)
from signify.models.keystroke import (
    EventPage,
    KeystrokeBatchRequest,
    KeystrokeBatchResponse,
    KeystrokeEvent,
    KeystrokePage,
    NewKeystroke,
    OwnerKind,
    OwnerRef,
    Pagination,
    ReplayKeystroke,
    StoredKeystroke,
)
from signify.models.user import UserResponse
from signify.models.verification import (
    KeystrokeStats,
    PasteEvents,
    Verification,
    VerificationCreate,
    VerificationStatus,
)

__all__ = [
    "Document",
    "DocumentCreate",
    "DocumentResponse",
    "DocumentStatus",
    "DocumentUpdate",
    "EventPage",
    "KeystrokeBatchRequest",
    "KeystrokeBatchResponse",
    "KeystrokeEvent",
    "KeystrokePage",
    "KeystrokeStats",
    "NewKeystroke",
    "OwnerKind",
    "OwnerRef",
    "Pagination",
    "PasteEvents",
    "ReplayKeystroke",
    "StoredKeystroke",
    "UserResponse",
    "Verification",
    "VerificationCreate",
    "VerificationStatus",
]
