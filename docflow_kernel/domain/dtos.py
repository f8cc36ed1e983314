"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable data structures that flow out of the kernel: the Transition
    event, side-effect intents, transition outcomes, bulk results and the
    read views built by the projection selector.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    ``from_model()`` class methods are boundary converters invoked only from
    the service/selector layer, never from domain logic.

Invariants enforced:
    - Domain logic accepts/returns DTOs, never ORM entities.
    - ``Transition.from_status`` is None only for sequence_number 1.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from docflow_kernel.domain.workflow import (
    DocumentStatus,
    IntentKind,
    TransitionAction,
    is_locked,
)

if TYPE_CHECKING:
    from docflow_kernel.models.document import Document as DocumentModel
    from docflow_kernel.models.transition import TransitionRecord


@dataclass(frozen=True)
class Transition:
    """A single atomic, authorized status change.  Immutable."""

    transition_id: UUID
    document_id: UUID
    sequence_number: int
    from_status: DocumentStatus | None
    to_status: DocumentStatus
    action: TransitionAction
    performed_by: UUID
    occurred_at: datetime
    comment: str | None = None
    prev_hash: str | None = None
    hash: str | None = None

    def __post_init__(self) -> None:
        if self.sequence_number < 1:
            raise ValueError("sequence_number starts at 1")
        if (self.from_status is None) != (self.sequence_number == 1):
            raise ValueError(
                "from_status must be None exactly for the first transition"
            )

    @classmethod
    def from_model(cls, record: TransitionRecord) -> Transition:
        return cls(
            transition_id=record.id,
            document_id=record.document_id,
            sequence_number=record.sequence_number,
            from_status=(
                DocumentStatus(record.from_status)
                if record.from_status is not None else None
            ),
            to_status=DocumentStatus(record.to_status),
            action=TransitionAction(record.action),
            performed_by=record.performed_by,
            occurred_at=record.occurred_at,
            comment=record.comment,
            prev_hash=record.prev_hash,
            hash=record.hash,
        )


@dataclass(frozen=True)
class DocumentInfo:
    """Registered document attributes (status is never stored)."""

    document_id: UUID
    document_type: str
    project_id: UUID
    location_id: UUID | None
    title: str | None
    created_at: datetime

    @classmethod
    def from_model(cls, model: DocumentModel) -> DocumentInfo:
        return cls(
            document_id=model.id,
            document_type=model.document_type,
            project_id=model.project_id,
            location_id=model.location_id,
            title=model.title,
            created_at=model.created_at,
        )


@dataclass(frozen=True)
class SideEffectIntent:
    """A declared side effect; performing it is the caller's business."""

    kind: IntentKind
    document_id: UUID
    sequence_number: int
    action: TransitionAction
    to_status: DocumentStatus
    performed_by: UUID

    def as_dict(self) -> dict[str, str | int]:
        return {
            "kind": self.kind.value,
            "document_id": str(self.document_id),
            "sequence_number": self.sequence_number,
            "action": self.action.value,
            "to_status": self.to_status.value,
            "performed_by": str(self.performed_by),
        }


@dataclass(frozen=True)
class TransitionOutcome:
    """Result of a successful ``request_transition``."""

    transition: Transition
    intents: tuple[SideEffectIntent, ...] = ()
    attempts: int = 1


@dataclass(frozen=True)
class BulkItemResult:
    document_id: UUID
    success: bool
    transition: Transition | None = None
    error_code: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class BulkTransitionResult:
    items: tuple[BulkItemResult, ...]
    intents: tuple[SideEffectIntent, ...] = ()

    @property
    def succeeded(self) -> tuple[UUID, ...]:
        return tuple(i.document_id for i in self.items if i.success)

    @property
    def failed(self) -> tuple[BulkItemResult, ...]:
        return tuple(i for i in self.items if not i.success)


@dataclass(frozen=True)
class AvailableActions:
    """What a principal may do with a document right now."""

    document_id: UUID
    # None while the document has no events yet.
    current_status: DocumentStatus | None
    actions: tuple[TransitionAction, ...]
    is_locked: bool


# ---------------------------------------------------------------------------
# Projection views
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TimelineEntry:
    """One row of a document's audit timeline."""

    sequence_number: int
    action: TransitionAction
    from_status: DocumentStatus | None
    to_status: DocumentStatus
    performed_by: UUID
    occurred_at: datetime
    comment: str | None = None

    @classmethod
    def from_transition(cls, t: Transition) -> TimelineEntry:
        return cls(
            sequence_number=t.sequence_number,
            action=t.action,
            from_status=t.from_status,
            to_status=t.to_status,
            performed_by=t.performed_by,
            occurred_at=t.occurred_at,
            comment=t.comment,
        )


@dataclass(frozen=True)
class TimelinePage:
    entries: tuple[TimelineEntry, ...]
    total: int
    page: int
    limit: int


@dataclass(frozen=True)
class StatusView:
    """Current status plus the facts derived alongside it."""

    document_id: UUID
    current_status: DocumentStatus
    last_sequence: int
    last_action: TransitionAction
    updated_at: datetime
    # Status the document was in when last rejected (IN_REVIEW or
    # PENDING_SIGNATURE); None unless currently REJECTED.
    rejected_at: DocumentStatus | None = None

    @property
    def is_locked(self) -> bool:
        return is_locked(self.current_status)
