"""
TransitionLog -- append-only, per-document ordered event store.

Responsibility:
    Durable storage of Transition events, queryable by document.  ``append``
    is the sole mutation in the whole engine; status, timelines and counts
    are all derived from what it writes.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by WorkflowService (writes) and ProjectionSelector (reads via
    ``latest``/``history``).

Invariants enforced:
    - Gapless sequences: a document's sequence numbers are exactly 1..N.
      ``append`` accepts only ``last_sequence + 1``.
    - Chain continuity: ``from_status`` of event N+1 equals ``to_status`` of
      event N; for N = 1 it is None (document did not exist).
    - Compare-and-append: the check of ``last_sequence`` and the write of
      ``last_sequence + 1`` are one indivisible step.  The head row is moved
      with ``UPDATE ... WHERE last_sequence = :expected``; a zero rowcount
      means another writer won.  The (document_id, sequence_number) unique
      constraint backs this up at the database level.
    - Hash chain: each event hashes its fields together with its
      predecessor's hash.

Failure modes:
    - SequenceConflictError: stale sequence number, stale from_status, or a
      concurrent writer took the slot (head UPDATE missed, or IntegrityError).
    - DocumentNotFoundError: ``latest`` on a document with no events.
    - AuditChainBrokenError: ``verify_chain`` found tampering.

Audit relevance:
    Every append is logged at DEBUG with document_id and sequence_number;
    every lost race at INFO.
"""

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from docflow_kernel.domain.dtos import Transition
from docflow_kernel.exceptions import (
    AuditChainBrokenError,
    DocumentNotFoundError,
    SequenceConflictError,
)
from docflow_kernel.logging_config import get_logger
from docflow_kernel.models.document_head import DocumentHead
from docflow_kernel.models.transition import TransitionRecord
from docflow_kernel.utils.hashing import hash_transition

logger = get_logger("services.transition_log")


def compute_transition_hash(transition: Transition, prev_hash: str | None) -> str:
    """Hash a transition for the per-document chain."""
    return hash_transition(
        document_id=str(transition.document_id),
        sequence_number=transition.sequence_number,
        from_status=(
            transition.from_status.value if transition.from_status is not None else None
        ),
        to_status=transition.to_status.value,
        action=transition.action.value,
        performed_by=str(transition.performed_by),
        comment=transition.comment,
        occurred_at=transition.occurred_at,
        prev_hash=prev_hash,
    )


class TransitionLog:
    """
    Append-only transition store with an O(1) latest pointer.

    Contract:
        Accepts fully-built Transition DTOs and persists them within the
        caller's transaction (flush, never commit).  Reads always go to the
        database so that a retrying writer sees what competitors committed.

    Guarantees:
        - Linearizable per-document append order.
        - At most one of two racing writers succeeds per sequence slot.
        - A failed append leaves no partial state (savepoint rollback).

    Non-goals:
        - Does NOT decide whether a transition is legal (state machine) or
          permitted (authorization gate).
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    def __init__(self, session: Session):
        self._session = session

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _head(self, document_id: UUID) -> DocumentHead | None:
        return self._session.execute(
            select(DocumentHead)
            .where(DocumentHead.document_id == document_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _record(self, transition_id: UUID) -> TransitionRecord:
        return self._session.execute(
            select(TransitionRecord)
            .where(TransitionRecord.id == transition_id)
            .execution_options(populate_existing=True)
        ).scalar_one()

    def last_sequence(self, document_id: UUID) -> int:
        """Highest sequence number for the document; 0 when it has no events."""
        head = self._head(document_id)
        return head.last_sequence if head is not None else 0

    def latest_or_none(self, document_id: UUID) -> Transition | None:
        """Latest transition via the head pointer, or None if there are no events."""
        head = self._head(document_id)
        if head is None:
            return None
        return Transition.from_model(self._record(head.latest_transition_id))

    def latest(self, document_id: UUID) -> Transition:
        """
        Latest transition via the head pointer.

        Raises:
            DocumentNotFoundError: the document has no events.
        """
        transition = self.latest_or_none(document_id)
        if transition is None:
            raise DocumentNotFoundError(str(document_id))
        return transition

    def history(self, document_id: UUID) -> tuple[Transition, ...]:
        """All transitions for the document, oldest first.

        The returned tuple is finite and can be iterated any number of times.
        """
        records = self._session.execute(
            select(TransitionRecord)
            .where(TransitionRecord.document_id == document_id)
            .order_by(TransitionRecord.sequence_number)
            .execution_options(populate_existing=True)
        ).scalars().all()
        return tuple(Transition.from_model(r) for r in records)

    # ------------------------------------------------------------------
    # The single mutation
    # ------------------------------------------------------------------

    def append(self, document_id: UUID, transition: Transition) -> Transition:
        """
        Atomically append ``transition`` as the next event of the document.

        Preconditions:
            - ``transition.document_id == document_id``.
            - The caller is within an active database transaction.

        Postconditions:
            - The event row and the moved head row are flushed together, or
              neither is.
            - Returns the stored transition with ``prev_hash``/``hash`` set.

        Raises:
            SequenceConflictError: the slot is not ``last_sequence + 1`` or a
                concurrent writer took it first.
            ValueError: document id mismatch.
        """
        if transition.document_id != document_id:
            raise ValueError(
                f"Transition belongs to {transition.document_id}, not {document_id}"
            )

        head = self._head(document_id)
        current = head.last_sequence if head is not None else 0
        attempted = transition.sequence_number

        if attempted != current + 1:
            self._log_conflict(document_id, current + 1, attempted, "stale_sequence")
            raise SequenceConflictError(str(document_id), current + 1, attempted)

        prev = self._record(head.latest_transition_id) if head is not None else None
        prev_to = prev.to_status if prev is not None else None
        new_from = transition.from_status.value if transition.from_status is not None else None
        if prev_to != new_from:
            # Built from a view of the log that is no longer current.
            self._log_conflict(document_id, current + 1, attempted, "stale_from_status")
            raise SequenceConflictError(str(document_id), current + 1, attempted)

        prev_hash = prev.hash if prev is not None else None
        event_hash = compute_transition_hash(transition, prev_hash)

        record = TransitionRecord(
            id=transition.transition_id,
            document_id=document_id,
            sequence_number=attempted,
            from_status=new_from,
            to_status=transition.to_status.value,
            action=transition.action.value,
            performed_by=transition.performed_by,
            comment=transition.comment,
            occurred_at=transition.occurred_at,
            prev_hash=prev_hash,
            hash=event_hash,
        )

        savepoint = self._session.begin_nested()
        try:
            if head is None:
                self._session.add(DocumentHead(
                    document_id=document_id,
                    last_sequence=attempted,
                    latest_transition_id=record.id,
                ))
            else:
                # Compare-and-append: only moves if nobody moved it first.
                result = self._session.execute(
                    update(DocumentHead)
                    .where(
                        DocumentHead.document_id == document_id,
                        DocumentHead.last_sequence == current,
                    )
                    .values(last_sequence=attempted, latest_transition_id=record.id)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    savepoint.rollback()
                    self._log_conflict(document_id, current + 1, attempted, "head_moved")
                    raise SequenceConflictError(str(document_id), current + 1, attempted)
            self._session.add(record)
            self._session.flush()
            savepoint.commit()
        except IntegrityError as exc:
            savepoint.rollback()
            self._log_conflict(document_id, current + 1, attempted, "unique_violation")
            raise SequenceConflictError(str(document_id), current + 1, attempted) from exc

        logger.debug(
            "transition_appended",
            extra={
                "document_id": str(document_id),
                "sequence_number": attempted,
                "action": transition.action.value,
                "to_status": transition.to_status.value,
            },
        )
        return Transition.from_model(record)

    def _log_conflict(
        self, document_id: UUID, expected: int, attempted: int, cause: str
    ) -> None:
        logger.info(
            "sequence_conflict",
            extra={
                "document_id": str(document_id),
                "expected_sequence": expected,
                "attempted_sequence": attempted,
                "cause": cause,
            },
        )

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify_chain(self, document_id: UUID) -> int:
        """
        Validate the document's log end to end.

        Checks gapless numbering from 1, from/to continuity, hash linkage,
        recomputed hashes and that the head points at the last event.

        Returns:
            Number of verified transitions.

        Raises:
            AuditChainBrokenError: on the first inconsistency found.
        """
        history = self.history(document_id)
        prev: Transition | None = None
        for expected_seq, t in enumerate(history, start=1):
            if t.sequence_number != expected_seq:
                raise AuditChainBrokenError(
                    str(document_id), expected_seq,
                    f"gap: found sequence {t.sequence_number}",
                )
            expected_from = prev.to_status if prev is not None else None
            if t.from_status != expected_from:
                raise AuditChainBrokenError(
                    str(document_id), t.sequence_number,
                    "from_status does not match previous to_status",
                )
            expected_prev_hash = prev.hash if prev is not None else None
            if t.prev_hash != expected_prev_hash:
                raise AuditChainBrokenError(
                    str(document_id), t.sequence_number, "prev_hash link broken",
                )
            if t.hash != compute_transition_hash(t, t.prev_hash):
                raise AuditChainBrokenError(
                    str(document_id), t.sequence_number, "hash mismatch",
                )
            prev = t

        head = self._head(document_id)
        if history and (head is None or head.last_sequence != len(history)):
            raise AuditChainBrokenError(
                str(document_id), len(history), "head pointer out of sync",
            )
        return len(history)
