"""
Module: docflow_kernel.models.transition
Responsibility: ORM persistence for the append-only transition log.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - (document_id, sequence_number) is unique: at most one writer wins a
      sequence slot even if the head guard is bypassed.
    - Rows are append-only; no UPDATE or DELETE (ORM listeners in
      db/immutability.py).
    - hash = H(document_id | seq | from | to | action | performed_by |
      comment | occurred_at | prev_hash); prev_hash is None for seq 1.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import BigInteger, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from docflow_kernel.db.base import Base, UTCDateTime, UUIDString


class TransitionRecord(Base):
    """
    One transition event of one document.

    Contract:
        TransitionRecord rows are sacred -- append-only, never updated or
        deleted.  Rows are only written by TransitionLog.append().
    """

    __tablename__ = "document_transitions"

    __table_args__ = (
        UniqueConstraint(
            "document_id", "sequence_number", name="uq_transition_document_seq"
        ),
        Index("idx_transition_document", "document_id"),
        Index("idx_transition_occurred", "occurred_at"),
    )

    document_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    # Monotonic, gapless, starting at 1 per document
    sequence_number: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    # NULL for the CREATE event (document did not exist before)
    from_status: Mapped[str | None] = mapped_column(
        String(30),
        nullable=True,
    )

    to_status: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
    )

    action: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    performed_by: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    comment: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    occurred_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
    )

    prev_hash: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<TransitionRecord {self.document_id}#{self.sequence_number} "
            f"{self.action} -> {self.to_status}>"
        )
