"""
Module: docflow_kernel.models.document_head
Responsibility: Per-document pointer to the latest transition.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One row per document that has at least one transition.
    - ``last_sequence`` equals the highest sequence_number in the log for
      the document; it only moves forward by exactly one, through the
      conditional UPDATE in TransitionLog.append().
    - Holds no status.  Status is read through ``latest_transition_id``.
"""

from uuid import UUID

from sqlalchemy import BigInteger
from sqlalchemy.orm import Mapped, mapped_column

from docflow_kernel.db.base import Base, UUIDString


class DocumentHead(Base):
    """
    Latest-by-document index of the transition log.

    Serves ``latest()`` in O(1) and is the compare-and-append guard row:
    concurrent writers for the same document serialize on it.
    """

    __tablename__ = "document_heads"

    document_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
        unique=True,
    )

    last_sequence: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    latest_transition_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<DocumentHead {self.document_id} @{self.last_sequence}>"
