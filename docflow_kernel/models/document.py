"""
Module: docflow_kernel.models.document
Responsibility: ORM persistence for registered documents.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - There is NO status column.  A document's status is always the
      ``to_status`` of its latest transition (see models/transition.py).
"""

from uuid import UUID

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from docflow_kernel.db.base import TrackedBase, UUIDString


class Document(TrackedBase):
    """
    A document owned by a project.

    Contract:
        Identity and descriptive attributes only.  Referenced by zero or
        more TransitionRecord rows through ``document_id``.
    """

    __tablename__ = "documents"

    __table_args__ = (
        Index("idx_document_project", "project_id"),
    )

    # Document kind (e.g. "AOSR", "INSPECTION_ACT")
    document_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    # Building / section / floor the document belongs to
    location_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    title: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Document {self.id} {self.document_type}>"
