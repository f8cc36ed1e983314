"""
Module: docflow_kernel.models.project_member
Responsibility: ORM persistence for project team membership.
Architecture position: Kernel > Models.  May import from db/base.py only.

Used only to resolve a Principal for the authorization gate; the
workflow never mutates membership.
"""

from uuid import UUID

from sqlalchemy import Boolean, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from docflow_kernel.db.base import TrackedBase, UUIDString


class ProjectMember(TrackedBase):
    """A person's role and signing right inside one project."""

    __tablename__ = "project_members"

    __table_args__ = (
        UniqueConstraint("project_id", "user_id", name="uq_project_member"),
    )

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    user_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    # ProjectRole value
    project_role: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
    )

    can_sign: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    def __repr__(self) -> str:
        return f"<ProjectMember {self.user_id} {self.project_role} in {self.project_id}>"
