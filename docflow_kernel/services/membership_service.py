"""
MembershipService -- project team membership and principal resolution.

Responsibility:
    Records who belongs to which project (role, signing right) and turns a
    bare user id into the ``Principal`` the authorization gate evaluates.

Architecture position:
    Kernel > Services.  May import from domain/, models/.

Invariants enforced:
    - One membership per (project, user); enforced by the
      ``uq_project_member`` constraint and checked here first.
    - A user with no membership in the document's project resolves to a
      Principal with ``project_id=None``.  The gate reports it as
      NotProjectMember; resolution itself never fails.
    - ADMIN is a platform role: a user holding it in any project resolves
      as ADMIN in every project, with the signing right of that membership.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from docflow_kernel.domain.authorization import Principal, ProjectRole
from docflow_kernel.logging_config import get_logger
from docflow_kernel.models.project_member import ProjectMember

logger = get_logger("services.membership")


class MembershipService:
    """Project membership writes and Principal lookup."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def _member(self, project_id: UUID, user_id: UUID) -> ProjectMember | None:
        return self._session.execute(
            select(ProjectMember).where(
                ProjectMember.project_id == project_id,
                ProjectMember.user_id == user_id,
            )
        ).scalar_one_or_none()

    def add_member(
        self,
        project_id: UUID,
        user_id: UUID,
        role: ProjectRole,
        can_sign: bool,
        actor_id: UUID,
    ) -> Principal:
        """Add a member, or update role and signing right of an existing one."""
        member = self._member(project_id, user_id)
        if member is None:
            member = ProjectMember(
                project_id=project_id,
                user_id=user_id,
                project_role=role.value,
                can_sign=can_sign,
                created_by_id=actor_id,
            )
            self._session.add(member)
        else:
            member.project_role = role.value
            member.can_sign = can_sign
            member.updated_by_id = actor_id
        self._session.flush()

        logger.info(
            "project_member_saved",
            extra={
                "project_id": str(project_id),
                "user_id": str(user_id),
                "project_role": role.value,
                "can_sign": can_sign,
            },
        )
        return Principal(
            user_id=user_id,
            project_role=role,
            can_sign=can_sign,
            project_id=project_id,
        )

    def _platform_admin(self, user_id: UUID) -> ProjectMember | None:
        return self._session.execute(
            select(ProjectMember)
            .where(
                ProjectMember.user_id == user_id,
                ProjectMember.project_role == ProjectRole.ADMIN.value,
            )
            .order_by(ProjectMember.can_sign.desc())
            .limit(1)
        ).scalar_one_or_none()

    def resolve_principal(self, user_id: UUID, project_id: UUID) -> Principal:
        member = self._platform_admin(user_id) or self._member(project_id, user_id)
        if member is None:
            return Principal(user_id=user_id, project_role=None)
        return Principal(
            user_id=user_id,
            project_role=ProjectRole(member.project_role),
            can_sign=member.can_sign,
            project_id=project_id,
        )
