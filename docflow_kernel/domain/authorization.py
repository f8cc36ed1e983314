"""
Authorization rules (``docflow_kernel.domain.authorization``).

Responsibility
--------------
Decide allow/deny for ``(principal, action, document context)`` from the
capability column of the transition table.  The check is pure; the
service layer wraps it with logging and exception raising.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects and functions.  ZERO I/O.

Invariants enforced
-------------------
* Membership is checked first, then role capabilities, then the
  ``can_sign`` flag for rows that require it.
* A pair absent from the table is allowed here so that the state machine
  reports it as an invalid transition, whatever the principal holds.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from docflow_kernel.domain.workflow import (
    DOCUMENT_WORKFLOW,
    Capability,
    DocumentStatus,
    TransitionAction,
    Workflow,
)


class ProjectRole(str, Enum):
    """Role a person holds inside a project team."""

    RESPONSIBLE_PRODUCER = "RESPONSIBLE_PRODUCER"
    SITE_CHIEF = "SITE_CHIEF"
    QA_ENGINEER = "QA_ENGINEER"
    TECH_SUPERVISOR_REP = "TECH_SUPERVISOR_REP"
    AUTHOR_SUPERVISOR_REP = "AUTHOR_SUPERVISOR_REP"
    HSE_RESPONSIBLE = "HSE_RESPONSIBLE"
    OTHER = "OTHER"
    # Platform administrator; member of every project.
    ADMIN = "ADMIN"


class DenialReason(str, Enum):
    """Why the gate refused a principal."""

    INSUFFICIENT_ROLE = "InsufficientRole"
    MISSING_SIGN_CAPABILITY = "MissingSignCapability"
    NOT_PROJECT_MEMBER = "NotProjectMember"


DEFAULT_ROLE_CAPABILITIES: Mapping[ProjectRole, frozenset[Capability]] = {
    ProjectRole.RESPONSIBLE_PRODUCER: frozenset({
        Capability.AUTHOR, Capability.EDITOR, Capability.REVIEWER,
        Capability.SIGNER, Capability.ADMIN,
    }),
    ProjectRole.SITE_CHIEF: frozenset({
        Capability.AUTHOR, Capability.EDITOR, Capability.REVIEWER, Capability.SIGNER,
    }),
    ProjectRole.QA_ENGINEER: frozenset({Capability.AUTHOR, Capability.EDITOR}),
    ProjectRole.TECH_SUPERVISOR_REP: frozenset({Capability.REVIEWER, Capability.SIGNER}),
    ProjectRole.AUTHOR_SUPERVISOR_REP: frozenset({Capability.REVIEWER, Capability.SIGNER}),
    ProjectRole.HSE_RESPONSIBLE: frozenset({Capability.REVIEWER}),
    ProjectRole.OTHER: frozenset(),
    ProjectRole.ADMIN: frozenset(Capability),
}


@dataclass(frozen=True)
class Principal:
    """The acting user as seen by the gate.  Never mutated by the workflow.

    ``project_id`` is the project the membership was resolved for; None
    means the user is not a member of the document's project.
    """
    user_id: UUID
    project_role: ProjectRole | None
    can_sign: bool = False
    project_id: UUID | None = None

    def is_member_of(self, project_id: UUID) -> bool:
        if self.project_role is ProjectRole.ADMIN:
            return True
        return self.project_role is not None and self.project_id == project_id


@dataclass(frozen=True)
class DocumentContext:
    """What the gate knows about the document being acted on."""
    document_id: UUID
    project_id: UUID
    from_status: DocumentStatus | None


@dataclass(frozen=True)
class AuthorizationDecision:
    """Allowed, or Denied(reason)."""
    allowed: bool
    reason: DenialReason | None = None
    detail: str = ""

    @classmethod
    def allow(cls) -> AuthorizationDecision:
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: DenialReason, detail: str = "") -> AuthorizationDecision:
        return cls(allowed=False, reason=reason, detail=detail)


@dataclass(frozen=True)
class RoleCapabilities:
    """Immutable role -> capability grants."""
    grants: tuple[tuple[ProjectRole, frozenset[Capability]], ...]

    @classmethod
    def from_mapping(
        cls, mapping: Mapping[ProjectRole, Iterable[Capability]]
    ) -> RoleCapabilities:
        return cls(grants=tuple(
            (role, frozenset(caps)) for role, caps in sorted(
                mapping.items(), key=lambda item: item[0].value
            )
        ))

    def for_role(self, role: ProjectRole | None) -> frozenset[Capability]:
        if role is None:
            return frozenset()
        for granted_role, caps in self.grants:
            if granted_role is role:
                return caps
        return frozenset()


DEFAULT_ROLE_GRANTS = RoleCapabilities.from_mapping(DEFAULT_ROLE_CAPABILITIES)


def check(
    principal: Principal,
    action: TransitionAction,
    context: DocumentContext,
    role_capabilities: RoleCapabilities = DEFAULT_ROLE_GRANTS,
    workflow: Workflow = DOCUMENT_WORKFLOW,
) -> AuthorizationDecision:
    """Decide whether ``principal`` may perform ``action`` on the document."""
    if not principal.is_member_of(context.project_id):
        return AuthorizationDecision.deny(
            DenialReason.NOT_PROJECT_MEMBER,
            f"not a member of project {context.project_id}",
        )

    rule = workflow.rule_for(context.from_status, action)
    if rule is None:
        # Illegal pair; the state machine reports it.
        return AuthorizationDecision.allow()

    held = role_capabilities.for_role(principal.project_role)
    if not (held & rule.capabilities):
        required = ", ".join(sorted(c.value for c in rule.capabilities))
        return AuthorizationDecision.deny(
            DenialReason.INSUFFICIENT_ROLE,
            f"requires one of [{required}]",
        )

    if rule.requires_sign_capability and not principal.can_sign:
        return AuthorizationDecision.deny(
            DenialReason.MISSING_SIGN_CAPABILITY,
            "signing right (can_sign) is not granted",
        )

    return AuthorizationDecision.allow()
