"""
AuthorizationGate -- per-transition capability check with audit logging.

Responsibility:
    Wraps the pure ``domain.authorization.check`` with the configured
    role -> capability grants, logs every denial, and converts a denial into
    ``TransitionDeniedError`` for callers that want to fail fast.

Architecture position:
    Kernel > Services.  May import from domain/.  No database access.

Failure modes:
    - TransitionDeniedError from ``require`` with ``reason`` set to the
      DenialReason value (InsufficientRole, MissingSignCapability,
      NotProjectMember).
"""

from __future__ import annotations

from docflow_kernel.domain.authorization import (
    DEFAULT_ROLE_GRANTS,
    AuthorizationDecision,
    DocumentContext,
    Principal,
    RoleCapabilities,
    check,
)
from docflow_kernel.domain.workflow import (
    DOCUMENT_WORKFLOW,
    TransitionAction,
    Workflow,
    status_label,
)
from docflow_kernel.exceptions import TransitionDeniedError
from docflow_kernel.logging_config import get_logger

logger = get_logger("services.authorization_gate")


class AuthorizationGate:
    """Decides whether a principal may perform an action on a document."""

    def __init__(
        self,
        role_capabilities: RoleCapabilities = DEFAULT_ROLE_GRANTS,
        workflow: Workflow = DOCUMENT_WORKFLOW,
    ) -> None:
        self._role_capabilities = role_capabilities
        self._workflow = workflow

    @property
    def role_capabilities(self) -> RoleCapabilities:
        return self._role_capabilities

    def check(
        self,
        principal: Principal,
        action: TransitionAction,
        context: DocumentContext,
    ) -> AuthorizationDecision:
        decision = check(
            principal, action, context,
            role_capabilities=self._role_capabilities,
            workflow=self._workflow,
        )
        if not decision.allowed:
            logger.warning(
                "transition_denied",
                extra={
                    "document_id": str(context.document_id),
                    "actor_id": str(principal.user_id),
                    "action": action.value,
                    "from_status": status_label(context.from_status),
                    "reason": decision.reason.value,
                    "detail": decision.detail,
                },
            )
        return decision

    def require(
        self,
        principal: Principal,
        action: TransitionAction,
        context: DocumentContext,
    ) -> None:
        """Raise TransitionDeniedError unless the gate allows the action."""
        decision = self.check(principal, action, context)
        if not decision.allowed:
            raise TransitionDeniedError(
                str(principal.user_id),
                action.value,
                decision.reason.value,
                decision.detail,
            )
