"""Services for the docflow kernel (write side)."""

from docflow_kernel.services.authorization_gate import AuthorizationGate
from docflow_kernel.services.membership_service import MembershipService
from docflow_kernel.services.transition_log import TransitionLog
from docflow_kernel.services.workflow_service import WorkflowService

__all__ = [
    "AuthorizationGate",
    "MembershipService",
    "TransitionLog",
    "WorkflowService",
]
