"""
docflow_services.gateway -- Boundary between the presentation layer and
the workflow kernel.

Responsibility:
    Exposes the engine as plain calls that take ids and return
    ``GatewayResult`` values.  Each call resolves the acting principal from
    project membership, runs in its own transaction, maps kernel
    exceptions to an ``ErrorKind`` and publishes side-effect intents once
    the transaction has committed.

Architecture position:
    Services layer -- outermost.  May import from docflow_kernel and
    docflow_config.  Neither of those imports from here.

Invariants enforced:
    - Denied, invalid and conflicting requests come back as typed
      failures, never as exceptions.  Audit-chain and immutability errors
      are not request errors and propagate.
    - Intents are published only after commit.  A committed transition
      stands even if publishing fails.
    - Constructing a gateway registers the ORM immutability listeners on
      stored transitions and document heads.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from docflow_config import EngineConfig, get_active_config
from docflow_kernel.db.engine import get_session_factory, session_scope
from docflow_kernel.db.immutability import register_immutability_listeners
from docflow_kernel.domain.clock import Clock
from docflow_kernel.domain.dtos import SideEffectIntent, Transition
from docflow_kernel.domain.workflow import TransitionAction
from docflow_kernel.exceptions import (
    BulkLimitExceededError,
    DocflowKernelError,
    DocumentAlreadyRegisteredError,
    DocumentNotFoundError,
    InvalidTransitionError,
    TransitionConflictError,
    TransitionDeniedError,
)
from docflow_kernel.logging_config import LogContext, get_logger
from docflow_kernel.selectors.projection_selector import (
    ProjectionCache,
    ProjectionSelector,
)
from docflow_kernel.services.authorization_gate import AuthorizationGate
from docflow_kernel.services.membership_service import MembershipService
from docflow_kernel.services.workflow_service import WorkflowService
from docflow_services.intents import IntentPublisher, LoggingIntentPublisher

logger = get_logger("services.gateway")


class ErrorKind(str, Enum):
    DENIED = "DENIED"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    CONFLICT = "CONFLICT"
    NOT_FOUND = "NOT_FOUND"
    INVALID_REQUEST = "INVALID_REQUEST"


# Order matters: subclasses before their bases.
_ERROR_KINDS: tuple[tuple[type[DocflowKernelError], ErrorKind], ...] = (
    (TransitionDeniedError, ErrorKind.DENIED),
    (InvalidTransitionError, ErrorKind.INVALID_TRANSITION),
    (TransitionConflictError, ErrorKind.CONFLICT),
    (DocumentNotFoundError, ErrorKind.NOT_FOUND),
    (BulkLimitExceededError, ErrorKind.INVALID_REQUEST),
    (DocumentAlreadyRegisteredError, ErrorKind.INVALID_REQUEST),
)


def error_kind_for(exc: DocflowKernelError) -> ErrorKind | None:
    for exc_type, kind in _ERROR_KINDS:
        if isinstance(exc, exc_type):
            return kind
    return None


@dataclass(frozen=True)
class GatewayError:
    kind: ErrorKind
    code: str
    message: str


@dataclass(frozen=True)
class GatewayResult:
    """Either ``value`` (ok) or ``error``."""

    ok: bool
    value: Any = None
    error: GatewayError | None = None

    @classmethod
    def success(cls, value: Any) -> GatewayResult:
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, code: str, message: str) -> GatewayResult:
        return cls(ok=False, error=GatewayError(kind=kind, code=code, message=message))


class _RequestFailed(Exception):
    def __init__(self, result: GatewayResult):
        self.result = result


def _transition_payload(transition: Transition) -> dict[str, Any]:
    return {
        "transitionId": str(transition.transition_id),
        "toStatus": transition.to_status.value,
        "occurredAt": transition.occurred_at.isoformat(),
        "sequenceNumber": transition.sequence_number,
    }


def _parse_action(action: TransitionAction | str) -> TransitionAction:
    if isinstance(action, TransitionAction):
        return action
    try:
        return TransitionAction(action)
    except ValueError:
        raise _RequestFailed(GatewayResult.failure(
            ErrorKind.INVALID_TRANSITION,
            InvalidTransitionError.code,
            f"Unknown action {action!r}",
        )) from None


class WorkflowGateway:
    """
    Request/response facade over the workflow engine.

    One instance is shared by all callers; every call opens its own
    session from ``session_factory`` and commits or rolls back on exit.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        config: EngineConfig | None = None,
        clock: Clock | None = None,
        publisher: IntentPublisher | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._config = config or get_active_config()
        self._clock = clock
        self._publisher = publisher or LoggingIntentPublisher()
        self._gate = AuthorizationGate(self._config.role_capabilities)
        self._cache = ProjectionCache(self._config.engine.projection_cache_size)
        register_immutability_listeners()

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def cache(self) -> ProjectionCache:
        return self._cache

    def _factory(self) -> sessionmaker[Session]:
        return self._session_factory or get_session_factory()

    def _service(self, session: Session) -> WorkflowService:
        engine = self._config.engine
        return WorkflowService(
            session,
            gate=self._gate,
            clock=self._clock,
            max_attempts=engine.max_transition_attempts,
            enabled_guards=self._config.guards.enabled_guards(),
            bulk_limit=engine.bulk_transition_limit,
        )

    def _run(self, operation: str, fn) -> GatewayResult:
        """Run ``fn(session)`` in a transaction and map kernel errors."""
        with LogContext.bind(correlation_id=str(uuid4())):
            try:
                with session_scope(self._factory()) as session:
                    value, intents = fn(session)
            except _RequestFailed as failed:
                return failed.result
            except DocflowKernelError as exc:
                kind = error_kind_for(exc)
                if kind is None:
                    raise
                logger.info(
                    "gateway_request_failed",
                    extra={"operation": operation, "error_kind": kind.value, "code": exc.code},
                )
                return GatewayResult.failure(kind, exc.code, str(exc))

            self._publish(intents)
            return GatewayResult.success(value)

    def _publish(self, intents: Iterable[SideEffectIntent]) -> None:
        for intent in intents:
            try:
                self._publisher.publish(intent)
            except Exception:
                logger.exception("intent_publish_failed", extra=intent.as_dict())

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def request_transition(
        self,
        document_id: UUID,
        action: TransitionAction | str,
        principal_id: UUID,
        comment: str | None = None,
    ) -> GatewayResult:
        """Apply an action.  Payload: transitionId, toStatus, occurredAt, sequenceNumber."""

        def op(session: Session):
            parsed = _parse_action(action)
            service = self._service(session)
            document = service.get_document(document_id)
            principal = MembershipService(session).resolve_principal(
                principal_id, document.project_id,
            )
            outcome = service.request_transition(document_id, parsed, principal, comment)
            return _transition_payload(outcome.transition), outcome.intents

        return self._run("request_transition", op)

    def create_document(
        self,
        document_type: str,
        project_id: UUID,
        principal_id: UUID,
        title: str | None = None,
        location_id: UUID | None = None,
    ) -> GatewayResult:
        def op(session: Session):
            principal = MembershipService(session).resolve_principal(principal_id, project_id)
            outcome = self._service(session).create_document(
                document_type=document_type,
                project_id=project_id,
                principal=principal,
                title=title,
                location_id=location_id,
            )
            payload = {"documentId": str(outcome.transition.document_id)}
            payload.update(_transition_payload(outcome.transition))
            return payload, outcome.intents

        return self._run("create_document", op)

    def bulk_transition(
        self,
        document_ids: Iterable[UUID],
        action: TransitionAction | str,
        principal_id: UUID,
        comment: str | None = None,
    ) -> GatewayResult:
        """Apply one action to many documents; each succeeds or fails on its own."""

        def op(session: Session):
            parsed = _parse_action(action)
            membership = MembershipService(session)
            result = self._service(session).bulk_transition(
                document_ids,
                parsed,
                lambda project_id: membership.resolve_principal(principal_id, project_id),
                comment,
            )
            payload = {
                "succeeded": [
                    {"documentId": str(item.document_id), **_transition_payload(item.transition)}
                    for item in result.items if item.success
                ],
                "failed": [
                    {"documentId": str(item.document_id), "code": item.error_code,
                     "message": item.error}
                    for item in result.failed
                ],
            }
            return payload, result.intents

        return self._run("bulk_transition", op)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def current_status(self, document_id: UUID) -> GatewayResult:
        def op(session: Session):
            status = ProjectionSelector(session, self._cache).current_status(document_id)
            return status.value, ()

        return self._run("current_status", op)

    def timeline(self, document_id: UUID) -> GatewayResult:
        def op(session: Session):
            entries = ProjectionSelector(session, self._cache).timeline(document_id)
            return [
                {
                    "sequenceNumber": e.sequence_number,
                    "action": e.action.value,
                    "fromStatus": e.from_status.value if e.from_status else None,
                    "toStatus": e.to_status.value,
                    "performedBy": str(e.performed_by),
                    "occurredAt": e.occurred_at.isoformat(),
                    "comment": e.comment,
                }
                for e in entries
            ], ()

        return self._run("timeline", op)

    def available_actions(self, document_id: UUID, principal_id: UUID) -> GatewayResult:
        def op(session: Session):
            service = self._service(session)
            document = service.get_document(document_id)
            principal = MembershipService(session).resolve_principal(
                principal_id, document.project_id,
            )
            available = service.available_actions(document_id, principal)
            return {
                "currentStatus": (
                    available.current_status.value if available.current_status else None
                ),
                "actions": [a.value for a in available.actions],
                "isLocked": available.is_locked,
            }, ()

        return self._run("available_actions", op)

    def status_counts(self, project_id: UUID | None = None) -> GatewayResult:
        def op(session: Session):
            counts = ProjectionSelector(session).status_counts(project_id)
            return {status.value: count for status, count in counts.items()}, ()

        return self._run("status_counts", op)
