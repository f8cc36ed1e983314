"""
WorkflowService -- the only mutating entry point of the engine.

Responsibility:
    Turns a request "principal wants to do action X to document D" into
    exactly one appended Transition, or a typed refusal.  Combines the
    authorization gate, the state machine, guards and the transition log,
    and declares (never performs) the side effects a transition implies.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by the outer boundary (docflow_services.gateway) and tests.

Algorithm (per attempt):
    1. Load the latest transition (None when the document has no events).
    2. Authorization gate -- fail fast with TransitionDeniedError.
    3. State machine ``evaluate`` -- InvalidTransitionError.
    4. Guards of the matched row -- TransitionGuardError.
    5. Build Transition with ``sequence_number = last + 1`` and append.
    6. On SequenceConflictError start again from 1.  The fresh status may
       make the action invalid, which is then reported as such.

Invariants enforced:
    - Bounded attempts (``max_attempts``); exhaustion raises
      TransitionConflictError.
    - No lock is held across steps 1-4; the append is the only
      serialization point.
    - Flush only.  The caller commits.

Failure modes:
    - DocumentNotFoundError, TransitionDeniedError, InvalidTransitionError,
      TransitionGuardError, TransitionConflictError, BulkLimitExceededError.
      None of them leaves a partially applied transition.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from docflow_kernel.domain.authorization import (
    DocumentContext,
    Principal,
    check,
)
from docflow_kernel.domain.clock import Clock, SystemClock
from docflow_kernel.domain.dtos import (
    AvailableActions,
    BulkItemResult,
    BulkTransitionResult,
    DocumentInfo,
    SideEffectIntent,
    Transition,
    TransitionOutcome,
)
from docflow_kernel.domain.workflow import (
    COMMENT_REQUIRED,
    DOCUMENT_WORKFLOW,
    TransitionAction,
    TransitionRule,
    Workflow,
    allowed_actions,
    check_guards,
    evaluate,
    is_locked,
    status_label,
)
from docflow_kernel.exceptions import (
    BulkLimitExceededError,
    DocflowKernelError,
    DocumentAlreadyRegisteredError,
    DocumentNotFoundError,
    SequenceConflictError,
    TransitionConflictError,
)
from docflow_kernel.logging_config import LogContext, get_logger
from docflow_kernel.models.document import Document
from docflow_kernel.services.authorization_gate import AuthorizationGate
from docflow_kernel.services.transition_log import TransitionLog

logger = get_logger("services.workflow")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BULK_LIMIT = 50


class WorkflowService:
    """
    Applies workflow actions to documents.

    Contract:
        ``request_transition`` either appends exactly one Transition and
        returns it with its intents, or raises without writing anything.

    Non-goals:
        - Does NOT send notifications or render PDFs; it returns
          SideEffectIntent values for the caller to publish.
        - Does NOT commit.
    """

    def __init__(
        self,
        session: Session,
        gate: AuthorizationGate | None = None,
        log: TransitionLog | None = None,
        clock: Clock | None = None,
        workflow: Workflow = DOCUMENT_WORKFLOW,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        enabled_guards: frozenset[str] = frozenset({COMMENT_REQUIRED.name}),
        bulk_limit: int = DEFAULT_BULK_LIMIT,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._session = session
        self._gate = gate or AuthorizationGate(workflow=workflow)
        self._log = log or TransitionLog(session)
        self._clock = clock or SystemClock()
        self._workflow = workflow
        self._max_attempts = max_attempts
        self._enabled_guards = enabled_guards
        self._bulk_limit = bulk_limit

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def get_document(self, document_id: UUID) -> DocumentInfo:
        return DocumentInfo.from_model(self._document(document_id))

    def _document(self, document_id: UUID) -> Document:
        document = self._session.get(Document, document_id)
        if document is None:
            raise DocumentNotFoundError(str(document_id))
        return document

    def register_document(
        self,
        document_type: str,
        project_id: UUID,
        actor_id: UUID,
        title: str | None = None,
        location_id: UUID | None = None,
        document_id: UUID | None = None,
    ) -> DocumentInfo:
        """Register a document with zero events.  Its status does not exist yet."""
        document_id = document_id or uuid4()
        if self._session.get(Document, document_id) is not None:
            raise DocumentAlreadyRegisteredError(str(document_id))

        now = self._clock.now()
        document = Document(
            id=document_id,
            document_type=document_type,
            project_id=project_id,
            location_id=location_id,
            title=title,
            created_at=now,
            updated_at=now,
            created_by_id=actor_id,
        )
        self._session.add(document)
        self._session.flush()

        logger.info(
            "document_registered",
            extra={
                "document_id": str(document_id),
                "project_id": str(project_id),
                "document_type": document_type,
            },
        )
        return DocumentInfo.from_model(document)

    def create_document(
        self,
        document_type: str,
        project_id: UUID,
        principal: Principal,
        title: str | None = None,
        location_id: UUID | None = None,
        document_id: UUID | None = None,
        comment: str | None = None,
    ) -> TransitionOutcome:
        """Register a document and apply CREATE, all or nothing."""
        with self._session.begin_nested():
            info = self.register_document(
                document_type=document_type,
                project_id=project_id,
                actor_id=principal.user_id,
                title=title,
                location_id=location_id,
                document_id=document_id,
            )
            return self.request_transition(
                info.document_id, TransitionAction.CREATE, principal, comment,
            )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def request_transition(
        self,
        document_id: UUID,
        action: TransitionAction,
        principal: Principal,
        comment: str | None = None,
    ) -> TransitionOutcome:
        """
        Apply ``action`` to the document on behalf of ``principal``.

        Returns:
            TransitionOutcome with the appended transition, its intents and
            the number of attempts it took.

        Raises:
            DocumentNotFoundError: unknown document id.
            TransitionDeniedError: the gate refused the principal.
            InvalidTransitionError: the action is illegal from the current
                status (TransitionGuardError when a guard failed).
            TransitionConflictError: every attempt lost the append race.
        """
        document = self._document(document_id)
        if comment is not None and not comment.strip():
            comment = None

        with LogContext.bind(
            document_id=str(document_id),
            actor_id=str(principal.user_id),
            project_id=str(document.project_id),
        ):
            for attempt in range(1, self._max_attempts + 1):
                try:
                    outcome = self._attempt(document, action, principal, comment, attempt)
                except SequenceConflictError as exc:
                    logger.warning(
                        "sequence_conflict_retry",
                        extra={
                            "action": action.value,
                            "attempt": attempt,
                            "max_attempts": self._max_attempts,
                            "attempted_sequence": exc.attempted_sequence,
                        },
                    )
                    continue

                logger.info(
                    "transition_applied",
                    extra={
                        "action": action.value,
                        "from_status": status_label(outcome.transition.from_status),
                        "to_status": outcome.transition.to_status.value,
                        "sequence_number": outcome.transition.sequence_number,
                        "attempts": attempt,
                        "intents": [i.kind.value for i in outcome.intents],
                    },
                )
                return outcome

            logger.error(
                "transition_conflict_exhausted",
                extra={"action": action.value, "attempts": self._max_attempts},
            )
            raise TransitionConflictError(
                str(document_id), action.value, self._max_attempts,
            )

    def _attempt(
        self,
        document: Document,
        action: TransitionAction,
        principal: Principal,
        comment: str | None,
        attempt: int,
    ) -> TransitionOutcome:
        latest = self._log.latest_or_none(document.id)
        from_status = latest.to_status if latest is not None else None

        self._gate.require(
            principal,
            action,
            DocumentContext(document.id, document.project_id, from_status),
        )
        to_status = evaluate(from_status, action, self._workflow)
        rule = self._workflow.rule_for(from_status, action)
        check_guards(rule, comment, self._enabled_guards)

        transition = Transition(
            transition_id=uuid4(),
            document_id=document.id,
            sequence_number=latest.sequence_number + 1 if latest is not None else 1,
            from_status=from_status,
            to_status=to_status,
            action=action,
            performed_by=principal.user_id,
            occurred_at=self._clock.now(),
            comment=comment,
        )
        stored = self._log.append(document.id, transition)
        return TransitionOutcome(
            transition=stored,
            intents=self._intents_for(rule, stored),
            attempts=attempt,
        )

    @staticmethod
    def _intents_for(
        rule: TransitionRule, transition: Transition
    ) -> tuple[SideEffectIntent, ...]:
        return tuple(
            SideEffectIntent(
                kind=kind,
                document_id=transition.document_id,
                sequence_number=transition.sequence_number,
                action=transition.action,
                to_status=transition.to_status,
                performed_by=transition.performed_by,
            )
            for kind in rule.intents
        )

    def bulk_transition(
        self,
        document_ids: Iterable[UUID],
        action: TransitionAction,
        principal_for: Callable[[UUID], Principal],
        comment: str | None = None,
    ) -> BulkTransitionResult:
        """
        Apply one action to many documents independently.

        Each document runs in its own savepoint: one failure never undoes
        another document's transition.  ``principal_for`` maps a document's
        project id to the acting Principal.  Duplicate ids are applied once.

        Raises:
            BulkLimitExceededError: more distinct documents than the limit.
        """
        ids = list(dict.fromkeys(document_ids))
        if len(ids) > self._bulk_limit:
            raise BulkLimitExceededError(len(ids), self._bulk_limit)

        items: list[BulkItemResult] = []
        intents: list[SideEffectIntent] = []
        for document_id in ids:
            savepoint = self._session.begin_nested()
            try:
                document = self._document(document_id)
                outcome = self.request_transition(
                    document_id, action, principal_for(document.project_id), comment,
                )
            except DocflowKernelError as exc:
                savepoint.rollback()
                items.append(BulkItemResult(
                    document_id=document_id,
                    success=False,
                    error_code=exc.code,
                    error=str(exc),
                ))
                continue
            savepoint.commit()
            items.append(BulkItemResult(
                document_id=document_id,
                success=True,
                transition=outcome.transition,
            ))
            intents.extend(outcome.intents)

        result = BulkTransitionResult(items=tuple(items), intents=tuple(intents))
        logger.info(
            "bulk_transition_completed",
            extra={
                "action": action.value,
                "requested": len(ids),
                "succeeded": len(result.succeeded),
                "failed": len(result.failed),
            },
        )
        return result

    # ------------------------------------------------------------------
    # Queries that depend on the gate
    # ------------------------------------------------------------------

    def available_actions(
        self, document_id: UUID, principal: Principal
    ) -> AvailableActions:
        """Actions the table allows from the current status and the gate grants.

        Guards are not evaluated: a REJECT is listed even though it will
        still need a comment.
        """
        document = self._document(document_id)
        latest = self._log.latest_or_none(document_id)
        from_status = latest.to_status if latest is not None else None
        context = DocumentContext(document.id, document.project_id, from_status)

        actions = tuple(
            action
            for action in allowed_actions(from_status, self._workflow)
            if check(
                principal, action, context,
                role_capabilities=self._gate.role_capabilities,
                workflow=self._workflow,
            ).allowed
        )
        return AvailableActions(
            document_id=document_id,
            current_status=from_status,
            actions=actions,
            is_locked=from_status is not None and is_locked(from_status),
        )
