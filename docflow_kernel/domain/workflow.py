"""
Document workflow state machine (``docflow_kernel.domain.workflow``).

Responsibility
--------------
Pure, side-effect-free decision of whether an action is legal from a
status, and what status results.  Each row of the transition table also
declares the capabilities it requires, the guards that must hold and the
side-effect intents the transition emits.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``models/``, ``services/``, ``selectors/`` or outer layers.

Invariants enforced
-------------------
* ``DOCUMENT_WORKFLOW.rules`` is the only source of legal transitions.
  ``evaluate`` is a pure lookup: the same inputs always give the same output.
* ``None`` as ``from_status`` stands for a document that has no events yet.
  Only CREATE leaves it.
* ARCHIVED has no outgoing rows.  REJECTED is not terminal (REVISE -> DRAFT).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from docflow_kernel.exceptions import InvalidTransitionError, TransitionGuardError


class DocumentStatus(str, Enum):
    """Logical status of a document; always derived from its latest transition."""

    DRAFT = "DRAFT"
    IN_REVIEW = "IN_REVIEW"
    PENDING_SIGNATURE = "PENDING_SIGNATURE"
    SIGNED = "SIGNED"
    REJECTED = "REJECTED"
    ARCHIVED = "ARCHIVED"


class TransitionAction(str, Enum):
    """Closed set of workflow actions."""

    CREATE = "CREATE"
    SUBMIT = "SUBMIT"
    REVIEW = "REVIEW"
    APPROVE = "APPROVE"
    SIGN = "SIGN"
    REJECT = "REJECT"
    REVISE = "REVISE"
    ARCHIVE = "ARCHIVE"


class Capability(str, Enum):
    """Named permissions required by transition rows."""

    AUTHOR = "author"
    EDITOR = "editor"
    REVIEWER = "reviewer"
    SIGNER = "signer"
    ADMIN = "admin"


class IntentKind(str, Enum):
    """Side effects a transition asks the outside world to perform."""

    NOTIFY_REVIEWERS = "notify_reviewers"
    NOTIFY_SIGNERS = "notify_signers"
    NOTIFY_AUTHOR = "notify_author"
    GENERATE_PDF = "generate_pdf"


# Label used in messages and logs for a document with no events.
NONEXISTENT_LABEL = "(none)"


def status_label(status: DocumentStatus | None) -> str:
    """Render a status (or the no-events sentinel) for messages."""
    return status.value if status is not None else NONEXISTENT_LABEL


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- ``check_guards`` does.
    """
    name: str
    description: str


COMMENT_REQUIRED = Guard(
    name="comment_required",
    description="a comment stating the reason is required",
)


@dataclass(frozen=True)
class TransitionRule:
    """One row of the transition table.

    ``capabilities`` is a set of alternatives: holding any one of them is
    enough.  ``requires_sign_capability`` additionally demands the
    principal's ``can_sign`` flag.
    """
    from_status: DocumentStatus | None
    action: TransitionAction
    to_status: DocumentStatus
    capabilities: frozenset[Capability]
    requires_sign_capability: bool = False
    guard: Guard | None = None
    intents: tuple[IntentKind, ...] = ()


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle.

    Guarantees: ``initial_status`` is the target of the single rule whose
    ``from_status`` is None; ``terminal_statuses`` have no outgoing rules.
    """
    name: str
    description: str
    initial_status: DocumentStatus
    rules: tuple[TransitionRule, ...]
    terminal_statuses: frozenset[DocumentStatus] = frozenset()
    _index: dict = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        for rule in self.rules:
            key = (rule.from_status, rule.action)
            if key in self._index:
                raise ValueError(
                    f"Duplicate rule for {status_label(rule.from_status)} / {rule.action.value}"
                )
            if rule.from_status in self.terminal_statuses:
                raise ValueError(
                    f"Terminal status {rule.from_status.value} has an outgoing rule"
                )
            self._index[key] = rule

    def rule_for(
        self, from_status: DocumentStatus | None, action: TransitionAction
    ) -> TransitionRule | None:
        return self._index.get((from_status, action))


DOCUMENT_WORKFLOW = Workflow(
    name="pto_document",
    description="Executive documentation approval lifecycle",
    initial_status=DocumentStatus.DRAFT,
    rules=(
        TransitionRule(
            None, TransitionAction.CREATE, DocumentStatus.DRAFT,
            frozenset({Capability.AUTHOR}),
        ),
        TransitionRule(
            DocumentStatus.DRAFT, TransitionAction.SUBMIT, DocumentStatus.IN_REVIEW,
            frozenset({Capability.AUTHOR, Capability.EDITOR}),
            intents=(IntentKind.NOTIFY_REVIEWERS,),
        ),
        TransitionRule(
            DocumentStatus.IN_REVIEW, TransitionAction.APPROVE,
            DocumentStatus.PENDING_SIGNATURE,
            frozenset({Capability.REVIEWER}),
            intents=(IntentKind.NOTIFY_SIGNERS,),
        ),
        TransitionRule(
            DocumentStatus.IN_REVIEW, TransitionAction.REJECT, DocumentStatus.REJECTED,
            frozenset({Capability.REVIEWER}),
            guard=COMMENT_REQUIRED,
            intents=(IntentKind.NOTIFY_AUTHOR,),
        ),
        TransitionRule(
            DocumentStatus.PENDING_SIGNATURE, TransitionAction.SIGN, DocumentStatus.SIGNED,
            frozenset({Capability.SIGNER}),
            requires_sign_capability=True,
            intents=(IntentKind.GENERATE_PDF, IntentKind.NOTIFY_AUTHOR),
        ),
        TransitionRule(
            DocumentStatus.PENDING_SIGNATURE, TransitionAction.REJECT,
            DocumentStatus.REJECTED,
            frozenset({Capability.SIGNER}),
            guard=COMMENT_REQUIRED,
            intents=(IntentKind.NOTIFY_AUTHOR,),
        ),
        TransitionRule(
            DocumentStatus.REJECTED, TransitionAction.REVISE, DocumentStatus.DRAFT,
            frozenset({Capability.AUTHOR}),
        ),
        TransitionRule(
            DocumentStatus.SIGNED, TransitionAction.ARCHIVE, DocumentStatus.ARCHIVED,
            frozenset({Capability.ADMIN}),
        ),
    ),
    terminal_statuses=frozenset({DocumentStatus.ARCHIVED}),
)

# Signed documents are frozen for editing; only archiving remains.
LOCKED_STATUSES: frozenset[DocumentStatus] = frozenset({
    DocumentStatus.SIGNED,
    DocumentStatus.ARCHIVED,
})


def rule_for(
    from_status: DocumentStatus | None,
    action: TransitionAction,
    workflow: Workflow = DOCUMENT_WORKFLOW,
) -> TransitionRule | None:
    """Return the table row for (from_status, action), or None."""
    return workflow.rule_for(from_status, action)


def evaluate(
    from_status: DocumentStatus | None,
    action: TransitionAction,
    workflow: Workflow = DOCUMENT_WORKFLOW,
) -> DocumentStatus:
    """Return the status ``action`` leads to from ``from_status``.

    Raises:
        InvalidTransitionError: the pair is absent from the table.
    """
    rule = workflow.rule_for(from_status, action)
    if rule is None:
        raise InvalidTransitionError(action.value, status_label(from_status))
    return rule.to_status


def allowed_actions(
    from_status: DocumentStatus | None,
    workflow: Workflow = DOCUMENT_WORKFLOW,
) -> tuple[TransitionAction, ...]:
    """Actions with a table row leaving ``from_status``, in table order."""
    return tuple(r.action for r in workflow.rules if r.from_status == from_status)


def check_guards(
    rule: TransitionRule,
    comment: str | None,
    enabled_guards: frozenset[str],
) -> None:
    """Evaluate the rule's guard if it is enabled.

    Raises:
        TransitionGuardError: the guard is enabled and not satisfied.
    """
    guard = rule.guard
    if guard is None or guard.name not in enabled_guards:
        return
    if guard.name == COMMENT_REQUIRED.name:
        if not comment or not comment.strip():
            raise TransitionGuardError(
                rule.action.value,
                status_label(rule.from_status),
                guard.name,
                guard.description,
            )


def is_locked(status: DocumentStatus) -> bool:
    return status in LOCKED_STATUSES
