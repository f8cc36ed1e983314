"""
Typed Exception Hierarchy for the Docflow Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the workflow engine must tell "you may not do this" apart from
"this cannot be done right now" apart from "somebody else got there first".
Parsing message strings for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        service.request_transition(document_id, TransitionAction.SIGN, principal)
    except TransitionDeniedError as e:
        api_response(code=e.code, reason=e.reason)
    except InvalidTransitionError as e:
        api_response(code=e.code, action=e.action, current=e.from_status)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from DocflowKernelError:

    DocflowKernelError (base)
    |
    +-- DocumentError
    |   +-- DocumentNotFoundError
    |   +-- DocumentAlreadyRegisteredError
    |
    +-- WorkflowError
    |   +-- InvalidTransitionError
    |   |   +-- TransitionGuardError
    |   +-- TransitionDeniedError
    |   +-- BulkLimitExceededError
    |
    +-- ConcurrencyError
    |   +-- SequenceConflictError
    |   +-- TransitionConflictError
    |
    +-- AuditError
    |   +-- AuditChainBrokenError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Document        | NOT_FOUND                   | Unknown document id / no events yet
                | DOCUMENT_ALREADY_REGISTERED | Registering an existing document id
----------------|-----------------------------|-----------------------------------------
Workflow        | INVALID_TRANSITION          | (from_status, action) not in the table
                | TRANSITION_GUARD_FAILED     | Table allows it, a guard does not
                | DENIED                      | Authorization gate refused the actor
                | BULK_LIMIT_EXCEEDED         | Too many documents in one bulk call
----------------|-----------------------------|-----------------------------------------
Concurrency     | SEQUENCE_CONFLICT           | Lost the compare-and-append race (retried)
                | CONFLICT                    | Sequence conflicts exhausted all attempts
----------------|-----------------------------|-----------------------------------------
Audit           | AUDIT_CHAIN_BROKEN          | Gap, broken link or hash mismatch in log
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | UPDATE/DELETE on an append-only record

===============================================================================
HANDLING PATTERNS
===============================================================================

1. SequenceConflictError is transient. WorkflowService retries it internally
   and only TransitionConflictError reaches the caller.

2. TransitionDeniedError and InvalidTransitionError surface immediately and
   are never retried.

3. AuditChainBrokenError means the log was tampered with outside the
   kernel. Stop processing the document and investigate.
"""


class DocflowKernelError(Exception):
    """
    Base exception for all docflow kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "DOCFLOW_KERNEL_ERROR"


# Document-related exceptions


class DocumentError(DocflowKernelError):
    """Base exception for document-related errors."""

    code: str = "DOCUMENT_ERROR"


class DocumentNotFoundError(DocumentError):
    """Document with given ID was not found (or has no transitions yet)."""

    code: str = "NOT_FOUND"

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Document not found: {document_id}")


class DocumentAlreadyRegisteredError(DocumentError):
    """Document with given ID is already registered."""

    code: str = "DOCUMENT_ALREADY_REGISTERED"

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Document already registered: {document_id}")


# Workflow-related exceptions


class WorkflowError(DocflowKernelError):
    """Base exception for workflow transition errors."""

    code: str = "WORKFLOW_ERROR"


class InvalidTransitionError(WorkflowError):
    """The (from_status, action) pair is absent from the transition table."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, action: str, from_status: str, message: str | None = None):
        self.action = action
        self.from_status = from_status
        super().__init__(
            message
            or f"Action {action} is not allowed from status {from_status}"
        )


class TransitionGuardError(InvalidTransitionError):
    """The transition exists in the table but one of its guards failed."""

    code: str = "TRANSITION_GUARD_FAILED"

    def __init__(self, action: str, from_status: str, guard_name: str, description: str):
        self.guard_name = guard_name
        self.description = description
        super().__init__(
            action,
            from_status,
            f"Guard '{guard_name}' not satisfied for {action} from {from_status}: "
            f"{description}",
        )


class TransitionDeniedError(WorkflowError):
    """The authorization gate refused the principal."""

    code: str = "DENIED"

    def __init__(self, user_id: str, action: str, reason: str, detail: str = ""):
        self.user_id = user_id
        self.action = action
        self.reason = reason
        self.detail = detail
        super().__init__(
            f"User {user_id} may not perform {action}: {reason}"
            + (f" ({detail})" if detail else "")
        )


class BulkLimitExceededError(WorkflowError):
    """A bulk transition request names more documents than allowed."""

    code: str = "BULK_LIMIT_EXCEEDED"

    def __init__(self, requested: int, limit: int):
        self.requested = requested
        self.limit = limit
        super().__init__(
            f"Bulk transition of {requested} documents exceeds limit of {limit}"
        )


# Concurrency-related exceptions


class ConcurrencyError(DocflowKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class SequenceConflictError(ConcurrencyError):
    """Another writer already took the next sequence slot for a document."""

    code: str = "SEQUENCE_CONFLICT"

    def __init__(self, document_id: str, expected_sequence: int, attempted_sequence: int):
        self.document_id = document_id
        self.expected_sequence = expected_sequence
        self.attempted_sequence = attempted_sequence
        super().__init__(
            f"Sequence conflict on document {document_id}: "
            f"attempted {attempted_sequence}, next free slot is {expected_sequence}"
        )


class TransitionConflictError(ConcurrencyError):
    """Sequence conflicts persisted through every attempt."""

    code: str = "CONFLICT"

    def __init__(self, document_id: str, action: str, attempts: int):
        self.document_id = document_id
        self.action = action
        self.attempts = attempts
        super().__init__(
            f"Transition {action} on document {document_id} lost the race "
            f"{attempts} times; giving up"
        )


# Audit-related exceptions


class AuditError(DocflowKernelError):
    """Base exception for audit-related errors."""

    code: str = "AUDIT_ERROR"


class AuditChainBrokenError(AuditError):
    """The per-document transition chain failed validation."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, document_id: str, sequence_number: int, reason: str):
        self.document_id = document_id
        self.sequence_number = sequence_number
        self.reason = reason
        super().__init__(
            f"Transition chain broken for document {document_id} "
            f"at sequence {sequence_number}: {reason}"
        )


# Immutability-related exceptions


class ImmutabilityError(DocflowKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
