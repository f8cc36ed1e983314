"""
docflow_services -- Package init and public API.

Responsibility:
    Outer boundary of the workflow engine: transaction scope per request,
    principal resolution, error-kind mapping and side-effect publishing.

Architecture position:
    Services -- outermost layer.

    Dependency direction:
        docflow_services/ -> docflow_kernel/  (allowed)
        docflow_services/ -> docflow_config/  (allowed)
        docflow_kernel/   -> docflow_services/ (FORBIDDEN)
"""

from docflow_services.gateway import (
    ErrorKind,
    GatewayError,
    GatewayResult,
    WorkflowGateway,
    error_kind_for,
)
from docflow_services.intents import (
    IntentPublisher,
    LoggingIntentPublisher,
    RecordingIntentPublisher,
)

__all__ = [
    "ErrorKind",
    "GatewayError",
    "GatewayResult",
    "IntentPublisher",
    "LoggingIntentPublisher",
    "RecordingIntentPublisher",
    "WorkflowGateway",
    "error_kind_for",
]
