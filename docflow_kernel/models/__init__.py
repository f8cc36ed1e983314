"""Domain models for the docflow kernel."""

from docflow_kernel.models.document import Document
from docflow_kernel.models.document_head import DocumentHead
from docflow_kernel.models.project_member import ProjectMember
from docflow_kernel.models.transition import TransitionRecord

__all__ = [
    "Document",
    "DocumentHead",
    "ProjectMember",
    "TransitionRecord",
]
