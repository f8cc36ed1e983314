"""Selectors for the docflow kernel (read side)."""

from docflow_kernel.selectors.projection_selector import (
    ProjectionCache,
    ProjectionSelector,
)

__all__ = [
    "ProjectionCache",
    "ProjectionSelector",
]
