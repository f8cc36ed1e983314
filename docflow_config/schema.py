"""
Engine configuration schema.

Frozen dataclasses the YAML configuration is parsed into.  ``EngineConfig``
is the sole runtime artifact handed out by ``get_active_config()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from docflow_kernel.domain.authorization import DEFAULT_ROLE_GRANTS, RoleCapabilities
from docflow_kernel.domain.workflow import COMMENT_REQUIRED


@dataclass(frozen=True)
class EngineSettings:
    """Knobs of the workflow service and projection cache."""

    max_transition_attempts: int = 3
    bulk_transition_limit: int = 50
    projection_cache_size: int = 1024


@dataclass(frozen=True)
class GuardSettings:
    """Which transition guards are enforced."""

    require_comment_on_reject: bool = True

    def enabled_guards(self) -> frozenset[str]:
        enabled = set()
        if self.require_comment_on_reject:
            enabled.add(COMMENT_REQUIRED.name)
        return frozenset(enabled)


@dataclass(frozen=True)
class EngineConfig:
    """A validated, immutable engine configuration.

    ``checksum`` is the SHA-256 of the canonical JSON of the source
    document; two configs with the same checksum behave identically.
    """

    config_id: str
    version: int
    engine: EngineSettings = field(default_factory=EngineSettings)
    guards: GuardSettings = field(default_factory=GuardSettings)
    role_capabilities: RoleCapabilities = DEFAULT_ROLE_GRANTS
    checksum: str = ""
