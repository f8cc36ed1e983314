"""
Configuration Loader (``docflow_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen
``docflow_config.schema`` dataclasses.  Runtime callers go through
``docflow_config.get_active_config()`` instead of calling this directly.

Invariants enforced
-------------------
* Every parse error raises ``ConfigValidationError`` naming the offending
  key; unknown roles and capabilities are rejected, not ignored.
* ``compute_checksum`` is deterministic for identical input.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from docflow_config.schema import EngineConfig, EngineSettings, GuardSettings
from docflow_kernel.domain.authorization import (
    DEFAULT_ROLE_CAPABILITIES,
    ProjectRole,
    RoleCapabilities,
)
from docflow_kernel.domain.workflow import Capability
from docflow_kernel.utils.hashing import hash_payload


class ConfigValidationError(ValueError):
    """The configuration document is structurally invalid."""


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ConfigValidationError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigValidationError(f"{path}: top level must be a mapping")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    return hash_payload(data)


def _positive_int(section: dict[str, Any], key: str, default: int) -> int:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigValidationError(f"engine.{key} must be a positive integer, got {value!r}")
    return value


def parse_engine_settings(data: dict[str, Any]) -> EngineSettings:
    defaults = EngineSettings()
    return EngineSettings(
        max_transition_attempts=_positive_int(
            data, "max_transition_attempts", defaults.max_transition_attempts,
        ),
        bulk_transition_limit=_positive_int(
            data, "bulk_transition_limit", defaults.bulk_transition_limit,
        ),
        projection_cache_size=_positive_int(
            data, "projection_cache_size", defaults.projection_cache_size,
        ),
    )


def parse_guard_settings(data: dict[str, Any]) -> GuardSettings:
    value = data.get("require_comment_on_reject", True)
    if not isinstance(value, bool):
        raise ConfigValidationError(
            f"guards.require_comment_on_reject must be a boolean, got {value!r}"
        )
    return GuardSettings(require_comment_on_reject=value)


def parse_roles(data: dict[str, Any]) -> RoleCapabilities:
    """
    Parse ``roles:`` -- a mapping of ProjectRole name to capability names.

    Roles not listed keep their built-in grants.  ADMIN always holds every
    capability and cannot be narrowed.
    """
    grants = dict(DEFAULT_ROLE_CAPABILITIES)
    for role_name, capability_names in data.items():
        try:
            role = ProjectRole(role_name)
        except ValueError:
            raise ConfigValidationError(f"roles: unknown project role {role_name!r}") from None
        if role is ProjectRole.ADMIN:
            raise ConfigValidationError("roles: ADMIN grants are fixed")
        if not isinstance(capability_names, list):
            raise ConfigValidationError(f"roles.{role_name} must be a list")
        try:
            grants[role] = frozenset(Capability(name) for name in capability_names)
        except ValueError as exc:
            raise ConfigValidationError(f"roles.{role_name}: {exc}") from None
    return RoleCapabilities.from_mapping(grants)


def parse_config(data: dict[str, Any]) -> EngineConfig:
    """
    Parse a whole configuration document.

    Requires ``config_id`` and ``version``; every section is optional and
    falls back to the built-in defaults.
    """
    try:
        config_id = data["config_id"]
        version = data["version"]
    except KeyError as exc:
        raise ConfigValidationError(f"missing required key {exc.args[0]!r}") from None
    if not isinstance(version, int) or isinstance(version, bool):
        raise ConfigValidationError(f"version must be an integer, got {version!r}")

    sections = {}
    for name in ("engine", "guards", "roles"):
        section = data.get(name) or {}
        if not isinstance(section, dict):
            raise ConfigValidationError(f"{name} must be a mapping")
        sections[name] = section

    return EngineConfig(
        config_id=str(config_id),
        version=version,
        engine=parse_engine_settings(sections["engine"]),
        guards=parse_guard_settings(sections["guards"]),
        role_capabilities=parse_roles(sections["roles"]),
        checksum=compute_checksum(data),
    )


def load_config(path: Path) -> EngineConfig:
    return parse_config(load_yaml_file(path))
