"""
docflow_services.intents -- Side-effect intent publishing.

Responsibility:
    Hands the SideEffectIntent values declared by the kernel to whatever
    notification channel the deployment uses (mail, websocket, PDF queue).
    The kernel only declares intents; publishing happens here, after the
    transaction that appended the transition has committed.

Architecture position:
    Services layer.  May import from docflow_kernel.
"""

from __future__ import annotations

import threading
from typing import Protocol, runtime_checkable

from docflow_kernel.domain.dtos import SideEffectIntent
from docflow_kernel.logging_config import get_logger

logger = get_logger("services.intents")


@runtime_checkable
class IntentPublisher(Protocol):
    def publish(self, intent: SideEffectIntent) -> None: ...


class LoggingIntentPublisher:
    """Default publisher: records each intent as a structured log line."""

    def publish(self, intent: SideEffectIntent) -> None:
        logger.info("side_effect_intent", extra=intent.as_dict())


class RecordingIntentPublisher:
    """Keeps published intents in memory, in publish order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._intents: list[SideEffectIntent] = []

    def publish(self, intent: SideEffectIntent) -> None:
        with self._lock:
            self._intents.append(intent)

    @property
    def intents(self) -> tuple[SideEffectIntent, ...]:
        with self._lock:
            return tuple(self._intents)

    def clear(self) -> None:
        with self._lock:
            self._intents.clear()
