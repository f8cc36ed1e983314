"""
Module: docflow_kernel.selectors.projection_selector
Responsibility: Read views derived from the transition log -- current
    status, audit timeline, status view and per-project status counts.
Architecture position: Kernel > Selectors.  May import from models/,
    domain/ and selectors/base.py.  MUST NOT import from services/.

Invariants enforced:
    - Projections are pure functions of the log.  Nothing here writes, and
      there is no stored status to drift from the log.
    - Cached views are stamped with the ``last_sequence`` they were built
      at.  A lookup compares the stamp with the head's current
      ``last_sequence``; any mismatch rebuilds the view.
    - Calling ``current_status`` twice with no transition in between gives
      the same result.

Failure modes:
    - DocumentNotFoundError when the document is unknown, or (for status
      reads) has no events yet.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from docflow_kernel.domain.dtos import (
    StatusView,
    TimelineEntry,
    TimelinePage,
    Transition,
)
from docflow_kernel.domain.workflow import DocumentStatus
from docflow_kernel.exceptions import DocumentNotFoundError
from docflow_kernel.logging_config import get_logger
from docflow_kernel.models.document import Document
from docflow_kernel.models.document_head import DocumentHead
from docflow_kernel.models.transition import TransitionRecord
from docflow_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.projection")

DEFAULT_CACHE_SIZE = 1024
MAX_PAGE_LIMIT = 100


class ProjectionCache:
    """
    Bounded, thread-safe cache of document views keyed by last_sequence.

    Entries are ``(kind, document_id) -> (last_sequence, value)``.  A ``get``
    with a different ``last_sequence`` is a miss and drops the stale entry.
    Least recently used entries are evicted beyond ``max_entries``.
    """

    def __init__(self, max_entries: int = DEFAULT_CACHE_SIZE):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._max_entries = max_entries
        self._entries: OrderedDict[tuple[str, UUID], tuple[int, object]] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, kind: str, document_id: UUID, last_sequence: int):
        key = (kind, document_id)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry[0] != last_sequence:
                if entry is not None:
                    del self._entries[key]
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return entry[1]

    def put(self, kind: str, document_id: UUID, last_sequence: int, value) -> None:
        key = (kind, document_id)
        with self._lock:
            self._entries[key] = (last_sequence, value)
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class ProjectionSelector(BaseSelector[TransitionRecord]):
    """
    Builds read views from the transition log without mutating it.

    Contract:
        ``current_status`` is the ``to_status`` of the latest transition.
        ``timeline`` lists every transition oldest first.

    Guarantees:
        - Read-only.
        - With a cache, a view is never served for a ``last_sequence``
          other than the one it was built at.
    """

    def __init__(self, session: Session, cache: ProjectionCache | None = None):
        super().__init__(session)
        self._cache = cache

    # ------------------------------------------------------------------
    # Log access
    # ------------------------------------------------------------------

    def _head(self, document_id: UUID) -> DocumentHead | None:
        return self.session.execute(
            select(DocumentHead)
            .where(DocumentHead.document_id == document_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _require_head(self, document_id: UUID) -> DocumentHead:
        head = self._head(document_id)
        if head is None:
            raise DocumentNotFoundError(str(document_id))
        return head

    def _latest(self, head: DocumentHead) -> Transition:
        record = self.session.execute(
            select(TransitionRecord)
            .where(TransitionRecord.id == head.latest_transition_id)
            .execution_options(populate_existing=True)
        ).scalar_one()
        return Transition.from_model(record)

    def _require_document(self, document_id: UUID) -> None:
        exists = self.session.execute(
            select(Document.id).where(Document.id == document_id)
        ).scalar_one_or_none()
        if exists is None:
            raise DocumentNotFoundError(str(document_id))

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def last_sequence(self, document_id: UUID) -> int:
        head = self._head(document_id)
        return head.last_sequence if head is not None else 0

    def current_status(self, document_id: UUID) -> DocumentStatus:
        """Status of the document: ``to_status`` of its latest transition."""
        return self.status_view(document_id).current_status

    def status_view(self, document_id: UUID) -> StatusView:
        head = self._require_head(document_id)
        if self._cache is not None:
            cached = self._cache.get("status", document_id, head.last_sequence)
            if cached is not None:
                return cached

        latest = self._latest(head)
        view = StatusView(
            document_id=document_id,
            current_status=latest.to_status,
            last_sequence=latest.sequence_number,
            last_action=latest.action,
            updated_at=latest.occurred_at,
            rejected_at=(
                latest.from_status
                if latest.to_status is DocumentStatus.REJECTED else None
            ),
        )
        if self._cache is not None:
            self._cache.put("status", document_id, head.last_sequence, view)
        return view

    def timeline(self, document_id: UUID) -> tuple[TimelineEntry, ...]:
        """Every transition of the document, oldest first.

        A registered document with no events has an empty timeline.
        """
        head = self._head(document_id)
        if head is None:
            self._require_document(document_id)
            return ()
        if self._cache is not None:
            cached = self._cache.get("timeline", document_id, head.last_sequence)
            if cached is not None:
                return cached

        records = self.session.execute(
            select(TransitionRecord)
            .where(TransitionRecord.document_id == document_id)
            .order_by(TransitionRecord.sequence_number)
        ).scalars().all()
        entries = tuple(
            TimelineEntry.from_transition(Transition.from_model(r)) for r in records
        )
        if self._cache is not None:
            self._cache.put("timeline", document_id, head.last_sequence, entries)
        return entries

    def timeline_page(
        self, document_id: UUID, page: int = 1, limit: int = 20
    ) -> TimelinePage:
        """One page of the timeline, newest first."""
        if page < 1:
            raise ValueError("page starts at 1")
        if not 1 <= limit <= MAX_PAGE_LIMIT:
            raise ValueError(f"limit must be between 1 and {MAX_PAGE_LIMIT}")
        self._require_document(document_id)

        total = self.last_sequence(document_id)
        records = self.session.execute(
            select(TransitionRecord)
            .where(TransitionRecord.document_id == document_id)
            .order_by(TransitionRecord.sequence_number.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars().all()
        return TimelinePage(
            entries=tuple(
                TimelineEntry.from_transition(Transition.from_model(r)) for r in records
            ),
            total=total,
            page=page,
            limit=limit,
        )

    def status_counts(self, project_id: UUID | None = None) -> dict[DocumentStatus, int]:
        """
        Number of documents per current status.

        Joins each head to its latest transition, so counts come from the
        log and not from any stored status.  Statuses with no documents are
        reported as 0.
        """
        stmt = (
            select(TransitionRecord.to_status, func.count())
            .select_from(DocumentHead)
            .join(TransitionRecord, TransitionRecord.id == DocumentHead.latest_transition_id)
        )
        if project_id is not None:
            stmt = stmt.join(Document, Document.id == DocumentHead.document_id).where(
                Document.project_id == project_id
            )
        stmt = stmt.group_by(TransitionRecord.to_status)

        counts = {status: 0 for status in DocumentStatus}
        for to_status, count in self.session.execute(stmt).all():
            counts[DocumentStatus(to_status)] = count

        logger.debug(
            "status_counts_computed",
            extra={
                "project_id": str(project_id) if project_id else None,
                "total": sum(counts.values()),
            },
        )
        return counts
