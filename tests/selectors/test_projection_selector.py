"""
Tests for ProjectionSelector and ProjectionCache.

Status, timelines and counts are derived from the transition log only;
cached views must never outlive the last_sequence they were built at.
"""

from uuid import uuid4

import pytest

from docflow_kernel.domain.authorization import ProjectRole
from docflow_kernel.domain.workflow import DocumentStatus, TransitionAction
from docflow_kernel.exceptions import DocumentNotFoundError
from docflow_kernel.selectors.projection_selector import (
    ProjectionCache,
    ProjectionSelector,
)

S = DocumentStatus
A = TransitionAction


class TestCurrentStatus:
    def test_follows_latest_transition(self, create_document, drive, projection):
        document_id = create_document()
        assert projection.current_status(document_id) is S.DRAFT
        drive(document_id, A.SUBMIT, A.APPROVE)
        assert projection.current_status(document_id) is S.PENDING_SIGNATURE

    def test_repeated_reads_agree(self, create_document, drive, projection):
        document_id = create_document()
        drive(document_id, A.SUBMIT)
        assert projection.current_status(document_id) is projection.current_status(document_id)

    def test_unknown_document(self, projection):
        with pytest.raises(DocumentNotFoundError):
            projection.current_status(uuid4())

    def test_registered_without_events(self, workflow_service, project_id, author, projection):
        info = workflow_service.register_document("AOSR", project_id, author.user_id)
        with pytest.raises(DocumentNotFoundError):
            projection.current_status(info.document_id)
        assert projection.last_sequence(info.document_id) == 0


class TestStatusView:
    def test_rejected_at_review(self, create_document, drive, projection):
        document_id = create_document()
        drive(document_id, A.SUBMIT, A.REJECT)
        view = projection.status_view(document_id)
        assert view.current_status is S.REJECTED
        assert view.rejected_at is S.IN_REVIEW
        assert view.last_action is A.REJECT
        assert view.last_sequence == 3

    def test_rejected_at_signature(self, create_document, drive, projection, signer):
        document_id = create_document()
        rejected = drive(document_id, A.SUBMIT, A.APPROVE, A.REJECT)[-1]
        assert rejected.transition.performed_by == signer.user_id
        view = projection.status_view(document_id)
        assert view.current_status is S.REJECTED
        assert view.rejected_at is S.PENDING_SIGNATURE
        assert view.last_sequence == 4

    def test_rejected_at_cleared_after_revise(self, create_document, drive, projection):
        document_id = create_document()
        drive(document_id, A.SUBMIT, A.REJECT, A.REVISE)
        view = projection.status_view(document_id)
        assert view.current_status is S.DRAFT
        assert view.rejected_at is None

    def test_signed_is_locked(self, create_document, drive, projection, deterministic_clock):
        document_id = create_document()
        drive(document_id, A.SUBMIT, A.APPROVE, A.SIGN)
        view = projection.status_view(document_id)
        assert view.is_locked
        assert view.updated_at == deterministic_clock.now()


class TestTimeline:
    def test_oldest_first(self, create_document, drive, projection, author, reviewer):
        document_id = create_document()
        drive(document_id, A.SUBMIT, A.REJECT)
        timeline = projection.timeline(document_id)

        assert [e.sequence_number for e in timeline] == [1, 2, 3]
        assert [e.action for e in timeline] == [A.CREATE, A.SUBMIT, A.REJECT]
        assert timeline[0].from_status is None
        assert timeline[0].performed_by == author.user_id
        assert timeline[2].performed_by == reviewer.user_id
        assert timeline[2].comment == "needs rework"

    def test_registered_without_events_is_empty(
        self, workflow_service, project_id, author, projection
    ):
        info = workflow_service.register_document("AOSR", project_id, author.user_id)
        assert projection.timeline(info.document_id) == ()

    def test_unknown_document(self, projection):
        with pytest.raises(DocumentNotFoundError):
            projection.timeline(uuid4())

    def test_page_is_newest_first(self, create_document, drive, projection):
        document_id = create_document()
        drive(document_id, A.SUBMIT, A.REJECT, A.REVISE, A.SUBMIT)

        first = projection.timeline_page(document_id, page=1, limit=2)
        assert first.total == 5
        assert [e.sequence_number for e in first.entries] == [5, 4]

        last = projection.timeline_page(document_id, page=3, limit=2)
        assert [e.sequence_number for e in last.entries] == [1]

        beyond = projection.timeline_page(document_id, page=4, limit=2)
        assert beyond.entries == ()

    @pytest.mark.parametrize("page,limit", [(0, 20), (1, 0), (1, 101)])
    def test_page_bounds(self, create_document, projection, page, limit):
        document_id = create_document()
        with pytest.raises(ValueError):
            projection.timeline_page(document_id, page=page, limit=limit)

    def test_page_of_unknown_document(self, projection):
        with pytest.raises(DocumentNotFoundError):
            projection.timeline_page(uuid4())


class TestStatusCounts:
    def test_counts_per_project(
        self, workflow_service, create_document, drive, projection, project_id, make_principal
    ):
        drafts = [create_document(), create_document()]
        reviewed = create_document()
        drive(reviewed, A.SUBMIT)

        other_project = uuid4()
        outsider_author = make_principal(ProjectRole.QA_ENGINEER, project=other_project)
        workflow_service.create_document("AOSR", other_project, outsider_author)

        counts = projection.status_counts(project_id)
        assert counts[S.DRAFT] == len(drafts)
        assert counts[S.IN_REVIEW] == 1
        assert counts[S.SIGNED] == 0
        assert set(counts) == set(S)

        assert projection.status_counts(other_project)[S.DRAFT] == 1
        assert projection.status_counts()[S.DRAFT] >= 3

    def test_registered_documents_are_not_counted(
        self, workflow_service, project_id, author, projection
    ):
        workflow_service.register_document("AOSR", project_id, author.user_id)
        assert sum(projection.status_counts(project_id).values()) == 0


class TestProjectionCache:
    def test_hit_then_stale_after_transition(self, session, create_document, drive):
        cache = ProjectionCache()
        projection = ProjectionSelector(session, cache)
        document_id = create_document()

        assert projection.current_status(document_id) is S.DRAFT
        assert projection.current_status(document_id) is S.DRAFT
        assert cache.hits == 1

        drive(document_id, A.SUBMIT)
        assert projection.current_status(document_id) is S.IN_REVIEW
        assert cache.misses == 2

    def test_timeline_is_rebuilt_after_transition(self, session, create_document, drive):
        projection = ProjectionSelector(session, ProjectionCache())
        document_id = create_document()
        assert len(projection.timeline(document_id)) == 1
        drive(document_id, A.SUBMIT)
        assert len(projection.timeline(document_id)) == 2

    def test_stale_get_drops_entry(self):
        cache = ProjectionCache()
        document_id = uuid4()
        cache.put("status", document_id, 1, "v1")
        assert cache.get("status", document_id, 2) is None
        assert len(cache) == 0

    def test_lru_eviction(self):
        cache = ProjectionCache(max_entries=2)
        a, b, c = uuid4(), uuid4(), uuid4()
        cache.put("status", a, 1, "a")
        cache.put("status", b, 1, "b")
        cache.get("status", a, 1)
        cache.put("status", c, 1, "c")

        assert cache.get("status", b, 1) is None
        assert cache.get("status", a, 1) == "a"
        assert cache.get("status", c, 1) == "c"

    def test_size_must_be_positive(self):
        with pytest.raises(ValueError):
            ProjectionCache(max_entries=0)
