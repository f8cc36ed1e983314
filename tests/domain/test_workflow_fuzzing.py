"""
Hypothesis-based fuzzing of the document state machine.

Random action sequences must never reach a status outside the table, and
every refusal must leave the status where it was.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from docflow_kernel.domain.workflow import (
    DOCUMENT_WORKFLOW,
    DocumentStatus,
    TransitionAction,
    allowed_actions,
    evaluate,
)
from docflow_kernel.exceptions import InvalidTransitionError

S = DocumentStatus
A = TransitionAction

actions = st.lists(st.sampled_from(list(A)), min_size=1, max_size=30)


def walk(sequence):
    """Apply actions from a nonexistent document; return visited statuses."""
    status = None
    visited = [status]
    for action in sequence:
        try:
            status = evaluate(status, action)
        except InvalidTransitionError:
            assert action not in allowed_actions(status)
        visited.append(status)
    return visited


class TestWorkflowFuzzing:
    @settings(max_examples=200)
    @given(sequence=actions)
    def test_statuses_stay_in_the_table(self, sequence):
        reachable = {None} | {r.to_status for r in DOCUMENT_WORKFLOW.rules}
        assert set(walk(sequence)) <= reachable

    @settings(max_examples=200)
    @given(sequence=actions)
    def test_archived_is_absorbing(self, sequence):
        visited = walk(sequence)
        if S.ARCHIVED in visited:
            first = visited.index(S.ARCHIVED)
            assert all(s is S.ARCHIVED for s in visited[first:])

    @settings(max_examples=200)
    @given(sequence=actions)
    def test_signed_only_leads_to_archive(self, sequence):
        visited = walk(sequence)
        for before, after in zip(visited, visited[1:]):
            if before is S.SIGNED:
                assert after in (S.SIGNED, S.ARCHIVED)

    @settings(max_examples=100)
    @given(sequence=actions)
    def test_only_create_leaves_nonexistent(self, sequence):
        visited = walk(sequence)
        for action, (before, after) in zip(sequence, zip(visited, visited[1:])):
            if before is None and after is not None:
                assert action is A.CREATE

    @pytest.mark.parametrize("status", [None, *S])
    @given(action=st.sampled_from(list(A)))
    def test_evaluate_is_deterministic(self, status, action):
        try:
            first = evaluate(status, action)
        except InvalidTransitionError:
            with pytest.raises(InvalidTransitionError):
                evaluate(status, action)
        else:
            assert evaluate(status, action) is first
