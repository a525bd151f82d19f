"""Unit tests for the composition and sync state machines."""

import pytest

from src.feed.state_machine import (
    ComposeState,
    ComposeStateMachine,
    ComposeStateTransitionError,
)
from src.subscription.state_machine import (
    SyncState,
    SyncStateMachine,
    SyncStateTransitionError,
)


class TestComposeStateMachine:
    """Tests for ComposeStateMachine."""

    @pytest.mark.unit
    def test_full_pipeline(self) -> None:
        """Test the stages run in order to the terminal state."""
        machine = ComposeStateMachine("req-1")
        assert machine.state == ComposeState.INIT

        for stage in (
            ComposeState.BUCKETS_FETCHED,
            ComposeState.MERGED,
            ComposeState.DEDUPED,
            ComposeState.SHUFFLED,
            ComposeState.PAGINATED,
        ):
            assert not machine.is_terminal
            machine.transition_to(stage)

        assert machine.is_terminal

    @pytest.mark.unit
    def test_skipping_a_stage_raises(self) -> None:
        """Test stages cannot be skipped."""
        machine = ComposeStateMachine("req-2")
        machine.transition_to(ComposeState.BUCKETS_FETCHED)

        with pytest.raises(ComposeStateTransitionError) as exc_info:
            machine.transition_to(ComposeState.SHUFFLED)

        assert exc_info.value.from_state == ComposeState.BUCKETS_FETCHED
        assert machine.state == ComposeState.BUCKETS_FETCHED

    @pytest.mark.unit
    def test_can_transition_to(self) -> None:
        """Test transition checks without side effects."""
        machine = ComposeStateMachine("req-3")
        assert machine.can_transition_to(ComposeState.BUCKETS_FETCHED)
        assert not machine.can_transition_to(ComposeState.PAGINATED)


class TestSyncStateMachine:
    """Tests for SyncStateMachine."""

    @pytest.mark.unit
    @pytest.mark.parametrize("outcome", [SyncState.SUCCESS, SyncState.FAILED])
    def test_running_to_outcome(self, outcome: SyncState) -> None:
        """Test a sync ends in success or failure."""
        machine = SyncStateMachine("sub-1")
        machine.transition_to(SyncState.RUNNING)
        machine.transition_to(outcome)
        assert machine.is_terminal

    @pytest.mark.unit
    def test_cannot_finish_without_running(self) -> None:
        """Test IDLE cannot jump to SUCCESS."""
        machine = SyncStateMachine("sub-1")
        with pytest.raises(SyncStateTransitionError, match="IDLE -> SUCCESS"):
            machine.transition_to(SyncState.SUCCESS)

    @pytest.mark.unit
    def test_terminal_states_are_final(self) -> None:
        """Test a failed sync cannot be restarted."""
        machine = SyncStateMachine("sub-1")
        machine.transition_to(SyncState.RUNNING)
        machine.transition_to(SyncState.FAILED)
        assert not machine.can_transition_to(SyncState.RUNNING)
