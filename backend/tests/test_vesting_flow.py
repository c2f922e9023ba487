"""
Tests for the vesting flow machine.
"""

import pytest
from dataclasses import replace
from assistant.orchestration.flows.base import Cancelled, Completed
from assistant.orchestration.flows.vesting import VestingState, VestingStep, transition


class TestVestingFlow:

    def test_overview_states_vested_position(self, participant):
        result = transition(None, "What is my vested balance?", participant)
        assert result.next_state.step == VestingStep.OVERVIEW
        assert result.next_state.vested_percent == 60
        assert "60% vested" in result.message
        assert "$80,000" in result.message

    def test_walkthrough(self, participant):
        state = transition(None, "my vesting", participant).next_state
        for text, expected in [
            ("view vesting schedule", VestingStep.SCHEDULE),
            ("continue", VestingStep.WITHDRAWAL_IMPACT),
            ("next", VestingStep.SUMMARY),
        ]:
            state = transition(state, text, participant).next_state
            assert state.step == expected

        result = transition(state, "got it", participant)
        assert isinstance(result, Completed)
        assert result.next_state.step == VestingStep.COMPLETE

    def test_overview_can_jump_to_withdrawals(self, participant):
        state = VestingState(step=VestingStep.OVERVIEW)
        result = transition(state, "How does vesting affect withdrawals?", participant)
        assert result.next_state.step == VestingStep.WITHDRAWAL_IMPACT

    @pytest.mark.parametrize("schedule,phrase", [("graded", "graded"), ("cliff", "cliff")])
    def test_schedule_type(self, participant, schedule, phrase):
        profile = replace(participant, vesting_schedule_type=schedule)
        result = transition(VestingState(step=VestingStep.OVERVIEW), "continue", profile)
        assert phrase in result.message

    @pytest.mark.parametrize("text,step", [
        ("review schedule", VestingStep.SCHEDULE),
        ("review withdrawals", VestingStep.WITHDRAWAL_IMPACT),
    ])
    def test_summary_jumps_back(self, participant, text, step):
        result = transition(VestingState(step=VestingStep.SUMMARY), text, participant)
        assert result.next_state.step == step

    def test_unmatched_reprompts(self, participant):
        state = VestingState(step=VestingStep.SCHEDULE)
        assert transition(state, "hmm", participant).next_state == state

    @pytest.mark.parametrize("step", list(VestingStep))
    def test_cancel_from_every_step(self, participant, step):
        result = transition(VestingState(step=step), "exit", participant)
        assert isinstance(result, Cancelled)
        assert result.next_state is None
