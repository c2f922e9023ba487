"""
Tests for the enrollment flow machine.
"""

import pytest
from assistant.orchestration.flows.base import Cancelled, Completed
from assistant.orchestration.flows.enrollment import (
    DEFAULT_RETIREMENT_AGE,
    EnrollmentState,
    EnrollmentStep,
    transition,
)


def walk(participant, *inputs, state=None):
    for text in inputs:
        result = transition(state, text, participant)
        state = result.next_state
    return result


@pytest.fixture
def review_state(participant) -> EnrollmentState:
    result = walk(
        participant,
        "I want to enroll",
        "start",
        "65",
        "United States",
        "roth",
        "6%",
        "default",
    )
    assert result.next_state.step == EnrollmentStep.REVIEW
    return result.next_state


class TestHappyPath:

    def test_collects_every_field(self, review_state):
        assert review_state.retirement_age == 65
        assert review_state.location == "United States"
        assert review_state.plan_type == "Roth 401(k)"
        assert review_state.contribution_percent == 6
        assert review_state.money_handling == "default"
        assert review_state.risk_level is None

    def test_confirm(self, participant, review_state):
        result = transition(review_state, "confirm", participant)
        assert isinstance(result, Completed)
        assert result.next_state.step == EnrollmentStep.CONFIRMED

    def test_manual_investments_ask_for_risk(self, participant):
        result = walk(
            participant,
            "enroll", "begin", "not sure", "canada", "pay tax later", "10", "manual",
        )
        assert result.next_state.step == EnrollmentStep.MANUAL_RISK
        assert result.next_state.retirement_age == DEFAULT_RETIREMENT_AGE
        assert result.next_state.plan_type == "Traditional 401(k)"

        result = transition(result.next_state, "growth", participant)
        assert result.next_state.step == EnrollmentStep.REVIEW
        assert result.next_state.risk_level == "growth"


class TestValidation:

    @pytest.mark.parametrize("text", ["45", "80", "thirty"])
    def test_invalid_retirement_age(self, participant, text):
        state = EnrollmentState(step=EnrollmentStep.RETIREMENT_AGE)
        assert transition(state, text, participant).next_state == state

    def test_retirement_age_must_exceed_current_age(self, participant):
        from dataclasses import replace
        older = replace(participant, current_age=60)
        state = EnrollmentState(step=EnrollmentStep.RETIREMENT_AGE)
        assert transition(state, "55", older).next_state == state

    @pytest.mark.parametrize("text", ["0", "76", "lots"])
    def test_invalid_contribution(self, participant, text):
        state = EnrollmentState(step=EnrollmentStep.CONTRIBUTION)
        assert transition(state, text, participant).next_state == state

    def test_location_free_text(self, participant):
        state = EnrollmentState(step=EnrollmentStep.LOCATION)
        result = transition(state, "location: Portugal", participant)
        assert result.next_state.location == "Portugal"


class TestReviewEdits:

    @pytest.mark.parametrize("text,step", [
        ("change plan", EnrollmentStep.PLAN_SELECTION),
        ("change contribution", EnrollmentStep.CONTRIBUTION),
        ("change investment approach", EnrollmentStep.MONEY_HANDLING),
        ("edit retirement age", EnrollmentStep.RETIREMENT_AGE),
        ("edit location", EnrollmentStep.LOCATION),
    ])
    def test_edit_jumps_back(self, participant, review_state, text, step):
        assert transition(review_state, text, participant).next_state.step == step

    def test_edit_returns_to_review(self, participant, review_state):
        edit = transition(review_state, "change contribution", participant)
        result = transition(edit.next_state, "12", participant)
        assert result.next_state.step == EnrollmentStep.REVIEW
        assert result.next_state.contribution_percent == 12

    def test_switch_to_manual_from_review_asks_risk(self, participant, review_state):
        edit = transition(review_state, "edit investment", participant)
        result = transition(edit.next_state, "manual", participant)
        assert result.next_state.step == EnrollmentStep.MANUAL_RISK

    def test_negated_confirm_reprompts(self, participant, review_state):
        result = transition(review_state, "don't confirm, I need to think", participant)
        assert not result.is_complete
        assert result.next_state == review_state

    def test_intent_ignores_words_containing_ok(self, participant):
        state = EnrollmentState(step=EnrollmentStep.INTENT)
        assert transition(state, "let me look at the booklet", participant).next_state == state

    def test_customise_allocation_requires_manual(self, participant, review_state):
        result = transition(review_state, "customize allocation", participant)
        assert result.next_state == review_state


class TestCancel:

    @pytest.mark.parametrize("step", list(EnrollmentStep))
    def test_cancel_from_every_step(self, participant, step):
        result = transition(EnrollmentState(step=step), "never mind", participant)
        assert isinstance(result, Cancelled)
        assert result.next_state is None


class TestSerialisation:

    def test_state_round_trip(self, review_state):
        assert EnrollmentState.from_dict(review_state.to_dict()) == review_state
