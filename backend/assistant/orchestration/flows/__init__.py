"""
Scripted flow registry

Each flow module is an independent machine exposing ``transition``, its step
enum, its state type, its allowed step edges and its entry/terminal steps.
The orchestrator only talks to flows through ``FlowMachine``.
"""
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, Optional, Set, Type

from assistant.orchestration.flows import enrollment, loan, vesting, withdrawal
from assistant.orchestration.flows.base import (
    Cancelled,
    Completed,
    Continuing,
    FlowInvariantError,
    FlowKind,
    TransitionResult,
    is_cancel,
)


@dataclass(frozen=True)
class FlowMachine:
    kind: FlowKind
    step_type: Type
    state_type: Type
    transition: Callable[..., TransitionResult]
    transitions: Dict[Any, Set[Any]]
    entry_steps: FrozenSet[Any]
    terminal_step: Any

    def is_allowed(self, current: Optional[Any], proposed: Optional[Any]) -> bool:
        """
        Whether moving from ``current`` to ``proposed`` follows the step graph.

        Clearing the flow (proposed None) is always allowed.
        """
        if proposed is None:
            return True
        if not isinstance(proposed, self.state_type):
            return False
        if current is None:
            return proposed.step in self.entry_steps
        return proposed.step in self.transitions.get(current.step, set())

    def state_from_dict(self, data: dict):
        return self.state_type.from_dict(data)


FLOW_MACHINES: Dict[FlowKind, FlowMachine] = {
    FlowKind.ENROLLMENT: FlowMachine(
        kind=FlowKind.ENROLLMENT,
        step_type=enrollment.EnrollmentStep,
        state_type=enrollment.EnrollmentState,
        transition=enrollment.transition,
        transitions=enrollment.TRANSITIONS,
        entry_steps=enrollment.ENTRY_STEPS,
        terminal_step=enrollment.TERMINAL_STEP,
    ),
    FlowKind.LOAN: FlowMachine(
        kind=FlowKind.LOAN,
        step_type=loan.LoanStep,
        state_type=loan.LoanState,
        transition=loan.transition,
        transitions=loan.TRANSITIONS,
        entry_steps=loan.ENTRY_STEPS,
        terminal_step=loan.TERMINAL_STEP,
    ),
    FlowKind.WITHDRAWAL: FlowMachine(
        kind=FlowKind.WITHDRAWAL,
        step_type=withdrawal.WithdrawalStep,
        state_type=withdrawal.WithdrawalState,
        transition=withdrawal.transition,
        transitions=withdrawal.TRANSITIONS,
        entry_steps=withdrawal.ENTRY_STEPS,
        terminal_step=withdrawal.TERMINAL_STEP,
    ),
    FlowKind.VESTING: FlowMachine(
        kind=FlowKind.VESTING,
        step_type=vesting.VestingStep,
        state_type=vesting.VestingState,
        transition=vesting.transition,
        transitions=vesting.TRANSITIONS,
        entry_steps=vesting.ENTRY_STEPS,
        terminal_step=vesting.TERMINAL_STEP,
    ),
}


def get_machine(kind: FlowKind) -> FlowMachine:
    try:
        return FLOW_MACHINES[FlowKind(kind)]
    except (KeyError, ValueError) as e:
        raise FlowInvariantError(f"Unknown flow kind: {kind}") from e


def kind_of_state(state: Any) -> FlowKind:
    """Flow kind owning a state object."""
    for machine in FLOW_MACHINES.values():
        if isinstance(state, machine.state_type):
            return machine.kind
    raise FlowInvariantError(f"Unknown flow state type: {type(state).__name__}")


__all__ = [
    "Cancelled",
    "Completed",
    "Continuing",
    "FlowInvariantError",
    "FlowKind",
    "FlowMachine",
    "FLOW_MACHINES",
    "TransitionResult",
    "get_machine",
    "is_cancel",
    "kind_of_state",
]
