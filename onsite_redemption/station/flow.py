"""Per-scan state machine of a scanning station.

    Idle -> Scanned -> Validating -> Eligible | Ineligible
    Eligible -> Recording -> Recorded | DuplicateDetected
    DuplicateDetected -> AwaitingConfirmation -> ForcedRecording | Cancelled
    ForcedRecording -> Recorded

Ineligible, Recorded, Cancelled and Failed are terminal for the scan and lead
back to Idle. Nothing is written to the server between DuplicateDetected and
an operator's confirm.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, List

from onsite_redemption.errors import InvalidTransitionError

logger = logging.getLogger(__name__)


class FlowState(str, Enum):
    IDLE = "Idle"
    SCANNED = "Scanned"
    VALIDATING = "Validating"
    ELIGIBLE = "Eligible"
    INELIGIBLE = "Ineligible"
    RECORDING = "Recording"
    RECORDED = "Recorded"
    DUPLICATE_DETECTED = "DuplicateDetected"
    AWAITING_CONFIRMATION = "AwaitingConfirmation"
    FORCED_RECORDING = "ForcedRecording"
    CANCELLED = "Cancelled"
    FAILED = "Failed"


TERMINAL_STATES: FrozenSet[FlowState] = frozenset(
    {FlowState.INELIGIBLE, FlowState.RECORDED, FlowState.CANCELLED, FlowState.FAILED}
)

TRANSITIONS: Dict[FlowState, FrozenSet[FlowState]] = {
    # Scanned -> Idle: repeat scan answered from the station cache.
    FlowState.IDLE: frozenset({FlowState.SCANNED}),
    FlowState.SCANNED: frozenset({FlowState.VALIDATING, FlowState.IDLE, FlowState.FAILED}),
    FlowState.VALIDATING: frozenset({FlowState.ELIGIBLE, FlowState.INELIGIBLE, FlowState.FAILED}),
    FlowState.ELIGIBLE: frozenset({FlowState.RECORDING}),
    FlowState.RECORDING: frozenset(
        {FlowState.RECORDED, FlowState.DUPLICATE_DETECTED, FlowState.INELIGIBLE, FlowState.FAILED}
    ),
    FlowState.DUPLICATE_DETECTED: frozenset({FlowState.AWAITING_CONFIRMATION}),
    FlowState.AWAITING_CONFIRMATION: frozenset({FlowState.FORCED_RECORDING, FlowState.CANCELLED}),
    FlowState.FORCED_RECORDING: frozenset({FlowState.RECORDED, FlowState.INELIGIBLE, FlowState.FAILED}),
    FlowState.RECORDED: frozenset({FlowState.IDLE}),
    FlowState.INELIGIBLE: frozenset({FlowState.IDLE}),
    FlowState.CANCELLED: frozenset({FlowState.IDLE}),
    FlowState.FAILED: frozenset({FlowState.IDLE}),
}
if set(TRANSITIONS) != set(FlowState):
    raise RuntimeError("every FlowState needs an entry in TRANSITIONS")


@dataclass(frozen=True)
class Transition:
    source: FlowState
    target: FlowState
    note: str = ""


class ReprintConfirmationFlow:
    def __init__(self) -> None:
        self.state = FlowState.IDLE
        self.history: List[Transition] = []

    def can(self, target: FlowState) -> bool:
        return target in TRANSITIONS[self.state]

    def transition(self, target: FlowState, note: str = "") -> FlowState:
        if not self.can(target):
            raise InvalidTransitionError(
                f"Cannot go from {self.state.value} to {target.value}",
                source=self.state.value,
                target=target.value,
            )
        self.history.append(Transition(self.state, target, note))
        logger.debug("%s -> %s %s", self.state.value, target.value, note)
        self.state = target
        return target

    @property
    def is_idle(self) -> bool:
        return self.state is FlowState.IDLE

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def awaiting_confirmation(self) -> bool:
        return self.state is FlowState.AWAITING_CONFIRMATION

    def scanned(self, code: str) -> None:
        self.transition(FlowState.SCANNED, code)

    def suppressed(self) -> None:
        self.transition(FlowState.IDLE, "repeat scan")

    def validating(self) -> None:
        self.transition(FlowState.VALIDATING)

    def eligible(self) -> None:
        self.transition(FlowState.ELIGIBLE)

    def ineligible(self, reason: str) -> None:
        self.transition(FlowState.INELIGIBLE, reason)

    def recording(self) -> None:
        self.transition(FlowState.RECORDING)

    def recorded(self, record_id: str) -> None:
        self.transition(FlowState.RECORDED, record_id)

    def duplicate_detected(self, existing_record_id: str) -> None:
        self.transition(FlowState.DUPLICATE_DETECTED, existing_record_id)
        self.transition(FlowState.AWAITING_CONFIRMATION)

    def confirm(self) -> None:
        self.transition(FlowState.FORCED_RECORDING)

    def cancel(self) -> None:
        self.transition(FlowState.CANCELLED)

    def fail(self, reason: str) -> None:
        self.transition(FlowState.FAILED, reason)

    def settle(self) -> None:
        """Return to Idle once the scan reached a terminal state."""
        if not self.is_terminal:
            raise InvalidTransitionError(f"Scan is still in progress ({self.state.value})")
        self.transition(FlowState.IDLE)

    def states(self) -> List[FlowState]:
        """Visited states in order, starting from the first source."""
        if not self.history:
            return [self.state]
        return [self.history[0].source] + [item.target for item in self.history]
