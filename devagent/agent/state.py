from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..models import Action, ToolObservation


class LoopState(str, Enum):
    AWAITING_REASONING = "awaiting_reasoning"
    DISPATCHING = "dispatching"
    TERMINATED_SUCCESS = "terminated_success"
    TERMINATED_EXHAUSTED = "terminated_exhausted"
    TERMINATED_FAILURE = "terminated_failure"

    @property
    def is_terminal(self) -> bool:
        return self in (
            LoopState.TERMINATED_SUCCESS,
            LoopState.TERMINATED_EXHAUSTED,
            LoopState.TERMINATED_FAILURE,
        )


@dataclass
class RunState:
    """
    Mutable runtime state of one request.

    This is NOT memory. That belongs to the MemoryStore.
    RunState tracks where the ReAct loop is for logging and inspection.
    """

    request: str
    """
    User request being processed.
    """

    state: LoopState = LoopState.AWAITING_REASONING

    iterations: int = 0
    """
    Reasoning calls made so far.
    """

    last_action: Optional[Action] = None
    last_observation: Optional[ToolObservation] = None

    def transition(self, state: LoopState) -> None:
        if self.state.is_terminal:
            raise RuntimeError(f"Run already terminated ({self.state.value})")
        self.state = state

    def record_dispatch(self, action: Action, observation: ToolObservation) -> None:
        self.last_action = action
        self.last_observation = observation
