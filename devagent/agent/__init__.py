from .core import (
    CANCELLED_RESPONSE,
    INTERNAL_ERROR_RESPONSE,
    ITERATION_LIMIT_RESPONSE,
    REASONING_FAILURE_RESPONSE,
    Orchestrator,
)
from .hooks import PlanningHook, RecoveryHook
from .session import AgentSession
from .state import LoopState, RunState

__all__ = [
    "AgentSession",
    "CANCELLED_RESPONSE",
    "INTERNAL_ERROR_RESPONSE",
    "ITERATION_LIMIT_RESPONSE",
    "LoopState",
    "Orchestrator",
    "PlanningHook",
    "REASONING_FAILURE_RESPONSE",
    "RecoveryHook",
    "RunState",
]
