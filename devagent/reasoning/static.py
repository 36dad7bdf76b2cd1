from typing import Iterable, List, Union

from ..errors import ReasoningUnavailableError
from ..models import Context, ReasoningResult
from .interface import ReasoningEngine


Step = Union[ReasoningResult, Exception]


class StaticReasoner(ReasoningEngine):
    """
    Deterministic scripted engine.

    Returns the scripted steps in order. An Exception in the script is
    raised instead of returned. Once the script runs out, the last step
    repeats, or ReasoningUnavailableError is raised if `repeat_last` is off.

    Every context it was called with is kept in `contexts`.
    """

    def __init__(self, steps: Iterable[Step], repeat_last: bool = True):
        self.steps: List[Step] = list(steps)
        self.repeat_last = repeat_last
        self.contexts: List[Context] = []

    @property
    def calls(self) -> int:
        return len(self.contexts)

    async def get_reasoning(self, context: Context) -> ReasoningResult:
        index = len(self.contexts)
        self.contexts.append(context)

        if index >= len(self.steps):
            if not self.steps or not self.repeat_last:
                raise ReasoningUnavailableError("Script exhausted")
            index = len(self.steps) - 1

        step = self.steps[index]
        if isinstance(step, Exception):
            raise step
        return step
