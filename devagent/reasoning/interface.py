from abc import ABC, abstractmethod

from ..models import Context, ReasoningResult


class ReasoningEngine(ABC):
    """
    Abstract reasoning interface.

    A ReasoningEngine turns the current working-memory Context (history,
    observations, workspace, knowledge and the enabled-tool manifest)
    into the next step: either a final response or one Action.

    Implementations may be:
    - LLM-backed (Ollama / OpenAI)
    - Scripted (tests, demos)

    Any failure must surface as ReasoningUnavailableError; the
    Orchestrator treats it as terminal for the request.
    """

    @property
    def name(self) -> str:
        """
        Return engine identity.

        Useful for:
        • logging
        • debugging
        """
        return self.__class__.__name__

    @abstractmethod
    async def get_reasoning(self, context: Context) -> ReasoningResult:
        """
        Decide the next step.

        Parameters
        ----------
        context : Context
            Working-memory view, including `context.tools`, the manifest
            of tools the engine may choose from.

        Returns
        -------
        ReasoningResult
            `is_complete` with a response, or an Action to dispatch.
        """
        raise NotImplementedError
