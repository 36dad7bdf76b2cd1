from ..config import ReasoningConfig
from .interface import ReasoningEngine


def create_reasoner(config: ReasoningConfig, timeout_seconds: float = 60) -> ReasoningEngine:
    """
    Factory for constructing the reasoning collaborator.

    Backend selection is driven by configuration.

    Supported backends:
    - "ollama" → local model via Ollama
    - "openai" → OpenAI (or compatible) chat completions
    """

    backend = config.backend

    # Lazy imports prevent unnecessary dependency loading
    if backend == "ollama":
        from .ollama import OllamaReasoner
        return OllamaReasoner(
            model=config.model,
            base_url=config.base_url,
            temperature=config.temperature,
            timeout_seconds=timeout_seconds,
        )

    if backend == "openai":
        from .openai import OpenAIReasoner
        return OpenAIReasoner(
            model=config.model,
            api_key=config.api_key,
            base_url=config.base_url,
            temperature=config.temperature,
        )

    raise ValueError(f"Unsupported reasoning backend: {backend}")
