from .factory import create_reasoner
from .interface import ReasoningEngine
from .parsing import extract_first_json, parse_reasoning_payload
from .prompt_builder import ContextPromptBuilder
from .static import StaticReasoner

__all__ = [
    "ContextPromptBuilder",
    "ReasoningEngine",
    "StaticReasoner",
    "create_reasoner",
    "extract_first_json",
    "parse_reasoning_payload",
]
