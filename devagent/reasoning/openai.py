import asyncio
import json
import logging
import time
from typing import Any, Dict, List, Optional

from openai import OpenAI, OpenAIError

from ..errors import ReasoningUnavailableError
from ..models import Context, ReasoningResult
from .interface import ReasoningEngine
from .prompt_builder import ContextPromptBuilder

logger = logging.getLogger(__name__)


class OpenAIReasoner(ReasoningEngine):
    """
    Reasoning backend using OpenAI chat completions with function calling.

    Each enabled tool is offered as a function. A tool call becomes the
    next Action; plain assistant content ends the request.
    """

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        temperature: float = 0.2,
        client: Any = None,
        prompt_builder: Optional[ContextPromptBuilder] = None,
    ):
        self.client = client or OpenAI(api_key=api_key, base_url=base_url)
        self.model = model
        self.temperature = temperature
        self.prompt_builder = prompt_builder or ContextPromptBuilder()

    async def get_reasoning(self, context: Context) -> ReasoningResult:
        start_time = time.time()
        message = await asyncio.to_thread(self._complete, context)
        logger.info("[REASONING] openai | model=%s | %.2fs", self.model, time.time() - start_time)

        return self.parse_message(message)

    # ---------------------------------------------------------
    # Transport
    # ---------------------------------------------------------

    def _complete(self, context: Context):
        prompt = self.prompt_builder.build(context, include_contract=False)
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.temperature,
        }

        tools = self.to_functions(context.tools)
        if tools:
            kwargs["tools"] = tools

        try:
            response = self.client.chat.completions.create(**kwargs)
            return response.choices[0].message
        except OpenAIError as e:
            raise ReasoningUnavailableError(f"OpenAI request failed: {e}") from e
        except (IndexError, AttributeError) as e:
            raise ReasoningUnavailableError(f"Unexpected OpenAI response format: {e}") from e

    @staticmethod
    def to_functions(manifest: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [
            {
                "type": "function",
                "function": {
                    "name": t["name"],
                    "description": t.get("description", ""),
                    "parameters": t.get("parameters") or {"type": "object", "properties": {}},
                },
            }
            for t in manifest
        ]

    # ---------------------------------------------------------
    # Response → ReasoningResult
    # ---------------------------------------------------------

    @staticmethod
    def parse_message(message: Any) -> ReasoningResult:
        content = getattr(message, "content", None) or ""
        tool_calls = getattr(message, "tool_calls", None) or []

        if tool_calls:
            call = tool_calls[0].function
            try:
                parameters = json.loads(call.arguments or "{}")
            except ValueError as e:
                raise ReasoningUnavailableError(f"Invalid tool arguments: {e}") from None

            if not isinstance(parameters, dict):
                raise ReasoningUnavailableError("Tool arguments must be a JSON object")

            if not call.name:
                raise ReasoningUnavailableError("Tool call has no name")

            return ReasoningResult.act(call.name, parameters, thought=content)

        if not content:
            raise ReasoningUnavailableError("Empty completion")

        return ReasoningResult.complete(content)
