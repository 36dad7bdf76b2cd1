import asyncio
import logging
import time
from typing import Optional

import requests

from ..errors import ReasoningUnavailableError
from ..models import Context, ReasoningResult
from .interface import ReasoningEngine
from .parsing import parse_reasoning_payload
from .prompt_builder import ContextPromptBuilder

logger = logging.getLogger(__name__)


DEFAULT_OLLAMA_URL = "http://localhost:11434"


class OllamaReasoner(ReasoningEngine):
    """
    Local model backend via the Ollama chat API.

    The HTTP call is blocking and runs in a worker thread; the caller's
    timeout therefore bounds the wait but cannot abort the request
    itself, so the transport carries its own timeout as well.
    """

    def __init__(
        self,
        model: str = "qwen2.5-coder:7b",
        base_url: Optional[str] = None,
        temperature: float = 0.2,
        timeout_seconds: float = 60,
        prompt_builder: Optional[ContextPromptBuilder] = None,
    ):
        self.model = model
        self.url = (base_url or DEFAULT_OLLAMA_URL).rstrip("/") + "/api/chat"
        self.temperature = temperature
        self.timeout = timeout_seconds
        self.prompt_builder = prompt_builder or ContextPromptBuilder()

    # ---------------------------------------------------------
    # Main Reasoning Interface
    # ---------------------------------------------------------

    async def get_reasoning(self, context: Context) -> ReasoningResult:
        prompt = self.prompt_builder.build(context)

        start_time = time.time()
        raw_text = await asyncio.to_thread(self._chat, prompt)

        logger.info("[REASONING] ollama | model=%s | %.2fs", self.model, time.time() - start_time)
        logger.debug("[REASONING] Raw output:\n%s", raw_text)

        return parse_reasoning_payload(raw_text)

    def _chat(self, prompt: str) -> str:

        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "stream": False,
            "format": "json",
            "options": {
                "temperature": self.temperature,
            }
        }

        try:
            response = requests.post(
                self.url,
                json=payload,
                timeout=self.timeout,
            )

            response.raise_for_status()

        except requests.Timeout:
            raise ReasoningUnavailableError("Ollama request timed out") from None

        except requests.RequestException as e:
            raise ReasoningUnavailableError(f"Ollama request failed: {e}") from e

        try:
            data = response.json()
            return data["message"]["content"]
        except (KeyError, TypeError, ValueError) as e:
            raise ReasoningUnavailableError(
                f"Unexpected Ollama response format: {e}"
            ) from e
