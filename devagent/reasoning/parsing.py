import json
import logging
from typing import Any, Dict, Optional

from ..errors import ReasoningUnavailableError
from ..models import ReasoningResult

logger = logging.getLogger(__name__)


# ------------------------------------------------------------
# Safe JSON Extraction
# ------------------------------------------------------------

def extract_first_json(text: str) -> Optional[str]:
    start = text.find("{")
    if start == -1:
        return None

    stack = 0
    in_string = False
    escaped = False

    for i in range(start, len(text)):
        ch = text[i]

        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch == "{":
            stack += 1
        elif ch == "}":
            stack -= 1
            if stack == 0:
                return text[start:i + 1]

    return None


def load_json_object(raw_text: str) -> Dict[str, Any]:
    try:
        result = json.loads(raw_text)
    except ValueError:
        extracted = extract_first_json(raw_text)
        if not extracted:
            raise ReasoningUnavailableError("No JSON object found in model output") from None
        try:
            result = json.loads(extracted)
        except ValueError as e:
            raise ReasoningUnavailableError(f"Invalid JSON in model output: {e}") from None

    if not isinstance(result, dict):
        raise ReasoningUnavailableError("Model output must be a JSON object")

    return result


# ------------------------------------------------------------
# Payload → ReasoningResult
# ------------------------------------------------------------

def parse_reasoning_payload(raw_text: str) -> ReasoningResult:
    """
    Parse the JSON step format requested by ContextPromptBuilder.

    Accepted shape:

        {"thought": "...", "is_complete": true, "response": "..."}
        {"thought": "...", "is_complete": false,
         "action": {"tool": "...", "parameters": {...}}}

    Raises ReasoningUnavailableError when the payload is malformed.
    """

    data = load_json_object(raw_text)
    thought = str(data.get("thought") or "")

    if data.get("is_complete"):
        response = data.get("response")
        if not isinstance(response, str):
            raise ReasoningUnavailableError("Completed step carries no response text")
        return ReasoningResult.complete(response, thought=thought)

    action = data.get("action")
    if not isinstance(action, dict):
        raise ReasoningUnavailableError("Step is neither complete nor carries an action")

    tool = action.get("tool")
    if not isinstance(tool, str) or not tool:
        raise ReasoningUnavailableError("Action has no tool name")

    parameters = action.get("parameters") or {}
    if not isinstance(parameters, dict):
        raise ReasoningUnavailableError("Action parameters must be a JSON object")

    logger.debug("[REASONING] Parsed action | tool=%s | params=%s", tool, parameters)

    return ReasoningResult.act(tool, parameters, thought=thought)
