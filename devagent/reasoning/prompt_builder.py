import json
from typing import Any, Dict, List

from ..models import Context


SYSTEM_PROMPT = """
You are DevAgent, an autonomous software developer working inside the
user's code editor. You help developers understand and modify their code.
You can read and change files, run commands and analyse code through tools.

Work step by step:
1. Think about what the request needs.
2. Pick ONE tool from the list and give its parameters.
3. Read the observation that comes back and decide the next step.

When the task is done, stop calling tools and give a short summary of what
you did.
""".strip()


JSON_CONTRACT = """
You MUST return STRICT JSON with ONE of these shapes:

{"thought": "...", "is_complete": false, "action": {"tool": "<tool name>", "parameters": {...}}}

{"thought": "...", "is_complete": true, "response": "<final answer for the user>"}

CRITICAL CONSTRAINTS:

1. Use ONLY tool names from the list above.
2. Parameters MUST match the tool's input schema.
3. Commands are program + arguments; shell syntax (pipes, &&, redirects) is not supported.
4. If the last observation is an error, change your approach instead of repeating it.
""".strip()


class ContextPromptBuilder:
    """
    Renders a Context into the prompt text sent to a reasoning model.
    """

    def __init__(self, system_prompt: str = SYSTEM_PROMPT) -> None:
        self.system_prompt = system_prompt

    def build(self, context: Context, include_contract: bool = True) -> str:

        sections = [self.system_prompt]

        sections.append("AVAILABLE TOOLS:\n" + self.render_tools(context.tools))

        if context.workspace:
            sections.append("WORKSPACE:\n" + _json(context.workspace))

        if context.knowledge:
            sections.append("RELEVANT KNOWLEDGE:\n" + self.render_knowledge(context.knowledge))

        sections.append("CONVERSATION:\n" + self.render_messages(context))

        if include_contract:
            sections.append(JSON_CONTRACT)

        sections.append("What should you do next?")

        return "\n\n".join(sections)

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def render_tools(self, tools: List[Dict[str, Any]]) -> str:
        if not tools:
            return "(no tools available)"

        blocks = []
        for t in sorted(tools, key=lambda t: t["name"]):
            block = [f"- {t['name']}", f"  Description: {t.get('description', '')}"]
            block.append(f"  Inputs: {_json(t.get('parameters', {}), indent=None)}")
            if t.get("requires_sandbox"):
                block.append("  Runs in an isolated sandbox.")
            blocks.append("\n".join(block))

        return "\n\n".join(blocks)

    def render_knowledge(self, knowledge: List[Dict[str, Any]]) -> str:
        return "\n".join(f"- [{k.get('id')}] {k.get('content')}" for k in knowledge)

    def render_messages(self, context: Context) -> str:
        if not context.messages:
            return "(empty)"
        return "\n\n".join(
            f"[{m.role.value.upper()}]\n{m.content}" for m in context.messages
        )


def _json(value: Any, indent=2) -> str:
    return json.dumps(value, indent=indent, default=str)
