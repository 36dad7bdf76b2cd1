from devagent import AgentConfig, DevAgentApp, SandboxConfig
from devagent.models import ReasoningResult
from devagent.reasoning import StaticReasoner
from devagent.tools.local import LocalWorkspaceCallbacks

import logging
import tempfile
import asyncio
import os

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)

# --------------------------------
# Host infrastructure
# --------------------------------

workspace = tempfile.mkdtemp(prefix="devagent-example-")

with open(os.path.join(workspace, "foo.js"), "w", encoding="utf-8") as f:
    f.write("function add(a, b) { return a - b; }\n")

local = LocalWorkspaceCallbacks(workspace)

# --------------------------------
# Scripted reasoning (swap for create_reasoner(config.reasoning))
# --------------------------------

reasoner = StaticReasoner([
    ReasoningResult.act("readFile", {"path": "foo.js"}, thought="Look at the file first"),
    ReasoningResult.act(
        "writeFile",
        {"path": "foo.js", "content": "function add(a, b) { return a + b; }\n"},
        thought="The operator is wrong",
    ),
    ReasoningResult.act("runInTerminal", {"command": "node foo.js"}, thought="Check it still parses"),
    ReasoningResult.complete("Fixed: add() now returns a + b."),
])

# --------------------------------
# Create Session
# --------------------------------

config = AgentConfig(
    max_iterations=6,
    sandbox=SandboxConfig(executor="local", working_dir=workspace),
)

session = DevAgentApp.create_session(
    config=config,
    reasoner=reasoner,
    callbacks=local.as_mapping(),
)

# --------------------------------
# Run conversation
# --------------------------------

print("\n=== Conversation Start ===\n")

print(asyncio.run(session.process_request("Fix the bug in foo.js")))

print("\n=== Conversation End ===\n")

# --------------------------------
# Inspect memory
# --------------------------------

print("--- History ---")
for message in session.get_conversation_history():
    print(f"[{message.role.value}] {message.content}")

session.close()
