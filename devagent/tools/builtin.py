"""
Built-in coding tools.

Each tool is a thin contract around one host capability. The host binds
the capabilities (see ToolRegistry.register_callback); a tool whose
capability is not bound fails at execution with CallbackNotProvidedError.

Usage
-----
from devagent.tools.builtin import register_builtin_tools

register_builtin_tools(registry)
"""

from typing import Any, Dict, List

from .callbacks import ToolCallbacks
from .schema import ToolDefinition


def _object(properties: Dict[str, Any], required: List[str] = ()) -> Dict[str, Any]:
    return {
        "type": "object",
        "properties": properties,
        "required": list(required),
        "additionalProperties": False,
    }


def _string(description: str) -> Dict[str, str]:
    return {"type": "string", "description": description}


# ------------------------------------------------------------------
# Handlers
# ------------------------------------------------------------------

async def _read_file(params: Dict[str, Any], callbacks: ToolCallbacks) -> Any:
    return await callbacks.call("readFile", params["path"])


async def _write_file(params: Dict[str, Any], callbacks: ToolCallbacks) -> Any:
    await callbacks.call("writeFile", params["path"], params["content"])
    return {"success": True, "message": f"File {params['path']} written"}


async def _apply_patch(params: Dict[str, Any], callbacks: ToolCallbacks) -> Any:
    await callbacks.call("applyPatch", params["path"], params["patch"])
    return {"success": True, "message": f"Patch applied to {params['path']}"}


async def _run_in_terminal(params: Dict[str, Any], callbacks: ToolCallbacks) -> Any:
    return await callbacks.call("runInTerminal", params["command"])


async def _find_file(params: Dict[str, Any], callbacks: ToolCallbacks) -> Any:
    return await callbacks.call("findFile", params["pattern"])


async def _get_code_context(params: Dict[str, Any], callbacks: ToolCallbacks) -> Any:
    return await callbacks.call("getCodeContext")


async def _analyze_code(params: Dict[str, Any], callbacks: ToolCallbacks) -> Any:
    return await callbacks.call("analyzeCode", params["code"], params.get("options"))


async def _detect_bugs(params: Dict[str, Any], callbacks: ToolCallbacks) -> Any:
    return await callbacks.call("detectBugs", params["filePath"])


async def _generate_tests(params: Dict[str, Any], callbacks: ToolCallbacks) -> Any:
    return await callbacks.call("generateTests", params["filePath"])


async def _analyze_dependencies(params: Dict[str, Any], callbacks: ToolCallbacks) -> Any:
    return await callbacks.call("analyzeDependencies")


async def _generate_documentation(params: Dict[str, Any], callbacks: ToolCallbacks) -> Any:
    return await callbacks.call("generateDocumentation", params["filePath"])


# ------------------------------------------------------------------
# Definitions
# ------------------------------------------------------------------

READ_FILE_TOOL = ToolDefinition(
    name="readFile",
    description="Read the contents of a file.",
    handler=_read_file,
    parameters=_object({"path": _string("Path of the file to read")}, ["path"]),
    required_callbacks=("readFile",),
    tags=("builtin", "filesystem"),
)

WRITE_FILE_TOOL = ToolDefinition(
    name="writeFile",
    description="Write or overwrite a file.",
    handler=_write_file,
    parameters=_object(
        {
            "path": _string("Path of the file to write"),
            "content": _string("Content to write"),
        },
        ["path", "content"],
    ),
    required_callbacks=("writeFile",),
    tags=("builtin", "filesystem"),
)

APPLY_PATCH_TOOL = ToolDefinition(
    name="applyPatch",
    description="Apply a unified diff to a file.",
    handler=_apply_patch,
    parameters=_object(
        {
            "path": _string("Path of the file to modify"),
            "patch": _string("Patch content in diff format"),
        },
        ["path", "patch"],
    ),
    required_callbacks=("applyPatch",),
    tags=("builtin", "filesystem"),
)

RUN_IN_TERMINAL_TOOL = ToolDefinition(
    name="runInTerminal",
    description=(
        "Run a command. Executes inside the isolated sandbox; "
        "pass the program and its arguments, no shell syntax."
    ),
    handler=_run_in_terminal,
    parameters=_object(
        {
            "command": {
                "type": ["string", "array"],
                "description": "Command line, or program + argument list",
            },
            "workingDir": _string("Working directory; defaults to the session workspace"),
            "timeout": {"type": "number", "description": "Timeout in seconds"},
        },
        ["command"],
    ),
    requires_sandbox=True,
    command_parameter="command",
    required_callbacks=("runInTerminal",),
    tags=("builtin", "terminal"),
)

FIND_FILE_TOOL = ToolDefinition(
    name="findFile",
    description="Find files by name or glob pattern.",
    handler=_find_file,
    parameters=_object({"pattern": _string("Glob pattern")}, ["pattern"]),
    required_callbacks=("findFile",),
    tags=("builtin", "search"),
)

GET_CODE_CONTEXT_TOOL = ToolDefinition(
    name="getCodeContext",
    description="Get the current file and selection from the editor.",
    handler=_get_code_context,
    parameters=_object({}),
    required_callbacks=("getCodeContext",),
    tags=("builtin", "editor"),
)

ANALYZE_CODE_TOOL = ToolDefinition(
    name="analyzeCode",
    description="Run static analysis on a code snippet.",
    handler=_analyze_code,
    parameters=_object(
        {
            "code": _string("Code to analyze"),
            "options": {"type": "object", "description": "Analyzer options"},
        },
        ["code"],
    ),
    requires_sandbox=True,
    required_callbacks=("analyzeCode",),
    tags=("builtin", "analysis"),
)

DETECT_BUGS_TOOL = ToolDefinition(
    name="detectBugs",
    description="Detect bugs and vulnerabilities in a file.",
    handler=_detect_bugs,
    parameters=_object({"filePath": _string("File to analyze")}, ["filePath"]),
    requires_sandbox=True,
    required_callbacks=("detectBugs",),
    tags=("builtin", "analysis"),
)

GENERATE_TESTS_TOOL = ToolDefinition(
    name="generateTests",
    description="Generate unit tests for a file.",
    handler=_generate_tests,
    parameters=_object({"filePath": _string("File to generate tests for")}, ["filePath"]),
    required_callbacks=("generateTests",),
    tags=("builtin", "generation"),
)

ANALYZE_DEPENDENCIES_TOOL = ToolDefinition(
    name="analyzeDependencies",
    description="Analyze the project's dependencies.",
    handler=_analyze_dependencies,
    parameters=_object({}),
    required_callbacks=("analyzeDependencies",),
    tags=("builtin", "project"),
)

GENERATE_DOCUMENTATION_TOOL = ToolDefinition(
    name="generateDocumentation",
    description="Generate documentation for a file.",
    handler=_generate_documentation,
    parameters=_object({"filePath": _string("File to document")}, ["filePath"]),
    required_callbacks=("generateDocumentation",),
    tags=("builtin", "generation"),
)


BUILTIN_TOOLS = (
    READ_FILE_TOOL,
    WRITE_FILE_TOOL,
    APPLY_PATCH_TOOL,
    RUN_IN_TERMINAL_TOOL,
    FIND_FILE_TOOL,
    GET_CODE_CONTEXT_TOOL,
    ANALYZE_CODE_TOOL,
    DETECT_BUGS_TOOL,
    GENERATE_TESTS_TOOL,
    ANALYZE_DEPENDENCIES_TOOL,
    GENERATE_DOCUMENTATION_TOOL,
)


def register_builtin_tools(registry) -> None:
    """
    Register every built-in tool on `registry`.

    Parameters
    ----------
    registry : ToolRegistry
        The tool registry instance.
    """
    registry.register_many(BUILTIN_TOOLS)
