from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set
from threading import RLock
import logging

from ..errors import (
    CallbackNotProvidedError,
    ToolDisabledError,
    ToolNotFoundError,
)
from .callbacks import ToolCallbacks, maybe_await
from .schema import KNOWN_CAPABILITIES, ToolDefinition
from .validator import ParameterValidator

logger = logging.getLogger(__name__)


class ToolRegistry:
    """
    Authoritative catalog of the tools available to the agent.

    This forms the capability boundary: a tool that is not registered
    AND enabled here can never be dispatched successfully.

    Definitions, enablement and bound callbacks are configuration shared
    by every session; all access goes through one re-entrant lock so
    concurrent sessions can read safely.
    """

    def __init__(
        self,
        callbacks: Optional[Mapping[str, Callable[..., Any]]] = None,
        enabled_tools: Optional[Iterable[str]] = None,
    ) -> None:
        self._tools: Dict[str, ToolDefinition] = {}
        self._enabled: Set[str] = set()
        self._callbacks = ToolCallbacks(callbacks)
        self._validator = ParameterValidator()
        self._lock = RLock()

        # Names listed here stay enabled; anything else registered
        # later starts disabled. None keeps the enable-on-register default.
        self._allowlist: Optional[Set[str]] = (
            set(enabled_tools) if enabled_tools is not None else None
        )

        logger.info("[TOOL REGISTRY] Initialized (empty)")

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, tool: ToolDefinition) -> str:
        """
        Insert or overwrite a tool by name.

        Returns:
            "registered" | "updated"
        """

        self._validate_definition(tool)

        with self._lock:
            existing = tool.name in self._tools
            self._tools[tool.name] = tool

            if self._allowlist is None or tool.name in self._allowlist:
                self._enabled.add(tool.name)

            logger.info(
                "[TOOL REGISTRY] Tool %s: %s | total=%d",
                "updated" if existing else "registered",
                tool.name,
                len(self._tools),
            )
            logger.debug(tool.to_debug_string())

            return "updated" if existing else "registered"

    def register_many(self, tools: Iterable[ToolDefinition]) -> None:

        tools = list(tools)
        for tool in tools:
            self._validate_definition(tool)

        with self._lock:
            for tool in tools:
                self.register(tool)

            logger.info(
                "[TOOL REGISTRY] Bulk registration complete | total=%d",
                len(self._tools)
            )

    def unregister(self, tool_name: str) -> None:
        with self._lock:
            if tool_name not in self._tools:
                raise ToolNotFoundError(tool_name)
            del self._tools[tool_name]
            self._enabled.discard(tool_name)
            logger.info("[TOOL REGISTRY] Tool unregistered: %s", tool_name)

    # ------------------------------------------------------------------
    # Callback Binding (host surface)
    # ------------------------------------------------------------------

    def register_callback(self, capability: str, fn: Callable[..., Any]) -> None:
        if not callable(fn):
            raise TypeError(f"Callback '{capability}' must be callable.")

        with self._lock:
            self._callbacks = self._callbacks.with_callback(capability, fn)

        if capability not in KNOWN_CAPABILITIES:
            logger.warning(
                "[TOOL REGISTRY] Callback bound for unknown capability: %s",
                capability
            )
        else:
            logger.info("[TOOL REGISTRY] Callback bound: %s", capability)

    def set_callbacks(self, callbacks: Mapping[str, Callable[..., Any]]) -> None:
        with self._lock:
            self._callbacks = ToolCallbacks(callbacks)
            logger.info(
                "[TOOL REGISTRY] Callback set replaced | bound=%s",
                sorted(self._callbacks)
            )

    @property
    def callbacks(self) -> ToolCallbacks:
        with self._lock:
            return self._callbacks

    def missing_callbacks(self, tool_name: str) -> List[str]:
        tool = self.get(tool_name)
        bound = self.callbacks
        return [c for c in tool.required_callbacks if c not in bound]

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, tool_name: str) -> ToolDefinition:

        with self._lock:
            try:
                return self._tools[tool_name]
            except KeyError:
                logger.debug(
                    "[TOOL REGISTRY] Lookup FAILED: %s | available=%s",
                    tool_name,
                    sorted(self._tools)
                )
                raise ToolNotFoundError(tool_name) from None

    def is_registered(self, tool_name: str) -> bool:
        with self._lock:
            return tool_name in self._tools

    def has(self, tool_name: str) -> bool:
        """True only if the tool is registered AND enabled."""
        with self._lock:
            return tool_name in self._tools and tool_name in self._enabled

    def requires_sandbox(self, tool_name: str) -> bool:
        with self._lock:
            tool = self._tools.get(tool_name)
            return bool(tool and tool.requires_sandbox)

    def list(self) -> List[ToolDefinition]:
        """Enabled definitions only, sorted by name."""

        with self._lock:
            tools = sorted(
                (t for t in self._tools.values() if t.name in self._enabled),
                key=lambda t: t.name,
            )

            logger.debug(
                "[TOOL REGISTRY] list | count=%d | names=%s",
                len(tools),
                [t.name for t in tools]
            )

            return tools

    def list_all(self) -> List[ToolDefinition]:
        """Every registered definition, enabled or not, sorted by name."""
        with self._lock:
            return sorted(self._tools.values(), key=lambda t: t.name)

    def list_tool_names(self) -> List[str]:
        return [t.name for t in self.list()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._tools)

    # ------------------------------------------------------------------
    # Enablement
    # ------------------------------------------------------------------

    def set_enabled(self, tool_name: str, enabled: bool) -> None:

        with self._lock:
            if tool_name not in self._tools:
                raise ToolNotFoundError(tool_name)

            if enabled:
                self._enabled.add(tool_name)
            else:
                self._enabled.discard(tool_name)

            logger.info(
                "[TOOL REGISTRY] Tool %s: %s",
                "enabled" if enabled else "disabled",
                tool_name
            )

    def is_enabled(self, tool_name: str) -> bool:
        return self.has(tool_name)

    # ------------------------------------------------------------------
    # Reasoning Integration
    # ------------------------------------------------------------------

    def manifest(self) -> List[Dict[str, Any]]:
        manifest = [tool.to_manifest() for tool in self.list()]

        logger.debug(
            "[TOOL REGISTRY] Reasoning manifest generated | count=%d",
            len(manifest)
        )

        return manifest

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def resolve(self, tool_name: str) -> ToolDefinition:
        """
        Return an executable definition or raise the precise reason
        it cannot be executed.
        """

        with self._lock:
            tool = self._tools.get(tool_name)
            if tool is None:
                raise ToolNotFoundError(tool_name)
            if tool_name not in self._enabled:
                raise ToolDisabledError(tool_name)
            return tool

    def validate_parameters(self, tool_name: str, params: Any) -> Dict[str, Any]:
        tool = self.resolve(tool_name)
        return self._validator.validate(tool_name, tool.parameters, params)

    async def execute(self, tool_name: str, params: Any) -> Any:
        """
        Run a tool's handler with the bound callback set.

        Raises ToolNotFoundError / ToolDisabledError / ParameterValidationError /
        CallbackNotProvidedError before the handler runs. Errors raised by
        the handler itself propagate unchanged.
        """

        tool = self.resolve(tool_name)
        params = self._validator.validate(tool_name, tool.parameters, params)

        callbacks = self.callbacks
        for capability in tool.required_callbacks:
            if capability not in callbacks:
                logger.warning(
                    "[TOOL REGISTRY] %s missing callback: %s",
                    tool_name,
                    capability
                )
                raise CallbackNotProvidedError(capability)

        logger.debug("[TOOL REGISTRY] Executing %s | params=%s", tool_name, params)

        return await maybe_await(tool.handler(params, callbacks))

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate_definition(self, tool: ToolDefinition) -> None:

        if not isinstance(tool, ToolDefinition):
            raise TypeError("Tool must be a ToolDefinition.")

        unknown = [c for c in tool.required_callbacks if c not in KNOWN_CAPABILITIES]
        if unknown:
            raise ValueError(
                f"Tool '{tool.name}' declares unknown capabilities: {unknown}"
            )
