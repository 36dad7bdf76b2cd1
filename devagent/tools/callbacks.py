from __future__ import annotations

import inspect
from typing import Any, Callable, Dict, Iterator, Mapping, Optional

from ..errors import CallbackNotProvidedError


async def maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class ToolCallbacks(Mapping):
    """
    Immutable capability → function mapping supplied by the host.

    Handlers never touch the host directly; they go through `call`,
    which fails loudly when the host did not bind the capability.
    Functions may be plain or async.
    """

    def __init__(self, callbacks: Optional[Mapping[str, Callable[..., Any]]] = None) -> None:
        self._callbacks: Dict[str, Callable[..., Any]] = {}

        for name, fn in (callbacks or {}).items():
            if fn is None:
                continue
            if not callable(fn):
                raise TypeError(f"Callback '{name}' must be callable.")
            self._callbacks[name] = fn

    # ------------------------------------------------------------------
    # Mapping protocol
    # ------------------------------------------------------------------

    def __getitem__(self, name: str) -> Callable[..., Any]:
        return self._callbacks[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._callbacks)

    def __len__(self) -> int:
        return len(self._callbacks)

    # ------------------------------------------------------------------
    # Invocation
    # ------------------------------------------------------------------

    def require(self, name: str) -> Callable[..., Any]:
        fn = self._callbacks.get(name)
        if fn is None:
            raise CallbackNotProvidedError(name)
        return fn

    async def call(self, name: str, *args: Any, **kwargs: Any) -> Any:
        return await maybe_await(self.require(name)(*args, **kwargs))

    # ------------------------------------------------------------------
    # Copy-on-write updates
    # ------------------------------------------------------------------

    def with_callback(self, name: str, fn: Callable[..., Any]) -> "ToolCallbacks":
        merged = dict(self._callbacks)
        merged[name] = fn
        return ToolCallbacks(merged)

    def __repr__(self) -> str:
        return f"ToolCallbacks({sorted(self._callbacks)})"
