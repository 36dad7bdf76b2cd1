from __future__ import annotations

import shlex
from typing import Iterable, List, Optional, Sequence, Union

from ..errors import CommandRejectedError


Command = Union[str, Sequence[str]]


class CommandPolicy:
    """
    Allow/deny policy for sandboxed commands.

    Checks run deny-first:
        1. any forbidden entry found as a substring → rejected
        2. allow list configured and no entry is a prefix → rejected
        3. otherwise allowed

    A forbidden match therefore wins even when an allow entry matches.
    """

    def __init__(
        self,
        allowed: Optional[Iterable[str]] = None,
        forbidden: Optional[Iterable[str]] = None,
    ) -> None:
        self.allowed: List[str] = [a for a in (allowed or []) if a]
        self.forbidden: List[str] = [f for f in (forbidden or []) if f]

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def check(self, command_text: str) -> None:

        for forbidden in self.forbidden:
            if forbidden in command_text:
                raise CommandRejectedError(command_text, f"forbidden '{forbidden}'")

        if self.allowed and not any(command_text.startswith(a) for a in self.allowed):
            raise CommandRejectedError(command_text, "not in allow list")

    def is_allowed(self, command_text: str) -> bool:
        try:
            self.check(command_text)
        except CommandRejectedError:
            return False
        return True

    # ------------------------------------------------------------------
    # Structured Commands
    # ------------------------------------------------------------------

    @staticmethod
    def to_argv(command: Command) -> List[str]:
        """
        Normalize a command into an argument list.

        Strings are tokenized with shell quoting rules but never handed
        to a shell; lists must already be strings.
        """

        if isinstance(command, str):
            try:
                argv = shlex.split(command)
            except ValueError as e:
                raise CommandRejectedError(command, f"unparseable: {e}") from None
        elif isinstance(command, (list, tuple)):
            if not all(isinstance(a, str) for a in command):
                raise CommandRejectedError(str(command), "arguments must be strings")
            argv = list(command)
        else:
            raise CommandRejectedError(str(command), "unsupported command type")

        if not argv:
            raise CommandRejectedError(str(command), "empty command")

        return argv

    @staticmethod
    def to_text(command: Command) -> str:
        if isinstance(command, str):
            return command
        return shlex.join(list(command))
