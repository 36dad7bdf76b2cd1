from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)


class LocalWorkspaceCallbacks:
    """
    Filesystem-backed capability callbacks for a checkout on disk.

    Used when the agent runs stand-alone (e.g. behind the HTTP server)
    rather than inside an IDE host. Every path is resolved against
    `root` and must stay inside it.
    """

    def __init__(self, root: str, max_results: int = 200) -> None:
        self.root = Path(root).resolve()
        self.max_results = max_results
        self.current_file: Optional[str] = None

        if not self.root.is_dir():
            raise ValueError(f"Workspace root is not a directory: {self.root}")

    # ------------------------------------------------------------------
    # Capabilities
    # ------------------------------------------------------------------

    def read_file(self, path: str) -> str:
        target = self._resolve(path)
        self.current_file = str(target.relative_to(self.root))
        return target.read_text(encoding="utf-8")

    def write_file(self, path: str, content: str) -> None:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        logger.info("[LOCAL CALLBACKS] Wrote %s (%d chars)", target, len(content))

    def find_file(self, pattern: str) -> List[str]:
        if Path(pattern).is_absolute():
            raise PermissionError(f"Pattern escapes workspace: {pattern}")

        matches = []
        for match in sorted(self.root.glob(pattern)):
            resolved = match.resolve()
            # glob follows ".." segments and symlinks
            if self.root not in resolved.parents or not resolved.is_file():
                continue
            matches.append(str(resolved.relative_to(self.root)))
            if len(matches) >= self.max_results:
                break
        return matches

    def get_code_context(self) -> Dict[str, Any]:
        return {"currentFile": self.current_file, "selectedCode": None}

    def as_mapping(self) -> Dict[str, Callable[..., Any]]:
        return {
            "readFile": self.read_file,
            "writeFile": self.write_file,
            "findFile": self.find_file,
            "getCodeContext": self.get_code_context,
        }

    # ------------------------------------------------------------------
    # Path Confinement
    # ------------------------------------------------------------------

    def _resolve(self, path: str) -> Path:
        candidate = (self.root / path).resolve()
        if candidate != self.root and self.root not in candidate.parents:
            raise PermissionError(f"Path escapes workspace: {path}")
        return candidate
