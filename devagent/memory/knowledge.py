from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence
import logging

import numpy as np

logger = logging.getLogger(__name__)


Embedder = Callable[[str], Sequence[float]]


@dataclass(frozen=True)
class KnowledgeEntry:
    """
    One indexed piece of knowledge.

    Entries are created when content is indexed and never mutated.
    """

    id: str
    content: str
    vector: np.ndarray = field(repr=False)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self, score: Optional[float] = None) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "content": self.content,
            "metadata": dict(self.metadata),
        }
        if score is not None:
            data["score"] = score
        return data


class KnowledgeIndex:
    """
    In-memory vector index over embedded text.

    The embedder is an external collaborator (text -> vector). Every
    vector in the index must share the dimension of the first one.

    Similarity methods
    ------------------
    cosine    : dot / (|a| |b|), 0 when either norm is 0
    euclidean : 1 / (1 + distance)
    dot       : raw dot product
    """

    def __init__(self, embedder: Embedder, similarity_method: str = "cosine") -> None:
        if similarity_method not in _SCORERS:
            raise ValueError(f"Unsupported similarity_method: {similarity_method}")

        self._embedder = embedder
        self.similarity_method = similarity_method
        self._entries: List[KnowledgeEntry] = []
        self._ids = set()
        self._dimension: Optional[int] = None

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------

    def add(
        self,
        entry_id: str,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> KnowledgeEntry:

        if entry_id in self._ids:
            raise ValueError(f"Knowledge entry '{entry_id}' already exists.")

        vector = self._embed(content)

        entry = KnowledgeEntry(
            id=entry_id,
            content=content,
            vector=vector,
            metadata=dict(metadata or {}),
        )

        if self._dimension is None:
            self._dimension = vector.shape[0]

        self._entries.append(entry)
        self._ids.add(entry_id)

        logger.debug(
            "[MEMORY] Knowledge indexed: %s | dim=%d | total=%d",
            entry_id,
            self._dimension,
            len(self._entries)
        )

        return entry

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    def search(self, query: str, limit: int = 5) -> List[Dict[str, Any]]:
        """
        Rank entries by similarity to `query`, best first.

        Ties keep insertion order.
        """

        if not self._entries or limit <= 0:
            return []

        query_vector = self._embed(query)
        matrix = np.vstack([e.vector for e in self._entries])

        scores = _SCORERS[self.similarity_method](matrix, query_vector)
        order = np.argsort(-scores, kind="stable")[:limit]

        return [self._entries[i].to_dict(score=float(scores[i])) for i in order]

    def clear(self) -> None:
        self._entries = []
        self._ids = set()
        self._dimension = None

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entry_id: str) -> bool:
        return entry_id in self._ids

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _embed(self, text: str) -> np.ndarray:
        vector = np.asarray(self._embedder(text), dtype=float)

        if vector.ndim != 1 or vector.shape[0] == 0:
            raise ValueError("Embedder must return a non-empty 1-D vector.")

        if self._dimension is not None and vector.shape[0] != self._dimension:
            raise ValueError(
                f"Vector dimension {vector.shape[0]} does not match index dimension {self._dimension}."
            )

        return vector


# ============================================================
# SIMILARITY
# ============================================================

def _cosine(matrix: np.ndarray, query: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    dots = matrix @ query
    return np.divide(dots, norms, out=np.zeros_like(dots), where=norms != 0)


def _euclidean(matrix: np.ndarray, query: np.ndarray) -> np.ndarray:
    return 1.0 / (1.0 + np.linalg.norm(matrix - query, axis=1))


def _dot(matrix: np.ndarray, query: np.ndarray) -> np.ndarray:
    return matrix @ query


_SCORERS = {
    "cosine": _cosine,
    "euclidean": _euclidean,
    "dot": _dot,
}
