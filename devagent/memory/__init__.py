from .knowledge import KnowledgeEntry, KnowledgeIndex
from .store import MemoryStore

__all__ = ["KnowledgeEntry", "KnowledgeIndex", "MemoryStore"]
