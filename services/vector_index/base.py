"""向量索引基类

定义向量索引的抽象接口与数据结构。
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class VectorRecord:
    """A vector stored in the index. ``id`` is unique per namespace."""
    id: str
    values: List[float]
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class VectorMatch:
    """A query hit, best match first."""
    id: str
    score: float
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def text(self) -> str:
        return str(self.metadata.get("text") or "")


class VectorIndex(ABC):
    """Abstract base class for vector indexes.

    Implementations raise ``ConfigurationError`` when called without the
    credentials they need and ``VectorIndexError`` on request failures.
    """

    def __init__(self, namespace: str = "messages"):
        self.namespace = namespace

    @abstractmethod
    async def upsert(self, records: List[VectorRecord], namespace: Optional[str] = None) -> None:
        """Insert or replace records by id."""
        pass

    @abstractmethod
    async def query(
        self,
        vector: List[float],
        top_k: int = 5,
        filter: Optional[Dict[str, Any]] = None,
        namespace: Optional[str] = None,
    ) -> List[VectorMatch]:
        """Return up to ``top_k`` matches whose metadata equals every ``filter`` entry."""
        pass

    @abstractmethod
    async def delete(self, ids: List[str], namespace: Optional[str] = None) -> None:
        """Delete records by id. Unknown ids are ignored."""
        pass

    @property
    @abstractmethod
    def provider(self) -> str:
        pass

    @property
    def is_configured(self) -> bool:
        """Whether credentials are present (no network check)."""
        return True

    async def close(self) -> None:
        pass

    def _namespace(self, namespace: Optional[str]) -> str:
        return namespace or self.namespace
