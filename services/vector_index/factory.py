"""向量索引工厂

根据配置创建 sqlite-vec 本地索引或 Pinecone 索引。
"""
from typing import TYPE_CHECKING

from .base import VectorIndex
from .pinecone_client import PineconeVectorIndex
from .sqlite_client import SqliteVectorIndex
from config.logging import get_logger

if TYPE_CHECKING:
    from config.settings import VectorIndexConfig

logger = get_logger(__name__)


def create_vector_index(config: "VectorIndexConfig", dimension: int) -> VectorIndex:
    """Create a vector index from configuration.

    Args:
        config: Vector index configuration.
        dimension: Embedding dimension produced by the embedding provider.

    Raises:
        ValueError: If the provider name is unknown.
    """
    provider = config.provider.lower()

    if provider == "pinecone":
        index = PineconeVectorIndex.from_config(config)
        if not index.is_configured:
            logger.warning("[VECTOR] Pinecone selected but not configured, retrieval will be skipped")
        return index
    elif provider == "sqlite":
        return SqliteVectorIndex.from_config(config, dimension)
    else:
        raise ValueError(f"Unknown vector index provider: {provider}")
