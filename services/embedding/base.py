"""嵌入服务提供者基类

定义嵌入服务提供者的抽象接口。
"""
from abc import ABC, abstractmethod
from typing import List

from services.errors import EmbeddingError


class EmbeddingProvider(ABC):
    """Abstract base class for embedding providers.

    Implementations raise ``ConfigurationError`` when called without
    credentials and ``EmbeddingError`` on any request failure or when the
    returned vector does not have ``vector_dimension`` components.
    """

    @abstractmethod
    async def embed_query(self, text: str) -> List[float]:
        """Embed a single text.

        Args:
            text: The text to embed.

        Returns:
            A list of floats representing the embedding vector.
        """
        pass

    @abstractmethod
    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Embed multiple texts in batch.

        Args:
            texts: List of texts to embed.

        Returns:
            A list of embedding vectors, in input order.
        """
        pass

    @property
    @abstractmethod
    def id(self) -> str:
        """Unique identifier for this provider instance."""
        pass

    @property
    @abstractmethod
    def model(self) -> str:
        """Model name used for embeddings."""
        pass

    @property
    @abstractmethod
    def vector_dimension(self) -> int:
        """Dimension of the output embedding vectors."""
        pass

    @property
    def is_configured(self) -> bool:
        """Whether credentials are present (no network check)."""
        return True

    async def close(self) -> None:
        """Release network resources."""
        pass

    def _check_dimension(self, vector: List[float]) -> List[float]:
        if len(vector) != self.vector_dimension:
            raise EmbeddingError(
                f"{self.id} returned {len(vector)} dimensions, expected {self.vector_dimension}"
            )
        return vector
