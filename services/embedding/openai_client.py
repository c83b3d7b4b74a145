"""OpenAI 兼容 API 嵌入客户端

支持 OpenAI、DeepSeek、豆包等兼容 OpenAI API 格式的服务。
"""
from typing import List, Optional

import httpx

from .base import EmbeddingProvider
from config.logging import get_logger
from services.errors import ConfigurationError, EmbeddingError


logger = get_logger(__name__)


DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "text-embedding-3-small"

# Default vector dimensions for common models
MODEL_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    "doubao-embedding": 2560,
}


class OpenAIEmbeddingClient(EmbeddingProvider):
    """OpenAI-compatible API embedding client.

    ``POST {base_url}/embeddings`` with ``{"input": [...], "model": ...}``.
    """

    DEFAULT_DIMENSION = 1536
    BATCH_SIZE = 100

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = DEFAULT_BASE_URL,
        model: str = DEFAULT_MODEL,
        dimension: Optional[int] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the OpenAI embedding client.

        Args:
            api_key: API key; None defers the failure to the first request.
            base_url: Base URL of the API (default: OpenAI).
            model: Model name to use for embeddings.
            dimension: Expected vector length (default: model's native size).
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (used by tests).
        """
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._timeout = timeout
        self._transport = transport
        # 显式配置的维度随请求发送，由服务端截断
        self._requested_dimension = dimension
        self._dimension = dimension or MODEL_DIMENSIONS.get(model, self.DEFAULT_DIMENSION)

        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_config(cls, config) -> "OpenAIEmbeddingClient":
        """Create a client from ``EmbeddingConfig``."""
        return cls(
            api_key=config.api_key,
            base_url=config.base_url or DEFAULT_BASE_URL,
            model=config.model or DEFAULT_MODEL,
            dimension=config.dimension,
            timeout=config.timeout,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if not self._api_key:
            raise ConfigurationError(
                "OpenAI API key not found. Set embedding.api_key in "
                "config/servers.yaml or the OPENAI_API_KEY environment variable"
            )
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers={
                    "Authorization": f"Bearer {self._api_key}",
                    "Content-Type": "application/json",
                },
                timeout=httpx.Timeout(self._timeout),
                limits=httpx.Limits(
                    max_connections=50,
                    max_keepalive_connections=10,
                    keepalive_expiry=30.0,
                ),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def embed_query(self, text: str) -> List[float]:
        results = await self.embed_batch([text])
        return results[0]

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []

        client = await self._get_client()
        all_embeddings: List[List[float]] = []

        for i in range(0, len(texts), self.BATCH_SIZE):
            batch = texts[i : i + self.BATCH_SIZE]

            payload = {
                "input": batch,
                "model": self._model,
            }
            if self._requested_dimension:
                payload["dimensions"] = self._requested_dimension

            try:
                response = await client.post("/embeddings", json=payload)
                response.raise_for_status()
                data = response.json()
                items = sorted(data["data"], key=lambda item: item.get("index", 0))
                batch_embeddings = [item["embedding"] for item in items]
            except httpx.HTTPStatusError as e:
                logger.error(f"[EMBED] Request failed: {e.response.status_code}")
                raise EmbeddingError(f"embedding request failed with status {e.response.status_code}") from e
            except httpx.HTTPError as e:
                logger.error(f"[EMBED] Transport error: {e}")
                raise EmbeddingError(f"embedding request failed: {e}") from e
            except (KeyError, TypeError, ValueError) as e:
                logger.error(f"[EMBED] Malformed response: {e}")
                raise EmbeddingError(f"malformed embedding response: {e}") from e

            if len(batch_embeddings) != len(batch):
                raise EmbeddingError(
                    f"expected {len(batch)} embeddings, got {len(batch_embeddings)}"
                )
            all_embeddings.extend(self._check_dimension(vec) for vec in batch_embeddings)

        return all_embeddings

    @property
    def id(self) -> str:
        return f"openai:{self._model}"

    @property
    def model(self) -> str:
        return self._model

    @property
    def vector_dimension(self) -> int:
        return self._dimension

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)
