"""Gemini API 嵌入客户端

使用 Google Gemini API 生成文本嵌入向量。
"""
import asyncio
from typing import List, Optional

import httpx

from .base import EmbeddingProvider
from config.logging import get_logger
from services.errors import ConfigurationError, EmbeddingError


logger = get_logger(__name__)


GEMINI_MODELS = {
    "text-embedding-004": "models/text-embedding-004",
    "embedding-001": "models/embedding-001",
}

GEMINI_DIMENSIONS = {
    "text-embedding-004": 768,
    "embedding-001": 768,
}


class GeminiEmbeddingClient(EmbeddingProvider):
    """Google Gemini API embedding client."""

    DEFAULT_MODEL = "text-embedding-004"
    DEFAULT_DIMENSION = 768
    BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

    def __init__(
        self,
        api_key: Optional[str],
        model: str = DEFAULT_MODEL,
        dimension: Optional[int] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_key = api_key
        self._model = model
        self._timeout = timeout
        self._transport = transport
        self._requested_dimension = dimension
        self._dimension = dimension or GEMINI_DIMENSIONS.get(model, self.DEFAULT_DIMENSION)

        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_config(cls, config) -> "GeminiEmbeddingClient":
        """Create a client from ``EmbeddingConfig``."""
        model = config.model if config.model in GEMINI_MODELS else cls.DEFAULT_MODEL
        return cls(
            api_key=config.gemini_api_key,
            model=model,
            dimension=config.dimension,
            timeout=config.timeout,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if not self._api_key:
            raise ConfigurationError(
                "Gemini API key not found. Set embedding.gemini_api_key in "
                "config/servers.yaml or the GEMINI_API_KEY environment variable"
            )
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.BASE_URL,
                headers={
                    "Content-Type": "application/json",
                },
                timeout=httpx.Timeout(self._timeout),
                params={"key": self._api_key},
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
        """Embed multiple texts in batch.

        Note: Gemini API doesn't support batch requests,
        so we make individual requests concurrently.
        A single failure fails the whole batch.
        """
        if not texts:
            return []

        client = await self._get_client()
        model_path = GEMINI_MODELS.get(self._model, f"models/{self._model}")

        tasks = [self._embed_one(client, model_path, text) for text in texts]
        return list(await asyncio.gather(*tasks))

    async def _embed_one(
        self, client: httpx.AsyncClient, model_path: str, text: str
    ) -> List[float]:
        payload = {
            "content": {
                "parts": [{"text": text}]
            }
        }
        if self._requested_dimension:
            payload["outputDimensionality"] = self._requested_dimension

        try:
            response = await client.post(f"{model_path}:embedContent", json=payload)
            response.raise_for_status()
            embedding = response.json()["embedding"]["values"]
        except httpx.HTTPStatusError as e:
            logger.error(f"[EMBED] Gemini request failed: {e.response.status_code}")
            raise EmbeddingError(f"gemini embedding failed with status {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error(f"[EMBED] Gemini transport error: {e}")
            raise EmbeddingError(f"gemini embedding failed: {e}") from e
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"[EMBED] Gemini malformed response: {e}")
            raise EmbeddingError(f"malformed gemini response: {e}") from e

        return self._check_dimension(embedding)

    @property
    def id(self) -> str:
        return f"gemini:{self._model}"

    @property
    def model(self) -> str:
        return self._model

    @property
    def vector_dimension(self) -> int:
        return self._dimension

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)
