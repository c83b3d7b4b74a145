"""Pinecone REST 向量索引客户端

通过 Pinecone 数据面 REST API 进行 upsert / query / delete。
"""
from typing import Any, Dict, List, Optional

import httpx

from .base import VectorIndex, VectorMatch, VectorRecord
from config.logging import get_logger
from services.errors import ConfigurationError, VectorIndexError


logger = get_logger(__name__)


class PineconeVectorIndex(VectorIndex):
    """Pinecone index reached over its REST data plane.

    Endpoints: ``/vectors/upsert``, ``/query``, ``/vectors/delete``,
    authenticated with the ``Api-Key`` header.
    """

    def __init__(
        self,
        api_key: Optional[str],
        host: Optional[str] = None,
        index: Optional[str] = None,
        environment: Optional[str] = None,
        namespace: str = "messages",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the Pinecone client.

        Args:
            api_key: Pinecone API key; None defers the failure to the first call.
            host: Full index host URL; takes precedence over index/environment.
            index: Index name, combined with ``environment`` into the legacy host.
            environment: Pinecone environment (e.g. ``us-east1-gcp``).
            namespace: Default namespace for all operations.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (used by tests).
        """
        super().__init__(namespace)
        self._api_key = api_key
        self._host = self._resolve_host(host, index, environment)
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_config(cls, config) -> "PineconeVectorIndex":
        """Create a client from ``VectorIndexConfig``."""
        pinecone = config.pinecone
        return cls(
            api_key=pinecone.api_key,
            host=pinecone.host,
            index=pinecone.index,
            environment=pinecone.environment,
            namespace=config.namespace,
            timeout=pinecone.timeout,
        )

    @staticmethod
    def _resolve_host(host: Optional[str], index: Optional[str], environment: Optional[str]) -> Optional[str]:
        if host:
            if not host.startswith("http"):
                host = f"https://{host}"
            return host.rstrip("/")
        if index and environment:
            return f"https://{index}-{environment}.svc.{environment}.pinecone.io"
        return None

    @property
    def provider(self) -> str:
        return "pinecone"

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key and self._host)

    async def _get_client(self) -> httpx.AsyncClient:
        if not self.is_configured:
            raise ConfigurationError(
                "Pinecone is not configured. Set vector_index.pinecone.api_key and host "
                "(or index + environment), or PINECONE_API_KEY / PINECONE_INDEX / PINECONE_ENVIRONMENT"
            )
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._host,
                headers={
                    "Api-Key": self._api_key,
                    "Content-Type": "application/json",
                },
                timeout=httpx.Timeout(self._timeout),
                limits=httpx.Limits(
                    max_connections=20,
                    max_keepalive_connections=5,
                    keepalive_expiry=30.0,
                ),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        client = await self._get_client()
        try:
            response = await client.post(path, json=payload)
            response.raise_for_status()
            return response.json() if response.content else {}
        except httpx.HTTPStatusError as e:
            logger.error(f"[VECTOR] Pinecone {path} failed: {e.response.status_code} {e.response.text[:200]}")
            raise VectorIndexError(f"pinecone {path} failed with status {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error(f"[VECTOR] Pinecone {path} transport error: {e}")
            raise VectorIndexError(f"pinecone {path} failed: {e}") from e
        except ValueError as e:
            raise VectorIndexError(f"pinecone {path} returned invalid JSON") from e

    async def upsert(self, records: List[VectorRecord], namespace: Optional[str] = None) -> None:
        if not records:
            return
        await self._post("/vectors/upsert", {
            "vectors": [
                {
                    "id": record.id,
                    "values": record.values,
                    # Pinecone rejects null metadata values
                    "metadata": {k: v for k, v in record.metadata.items() if v is not None},
                }
                for record in records
            ],
            "namespace": self._namespace(namespace),
        })
        logger.debug(f"[VECTOR] Upserted {len(records)} vector(s) to pinecone")

    async def query(
        self,
        vector: List[float],
        top_k: int = 5,
        filter: Optional[Dict[str, Any]] = None,
        namespace: Optional[str] = None,
    ) -> List[VectorMatch]:
        payload: Dict[str, Any] = {
            "vector": vector,
            "topK": top_k,
            "includeMetadata": True,
            "namespace": self._namespace(namespace),
        }
        if filter:
            payload["filter"] = {key: {"$eq": value} for key, value in filter.items()}

        data = await self._post("/query", payload)
        return [
            VectorMatch(
                id=str(match["id"]),
                score=float(match.get("score", 0.0)),
                metadata=match.get("metadata") or {},
            )
            for match in data.get("matches", [])
        ]

    async def delete(self, ids: List[str], namespace: Optional[str] = None) -> None:
        if not ids:
            return
        await self._post("/vectors/delete", {
            "ids": list(ids),
            "namespace": self._namespace(namespace),
        })
