"""RAG 上下文检索

对来信做语义检索，取回同一工作区中最相关的历史消息文本，作为回复生成的参考。
任何失败（缺少凭据、嵌入或索引请求出错）都只记录日志并返回空字符串。
"""
from typing import List, Optional

from config.settings import RetrievalConfig
from config.logging import get_logger
from services.cache import SimpleCache, make_cache_key
from services.vector_index import VectorMatch


logger = get_logger(__name__)

MESSAGE_RECORD_KIND = "message"


class ContextRetriever:
    """语义上下文检索器"""

    def __init__(
        self,
        embedding_provider,
        vector_index,
        config: Optional[RetrievalConfig] = None,
        cache: Optional[SimpleCache] = None,
    ):
        self.embedding_provider = embedding_provider
        self.vector_index = vector_index
        self.config = config or RetrievalConfig()
        self.cache = cache

    async def embed(self, query: str) -> List[float]:
        """Embed a query, reusing cached vectors for identical text."""
        key = None
        if self.cache is not None:
            key = make_cache_key("embed", self.embedding_provider.id, query)
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("[RAG] Embedding cache hit")
                return cached

        vector = await self.embedding_provider.embed_query(query)

        if key is not None:
            self.cache.set(key, vector)
        return vector

    async def search(self, query: str, workspace_id: str, top_k: Optional[int] = None) -> List[VectorMatch]:
        """Return message matches inside a workspace, best first.

        Errors propagate; callers decide whether to degrade.
        """
        top_k = top_k or self.config.top_k
        vector = await self.embed(query)
        matches = await self.vector_index.query(
            vector,
            top_k=top_k,
            filter={"workspaceId": workspace_id, "kind": MESSAGE_RECORD_KIND},
        )
        return [match for match in matches if match.score >= self.config.min_score]

    async def retrieve(self, query: str, workspace_id: str, top_k: Optional[int] = None) -> str:
        """Build the context block for a reply.

        Returns:
            Matched texts joined by blank lines, or "" on no match or any failure.
        """
        if not self.config.enabled or not query.strip():
            return ""
        if self.embedding_provider is None or self.vector_index is None:
            logger.warning("[RAG] Retrieval not wired, skipping context")
            return ""

        try:
            matches = await self.search(query, workspace_id, top_k)
        except Exception as e:
            logger.warning(f"[RAG] Retrieval failed, continuing without context: {e}")
            return ""

        texts = [match.text for match in matches if match.text]
        logger.info(f"[RAG] {len(texts)} context snippet(s) for workspace {workspace_id}")
        return "\n\n".join(texts)
