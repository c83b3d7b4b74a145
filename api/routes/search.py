"""语义搜索 API 路由

在工作区内按语义检索历史消息。与回复流水线中的检索不同，这里的失败会返回 502。
"""
from fastapi import APIRouter, Depends, HTTPException

from api.routes.dependencies import get_retriever
from config.logging import get_logger
from services.context_retriever import ContextRetriever
from services.errors import ConfigurationError
from schemas.messages import SearchRequest, SearchResponse, SearchResult


router = APIRouter(prefix="/v1", tags=["search"])
logger = get_logger(__name__)


@router.post("/search", response_model=SearchResponse)
async def semantic_search(
    payload: SearchRequest,
    retriever: ContextRetriever = Depends(get_retriever),
):
    """语义搜索消息"""
    try:
        matches = await retriever.search(payload.query, payload.workspace_id, payload.top_k)
    except ConfigurationError as e:
        logger.warning(f"[API] Search unavailable: {e}")
        raise HTTPException(status_code=502, detail=f"Search is not configured: {e}")
    except Exception as e:
        logger.error(f"[API] Search failed: {e}")
        raise HTTPException(status_code=502, detail=f"Search failed: {e}")

    results = [
        SearchResult(
            id=match.id,
            score=match.score,
            text=match.text,
            message_id=match.metadata.get("messageId"),
            user_id=match.metadata.get("userId"),
        )
        for match in matches
    ]
    return SearchResponse(query=payload.query, results=results, total_results=len(results))
