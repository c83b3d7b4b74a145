"""FastAPI 应用入口

配置应用启动、关闭事件和路由注册。
"""
from pathlib import Path
from typing import Optional
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from api.routes.avatar import router as avatar_router
from api.routes.messages import router as messages_router
from api.routes.search import router as search_router
from api.middleware import RequestLoggingMiddleware
from database.session import init_db, close_db, get_session_factory
from services.avatar_pipeline import AvatarResponder
from services.avatar_state import AvatarStateStore
from services.cache import SimpleCache
from services.completion_client import CompletionClient
from services.context_retriever import ContextRetriever
from services.conversation import ConversationService
from services.embedding import EmbeddingProvider, create_embedding_provider
from services.personality import PersonalityProfiler
from services.response_generator import ResponseGenerator
from services.scheduler import DeferredTaskQueue, set_task_queue, stop_task_queue
from services.vector_index import VectorIndex, create_vector_index
from services.vector_sync import MessageVectorSynchronizer
from config.settings import Settings, get_settings
from config.logging import setup_logging, get_logger


app = FastAPI(
    title="Avatar Engine",
    description="AI 分身自动回复引擎 - 用户离线时代为回复私聊消息",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)

logger = get_logger(__name__)


# ============================================================================
# 全局异常处理器
# ============================================================================

@app.exception_handler(SQLAlchemyError)
async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
    """处理数据库相关异常"""
    logger.error(f"[DB] Database error on {request.url.path}: {exc}")

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Database error",
            "message": "数据库操作失败。请确保已运行 `python init_db.py` 初始化数据库。",
            "detail": str(exc) if get_settings().logging.level == "DEBUG" else None,
        }
    )


app.include_router(avatar_router)
app.include_router(messages_router)
app.include_router(search_router)


# ============================================================================
# 服务装配
# ============================================================================

def init_services(
    target: FastAPI,
    settings: Settings,
    session_factory,
    completion_client: Optional[CompletionClient] = None,
    embedding_provider: Optional[EmbeddingProvider] = None,
    vector_index: Optional[VectorIndex] = None,
    task_queue: Optional[DeferredTaskQueue] = None,
) -> None:
    """Build the engine services and attach them to ``target.state``.

    Missing credentials never fail here; each capability reports them
    when it is first used.
    """
    completion_client = completion_client or CompletionClient(settings.servers)
    embedding_provider = embedding_provider or create_embedding_provider(settings.embedding)
    vector_index = vector_index or create_vector_index(settings.vector_index, embedding_provider.vector_dimension)
    task_queue = task_queue or DeferredTaskQueue()

    cache = SimpleCache(default_ttl=settings.cache.ttl_seconds) if settings.cache.enabled else None

    conversations = ConversationService(session_factory)
    state_store = AvatarStateStore(session_factory)
    vector_sync = MessageVectorSynchronizer(
        embedding_provider, vector_index, task_queue, namespace=settings.vector_index.namespace
    )
    retriever = ContextRetriever(embedding_provider, vector_index, settings.avatar.retrieval, cache)

    responder = AvatarResponder(
        conversations=conversations,
        state_store=state_store,
        profiler=PersonalityProfiler(completion_client, settings.avatar.profile),
        retriever=retriever,
        generator=ResponseGenerator(completion_client, settings.avatar.completion),
        task_queue=task_queue,
        vector_sync=vector_sync,
        config=settings.avatar,
    )

    target.state.completion_client = completion_client
    target.state.embedding_provider = embedding_provider
    target.state.vector_index = vector_index
    target.state.task_queue = task_queue
    target.state.conversations = conversations
    target.state.state_store = state_store
    target.state.vector_sync = vector_sync
    target.state.retriever = retriever
    target.state.responder = responder

    set_task_queue(task_queue)


@app.on_event("startup")
async def startup_event():
    """应用启动时的初始化"""
    try:
        settings = get_settings()
    except Exception as e:
        print("配置加载失败！")
        print(f"错误: {e}")
        print()
        print("请检查 config/servers.yaml 文件:")
        print("  1. YAML 格式是否正确？")
        print("  2. 字段类型是否与 config/servers.example.yaml 一致？")
        raise

    log_file = Path("logs/avatar.log") if settings.logging.level == "DEBUG" else None
    setup_logging(
        level=settings.logging.level,
        log_file=log_file
    )

    logger.info("[SERVER] Starting Avatar Engine...")

    try:
        await init_db()
        logger.info("[SERVER] Database initialized")
    except Exception as e:
        logger.error(f"[SERVER] Database initialization failed: {e}")
        print()
        print("数据库初始化失败！")
        print("请先运行: python init_db.py")
        raise

    init_services(app, settings, get_session_factory())

    state = app.state
    logger.info(f"[SERVER] Completion models: {state.completion_client.get_available_models() or 'none'}")
    logger.info(
        f"[SERVER] Embedding: {state.embedding_provider.id} "
        f"({'configured' if state.embedding_provider.is_configured else 'no credentials'})"
    )
    logger.info(
        f"[SERVER] Vector index: {state.vector_index.provider} "
        f"({'configured' if state.vector_index.is_configured else 'no credentials'})"
    )
    logger.info("[SERVER] Services initialized")


@app.on_event("shutdown")
async def shutdown_event():
    """应用关闭时的清理"""
    logger.info("[SERVER] Shutting down...")

    await stop_task_queue()

    for name in ("completion_client", "embedding_provider", "vector_index"):
        service = getattr(app.state, name, None)
        if service is None:
            continue
        try:
            await service.close()
        except Exception as e:
            logger.error(f"[SERVER] Error closing {name}: {e}")

    await close_db()
    logger.info("[SERVER] Shutdown complete")


@app.get("/")
async def root():
    """服务信息"""
    return {
        "name": "Avatar Engine",
        "version": "0.1.0",
        "docs": "/docs"
    }


@app.get("/health")
async def health():
    """健康检查"""
    task_queue = getattr(app.state, "task_queue", None)
    return {
        "status": "healthy",
        "pending_jobs": task_queue.pending_count if task_queue else 0,
    }
