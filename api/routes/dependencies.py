"""共享的依赖注入函数

从 app.state 取出启动时构建的服务实例，供路由注入使用。
"""
from fastapi import Request

from services.avatar_pipeline import AvatarResponder
from services.avatar_state import AvatarStateStore
from services.context_retriever import ContextRetriever
from services.conversation import ConversationService
from services.vector_sync import MessageVectorSynchronizer


async def get_conversation_service(request: Request) -> ConversationService:
    return request.app.state.conversations


async def get_state_store(request: Request) -> AvatarStateStore:
    return request.app.state.state_store


async def get_responder(request: Request) -> AvatarResponder:
    return request.app.state.responder


async def get_vector_sync(request: Request) -> MessageVectorSynchronizer:
    return request.app.state.vector_sync


async def get_retriever(request: Request) -> ContextRetriever:
    return request.app.state.retriever
