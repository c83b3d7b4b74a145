"""AI 分身 API 路由

激活/停用分身、查询状态、更新沟通风格画像、立即执行回复流水线、配置诊断。
"""
from fastapi import APIRouter, Depends, Request

from api.routes.dependencies import get_responder, get_state_store
from config.settings import get_settings
from config.logging import get_logger
from services.avatar_pipeline import AvatarResponder
from services.avatar_state import AvatarStateStore
from schemas.avatar import (
    AvatarActiveResponse,
    AvatarHandleRequest,
    AvatarOutcomeResponse,
    AvatarSetupResponse,
    AvatarStateResponse,
    AvatarToggleResponse,
    CapabilityStatus,
    ProfileUpdateRequest,
    SuccessResponse,
)


router = APIRouter(prefix="/v1/avatar", tags=["avatar"])
logger = get_logger(__name__)


@router.get("/setup", response_model=AvatarSetupResponse)
async def check_setup(
    request: Request,
    state_store: AvatarStateStore = Depends(get_state_store),
):
    """配置诊断

    只检查配置是否齐全，不请求任何外部服务。
    """
    settings = get_settings()
    state = request.app.state

    completion_client = getattr(state, "completion_client", None)
    models = [settings.avatar.completion.model, settings.avatar.profile.model]
    completion_models = {
        model: bool(completion_client and completion_client.has_model(model))
        for model in models
    }

    embedding_provider = getattr(state, "embedding_provider", None)
    embedding = CapabilityStatus(
        provider=embedding_provider.id if embedding_provider else None,
        configured=bool(embedding_provider and embedding_provider.is_configured),
        detail=f"dimension={embedding_provider.vector_dimension}" if embedding_provider else "not initialized",
    )

    vector_index = getattr(state, "vector_index", None)
    index_status = CapabilityStatus(
        provider=vector_index.provider if vector_index else None,
        configured=bool(vector_index and vector_index.is_configured),
        detail=f"namespace={vector_index.namespace}" if vector_index else "not initialized",
    )

    task_queue = getattr(state, "task_queue", None)

    return AvatarSetupResponse(
        completion_servers=list(settings.servers.keys()),
        completion_models=completion_models,
        embedding=embedding,
        vector_index=index_status,
        avatar_states=await state_store.count(),
        pending_jobs=task_queue.pending_count if task_queue else 0,
    )


@router.post("/handle", response_model=AvatarOutcomeResponse)
async def handle_message(
    payload: AvatarHandleRequest,
    responder: AvatarResponder = Depends(get_responder),
):
    """立即执行回复流水线（不延迟）"""
    outcome = await responder.handle(
        user_id=payload.user_id,
        message_text=payload.message_text,
        conversation_id=payload.conversation_id,
        workspace_id=payload.workspace_id,
        receiver_member_id=payload.receiver_member_id,
    )
    return AvatarOutcomeResponse(**outcome.to_dict())


@router.post("/{user_id}/activate", response_model=AvatarToggleResponse)
async def activate_avatar(user_id: str, state_store: AvatarStateStore = Depends(get_state_store)):
    """激活分身"""
    await state_store.activate(user_id)
    return AvatarToggleResponse(is_active=True)


@router.post("/{user_id}/deactivate", response_model=AvatarToggleResponse)
async def deactivate_avatar(user_id: str, state_store: AvatarStateStore = Depends(get_state_store)):
    """停用分身"""
    await state_store.deactivate(user_id)
    return AvatarToggleResponse(is_active=False)


@router.get("/{user_id}", response_model=AvatarStateResponse)
async def get_avatar_state(user_id: str, state_store: AvatarStateStore = Depends(get_state_store)):
    """查询分身状态"""
    state = await state_store.get_state(user_id)
    if state is None:
        return AvatarStateResponse(user_id=user_id)
    return AvatarStateResponse(
        user_id=user_id,
        is_active=state.is_active,
        last_active_at=state.last_active_at,
        personality_profile=state.personality_profile,
    )


@router.get("/{user_id}/active", response_model=AvatarActiveResponse)
async def is_avatar_active(user_id: str, state_store: AvatarStateStore = Depends(get_state_store)):
    return AvatarActiveResponse(user_id=user_id, is_active=await state_store.is_active(user_id))


@router.put("/{user_id}/profile", response_model=SuccessResponse)
async def update_profile(
    user_id: str,
    payload: ProfileUpdateRequest,
    state_store: AvatarStateStore = Depends(get_state_store),
):
    """手动设置沟通风格画像（覆盖已有画像）"""
    await state_store.set_personality_profile(user_id, payload.personality_profile)
    return SuccessResponse()
