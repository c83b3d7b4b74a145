"""消息与成员在线状态 API 路由

聊天系统写入/编辑/删除消息时调用这些接口：
每次写入都会提交向量索引作业并评估是否需要分身回复，
编辑与删除同步更新向量索引。以上后续动作失败不影响消息本身。
"""
from fastapi import APIRouter, Depends, HTTPException

from api.routes.dependencies import get_conversation_service, get_responder, get_vector_sync
from config.logging import get_logger
from database.models import Message
from services.avatar_pipeline import AvatarResponder, ResponseJob, Skipped
from services.conversation import ConversationService
from services.vector_sync import MessageVectorSynchronizer
from schemas.messages import (
    MessageCreateRequest,
    MessageCreateResponse,
    MessageDeleteResponse,
    MessageResponse,
    MessageUpdateRequest,
    PresenceRequest,
    PresenceResponse,
)


router = APIRouter(prefix="/v1", tags=["messages"])
logger = get_logger(__name__)


def _message_fields(message: Message) -> dict:
    return {
        "id": str(message.id),
        "workspace_id": message.workspace_id,
        "member_id": message.member_id,
        "conversation_id": message.conversation_id,
        "channel_id": message.channel_id,
        "body": message.body,
        "kind": message.kind,
    }


@router.post("/messages", response_model=MessageCreateResponse)
async def create_message(
    payload: MessageCreateRequest,
    conversations: ConversationService = Depends(get_conversation_service),
    vector_sync: MessageVectorSynchronizer = Depends(get_vector_sync),
    responder: AvatarResponder = Depends(get_responder),
):
    """写入消息"""
    author = await conversations.get_member(payload.member_id)
    if author is None:
        raise HTTPException(status_code=404, detail=f"Member {payload.member_id} not found")
    if payload.conversation_id is not None:
        if await conversations.get_conversation(payload.conversation_id) is None:
            raise HTTPException(status_code=404, detail=f"Conversation {payload.conversation_id} not found")

    message = await conversations.create_message(
        workspace_id=payload.workspace_id,
        member_id=payload.member_id,
        body=payload.body,
        conversation_id=payload.conversation_id,
        channel_id=payload.channel_id,
        parent_message_id=payload.parent_message_id,
    )

    response = MessageCreateResponse(**_message_fields(message))

    try:
        vector_sync.on_create(message, author.user_id)
    except Exception as e:
        logger.error(f"[API] Failed to schedule indexing for message {message.id}: {e}")

    try:
        decision = await responder.on_message_created(message)
        if isinstance(decision, ResponseJob):
            response.avatar_job_id = decision.job_id
        elif isinstance(decision, Skipped):
            response.avatar_skip_reason = decision.reason
    except Exception as e:
        logger.error(f"[API] Avatar evaluation failed for message {message.id}: {e}")

    return response


@router.patch("/messages/{message_id}", response_model=MessageResponse)
async def update_message(
    message_id: int,
    payload: MessageUpdateRequest,
    conversations: ConversationService = Depends(get_conversation_service),
    vector_sync: MessageVectorSynchronizer = Depends(get_vector_sync),
):
    """编辑消息"""
    message = await conversations.update_message(message_id, payload.body)
    if message is None:
        raise HTTPException(status_code=404, detail=f"Message {message_id} not found")

    try:
        author = await conversations.get_member(message.member_id)
        vector_sync.on_update(message, message.body, author.user_id if author else None)
    except Exception as e:
        logger.error(f"[API] Failed to schedule re-indexing for message {message_id}: {e}")

    return MessageResponse(**_message_fields(message))


@router.delete("/messages/{message_id}", response_model=MessageDeleteResponse)
async def delete_message(
    message_id: int,
    conversations: ConversationService = Depends(get_conversation_service),
    vector_sync: MessageVectorSynchronizer = Depends(get_vector_sync),
):
    """删除消息"""
    message = await conversations.delete_message(message_id)
    if message is None:
        raise HTTPException(status_code=404, detail=f"Message {message_id} not found")

    try:
        vector_sync.on_delete(message_id)
    except Exception as e:
        logger.error(f"[API] Failed to schedule vector removal for message {message_id}: {e}")

    return MessageDeleteResponse(id=str(message_id))


@router.put("/members/{member_id}/presence", response_model=PresenceResponse)
async def set_presence(
    member_id: int,
    payload: PresenceRequest,
    conversations: ConversationService = Depends(get_conversation_service),
):
    """更新成员在线状态"""
    member = await conversations.set_presence(member_id, payload.is_online)
    if member is None:
        raise HTTPException(status_code=404, detail=f"Member {member_id} not found")
    return PresenceResponse(member_id=member.id, user_id=member.user_id, is_online=member.is_online)
