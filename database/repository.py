"""数据访问层

提供成员、会话、消息、分身状态的数据访问操作。
"""
from typing import Optional, List
from datetime import datetime, timezone
from sqlalchemy import select, desc, func
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Member, Conversation, Message, AvatarState, MESSAGE_KIND_HUMAN


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# 成员和会话
# ============================================================================

class MemberRepository:
    """成员数据访问"""

    @staticmethod
    async def create(
        session: AsyncSession,
        user_id: str,
        workspace_id: str,
        name: str = "",
        is_online: bool = False
    ) -> Member:
        """创建成员"""
        member = Member(
            user_id=user_id,
            workspace_id=workspace_id,
            name=name,
            is_online=is_online
        )
        session.add(member)
        await session.flush()
        return member

    @staticmethod
    async def get_by_id(session: AsyncSession, member_id: int) -> Optional[Member]:
        """根据ID获取成员"""
        return await session.get(Member, member_id)

    @staticmethod
    async def set_online(session: AsyncSession, member: Member, is_online: bool) -> Member:
        """更新在线状态"""
        member.is_online = is_online
        await session.flush()
        return member


class ConversationRepository:
    """私聊会话数据访问"""

    @staticmethod
    async def create(
        session: AsyncSession,
        workspace_id: str,
        member_one_id: int,
        member_two_id: int
    ) -> Conversation:
        """创建会话"""
        conversation = Conversation(
            workspace_id=workspace_id,
            member_one_id=member_one_id,
            member_two_id=member_two_id
        )
        session.add(conversation)
        await session.flush()
        return conversation

    @staticmethod
    async def get_by_id(session: AsyncSession, conversation_id: int) -> Optional[Conversation]:
        """根据ID获取会话"""
        return await session.get(Conversation, conversation_id)


class MessageRepository:
    """消息数据访问"""

    @staticmethod
    async def create(
        session: AsyncSession,
        workspace_id: str,
        member_id: int,
        body: str,
        kind: str = MESSAGE_KIND_HUMAN,
        conversation_id: Optional[int] = None,
        channel_id: Optional[str] = None,
        parent_message_id: Optional[int] = None
    ) -> Message:
        """创建消息"""
        message = Message(
            workspace_id=workspace_id,
            member_id=member_id,
            body=body,
            kind=kind,
            conversation_id=conversation_id,
            channel_id=channel_id,
            parent_message_id=parent_message_id,
            created_at=utcnow(),
        )
        session.add(message)
        await session.flush()
        return message

    @staticmethod
    async def get_by_id(session: AsyncSession, message_id: int) -> Optional[Message]:
        """根据ID获取消息"""
        return await session.get(Message, message_id)

    @staticmethod
    async def update_body(session: AsyncSession, message: Message, body: str) -> Message:
        """更新消息内容"""
        message.body = body
        message.updated_at = utcnow()
        await session.flush()
        return message

    @staticmethod
    async def delete(session: AsyncSession, message: Message) -> None:
        """删除消息"""
        await session.delete(message)
        await session.flush()

    @staticmethod
    async def get_recent(
        session: AsyncSession,
        conversation_id: int,
        limit: int = 10
    ) -> List[Message]:
        """获取会话最近 N 条消息（按时间正序）"""
        result = await session.execute(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(desc(Message.created_at), desc(Message.id))
            .limit(limit)
        )
        return list(reversed(result.scalars().all()))

    @staticmethod
    async def get_bodies_by_user(
        session: AsyncSession,
        user_id: str,
        limit: int = 500
    ) -> List[str]:
        """获取用户本人发送的消息内容（仅人工消息，按时间正序）"""
        result = await session.execute(
            select(Message.body)
            .join(Member, Message.member_id == Member.id)
            .where(Member.user_id == user_id)
            .where(Message.kind == MESSAGE_KIND_HUMAN)
            .order_by(desc(Message.created_at), desc(Message.id))
            .limit(limit)
        )
        return list(reversed(result.scalars().all()))


# ============================================================================
# AI 分身状态
# ============================================================================

class AvatarStateRepository:
    """分身状态数据访问"""

    @staticmethod
    async def get_by_user(session: AsyncSession, user_id: str) -> Optional[AvatarState]:
        """根据用户ID获取分身状态"""
        result = await session.execute(
            select(AvatarState).where(AvatarState.user_id == user_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_or_create(session: AsyncSession, user_id: str) -> AvatarState:
        """获取或创建分身状态（新行默认未激活）"""
        state = await AvatarStateRepository.get_by_user(session, user_id)
        if not state:
            state = AvatarState(user_id=user_id, is_active=False)
            session.add(state)
            await session.flush()
        return state

    @staticmethod
    async def count(session: AsyncSession) -> int:
        """统计分身状态行数"""
        result = await session.execute(select(func.count(AvatarState.id)))
        return int(result.scalar_one())
