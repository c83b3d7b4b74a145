"""会话与消息服务

分身引擎对外部聊天系统的依赖都集中在这里：
成员在线状态、会话另一方、消息写入、最近消息、用户历史消息。

每个方法使用独立的数据库会话，可在请求之外的后台任务中调用。
"""
from typing import List, Optional

from database.models import Member, Conversation, Message, MESSAGE_KIND_AI, MESSAGE_KIND_HUMAN
from database.repository import (
    MemberRepository,
    ConversationRepository,
    MessageRepository,
)
from config.logging import get_logger
from services.rich_text import ensure_document, plain_text


logger = get_logger(__name__)


class ConversationService:
    """会话与消息服务"""

    def __init__(self, session_factory):
        self._session_factory = session_factory

    # ==================== 成员 ====================

    async def create_member(
        self,
        user_id: str,
        workspace_id: str,
        name: str = "",
        is_online: bool = False
    ) -> Member:
        """创建成员"""
        async with self._session_factory() as session:
            member = await MemberRepository.create(session, user_id, workspace_id, name, is_online)
            await session.commit()
            return member

    async def get_member(self, member_id: int) -> Optional[Member]:
        """获取成员"""
        async with self._session_factory() as session:
            return await MemberRepository.get_by_id(session, member_id)

    async def is_member_online(self, member_id: int) -> bool:
        """成员是否在线（不存在视为离线）"""
        member = await self.get_member(member_id)
        return bool(member and member.is_online)

    async def set_presence(self, member_id: int, is_online: bool) -> Optional[Member]:
        """更新成员在线状态"""
        async with self._session_factory() as session:
            member = await MemberRepository.get_by_id(session, member_id)
            if member is None:
                return None
            await MemberRepository.set_online(session, member, is_online)
            await session.commit()
            logger.info(f"[PRESENCE] Member {member_id} is now {'online' if is_online else 'offline'}")
            return member

    # ==================== 会话 ====================

    async def create_conversation(
        self,
        workspace_id: str,
        member_one_id: int,
        member_two_id: int
    ) -> Conversation:
        """创建私聊会话"""
        async with self._session_factory() as session:
            conversation = await ConversationRepository.create(
                session, workspace_id, member_one_id, member_two_id
            )
            await session.commit()
            return conversation

    async def get_conversation(self, conversation_id: int) -> Optional[Conversation]:
        """获取会话"""
        async with self._session_factory() as session:
            return await ConversationRepository.get_by_id(session, conversation_id)

    async def get_other_member_id(self, conversation_id: int, member_id: int) -> Optional[int]:
        """获取会话中另一方的成员ID"""
        conversation = await self.get_conversation(conversation_id)
        if conversation is None:
            return None
        return conversation.other_member_id(member_id)

    # ==================== 消息 ====================

    async def create_message(
        self,
        workspace_id: str,
        member_id: int,
        body: str,
        conversation_id: Optional[int] = None,
        channel_id: Optional[str] = None,
        parent_message_id: Optional[int] = None,
        kind: str = MESSAGE_KIND_HUMAN
    ) -> Message:
        """写入消息（正文统一转为富文本文档）"""
        async with self._session_factory() as session:
            message = await MessageRepository.create(
                session,
                workspace_id=workspace_id,
                member_id=member_id,
                body=ensure_document(body),
                kind=kind,
                conversation_id=conversation_id,
                channel_id=channel_id,
                parent_message_id=parent_message_id,
            )
            await session.commit()
            return message

    async def insert_ai_message(
        self,
        workspace_id: str,
        member_id: int,
        conversation_id: int,
        body: str
    ) -> Message:
        """写入分身生成的消息"""
        return await self.create_message(
            workspace_id=workspace_id,
            member_id=member_id,
            body=body,
            conversation_id=conversation_id,
            kind=MESSAGE_KIND_AI,
        )

    async def get_message(self, message_id: int) -> Optional[Message]:
        """获取消息"""
        async with self._session_factory() as session:
            return await MessageRepository.get_by_id(session, message_id)

    async def update_message(self, message_id: int, body: str) -> Optional[Message]:
        """更新消息正文"""
        async with self._session_factory() as session:
            message = await MessageRepository.get_by_id(session, message_id)
            if message is None:
                return None
            await MessageRepository.update_body(session, message, ensure_document(body))
            await session.commit()
            return message

    async def delete_message(self, message_id: int) -> Optional[Message]:
        """删除消息，返回被删除的消息"""
        async with self._session_factory() as session:
            message = await MessageRepository.get_by_id(session, message_id)
            if message is None:
                return None
            await MessageRepository.delete(session, message)
            await session.commit()
            return message

    async def get_recent_messages(self, conversation_id: int, limit: int = 10) -> List[Message]:
        """获取会话最近 N 条消息（按时间正序）"""
        async with self._session_factory() as session:
            return await MessageRepository.get_recent(session, conversation_id, limit)

    async def get_user_message_texts(self, user_id: str, limit: int = 500) -> List[str]:
        """获取用户本人发送的消息纯文本（不含分身消息）"""
        async with self._session_factory() as session:
            bodies = await MessageRepository.get_bodies_by_user(session, user_id, limit)
        texts = [plain_text(body) for body in bodies]
        return [text for text in texts if text]

    @staticmethod
    def format_history(messages: List[Message], responder_member_id: int) -> str:
        """把最近消息格式化为 "You: ..." / "Them: ..." 行"""
        lines = []
        for message in messages:
            text = plain_text(message.body)
            if not text:
                continue
            speaker = "You" if message.member_id == responder_member_id else "Them"
            lines.append(f"{speaker}: {text}")
        return "\n".join(lines)
