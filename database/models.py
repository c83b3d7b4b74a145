"""数据库模型定义

定义核心数据表：成员、私聊会话、消息、AI 分身状态。

工作区、频道、鉴权由外部聊天系统管理，这里只保存分身引擎需要读写的字段。
"""
from datetime import datetime
from typing import Optional
from sqlalchemy import String, Text, DateTime, ForeignKey, Index, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models"""
    pass


MESSAGE_KIND_HUMAN = "human"
MESSAGE_KIND_AI = "ai"


# ============================================================================
# 成员和会话
# ============================================================================

class Member(Base):
    """工作区成员表"""
    __tablename__ = "members"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    workspace_id: Mapped[str] = mapped_column(String(64), index=True)
    name: Mapped[str] = mapped_column(String(100), default="")
    is_online: Mapped[bool] = mapped_column(default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Conversation(Base):
    """私聊会话表（两名成员）"""
    __tablename__ = "conversations"

    id: Mapped[int] = mapped_column(primary_key=True)
    workspace_id: Mapped[str] = mapped_column(String(64), index=True)
    member_one_id: Mapped[int] = mapped_column(ForeignKey("members.id"))
    member_two_id: Mapped[int] = mapped_column(ForeignKey("members.id"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    messages: Mapped[list["Message"]] = relationship(back_populates="conversation", cascade="all, delete-orphan")

    def other_member_id(self, member_id: int) -> Optional[int]:
        """返回会话中另一方的成员ID"""
        if member_id == self.member_one_id:
            return self.member_two_id
        if member_id == self.member_two_id:
            return self.member_one_id
        return None


class Message(Base):
    """消息表

    body 保存富文本文档 JSON（{"ops": [{"insert": ...}]}）。
    kind 区分人工发送 (human) 与分身生成 (ai)。
    """
    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(primary_key=True)
    workspace_id: Mapped[str] = mapped_column(String(64), index=True)
    member_id: Mapped[int] = mapped_column(ForeignKey("members.id"), index=True)
    conversation_id: Mapped[Optional[int]] = mapped_column(ForeignKey("conversations.id"), nullable=True)
    channel_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    parent_message_id: Mapped[Optional[int]] = mapped_column(ForeignKey("messages.id"), nullable=True)
    body: Mapped[str] = mapped_column(Text)
    kind: Mapped[str] = mapped_column(String(16), default=MESSAGE_KIND_HUMAN)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    conversation: Mapped[Optional["Conversation"]] = relationship(back_populates="messages")

    __table_args__ = (
        Index("ix_messages_conversation_created", "conversation_id", "created_at"),
    )

    @property
    def is_ai_generated(self) -> bool:
        return self.kind == MESSAGE_KIND_AI

    @property
    def is_direct(self) -> bool:
        return self.conversation_id is not None and self.channel_id is None


# ============================================================================
# AI 分身状态
# ============================================================================

class AvatarState(Base):
    """AI 分身状态表（每个用户至多一行）"""
    __tablename__ = "avatar_states"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    is_active: Mapped[bool] = mapped_column(default=False)
    last_active_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    personality_profile: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
