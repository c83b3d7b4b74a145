"""AI 分身触发与投递流水线

私聊消息写入后：
    收到 → 评估（对方离线且分身已激活）→ 延迟调度 / 跳过
    执行时重新校验 → 检索上下文 → 生成回复 → 写入 AI 消息 → 建立向量索引

执行期间用户上线或停用分身即取消，不写任何消息。
所有异常都在这里收敛为 Failed 结果，不向调用方抛出。
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Union

from config.settings import AvatarConfig
from config.logging import get_logger
from database.models import Message
from services.rich_text import plain_text


logger = get_logger(__name__)

REASON_NOT_ACTIVE = "Avatar not active"
REASON_NOW_ONLINE = "User is now online"
REASON_ONLINE = "User is online"
REASON_DISABLED = "Avatar responses disabled"
REASON_NO_RECIPIENT = "Recipient not found"


# ============================================================================
# 结果类型
# ============================================================================

@dataclass
class AvatarOutcome:
    """Tagged result of one avatar run."""
    success = False

    @property
    def status(self) -> str:
        return self.__class__.__name__.lower()

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success}


@dataclass
class Delivered(AvatarOutcome):
    message_id: int
    success = True

    def to_dict(self) -> Dict[str, Any]:
        return {"success": True, "message_id": str(self.message_id)}


@dataclass
class Skipped(AvatarOutcome):
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "reason": self.reason}


@dataclass
class Cancelled(AvatarOutcome):
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "reason": self.reason}


@dataclass
class Failed(AvatarOutcome):
    detail: str

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "reason": self.detail}


@dataclass
class ResponseJob:
    """A scheduled reply. ``job_id`` is the triggering message id when known."""
    job_id: str
    user_id: str
    message_text: str
    conversation_id: int
    workspace_id: str
    receiver_member_id: int
    not_before: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def queue_key(self) -> str:
        return f"avatar:{self.job_id}"


# ============================================================================
# 流水线
# ============================================================================

class AvatarResponder:
    """分身自动回复流水线"""

    def __init__(
        self,
        conversations,
        state_store,
        profiler,
        retriever,
        generator,
        task_queue,
        vector_sync=None,
        config: Optional[AvatarConfig] = None,
    ):
        self.conversations = conversations
        self.state_store = state_store
        self.profiler = profiler
        self.retriever = retriever
        self.generator = generator
        self.task_queue = task_queue
        self.vector_sync = vector_sync
        self.config = config or AvatarConfig()

    async def on_message_created(self, message: Message) -> Union[ResponseJob, Skipped, None]:
        """Evaluate a freshly inserted message.

        Returns:
            None when the message cannot trigger a reply (channel message,
            avatar-authored message), ``Skipped`` when the recipient is online
            or has no active avatar, otherwise the scheduled ``ResponseJob``.
        """
        if message.is_ai_generated or not message.is_direct:
            return None
        if not self.config.enabled:
            return Skipped(REASON_DISABLED)

        other_member_id = await self.conversations.get_other_member_id(
            message.conversation_id, message.member_id
        )
        other_member = None
        if other_member_id is not None:
            other_member = await self.conversations.get_member(other_member_id)
        if other_member is None:
            logger.warning(f"[PIPELINE] No recipient for message {message.id}")
            return Skipped(REASON_NO_RECIPIENT)

        if other_member.is_online:
            logger.debug(f"[PIPELINE] Recipient {other_member.id} online, skipping")
            return Skipped(REASON_ONLINE)
        if not await self.state_store.is_active(other_member.user_id):
            logger.debug(f"[PIPELINE] Recipient {other_member.user_id} has no active avatar")
            return Skipped(REASON_NOT_ACTIVE)

        job = ResponseJob(
            job_id=str(message.id),
            user_id=other_member.user_id,
            message_text=plain_text(message.body),
            conversation_id=message.conversation_id,
            workspace_id=message.workspace_id,
            receiver_member_id=other_member.id,
            not_before=datetime.now(timezone.utc) + timedelta(seconds=self.config.response_delay_seconds),
        )
        self.schedule(job)
        return job

    def schedule(self, job: ResponseJob) -> str:
        """Enqueue a job to run at ``job.not_before``, keyed by its id."""
        async def run():
            await self.run_job(job)

        delay = max(0.0, (job.not_before - datetime.now(timezone.utc)).total_seconds())
        key = self.task_queue.enqueue(run, delay=delay, key=job.queue_key)
        logger.info(
            f"[PIPELINE] Scheduled reply for user {job.user_id} "
            f"in {delay:.1f}s (job {job.job_id})"
        )
        return key

    async def run_job(self, job: ResponseJob) -> AvatarOutcome:
        """Execute a scheduled job."""
        outcome = await self.handle(
            user_id=job.user_id,
            message_text=job.message_text,
            conversation_id=job.conversation_id,
            workspace_id=job.workspace_id,
            receiver_member_id=job.receiver_member_id,
        )
        logger.info(f"[PIPELINE] Job {job.job_id} finished: {outcome.status}")
        return outcome

    async def handle(
        self,
        user_id: str,
        message_text: str,
        conversation_id: int,
        workspace_id: str,
        receiver_member_id: int,
    ) -> AvatarOutcome:
        """Run the reply pipeline now and report the outcome.

        Never raises.
        """
        try:
            return await self._respond(user_id, message_text, conversation_id, workspace_id, receiver_member_id)
        except Exception as e:
            logger.exception(f"[PIPELINE] Reply for user {user_id} failed: {e}")
            return Failed(str(e) or e.__class__.__name__)

    async def _precondition_failure(self, user_id: str, receiver_member_id: int) -> Optional[str]:
        if not await self.state_store.is_active(user_id):
            return REASON_NOT_ACTIVE
        if await self.conversations.is_member_online(receiver_member_id):
            return REASON_NOW_ONLINE
        return None

    async def _respond(
        self,
        user_id: str,
        message_text: str,
        conversation_id: int,
        workspace_id: str,
        receiver_member_id: int,
    ) -> AvatarOutcome:
        reason = await self._precondition_failure(user_id, receiver_member_id)
        if reason:
            logger.info(f"[PIPELINE] Cancelled for user {user_id}: {reason}")
            return Cancelled(reason)

        recent = await self.conversations.get_recent_messages(conversation_id, self.config.history_limit)
        history = self.conversations.format_history(recent, receiver_member_id)
        profile = await self._resolve_profile(user_id)
        context = await self.retriever.retrieve(message_text, workspace_id)
        body = await self.generator.generate(message_text, profile, history, context)

        # 生成期间状态可能已变化
        reason = await self._precondition_failure(user_id, receiver_member_id)
        if reason:
            logger.info(f"[PIPELINE] Cancelled before delivery for user {user_id}: {reason}")
            return Cancelled(reason)

        message = await self.conversations.insert_ai_message(
            workspace_id=workspace_id,
            member_id=receiver_member_id,
            conversation_id=conversation_id,
            body=body,
        )
        # 消息已写入，之后的失败不影响投递结果
        if self.vector_sync is not None:
            try:
                self.vector_sync.on_create(message, user_id)
            except Exception as e:
                logger.warning(f"[PIPELINE] Failed to schedule indexing for reply {message.id}: {e}")
        try:
            await self.state_store.touch(user_id)
        except Exception as e:
            logger.warning(f"[PIPELINE] Failed to refresh last_active_at for user {user_id}: {e}")

        logger.info(f"[AVATAR] Delivered reply {message.id} for user {user_id}")
        return Delivered(message.id)

    async def _resolve_profile(self, user_id: str) -> str:
        """Stored profile, or a freshly built one (persisted only if generated)."""
        state = await self.state_store.get_state(user_id)
        if state is not None and state.personality_profile:
            return state.personality_profile

        texts = await self.conversations.get_user_message_texts(
            user_id, self.profiler.config.history_limit
        )
        profile = await self.profiler.build_profile(texts)
        if profile.generated:
            await self.state_store.set_personality_profile(user_id, profile.text, overwrite=False)
        return profile.text
