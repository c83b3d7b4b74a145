"""消息向量同步

消息创建、编辑、删除时，把对应的向量写入/替换/删除操作提交到延迟任务队列。
提交本身不做任何网络请求；作业失败只记录日志。
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from config.logging import get_logger
from database.models import Message
from services.rich_text import plain_text
from services.vector_index import VectorRecord


logger = get_logger(__name__)

MESSAGE_RECORD_KIND = "message"


def to_millis(value: Optional[datetime]) -> int:
    if value is None:
        value = datetime.now(timezone.utc)
    elif value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


def build_metadata(message: Message, text: str, user_id: Optional[str]) -> Dict[str, Any]:
    return {
        "text": text,
        "messageId": str(message.id),
        "userId": user_id,
        "workspaceId": message.workspace_id,
        "timestamp": to_millis(message.created_at),
        "kind": MESSAGE_RECORD_KIND,
    }


class MessageVectorSynchronizer:
    """消息向量同步器"""

    def __init__(self, embedding_provider, vector_index, task_queue, namespace: Optional[str] = None):
        self.embedding_provider = embedding_provider
        self.vector_index = vector_index
        self.task_queue = task_queue
        self.namespace = namespace

    def on_create(self, message: Message, user_id: Optional[str] = None) -> Optional[str]:
        """Schedule indexing of a new message.

        Returns:
            The queue key, or None when the message has no text to index.
        """
        return self._schedule_upsert(message, plain_text(message.body), user_id)

    def on_update(self, message: Message, new_text: str, user_id: Optional[str] = None) -> Optional[str]:
        """Schedule re-indexing of an edited message."""
        return self._schedule_upsert(message, plain_text(new_text), user_id)

    def on_delete(self, message_id) -> str:
        """Schedule removal of a message's vector."""
        record_id = str(message_id)

        async def job():
            await self._delete(record_id)

        return self.task_queue.enqueue(job)

    def _schedule_upsert(self, message: Message, text: str, user_id: Optional[str]) -> Optional[str]:
        if not text:
            logger.debug(f"[SYNC] Message {message.id} has no text, not indexed")
            return None

        record_id = str(message.id)
        metadata = build_metadata(message, text, user_id)

        async def job():
            await self._upsert(record_id, text, metadata)

        return self.task_queue.enqueue(job)

    async def _upsert(self, record_id: str, text: str, metadata: Dict[str, Any]) -> None:
        if self.embedding_provider is None or self.vector_index is None:
            logger.debug(f"[SYNC] Vector services not wired, skipping {record_id}")
            return
        try:
            values = await self.embedding_provider.embed_query(text)
            await self.vector_index.upsert(
                [VectorRecord(id=record_id, values=values, metadata=metadata)],
                namespace=self.namespace,
            )
            logger.info(f"[SYNC] Indexed message {record_id}")
        except Exception as e:
            logger.warning(f"[SYNC] Failed to index message {record_id}: {e}")

    async def _delete(self, record_id: str) -> None:
        if self.vector_index is None:
            return
        try:
            await self.vector_index.delete([record_id], namespace=self.namespace)
            logger.info(f"[SYNC] Removed vector for message {record_id}")
        except Exception as e:
            logger.warning(f"[SYNC] Failed to remove vector {record_id}: {e}")
