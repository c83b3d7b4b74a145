"""AI 分身状态存储

每个用户一行 avatar_states 记录，首次激活/停用/设置画像时懒创建，从不删除。
只读写数据库，不访问任何外部服务。
"""
from typing import Optional

from database.models import AvatarState
from database.repository import AvatarStateRepository, utcnow
from config.logging import get_logger


logger = get_logger(__name__)


class AvatarStateStore:
    """分身状态存储"""

    def __init__(self, session_factory):
        self._session_factory = session_factory

    async def activate(self, user_id: str) -> AvatarState:
        """激活分身（幂等）"""
        async with self._session_factory() as session:
            state = await AvatarStateRepository.get_or_create(session, user_id)
            state.is_active = True
            state.last_active_at = utcnow()
            await session.commit()
        logger.info(f"[AVATAR] Activated for user {user_id}")
        return state

    async def deactivate(self, user_id: str) -> AvatarState:
        """停用分身（幂等）"""
        async with self._session_factory() as session:
            state = await AvatarStateRepository.get_or_create(session, user_id)
            state.is_active = False
            await session.commit()
        logger.info(f"[AVATAR] Deactivated for user {user_id}")
        return state

    async def is_active(self, user_id: str) -> bool:
        """分身是否激活（无记录视为未激活）"""
        state = await self.get_state(user_id)
        return bool(state and state.is_active)

    async def get_state(self, user_id: str) -> Optional[AvatarState]:
        """获取分身状态"""
        async with self._session_factory() as session:
            return await AvatarStateRepository.get_by_user(session, user_id)

    async def set_personality_profile(self, user_id: str, text: str, overwrite: bool = True) -> bool:
        """保存沟通风格画像

        Args:
            user_id: 用户ID
            text: 画像文本
            overwrite: False 时已有画像则不覆盖

        Returns:
            是否写入
        """
        async with self._session_factory() as session:
            state = await AvatarStateRepository.get_or_create(session, user_id)
            if state.personality_profile and not overwrite:
                return False
            state.personality_profile = text
            await session.commit()
        logger.info(f"[PROFILE] Stored profile for user {user_id}")
        return True

    async def touch(self, user_id: str) -> None:
        """刷新 last_active_at"""
        async with self._session_factory() as session:
            state = await AvatarStateRepository.get_by_user(session, user_id)
            if state is None:
                return
            state.last_active_at = utcnow()
            await session.commit()

    async def count(self) -> int:
        async with self._session_factory() as session:
            return await AvatarStateRepository.count(session)
