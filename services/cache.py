"""缓存服务

内存 TTL 缓存，用于缓存查询文本的嵌入向量，避免重复请求嵌入服务。
"""
import time
import hashlib
from typing import Optional, Any

from config.logging import get_logger


logger = get_logger(__name__)


class SimpleCache:
    """简单的内存缓存实现"""

    def __init__(self, default_ttl: int = 300, max_entries: int = 1024):
        """
        Args:
            default_ttl: 默认缓存过期时间（秒）
            max_entries: 最大条目数，超出时先清理过期项，再淘汰最早写入的项
        """
        self._cache: dict[str, tuple[Any, float]] = {}  # {key: (value, expire_time)}
        self._default_ttl = default_ttl
        self._max_entries = max_entries

    def get(self, key: str) -> Optional[Any]:
        """获取缓存值"""
        if key not in self._cache:
            return None

        value, expire_time = self._cache[key]
        if time.time() > expire_time:
            del self._cache[key]
            return None

        return value

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """设置缓存值"""
        if ttl is None:
            ttl = self._default_ttl
        if key not in self._cache and len(self._cache) >= self._max_entries:
            self.cleanup()
            while len(self._cache) >= self._max_entries:
                del self._cache[next(iter(self._cache))]
        self._cache[key] = (value, time.time() + ttl)

    def delete(self, key: str) -> None:
        """删除缓存"""
        self._cache.pop(key, None)

    def clear(self) -> None:
        """清空所有缓存"""
        self._cache.clear()

    def cleanup(self) -> None:
        """清理过期的缓存"""
        now = time.time()
        expired_keys = [
            key for key, (_, expire_time) in self._cache.items()
            if now > expire_time
        ]
        for key in expired_keys:
            del self._cache[key]
        if expired_keys:
            logger.debug(f"[CACHE] Removed {len(expired_keys)} expired entries")

    def __len__(self) -> int:
        return len(self._cache)


def make_cache_key(*parts: str) -> str:
    """生成缓存键"""
    return hashlib.md5(":".join(parts).encode("utf-8")).hexdigest()
