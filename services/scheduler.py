"""延迟任务队列

以 asyncio 后台任务执行"延迟 N 秒后运行"的作业：
- 分身延迟回复
- 消息向量的写入、更新、删除

作业之间互不依赖，异常只记录日志不向外传播。
同一 key 的作业在执行完之前重复提交会被忽略。
"""
import asyncio
import uuid
from typing import Any, Awaitable, Callable, Dict, Optional

from config.logging import get_logger


logger = get_logger(__name__)

Job = Callable[[], Awaitable[Any]]


class DeferredTaskQueue:
    """延迟任务队列"""

    def __init__(self):
        self._tasks: Dict[str, asyncio.Task] = {}
        self._running = True

    def enqueue(self, job: Job, delay: float = 0.0, key: Optional[str] = None) -> str:
        """提交作业

        Args:
            job: 无参协程函数
            delay: 延迟秒数
            key: 去重键，None 时生成随机键

        Returns:
            作业键
        """
        key = key or uuid.uuid4().hex

        if not self._running:
            logger.warning(f"[QUEUE] Queue stopped, dropping job {key}")
            return key

        existing = self._tasks.get(key)
        if existing is not None and not existing.done():
            logger.debug(f"[QUEUE] Job {key} already pending, ignored")
            return key

        task = asyncio.create_task(self._run(key, job, delay))
        self._tasks[key] = task
        task.add_done_callback(lambda t, k=key: self._discard(k, t))
        logger.debug(f"[QUEUE] Scheduled {key} in {delay:.1f}s")
        return key

    async def _run(self, key: str, job: Job, delay: float) -> None:
        try:
            if delay > 0:
                await asyncio.sleep(delay)
            await job()
        except asyncio.CancelledError:
            logger.debug(f"[QUEUE] Job {key} cancelled")
            raise
        except Exception as e:
            logger.exception(f"[QUEUE] Job {key} failed: {e}")

    def _discard(self, key: str, task: asyncio.Task) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]

    def is_pending(self, key: str) -> bool:
        task = self._tasks.get(key)
        return task is not None and not task.done()

    @property
    def pending_count(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())

    async def drain(self) -> None:
        """等待所有作业完成（包括作业执行中新提交的作业）"""
        while True:
            pending = [task for task in self._tasks.values() if not task.done()]
            if not pending:
                break
            await asyncio.gather(*pending, return_exceptions=True)

    async def stop(self) -> None:
        """停止队列并取消未完成的作业"""
        self._running = False
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info(f"[QUEUE] Stopped, {len(tasks)} pending job(s) cancelled")


# 全局队列实例
_task_queue: Optional[DeferredTaskQueue] = None


def get_task_queue() -> Optional[DeferredTaskQueue]:
    """获取全局队列实例"""
    return _task_queue


def set_task_queue(queue: Optional[DeferredTaskQueue]):
    """设置全局队列实例"""
    global _task_queue
    _task_queue = queue


async def stop_task_queue():
    """停止全局队列"""
    global _task_queue
    if _task_queue:
        await _task_queue.stop()
        _task_queue = None
