"""数据库会话管理

提供数据库引擎、会话工厂和建表/关闭函数。

各服务（包括延迟回复、向量同步等后台任务）
都通过 get_session_factory() 按需打开自己的会话。
"""
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy import text
from config.settings import get_settings

from .models import Base


# 全局引擎和会话工厂
_engine = None
_async_session_factory = None


def get_engine():
    """获取数据库引擎"""
    global _engine
    if _engine is None:
        settings = get_settings()

        engine_kwargs = {}
        if settings.database.url.startswith("sqlite"):
            # 后台任务与请求可能并发写入，等待锁而不是立即报错
            engine_kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}

        _engine = create_async_engine(
            settings.database.url,
            echo=False,
            **engine_kwargs
        )

    return _engine


def get_session_factory():
    """获取会话工厂"""
    global _async_session_factory
    if _async_session_factory is None:
        _async_session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _async_session_factory


async def init_db():
    """初始化数据库表"""
    engine = get_engine()

    if engine.dialect.name == "sqlite" and ":memory:" not in str(engine.url):
        async with engine.connect() as conn:
            await conn.execute(text("PRAGMA journal_mode=WAL"))
            await conn.commit()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db():
    """关闭数据库连接"""
    global _engine, _async_session_factory
    if _engine:
        await _engine.dispose()
        _engine = None
        _async_session_factory = None
