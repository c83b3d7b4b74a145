"""Pytest configuration and fixtures."""

from types import SimpleNamespace

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import config.settings as settings_module
from config.settings import AvatarConfig, Settings
from database.models import Base
from services.avatar_pipeline import AvatarResponder
from services.avatar_state import AvatarStateStore
from services.context_retriever import ContextRetriever
from services.conversation import ConversationService
from services.personality import PersonalityProfiler
from services.response_generator import ResponseGenerator
from services.scheduler import DeferredTaskQueue
from services.vector_sync import MessageVectorSynchronizer
from tests.fakes.fake_services import FakeCompletionClient, FakeEmbeddingProvider, FakeVectorIndex


@pytest.fixture(autouse=True)
def default_settings(monkeypatch):
    """Keep tests independent of config/servers.yaml and the environment."""
    for name in ("OPENAI_API_KEY", "GEMINI_API_KEY", "PINECONE_API_KEY", "PINECONE_INDEX",
                 "PINECONE_ENVIRONMENT", "PINECONE_HOST"):
        monkeypatch.delenv(name, raising=False)
    settings = Settings()
    monkeypatch.setattr(settings_module, "_settings", settings)
    return settings


@pytest.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def conversations(session_factory):
    return ConversationService(session_factory)


@pytest.fixture
def state_store(session_factory):
    return AvatarStateStore(session_factory)


@pytest.fixture
async def task_queue():
    queue = DeferredTaskQueue()
    yield queue
    await queue.stop()


@pytest.fixture
def embedding_provider():
    return FakeEmbeddingProvider()


@pytest.fixture
def vector_index():
    return FakeVectorIndex()


@pytest.fixture
def completion_client():
    return FakeCompletionClient()


@pytest.fixture
def avatar_config():
    return AvatarConfig(response_delay_seconds=0)


@pytest.fixture
def vector_sync(embedding_provider, vector_index, task_queue):
    return MessageVectorSynchronizer(embedding_provider, vector_index, task_queue)


@pytest.fixture
def retriever(embedding_provider, vector_index, avatar_config):
    return ContextRetriever(embedding_provider, vector_index, avatar_config.retrieval)


@pytest.fixture
def responder(conversations, state_store, retriever, completion_client, task_queue, vector_sync, avatar_config):
    return AvatarResponder(
        conversations=conversations,
        state_store=state_store,
        profiler=PersonalityProfiler(completion_client, avatar_config.profile),
        retriever=retriever,
        generator=ResponseGenerator(completion_client, avatar_config.completion),
        task_queue=task_queue,
        vector_sync=vector_sync,
        config=avatar_config,
    )


@pytest.fixture
async def dm(conversations):
    """Alice (online) and Bob (offline) in a direct conversation."""
    alice = await conversations.create_member("user-alice", "ws-1", name="Alice", is_online=True)
    bob = await conversations.create_member("user-bob", "ws-1", name="Bob", is_online=False)
    conversation = await conversations.create_conversation("ws-1", alice.id, bob.id)
    return SimpleNamespace(alice=alice, bob=bob, conversation=conversation)
