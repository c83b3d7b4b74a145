"""Tests for RAG context retrieval."""

import pytest

from config.settings import RetrievalConfig
from services.cache import SimpleCache
from services.context_retriever import ContextRetriever
from services.errors import ConfigurationError
from services.vector_index import VectorRecord
from tests.fakes.fake_services import FakeEmbeddingProvider, FakeVectorIndex


async def _seed(provider, index, items):
    for record_id, text, workspace in items:
        await index.upsert([VectorRecord(
            id=record_id,
            values=await provider.embed_query(text),
            metadata={"text": text, "workspaceId": workspace, "kind": "message"},
        )])
    provider.calls.clear()


@pytest.mark.asyncio
async def test_joins_matching_texts_with_blank_lines():
    provider, index = FakeEmbeddingProvider(), FakeVectorIndex()
    await _seed(provider, index, [
        ("1", "lunch tomorrow", "ws-1"),
        ("2", "lunch on friday", "ws-1"),
        ("3", "lunch in other workspace", "ws-2"),
    ])
    retriever = ContextRetriever(provider, index, RetrievalConfig(top_k=5))

    context = await retriever.retrieve("lunch?", "ws-1")

    assert set(context.split("\n\n")) == {"lunch tomorrow", "lunch on friday"}
    assert index.queries[0]["filter"] == {"workspaceId": "ws-1", "kind": "message"}
    assert index.queries[0]["top_k"] == 5


@pytest.mark.asyncio
async def test_no_matches_gives_empty_string():
    retriever = ContextRetriever(FakeEmbeddingProvider(), FakeVectorIndex())

    assert await retriever.retrieve("anything", "ws-1") == ""


@pytest.mark.asyncio
async def test_embedding_failure_gives_empty_string():
    retriever = ContextRetriever(FakeEmbeddingProvider(fail=True), FakeVectorIndex())

    assert await retriever.retrieve("anything", "ws-1") == ""


@pytest.mark.asyncio
async def test_index_failure_gives_empty_string():
    retriever = ContextRetriever(FakeEmbeddingProvider(), FakeVectorIndex(fail=True))

    assert await retriever.retrieve("anything", "ws-1") == ""


@pytest.mark.asyncio
async def test_missing_credentials_give_empty_string():
    provider = FakeEmbeddingProvider()

    async def unconfigured(text):
        raise ConfigurationError("no key")

    provider.embed_query = unconfigured
    retriever = ContextRetriever(provider, FakeVectorIndex())

    assert await retriever.retrieve("anything", "ws-1") == ""


@pytest.mark.asyncio
async def test_missing_collaborator_gives_empty_string():
    retriever = ContextRetriever(None, None)

    assert await retriever.retrieve("anything", "ws-1") == ""


@pytest.mark.asyncio
async def test_identical_queries_reuse_cached_embedding():
    provider = FakeEmbeddingProvider()
    retriever = ContextRetriever(provider, FakeVectorIndex(), cache=SimpleCache())

    await retriever.retrieve("same question", "ws-1")
    await retriever.retrieve("same question", "ws-1")

    assert provider.calls == ["same question"]


@pytest.mark.asyncio
async def test_min_score_drops_weak_matches():
    provider, index = FakeEmbeddingProvider(), FakeVectorIndex()
    await _seed(provider, index, [("1", "aaaa", "ws-1"), ("2", "zzzz", "ws-1")])
    retriever = ContextRetriever(provider, index, RetrievalConfig(min_score=0.5))

    assert await retriever.retrieve("aaaa", "ws-1") == "aaaa"


@pytest.mark.asyncio
async def test_disabled_retrieval_skips_lookup():
    provider = FakeEmbeddingProvider()
    retriever = ContextRetriever(provider, FakeVectorIndex(), RetrievalConfig(enabled=False))

    assert await retriever.retrieve("question", "ws-1") == ""
    assert provider.calls == []
