"""HTTP API tests against the FastAPI app with in-memory services."""

import httpx
import pytest

from api.main import app, init_services
from config.settings import AvatarConfig, Settings
from services.context_retriever import ContextRetriever
from services.rich_text import plain_text
from tests.fakes.fake_services import FakeEmbeddingProvider, FakeVectorIndex


@pytest.fixture
async def client(session_factory, completion_client, embedding_provider, vector_index, task_queue):
    settings = Settings(avatar=AvatarConfig(response_delay_seconds=0))
    init_services(
        app,
        settings,
        session_factory,
        completion_client=completion_client,
        embedding_provider=embedding_provider,
        vector_index=vector_index,
        task_queue=task_queue,
    )
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as http:
        yield http


# ==================== 基础 ====================

@pytest.mark.asyncio
async def test_root_and_health(client):
    root = await client.get("/")
    health = await client.get("/health")

    assert root.status_code == 200
    assert root.json()["name"] == "Avatar Engine"
    assert health.json() == {"status": "healthy", "pending_jobs": 0}


# ==================== 分身状态 ====================

@pytest.mark.asyncio
async def test_unknown_user_reports_inactive_defaults(client):
    response = await client.get("/v1/avatar/user-zed")

    assert response.status_code == 200
    assert response.json() == {
        "user_id": "user-zed",
        "is_active": False,
        "last_active_at": None,
        "personality_profile": None,
    }


@pytest.mark.asyncio
async def test_activate_and_deactivate(client):
    activated = await client.post("/v1/avatar/user-bob/activate")
    assert activated.json() == {"success": True, "is_active": True}
    assert (await client.get("/v1/avatar/user-bob/active")).json() == {"user_id": "user-bob", "is_active": True}

    state = (await client.get("/v1/avatar/user-bob")).json()
    assert state["is_active"] is True
    assert state["last_active_at"] is not None

    deactivated = await client.post("/v1/avatar/user-bob/deactivate")
    assert deactivated.json() == {"success": True, "is_active": False}
    assert (await client.get("/v1/avatar/user-bob/active")).json()["is_active"] is False


@pytest.mark.asyncio
async def test_profile_update_overwrites(client):
    await client.put("/v1/avatar/user-bob/profile", json={"personality_profile": "First."})
    response = await client.put("/v1/avatar/user-bob/profile", json={"personality_profile": "Second."})

    assert response.json() == {"success": True}
    state = (await client.get("/v1/avatar/user-bob")).json()
    assert state["personality_profile"] == "Second."
    assert state["is_active"] is False


@pytest.mark.asyncio
async def test_empty_profile_is_rejected(client):
    response = await client.put("/v1/avatar/user-bob/profile", json={"personality_profile": ""})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_setup_reports_capabilities(client):
    await client.post("/v1/avatar/user-bob/activate")

    body = (await client.get("/v1/avatar/setup")).json()

    assert body["completion_servers"] == []
    assert body["completion_models"] == {"gpt-4o-mini": True, "gpt-4o": True}
    assert body["embedding"] == {"provider": "fake:letters", "configured": True, "detail": "dimension=8"}
    assert body["vector_index"]["provider"] == "fake"
    assert body["vector_index"]["detail"] == "namespace=messages"
    assert body["avatar_states"] == 1
    assert body["pending_jobs"] == 0


@pytest.mark.asyncio
async def test_handle_delivers_reply(client, dm, conversations):
    await client.post("/v1/avatar/user-bob/activate")

    response = await client.post("/v1/avatar/handle", json={
        "user_id": "user-bob",
        "message_text": "Can you send the deck?",
        "conversation_id": dm.conversation.id,
        "workspace_id": "ws-1",
        "receiver_member_id": dm.bob.id,
    })

    body = response.json()
    assert body["success"] is True
    message = await conversations.get_message(int(body["message_id"]))
    assert message.kind == "ai"
    assert message.member_id == dm.bob.id


@pytest.mark.asyncio
async def test_handle_inactive_reports_reason(client, dm):
    response = await client.post("/v1/avatar/handle", json={
        "user_id": "user-bob",
        "message_text": "hello",
        "conversation_id": dm.conversation.id,
        "workspace_id": "ws-1",
        "receiver_member_id": dm.bob.id,
    })

    assert response.json() == {"success": False, "message_id": None, "reason": "Avatar not active"}


# ==================== 消息 ====================

@pytest.mark.asyncio
async def test_create_message_schedules_avatar_reply(client, dm, conversations, task_queue, vector_index):
    await client.post("/v1/avatar/user-bob/activate")

    response = await client.post("/v1/messages", json={
        "workspace_id": "ws-1",
        "member_id": dm.alice.id,
        "conversation_id": dm.conversation.id,
        "body": "Are we still on for 3pm?",
    })

    assert response.status_code == 200
    body = response.json()
    assert plain_text(body["body"]) == "Are we still on for 3pm?"
    assert body["kind"] == "human"
    assert body["avatar_job_id"] == body["id"]
    assert body["avatar_skip_reason"] is None

    await task_queue.drain()

    recent = await conversations.get_recent_messages(dm.conversation.id, 10)
    assert [m.kind for m in recent] == ["human", "ai"]
    assert set(vector_index.ids()) == {str(m.id) for m in recent}


@pytest.mark.asyncio
async def test_create_message_reports_skip_reason(client, dm, task_queue, vector_index):
    response = await client.post("/v1/messages", json={
        "workspace_id": "ws-1",
        "member_id": dm.alice.id,
        "conversation_id": dm.conversation.id,
        "body": "ping",
    })

    body = response.json()
    assert body["avatar_job_id"] is None
    assert body["avatar_skip_reason"] == "Avatar not active"

    await task_queue.drain()
    assert vector_index.ids() == [body["id"]]


@pytest.mark.asyncio
async def test_create_message_unknown_member_or_conversation(client, dm):
    missing_member = await client.post("/v1/messages", json={
        "workspace_id": "ws-1", "member_id": 9999, "body": "hi",
    })
    missing_conversation = await client.post("/v1/messages", json={
        "workspace_id": "ws-1", "member_id": dm.alice.id, "conversation_id": 9999, "body": "hi",
    })

    assert missing_member.status_code == 404
    assert missing_conversation.status_code == 404


@pytest.mark.asyncio
async def test_update_message_reindexes(client, dm, task_queue, vector_index):
    created = (await client.post("/v1/messages", json={
        "workspace_id": "ws-1", "member_id": dm.alice.id, "conversation_id": dm.conversation.id, "body": "noon",
    })).json()
    await task_queue.drain()

    response = await client.patch(f"/v1/messages/{created['id']}", json={"body": "1pm instead"})
    await task_queue.drain()

    assert response.status_code == 200
    assert plain_text(response.json()["body"]) == "1pm instead"
    assert vector_index.store["messages"][created["id"]].metadata["text"] == "1pm instead"
    assert vector_index.store["messages"][created["id"]].metadata["userId"] == "user-alice"


@pytest.mark.asyncio
async def test_delete_message_removes_vector(client, dm, conversations, task_queue, vector_index):
    created = (await client.post("/v1/messages", json={
        "workspace_id": "ws-1", "member_id": dm.alice.id, "conversation_id": dm.conversation.id, "body": "oops",
    })).json()
    await task_queue.drain()

    response = await client.delete(f"/v1/messages/{created['id']}")
    await task_queue.drain()

    assert response.json() == {"success": True, "id": created["id"]}
    assert vector_index.ids() == []
    assert await conversations.get_message(int(created["id"])) is None
    assert (await client.delete(f"/v1/messages/{created['id']}")).status_code == 404


@pytest.mark.asyncio
async def test_patch_unknown_message_is_404(client):
    response = await client.patch("/v1/messages/424242", json={"body": "x"})

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_presence_update(client, dm, conversations):
    response = await client.put(f"/v1/members/{dm.bob.id}/presence", json={"is_online": True})

    assert response.json() == {"member_id": dm.bob.id, "user_id": "user-bob", "is_online": True}
    assert await conversations.is_member_online(dm.bob.id) is True
    assert (await client.put("/v1/members/9999/presence", json={"is_online": True})).status_code == 404


# ==================== 搜索 ====================

@pytest.mark.asyncio
async def test_search_returns_workspace_matches(client, dm, task_queue):
    for text in ("quarterly report draft", "report due friday"):
        await client.post("/v1/messages", json={
            "workspace_id": "ws-1", "member_id": dm.alice.id, "conversation_id": dm.conversation.id, "body": text,
        })
    await task_queue.drain()

    response = await client.post("/v1/search", json={"query": "report", "workspace_id": "ws-1", "top_k": 5})

    body = response.json()
    assert response.status_code == 200
    assert body["total_results"] == 2
    assert {r["text"] for r in body["results"]} == {"quarterly report draft", "report due friday"}
    assert all(r["user_id"] == "user-alice" for r in body["results"])


@pytest.mark.asyncio
async def test_search_failure_is_502(client):
    app.state.retriever = ContextRetriever(FakeEmbeddingProvider(fail=True), FakeVectorIndex())

    response = await client.post("/v1/search", json={"query": "report", "workspace_id": "ws-1"})

    assert response.status_code == 502
    assert "Search failed" in response.json()["detail"]
