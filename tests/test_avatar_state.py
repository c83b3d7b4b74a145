"""Tests for the avatar state store."""

import pytest

from database.models import AvatarState
from sqlalchemy import select, func


async def _row_count(session_factory, user_id):
    async with session_factory() as session:
        result = await session.execute(
            select(func.count(AvatarState.id)).where(AvatarState.user_id == user_id)
        )
        return result.scalar_one()


@pytest.mark.asyncio
async def test_absent_state_is_inactive(state_store):
    assert await state_store.get_state("nobody") is None
    assert await state_store.is_active("nobody") is False


@pytest.mark.asyncio
async def test_activate_is_idempotent(state_store, session_factory):
    await state_store.activate("user-bob")
    await state_store.activate("user-bob")

    state = await state_store.get_state("user-bob")
    assert state.is_active is True
    assert state.last_active_at is not None
    assert await _row_count(session_factory, "user-bob") == 1


@pytest.mark.asyncio
async def test_deactivate_creates_inactive_row(state_store):
    await state_store.deactivate("user-carol")

    state = await state_store.get_state("user-carol")
    assert state is not None
    assert state.is_active is False
    assert state.last_active_at is None


@pytest.mark.asyncio
async def test_deactivate_after_activate(state_store):
    await state_store.activate("user-bob")
    await state_store.deactivate("user-bob")

    assert await state_store.is_active("user-bob") is False


@pytest.mark.asyncio
async def test_profile_only_row_starts_inactive(state_store):
    assert await state_store.set_personality_profile("user-dan", "Dry humour.") is True

    state = await state_store.get_state("user-dan")
    assert state.personality_profile == "Dry humour."
    assert state.is_active is False


@pytest.mark.asyncio
async def test_profile_without_overwrite_keeps_existing(state_store):
    await state_store.set_personality_profile("user-dan", "First.")

    assert await state_store.set_personality_profile("user-dan", "Second.", overwrite=False) is False
    assert (await state_store.get_state("user-dan")).personality_profile == "First."

    await state_store.set_personality_profile("user-dan", "Explicit update.")
    assert (await state_store.get_state("user-dan")).personality_profile == "Explicit update."


@pytest.mark.asyncio
async def test_touch_refreshes_last_active(state_store):
    await state_store.activate("user-bob")
    before = (await state_store.get_state("user-bob")).last_active_at

    await state_store.touch("user-bob")
    after = (await state_store.get_state("user-bob")).last_active_at

    assert after >= before
    await state_store.touch("unknown-user")
    assert await state_store.get_state("unknown-user") is None


@pytest.mark.asyncio
async def test_count(state_store):
    await state_store.activate("a")
    await state_store.deactivate("b")

    assert await state_store.count() == 2
