import asyncio

import pytest

from src.notes_backend.services.transcription.exceptions import SessionNotFound

WORKSPACE_ID = "123e4567-e89b-12d3-a456-426614174000"


async def test_get_or_create_returns_the_same_session(store):
    session, created = store.get_or_create("s-1", WORKSPACE_ID)
    assert created is True
    assert session.chunk_count == 0
    assert session.accumulated_text == ""
    assert session.workspace_id == WORKSPACE_ID
    assert session.created_at.tzinfo is not None

    again, created_again = store.get_or_create("s-1", "another-workspace")
    assert created_again is False
    assert again is session
    assert again.workspace_id == WORKSPACE_ID
    assert len(store) == 1


async def test_get_returns_a_snapshot(store):
    store.get_or_create("s-1", WORKSPACE_ID)

    snapshot = store.get("s-1")
    snapshot.chunk_count = 99

    assert store.get("s-1").chunk_count == 0
    assert store.get("missing") is None


async def test_mutate_updates_in_place(store):
    store.get_or_create("s-1", WORKSPACE_ID)

    def _bump(session):
        session.chunk_count += 1
        session.append_text("Hello")
        return session.chunk_count

    assert store.mutate("s-1", _bump) == 1
    assert store.get("s-1").accumulated_text == "Hello"


async def test_mutate_unknown_session_raises(store):
    with pytest.raises(SessionNotFound):
        store.mutate("missing", lambda session: None)


async def test_evict_is_idempotent(store):
    store.get_or_create("s-1", WORKSPACE_ID)

    assert store.evict("s-1") is True
    assert store.evict("s-1") is False
    assert "s-1" not in store


async def test_scheduled_eviction_can_be_fired_deterministically(store):
    store.get_or_create("s-1", WORKSPACE_ID)

    assert store.schedule_eviction("s-1", delay=60) is True
    assert "s-1" in store
    assert store.scheduler.pending() == ["s-1"]

    fired = await store.scheduler.run_pending()

    assert fired == 1
    assert "s-1" not in store
    assert store.scheduler.pending() == []


async def test_eviction_keeps_the_first_deadline(store):
    store.get_or_create("s-1", WORKSPACE_ID)

    assert store.schedule_eviction("s-1", delay=60) is True
    assert store.schedule_eviction("s-1", delay=60) is False
    assert store.scheduler.pending() == ["s-1"]


async def test_eviction_of_missing_session_is_silent(store):
    store.schedule_eviction("never-created", delay=60)
    assert await store.scheduler.run_pending() == 1


async def test_eviction_fires_after_delay(store):
    store.get_or_create("s-1", WORKSPACE_ID)
    store.schedule_eviction("s-1", delay=0)

    for _ in range(10):
        if "s-1" not in store:
            break
        await asyncio.sleep(0)

    assert "s-1" not in store


async def test_cancelled_eviction_leaves_session(store):
    store.get_or_create("s-1", WORKSPACE_ID)
    store.schedule_eviction("s-1", delay=60)

    assert store.scheduler.cancel("s-1") is True
    assert await store.scheduler.run_pending() == 0
    assert "s-1" in store


async def test_session_lock_serializes_one_session_only(store):
    order = []

    async def worker(session_id, label):
        async with store.session_lock(session_id):
            order.append(f"{label}-start")
            await asyncio.sleep(0.01)
            order.append(f"{label}-end")

    await asyncio.gather(worker("s-1", "a"), worker("s-1", "b"), worker("s-2", "c"))

    assert order.index("a-end") < order.index("b-start")
    # s-2 runs alongside s-1 instead of waiting for it.
    assert order.index("c-start") < order.index("a-end")
    assert store._locks == {}


async def test_close_cancels_pending_evictions(store):
    store.get_or_create("s-1", WORKSPACE_ID)
    store.schedule_eviction("s-1", delay=60)

    await store.close()

    assert store.scheduler.pending() == []
    assert "s-1" in store
