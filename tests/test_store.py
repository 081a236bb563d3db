"""Tests for ConversationStore."""

import asyncio

import pytest

from vendorlink.config import Message
from vendorlink.errors import SessionNotFoundError, ValidationError
from vendorlink.store import ConversationStore


class TestEnsureSession:
    @pytest.mark.asyncio
    async def test_creates_once(self):
        store = ConversationStore()
        assert await store.ensure_session("s1") is True
        assert await store.ensure_session("s1") is False
        assert await store.session_ids() == ["s1"]

    @pytest.mark.asyncio
    async def test_must_exist_raises_for_unknown(self):
        store = ConversationStore()
        with pytest.raises(SessionNotFoundError, match="Session not found: nope"):
            await store.ensure_session("nope", must_exist=True)
        assert await store.session_ids() == []

    @pytest.mark.asyncio
    async def test_session_not_found_is_validation_error(self):
        store = ConversationStore()
        with pytest.raises(ValidationError):
            await store.ensure_session("nope", must_exist=True)


class TestHistory:
    @pytest.mark.asyncio
    async def test_pairs_keep_order(self):
        store = ConversationStore()
        await store.ensure_session("s1")
        for i in range(5):
            await store.append("s1", Message(role="user", content=f"q{i}"))
            await store.append("s1", Message(role="assistant", content=f"a{i}"))

        history = await store.snapshot("s1")
        assert len(history) == 10
        assert [m.role for m in history] == ["user", "assistant"] * 5
        assert history[0].content == "q0"
        assert history[-1].content == "a4"

    @pytest.mark.asyncio
    async def test_snapshot_is_a_copy(self):
        store = ConversationStore()
        await store.ensure_session("s1")
        await store.append("s1", Message(role="user", content="hi"))

        snapshot = await store.snapshot("s1")
        snapshot.append(Message(role="assistant", content="injected"))

        assert len(await store.snapshot("s1")) == 1

    @pytest.mark.asyncio
    async def test_snapshot_unknown_is_empty(self):
        assert await ConversationStore().snapshot("missing") == []

    @pytest.mark.asyncio
    async def test_append_unknown_raises(self):
        store = ConversationStore()
        with pytest.raises(SessionNotFoundError):
            await store.append("missing", Message(role="user", content="hi"))

    @pytest.mark.asyncio
    async def test_concurrent_appends_to_separate_sessions(self):
        store = ConversationStore()
        await store.ensure_session("a")
        await store.ensure_session("b")

        async def fill(session_id):
            for i in range(20):
                await store.append(session_id, Message(role="user", content=str(i)))

        await asyncio.gather(fill("a"), fill("b"))

        assert [m.content for m in await store.snapshot("a")] == [str(i) for i in range(20)]
        assert sorted(await store.session_ids()) == ["a", "b"]
