"""Tests for AgentSessionRegistry."""

import asyncio

import pytest

from codenova.domain.model.agent.agent_session import AgentSession


def make_session(stream_id: str = "s1") -> AgentSession:
    return AgentSession(stream_id=stream_id, working_directory="/tmp")


@pytest.mark.unit
class TestAgentSessionRegistry:
    def test_acquire(self, registry):
        session = make_session()

        assert registry.acquire(session) is True
        assert registry.is_active("s1")
        assert registry.get("s1") is session
        assert registry.list() == ["s1"]

    def test_duplicate_acquire_is_rejected(self, registry):
        first = make_session()
        registry.acquire(first)

        assert registry.acquire(make_session()) is False
        assert registry.get("s1") is first
        assert len(registry) == 1
        assert registry.get_stats()["total_rejected"] == 1

    def test_independent_streams(self, registry):
        assert registry.acquire(make_session("a"))
        assert registry.acquire(make_session("b"))

        assert sorted(registry.list()) == ["a", "b"]

    def test_release(self, registry):
        session = make_session()
        registry.acquire(session)

        assert registry.release("s1") is True
        assert not registry.is_active("s1")
        assert registry.release("s1") is False

    def test_release_with_stale_session_keeps_newer_entry(self, registry):
        old = make_session()
        registry.acquire(old)
        registry.abort("s1")
        newer = make_session()
        registry.acquire(newer)

        assert registry.release("s1", old) is False
        assert registry.get("s1") is newer

    @pytest.mark.asyncio
    async def test_abort_signals_handle_and_releases(self, registry):
        session = make_session()
        registry.acquire(session)
        task = asyncio.create_task(asyncio.sleep(10))
        session.abort_handle.attach(task)

        assert registry.abort("s1") is True

        assert session.abort_handle.aborted
        assert not registry.is_active("s1")
        with pytest.raises(asyncio.CancelledError):
            await task

    def test_abort_unknown_stream(self, registry):
        assert registry.abort("nope") is False
