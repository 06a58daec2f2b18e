from __future__ import annotations

import asyncio
import logging

from bridge.session_store import AiConnectionState, SessionStore, TranscriptLine


def _run(coro):
    return asyncio.run(coro)


def test_get_or_create_returns_same_session_under_concurrency():
    async def scenario():
        store = SessionStore()
        sessions = await asyncio.gather(*(store.get_or_create("CA1") for _ in range(10)))
        return store, sessions

    store, sessions = _run(scenario())
    assert len(store) == 1
    assert all(session is sessions[0] for session in sessions)
    assert sessions[0].transcript == []
    assert sessions[0].ai_state is AiConnectionState.CONNECTING
    assert sessions[0].stream_address is None


def test_distinct_call_ids_get_distinct_sessions():
    async def scenario():
        store = SessionStore()
        first = await store.get_or_create("CA1")
        second = await store.get_or_create("CA2")
        return store, first, second

    store, first, second = _run(scenario())
    assert first is not second
    assert len(store) == 2


def test_append_transcript_line_preserves_order():
    async def scenario():
        store = SessionStore()
        session = await store.get_or_create("CA1")
        await store.append_transcript_line("CA1", "user", "X")
        await store.append_transcript_line("CA1", "agent", "Y")
        return session

    session = _run(scenario())
    assert session.transcript == [TranscriptLine("user", "X"), TranscriptLine("agent", "Y")]


def test_append_for_unknown_call_is_logged_not_raised(caplog):
    caplog.set_level(logging.WARNING)

    _run(SessionStore().append_transcript_line("gone", "agent", "late reply"))

    assert "late" in caplog.text


def test_stream_address_is_set_once(caplog):
    caplog.set_level(logging.WARNING)

    async def scenario():
        store = SessionStore()
        session = await store.get_or_create("CA1")
        await store.set_stream_address("CA1", "MZ-first")
        await store.set_stream_address("CA1", "MZ-first")
        await store.set_stream_address("CA1", "MZ-second")
        return session

    session = _run(scenario())
    assert session.stream_address == "MZ-first"
    warnings = [r for r in caplog.records if "second stream address" in r.getMessage()]
    assert len(warnings) == 1


def test_remove_drops_session_and_tolerates_repeat():
    async def scenario():
        store = SessionStore()
        await store.get_or_create("CA1")
        await store.remove("CA1")
        await store.remove("CA1")
        await store.set_ai_state("CA1", AiConnectionState.READY)
        return store

    store = _run(scenario())
    assert "CA1" not in store
    assert store.get("CA1") is None
