from __future__ import annotations

import asyncio

from starlette.websockets import WebSocketState

from notify.notifier import WebSocketNotifier


class FakeObserver:
    def __init__(self, *, connected: bool = True, fail: bool = False) -> None:
        state = WebSocketState.CONNECTED if connected else WebSocketState.DISCONNECTED
        self.client_state = state
        self.application_state = state
        self._fail = fail
        self.received: list[dict] = []

    async def send_json(self, data) -> None:
        if self._fail:
            raise RuntimeError("socket went away")
        self.received.append(data)


def _run(coro):
    return asyncio.run(coro)


def test_broadcast_reaches_open_observers_and_skips_closed_ones():
    open_observer = FakeObserver()
    closed_observer = FakeObserver(connected=False)

    async def scenario():
        notifier = WebSocketNotifier()
        await notifier.register("a", open_observer)
        await notifier.register("b", closed_observer)
        await notifier.broadcast({"type": "new_message", "conversation_id": 1, "message": {"content": "hi"}})

    _run(scenario())
    assert open_observer.received == [{"type": "new_message", "conversation_id": 1, "message": {"content": "hi"}}]
    assert closed_observer.received == []


def test_failing_observer_does_not_stop_broadcast():
    failing = FakeObserver(fail=True)
    healthy = FakeObserver()

    async def scenario():
        notifier = WebSocketNotifier()
        await notifier.register("bad", failing)
        await notifier.register("good", healthy)
        await notifier.broadcast({"type": "new_conversation"})

    _run(scenario())
    assert healthy.received == [{"type": "new_conversation"}]


def test_unregister_only_removes_matching_channel():
    first = FakeObserver()
    second = FakeObserver()

    async def scenario():
        notifier = WebSocketNotifier()
        await notifier.register("a", first)
        await notifier.register("a", second)
        await notifier.unregister("a", first)
        ids_after_stale_unregister = notifier.client_ids
        await notifier.unregister("a", second)
        return ids_after_stale_unregister, notifier.client_ids

    after_stale, after_real = _run(scenario())
    assert after_stale == ["a"]
    assert after_real == []
