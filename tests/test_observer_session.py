from __future__ import annotations

import asyncio
import json

import pytest

from errors import CapacityExceeded, DeliveryFailure
from models.event_models import ChangeEvent
from observer_session import ObserverSession, SessionState
from status_hub import BroadcastHub


class FakeWebSocket:
    def __init__(self) -> None:
        self.sent: list[str] = []
        self.inbox: asyncio.Queue[dict] = asyncio.Queue()
        self.fail = False

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise RuntimeError("connection reset")
        self.sent.append(data)

    async def receive(self) -> dict:
        return await self.inbox.get()

    def disconnect(self) -> None:
        self.inbox.put_nowait({"type": "websocket.disconnect", "code": 1000})


async def _until(predicate, timeout: float = 1.0) -> None:
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.001)
    await asyncio.wait_for(_poll(), timeout)


@pytest.mark.asyncio
async def test_frames_are_sent_in_order_until_disconnect() -> None:
    ws = FakeWebSocket()
    session = ObserverSession(ws)
    assert session.state is SessionState.CONNECTING

    session.deliver("a")
    session.deliver("b")
    task = asyncio.create_task(session.run())
    await _until(lambda: len(ws.sent) == 2)
    assert session.state is SessionState.ACTIVE

    session.deliver("c")
    await _until(lambda: len(ws.sent) == 3)
    ws.disconnect()
    await asyncio.wait_for(task, 1.0)

    assert ws.sent == ["a", "b", "c"]
    assert session.state is SessionState.CLOSED


@pytest.mark.asyncio
async def test_inbound_messages_are_ignored() -> None:
    ws = FakeWebSocket()
    session = ObserverSession(ws)
    task = asyncio.create_task(session.run())

    ws.inbox.put_nowait({"type": "websocket.receive", "text": "ping"})
    ws.inbox.put_nowait({"type": "websocket.receive", "bytes": b"\x00"})
    session.deliver("only")
    await _until(lambda: ws.sent == ["only"])
    assert not task.done()

    ws.disconnect()
    await asyncio.wait_for(task, 1.0)
    assert ws.sent == ["only"]


@pytest.mark.asyncio
async def test_deliver_after_close_fails() -> None:
    session = ObserverSession(FakeWebSocket())
    session.close()

    with pytest.raises(DeliveryFailure):
        session.deliver("late")


@pytest.mark.asyncio
async def test_full_outbox_is_a_delivery_failure() -> None:
    session = ObserverSession(FakeWebSocket(), queue_size=1)
    session.deliver("first")

    with pytest.raises(DeliveryFailure):
        session.deliver("second")


@pytest.mark.asyncio
async def test_send_error_closes_session() -> None:
    ws = FakeWebSocket()
    ws.fail = True
    session = ObserverSession(ws)
    session.deliver("x")

    await asyncio.wait_for(session.run(), 1.0)

    assert session.state is SessionState.CLOSED
    with pytest.raises(DeliveryFailure):
        session.deliver("y")


@pytest.mark.asyncio
async def test_close_from_hub_ends_run() -> None:
    session = ObserverSession(FakeWebSocket())
    task = asyncio.create_task(session.run())
    await asyncio.sleep(0)

    session.close()
    await asyncio.wait_for(task, 1.0)

    assert session.state is SessionState.CLOSED


@pytest.mark.asyncio
async def test_run_after_close_returns_immediately() -> None:
    ws = FakeWebSocket()
    session = ObserverSession(ws)
    session.close()

    await asyncio.wait_for(session.run(), 1.0)

    assert session.state is SessionState.CLOSED
    assert ws.sent == []


@pytest.mark.asyncio
async def test_registered_session_gets_init_then_updates(store, hub: BroadcastHub) -> None:
    ws = FakeWebSocket()
    session = ObserverSession(ws)
    hub.register(session)
    task = asyncio.create_task(session.run())

    snapshot = store.apply_arm_report({"status": "error"})
    hub.publish(ChangeEvent(type="arm_update", ts_ms=snapshot.last_update_ms,
                            state=snapshot, payload=snapshot.arm.latest))
    await _until(lambda: len(ws.sent) == 2)

    ws.disconnect()
    await asyncio.wait_for(task, 1.0)
    hub.unregister(session)

    types = [json.loads(f)["type"] for f in ws.sent]
    assert types == ["init", "arm_update"]
    assert json.loads(ws.sent[1])["state"]["counts"]["errors"] == 1
    assert len(hub) == 0


@pytest.mark.asyncio
async def test_slow_observer_does_not_stall_publish(store, hub: BroadcastHub) -> None:
    class StalledWebSocket(FakeWebSocket):
        async def send_text(self, data: str) -> None:
            await asyncio.Event().wait()

    stalled = ObserverSession(StalledWebSocket(), queue_size=2)
    ws = FakeWebSocket()
    healthy = ObserverSession(ws)
    hub.register(stalled)
    hub.register(healthy)
    tasks = [asyncio.create_task(stalled.run()), asyncio.create_task(healthy.run())]

    for i in range(4):
        snapshot = store.apply_vision_report({"seq": i, "recyclable": True})
        hub.publish(ChangeEvent(type="vision_update", ts_ms=snapshot.last_update_ms,
                                state=snapshot, payload=snapshot.vision.latest))

    await _until(lambda: len(ws.sent) == 5)
    assert stalled.state is SessionState.CLOSED
    assert len(hub) == 1

    ws.disconnect()
    await asyncio.wait_for(asyncio.gather(*tasks), 1.0)


@pytest.mark.asyncio
async def test_attach_to_full_hub_closes_session(hub: BroadcastHub) -> None:
    for _ in range(hub.capacity):
        ObserverSession(FakeWebSocket()).attach(hub)
    ws = FakeWebSocket()
    session = ObserverSession(ws)

    with pytest.raises(CapacityExceeded):
        session.attach(hub)

    assert session.state is SessionState.CLOSED
    assert len(hub) == hub.capacity
    await asyncio.wait_for(session.run(), 1.0)
    assert ws.sent == []
