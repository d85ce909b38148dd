"""Broadcast hub behaviour, driven on a real event loop."""

import asyncio
import json

from cafe.broadcast import BroadcastHub, format_event


def _parse(frame: str) -> tuple[str, dict]:
    event_line, data_line = frame.strip().split("\n")
    assert event_line.startswith("event: ")
    assert data_line.startswith("data: ")
    return event_line[len("event: "):], json.loads(data_line[len("data: "):])


async def _drain(subscriber) -> list[tuple[str, dict]]:
    # Let pending call_soon_threadsafe callbacks run first.
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    frames = []
    while not subscriber.queue.empty():
        frames.append(_parse(subscriber.queue.get_nowait()))
    return frames


def test_format_event():
    assert format_event("order-update", {"id": "a"}) == 'event: order-update\ndata: {"id":"a"}\n\n'


def test_init_comes_first_then_events_in_order():
    async def scenario():
        hub = BroadcastHub(heartbeat_interval=60)
        subscriber = hub.subscribe_admin()
        hub.publish_admin("order-create", {"n": 1})
        hub.publish_admin("order-update", {"n": 2})
        frames = await _drain(subscriber)
        hub.unsubscribe(subscriber)
        return frames

    frames = asyncio.run(scenario())
    assert frames == [
        ("init", {"ok": True}),
        ("order-create", {"n": 1}),
        ("order-update", {"n": 2}),
    ]


def test_late_subscriber_sees_no_history():
    async def scenario():
        hub = BroadcastHub(heartbeat_interval=60)
        hub.publish_admin("order-create", {"n": 1})
        subscriber = hub.subscribe_admin()
        hub.publish_admin("order-create", {"n": 2})
        frames = await _drain(subscriber)
        hub.unsubscribe(subscriber)
        return frames

    frames = asyncio.run(scenario())
    assert frames == [("init", {"ok": True}), ("order-create", {"n": 2})]


def test_order_scopes_are_isolated():
    async def scenario():
        hub = BroadcastHub(heartbeat_interval=60)
        admin = hub.subscribe_admin()
        first = hub.subscribe_order("a")
        second = hub.subscribe_order("b")
        delivered = hub.publish_order("a", "order-update", {"id": "a"})
        frames = (await _drain(admin), await _drain(first), await _drain(second))
        for subscriber in (admin, first, second):
            hub.unsubscribe(subscriber)
        return delivered, frames

    delivered, (admin, first, second) = asyncio.run(scenario())
    assert delivered == 1
    assert admin == [("init", {"ok": True})]
    assert first == [("init", {"ok": True}), ("order-update", {"id": "a"})]
    assert second == [("init", {"ok": True})]


def test_unsubscribe_drops_empty_order_entry_and_cancels_heartbeat():
    async def scenario():
        hub = BroadcastHub(heartbeat_interval=60)
        one = hub.subscribe_order("a")
        two = hub.subscribe_order("a")
        heartbeat = one.heartbeat
        hub.unsubscribe(one)
        assert hub.order_count("a") == 1
        hub.unsubscribe(two)
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        return hub.tracked_orders(), heartbeat.cancelled()

    tracked, cancelled = asyncio.run(scenario())
    assert tracked == set()
    assert cancelled


def test_heartbeat_sends_ping_with_timestamp():
    async def scenario():
        hub = BroadcastHub(heartbeat_interval=0.01)
        subscriber = hub.subscribe_admin()
        init = await asyncio.wait_for(subscriber.next_frame(), timeout=1)
        ping = await asyncio.wait_for(subscriber.next_frame(), timeout=1)
        hub.unsubscribe(subscriber)
        return _parse(init), _parse(ping)

    init, (event, payload) = asyncio.run(scenario())
    assert init[0] == "init"
    assert event == "ping"
    assert isinstance(payload["t"], int)


def test_failing_subscriber_does_not_block_others():
    async def scenario():
        hub = BroadcastHub(heartbeat_interval=60)
        broken = hub.subscribe_admin()
        healthy = hub.subscribe_admin()

        def explode(frame):
            raise RuntimeError("connection gone")

        broken.deliver = explode
        delivered = hub.publish_admin("order-delete", {"id": "x"})
        frames = await _drain(healthy)
        # Only an explicit unsubscribe removes a subscriber.
        still_registered = hub.admin_count()
        hub.unsubscribe(broken)
        hub.unsubscribe(healthy)
        return delivered, frames, still_registered

    delivered, frames, still_registered = asyncio.run(scenario())
    assert delivered == 1
    assert frames[-1] == ("order-delete", {"id": "x"})
    assert still_registered == 2


def test_publish_from_worker_thread():
    async def scenario():
        hub = BroadcastHub(heartbeat_interval=60)
        subscriber = hub.subscribe_order("a")
        await asyncio.to_thread(hub.publish_order, "a", "order-update", {"id": "a"})
        frames = await _drain(subscriber)
        hub.unsubscribe(subscriber)
        return frames

    frames = asyncio.run(scenario())
    assert frames[-1] == ("order-update", {"id": "a"})


def test_close_releases_everything():
    async def scenario():
        hub = BroadcastHub(heartbeat_interval=60)
        admin = hub.subscribe_admin()
        order = hub.subscribe_order("a")
        heartbeats = [admin.heartbeat, order.heartbeat]
        hub.close()
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        return hub.admin_count(), hub.tracked_orders(), [task.cancelled() for task in heartbeats]

    admins, tracked, cancelled = asyncio.run(scenario())
    assert admins == 0
    assert tracked == set()
    assert cancelled == [True, True]
