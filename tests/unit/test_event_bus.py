from __future__ import annotations

import asyncio

from gatekeeper.core.events import EventBus


def test_subscribers_receive_events_for_their_key_only() -> None:
    bus = EventBus()

    async def scenario() -> list[dict]:
        received: list[dict] = []

        async def consume() -> None:
            async for event in bus.subscribe("submission:a"):
                received.append(event)
                if len(received) == 2:
                    return

        task = asyncio.create_task(consume())
        while bus.subscriber_count("submission:a") == 0:
            await asyncio.sleep(0)
        await bus.publish("submission:b", {"phase": "ignored"})
        await bus.publish("submission:a", {"phase": "checking"})
        bus.publish_nowait("submission:a", {"phase": "uploading"})
        await asyncio.wait_for(task, 1.0)
        return received

    assert asyncio.run(scenario()) == [{"phase": "checking"}, {"phase": "uploading"}]
    assert bus.subscriber_count("submission:a") == 0


def test_publish_without_subscribers_is_a_no_op() -> None:
    bus = EventBus()
    bus.publish_nowait("nobody", {"x": 1})
    asyncio.run(bus.publish("nobody", {"x": 2}))
    assert bus.subscriber_count("nobody") == 0
