import random

import pytest

from simulators.turtle_simulator import INVENTORY_SLOTS, TurtleSimulator, build_status
from turtles.validators import validate_status


def test_build_status_shape():
    status = build_status(online=True, rng=random.Random(7))

    assert validate_status(status) is None
    assert len(status["inventory"]) == INVENTORY_SLOTS
    for slot in status["inventory"]:
        assert slot == [] or (slot["name"].startswith("minecraft:") and 1 <= slot["count"] <= 64)


@pytest.mark.asyncio
async def test_publish_once_covers_every_turtle(fake_transport):
    simulator = TurtleSimulator(fake_transport, ["t1", "t2"], base_topic="quayos/turtles/")

    await simulator.start()
    await simulator.publish_once()

    assert fake_transport.servers == ["mqtt://test.mosquitto.org"]
    assert [topic for topic, _, _ in fake_transport.published] == [
        "quayos/turtles/t1/status",
        "quayos/turtles/t2/status",
    ]
    assert all(retain for _, _, retain in fake_transport.published)


@pytest.mark.asyncio
async def test_stop_deregisters_and_disconnects(fake_transport):
    simulator = TurtleSimulator(fake_transport, ["t1"])
    await simulator.start()

    await simulator.stop()
    await simulator.run_forever()

    assert fake_transport.published == [("quayos/turtles/t1/status", None, True)]
    assert fake_transport.disconnects == 1
