import pytest

from turtles.turtle_manager import TurtleManager
from turtles.validators import InvalidStatusError, is_turtle_id, sanitize_status, validate_status


def test_get_turtle_creates_once():
    turtles = TurtleManager()

    first = turtles.get_turtle("t1")
    second = turtles.get_turtle("t1")

    assert first is second
    assert turtles.turtle_ids() == ["t1"]
    assert first.status is None


def test_delete_turtle_is_idempotent():
    turtles = TurtleManager()
    turtles.get_turtle("t1")

    assert turtles.delete_turtle("t1") is True
    assert turtles.delete_turtle("t1") is False
    assert turtles.delete_turtle("never_seen") is False
    assert turtles.find("t1") is None


@pytest.mark.asyncio
async def test_update_status_stores_copy():
    turtles = TurtleManager()
    status = {"online": True, "inventory": [{"name": "axe"}]}

    await turtles.get_turtle("t1").update_status(status)
    status["inventory"].append({"name": "pick"})

    record = turtles.find("t1").to_dict()
    assert record["status"] == {"online": True, "inventory": [{"name": "axe"}]}
    assert record["updates"] == 1
    assert record["last_update"] > 0


@pytest.mark.asyncio
async def test_update_status_rejects_malformed_payload():
    turtle = TurtleManager().get_turtle("t1")

    with pytest.raises(InvalidStatusError):
        await turtle.update_status({"online": True})

    assert turtle.status is None


@pytest.mark.asyncio
async def test_snapshot_is_isolated():
    turtles = TurtleManager()
    await turtles.get_turtle("t1").update_status({"online": False, "inventory": [None]})

    snap = turtles.snapshot()
    snap["t1"]["status"]["inventory"].append("junk")

    assert turtles.find("t1").status == {"online": False, "inventory": [None]}
    assert set(snap) == {"t1"}


def test_validate_status_messages():
    assert validate_status({"online": True, "inventory": []}) is None
    assert validate_status({"online": True}) == "missing fields: inventory"
    assert validate_status({}) == "missing fields: online, inventory"
    assert validate_status(None) == "status must be an object"
    assert validate_status({"online": 1, "inventory": []}) == "online must be a boolean"


def test_sanitize_status_keeps_extra_fields():
    payload = {"online": True, "inventory": [[], None, {"name": "coal"}], "fuel": 80}

    assert sanitize_status(payload) == {"online": True, "inventory": [None, None, {"name": "coal"}], "fuel": 80}


def test_is_turtle_id():
    assert is_turtle_id("t42")
    assert not is_turtle_id("")
    assert not is_turtle_id("a/b")
    assert not is_turtle_id("+")
    assert not is_turtle_id(42)


def test_get_turtle_rejects_wildcard_ids():
    with pytest.raises(ValueError):
        TurtleManager().get_turtle("#")
