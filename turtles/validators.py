# check the shape of turtle status payloads and clean up their inventory


class InvalidStatusError(ValueError):
    """Raised when a status payload does not look like a turtle status."""


def require_keys(obj, keys):
    missing = [k for k in keys if k not in obj]
    return missing

def is_turtle_id(s):
    if not isinstance(s, str) or not s:
        return False
    return "/" not in s and "+" not in s and "#" not in s

def validate_status(payload):
    if not isinstance(payload, dict):
        return "status must be an object"
    miss = require_keys(payload, ["online", "inventory"])
    if miss:
        return f"missing fields: {', '.join(miss)}"
    if not isinstance(payload["online"], bool):
        return "online must be a boolean"
    if not isinstance(payload["inventory"], list):
        return "inventory must be a list of slots"
    return None

def check_status(payload):
    err = validate_status(payload)
    if err:
        raise InvalidStatusError(err)
    return payload

def sanitize_status(payload):
    """Return a copy of ``payload`` ready for the registry.

    Online turtles serialize an empty slot as an empty table, which arrives
    as a JSON array; those slots become ``None``. Offline payloads are
    returned untouched.
    """
    check_status(payload)
    if not payload["online"]:
        return payload
    inventory = [None if isinstance(slot, list) else slot for slot in payload["inventory"]]
    return dict(payload, inventory=inventory)
