"""JSON column helpers for bodies and payloads stored as TEXT."""

import json
from typing import Any


def dump_json(value: Any) -> str:
    """Serialize deterministically so identical bodies produce identical rows."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


def load_json_object(raw: str | dict | None) -> dict[str, Any]:
    """Parse a dict-valued column. Empty dict for None or empty string.

    Raises ValueError for non-dict JSON: a corrupt row should not be
    silently projected as empty.
    """
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        return raw
    parsed = json.loads(raw)
    if not isinstance(parsed, dict):
        raise ValueError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed
