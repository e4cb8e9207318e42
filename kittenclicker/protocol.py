"""Submission schema + wire encoding.

Submission body:
  {"userId": "abc", "playerCount": 3, ...extra}

Stream event:
  data: {"current":3,"total":3}\\n\\n
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from typing import Any


class InvalidSubmission(Exception):
    pass


def is_number(v: Any) -> bool:
    # JSON true/false decode to bool, which is an int subclass; 1e400 decodes to inf.
    if isinstance(v, bool):
        return False
    if isinstance(v, int):
        return True
    return isinstance(v, float) and math.isfinite(v)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant {name}")


def loads_json(text: str | bytes) -> Any:
    """Strict ``json.loads``: ``NaN``/``Infinity`` tokens are errors."""
    if isinstance(text, bytes):
        text = text.decode("utf-8", errors="strict")
    return json.loads(text, parse_constant=_reject_constant)


def loads_body(raw: str | bytes) -> dict[str, Any]:
    """Decode a request body; anything but a JSON object becomes ``{}``."""
    if not raw:
        return {}
    try:
        # UnicodeDecodeError is a ValueError.
        obj = loads_json(raw)
    except ValueError:
        return {}
    if not isinstance(obj, dict):
        return {}
    return obj


@dataclass
class Submission:
    userId: str
    playerCount: int | float
    extra: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def parse(d: dict[str, Any]) -> "Submission":
        user_id = d.get("userId")
        if not isinstance(user_id, str) or not user_id:
            raise InvalidSubmission("Missing or invalid userId")
        player_count = d.get("playerCount")
        extra = {k: v for k, v in d.items() if k not in ("userId", "playerCount")}
        return Submission(
            userId=user_id,
            playerCount=player_count if is_number(player_count) else 0,
            extra=extra,
        )


def sse_event(data: dict[str, Any]) -> bytes:
    return f"data: {json.dumps(data, separators=(',', ':'))}\n\n".encode("utf-8")
