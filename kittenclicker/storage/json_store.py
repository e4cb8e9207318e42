"""Per-user player counts, kept in memory and mirrored to a JSON file.

The file holds an ordered array of ``[userId, record]`` pairs and is rewritten
wholesale after every submission.
"""

from __future__ import annotations

import json
import logging
import os
import time
from typing import Any, Callable, Iterator

from kittenclicker.protocol import Submission, is_number, loads_json

_logger = logging.getLogger(__name__)


class UserStore:
    def __init__(self, path: str, clock: Callable[[], float] = time.time):
        self.path = path
        self._clock = clock
        self._users: dict[str, dict[str, Any]] = {}

    def __len__(self) -> int:
        return len(self._users)

    def __iter__(self) -> Iterator[str]:
        return iter(self._users)

    def get(self, user_id: str) -> dict[str, Any] | None:
        return self._users.get(user_id)

    def ensure_dir(self) -> bool:
        directory = os.path.dirname(os.path.abspath(self.path))
        try:
            os.makedirs(directory, exist_ok=True)
        except OSError:
            _logger.error("Error creating data directory %s", directory, exc_info=True)
            return False
        return True

    def load(self) -> int:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = loads_json(f.read())
        except FileNotFoundError:
            _logger.info("No existing user data file found, starting fresh")
            return 0
        except (OSError, ValueError) as e:
            _logger.warning("Could not read user data from %s (%s), starting fresh", self.path, e)
            return 0

        users = self._parse_pairs(data)
        if users is None:
            _logger.warning("User data in %s is malformed, starting fresh", self.path)
            return 0

        self._users = users
        _logger.info("Loaded %d users from file", len(self._users))
        return len(self._users)

    @staticmethod
    def _parse_pairs(data: Any) -> dict[str, dict[str, Any]] | None:
        if not isinstance(data, list):
            return None
        out: dict[str, dict[str, Any]] = {}
        for item in data:
            if not isinstance(item, list) or len(item) != 2:
                return None
            user_id, record = item
            if not isinstance(user_id, str) or not isinstance(record, dict):
                return None
            out[user_id] = record
        return out

    def dumps(self) -> str:
        return json.dumps([[uid, rec] for uid, rec in self._users.items()], indent=2, allow_nan=False)

    def save(self) -> bool:
        # Serialization errors propagate; only disk errors are absorbed here.
        text = self.dumps()
        try:
            with open(self.path, "w", encoding="utf-8") as f:
                f.write(text)
        except OSError:
            _logger.error("Error saving user data to %s", self.path, exc_info=True)
            return False
        return True

    def submit(self, user_id: Any, player_count: Any = None, extra: dict[str, Any] | None = None) -> dict[str, Any]:
        sub = Submission.parse({**(extra or {}), "userId": user_id, "playerCount": player_count})

        record: dict[str, Any] = {
            "playerCount": sub.playerCount,
            "lastUpdated": int(self._clock() * 1000),
        }
        for k, v in sub.extra.items():
            if k not in record:
                record[k] = v

        previous = self._users.get(sub.userId)
        self._users[sub.userId] = record
        try:
            self.save()
        except Exception:
            # Keep memory and file consistent when the record can't be written.
            if previous is None:
                self._users.pop(sub.userId, None)
            else:
                self._users[sub.userId] = previous
            raise
        return record

    def aggregate(self) -> dict[str, int | float]:
        current = 0
        for rec in self._users.values():
            count = rec.get("playerCount")
            # A sum past float range would serialize as Infinity; leave that count out.
            if is_number(count) and is_number(current + count):
                current += count
        # No separate cumulative counter is tracked; both report the live sum.
        return {"current": current, "total": current}
