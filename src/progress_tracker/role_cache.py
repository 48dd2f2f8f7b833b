from __future__ import annotations

import logging
import time
from typing import Callable, Generic, Hashable, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

DEFAULT_TTL_SECONDS = 300.0


class _TTLMap(Generic[K, V]):
    """Small expiring map; entries older than `ttl` seconds are refetched."""

    def __init__(self, ttl: float, clock: Callable[[], float]):
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[K, tuple[float, V]] = {}

    def get(self, key: K, fetch: Callable[[K], V]) -> V:
        now = self._clock()
        entry = self._entries.get(key)
        if entry is not None and now - entry[0] < self.ttl:
            return entry[1]
        value = fetch(key)
        self._entries[key] = (now, value)
        return value

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class RoleCache:
    """
    Role name <-> role id lookups for the authorization collaborator.

    Owned and passed around by the caller; nothing is cached at module level.
    Names are compared lower-cased. Entries expire after `ttl` seconds and
    `invalidate()` drops everything, for example after roles are edited.
    """

    def __init__(
        self,
        fetch_name_by_id: Callable[[str], str | None],
        fetch_id_by_name: Callable[[str], str | None],
        ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._fetch_name_by_id = fetch_name_by_id
        self._fetch_id_by_name = fetch_id_by_name
        self._names: _TTLMap[str, str | None] = _TTLMap(ttl, clock)
        self._ids: _TTLMap[str, str | None] = _TTLMap(ttl, clock)

    def role_name(self, role_id: object) -> str | None:
        if role_id is None or role_id == "":
            return None
        name = self._names.get(str(role_id), self._fetch_name_by_id)
        return name.lower() if name else None

    def role_id(self, role_name: str | None) -> str | None:
        if not role_name:
            return None
        return self._ids.get(role_name.lower(), self._fetch_id_by_name)

    def invalidate(self) -> None:
        logger.debug("Role cache invalidated (%d names, %d ids)", len(self._names), len(self._ids))
        self._names.clear()
        self._ids.clear()
