#  cloud-dyndns - Keep cloud DNS records pointed at a dynamic IP address
#  Copyright (C) 2023 Dominick C. Pastore
#
#  This program is free software: you can redistribute it and/or modify
#  it under the terms of the GNU General Public License as published by
#  the Free Software Foundation, either version 3 of the License, or
#  (at your option) any later version.
#
#  This program is distributed in the hope that it will be useful,
#  but WITHOUT ANY WARRANTY; without even the implied warranty of
#  MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
#  GNU General Public License for more details.
#
#  You should have received a copy of the GNU General Public License
#  along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""Rate limiting and caching primitives for DNS backends"""

import contextlib
import threading
import time
import types
from typing import Callable, Dict, Iterable, Iterator, Mapping, Optional, Tuple

from .record import Record

#: Cache key: (name, type)
Key = Tuple[str, str]


class TokenBucket:
    """A token bucket rate limiter. Holds up to ``capacity`` tokens, gaining
    one token every ``interval`` seconds. The bucket starts full.

    Checks never block and are not affected by any request timeout; the
    limiter is purely time-based.

    :param capacity: Maximum number of tokens (burst size)
    :param interval: Seconds to refill one token
    :param clock: Monotonic clock returning seconds. Tests may substitute a
                  fake clock.
    """

    def __init__(self, capacity: int = 1, interval: float = 5.0,
                 clock: Callable[[], float] = time.monotonic):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.capacity: int = capacity
        self.interval: float = interval
        self._clock = clock
        self._lock = threading.Lock()
        # Time at which the bucket will be full again
        self._full_at: float = clock()

    def allow(self) -> bool:
        """Consume one token if one is available.

        :return: ``True`` if a token was consumed, ``False`` if the caller is
                 being rate limited
        """
        with self._lock:
            now = self._clock()
            if now < self._full_at - (self.capacity - 1) * self.interval:
                return False
            self._full_at = max(self._full_at, now) + self.interval
            return True


class RWLock:
    """A reader/writer lock. Any number of readers may hold it at once, but a
    writer holds it exclusively. Waiting writers take priority over new
    readers so a steady stream of lookups cannot starve a refresh.

    Not reentrant.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers: int = 0
        self._writer: bool = False
        self._writers_waiting: int = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        self.acquire_write_if(lambda: True)

    def acquire_write_if(self, predicate: Callable[[], bool]) -> bool:
        """Acquire the lock for writing, but only if ``predicate`` returns
        ``True``.

        The predicate is evaluated under the lock's internal mutex, and a
        successful caller is queued as a waiting writer before that mutex is
        released. Any reader arriving after the predicate succeeded therefore
        waits for this writer.

        :param predicate: Called once, without blocking
        :return: ``True`` if the write lock is now held, ``False`` if the
                 predicate failed and nothing was acquired
        """
        with self._cond:
            if not predicate():
                return False
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
            return True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextlib.contextmanager
    def read_locked(self) -> Iterator[None]:
        """Context manager holding the lock for reading"""
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextlib.contextmanager
    def write_locked(self) -> Iterator[None]:
        """Context manager holding the lock for writing"""
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


class ZoneCache:
    """Snapshot of a whole zone, keyed by ``(name, type)``, together with the
    limiter deciding when the snapshot may be refreshed. The bucket and the
    mapping are only reachable through this class, and the mapping is only
    reachable under its lock.

    Taking a token and claiming the write lock happen as one step, so every
    lookup in the same refill window sees the snapshot built by that window's
    refresh (or the previous one, if the refresh fails).

    :param capacity: Token bucket capacity
    :param interval: Token bucket refill interval, in seconds
    :param clock: Monotonic clock for the token bucket
    """

    def __init__(self, capacity: int = 1, interval: float = 5.0,
                 clock: Callable[[], float] = time.monotonic):
        self._bucket = TokenBucket(capacity, interval, clock)
        self._lock = RWLock()
        self._records: Dict[Key, Record] = dict()

    def lookup(self, name: str, type_: str) -> Optional[Record]:
        """Look up a record in the current snapshot without refreshing

        :return: The record, or ``None`` if the snapshot does not have one
        """
        with self._lock.read_locked():
            return self._records.get((name, type_))

    def lookup_or_refresh(
        self,
        name: str,
        type_: str,
        records: Callable[[], Iterable[Record]],
    ) -> Optional[Record]:
        """Look up a record, first replacing the snapshot with a complete new
        enumeration if the limiter has a token.

        While a refresh runs, the write lock is held, so lookups and other
        refreshes wait until it completes. If the enumeration raises, the old
        snapshot is kept, the token stays consumed and the exception
        propagates unchanged.

        :param name: Record name
        :param type_: Record type
        :param records: Callable returning an iterable of every record in the
                        zone. Only called when a refresh is allowed.
        :return: The record, or ``None`` if the snapshot does not have one
        """
        if not self._lock.acquire_write_if(self._bucket.allow):
            return self.lookup(name, type_)
        try:
            new_records: Dict[Key, Record] = dict()
            for record in records():
                new_records[record.key] = record
            self._records = new_records
        finally:
            self._lock.release_write()
        return new_records.get((name, type_))

    def snapshot(self) -> Mapping[Key, Record]:
        """Return a read-only view of the current snapshot"""
        with self._lock.read_locked():
            return types.MappingProxyType(self._records)

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._records)
