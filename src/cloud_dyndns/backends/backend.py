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

"""Base classes for cloud-dyndns DNS backends"""

import logging
import time
# Note: We are not using abstractmethod the way it is intended. We are using it
# purely to get Sphinx to mark methods as abstract. Thus, we intentionally do
# NOT use ABCMeta or inherit from ABC.
from abc import abstractmethod
from typing import Callable, Iterable, Iterator, List, Optional

from .cache import ZoneCache
from .record import Record


class DNSBackend:
    """Base class for all DNS backends. Sets up the logger and defines the
    operations a synchronizer uses to reconcile records with the current IP
    address.

    :param name: Name of the backend (from config section heading)
    """

    def __init__(self, name: str):
        #: Backend name (from config section heading)
        self.name: str = name

        #: Logger (see standard :mod:`logging` module)
        self.log: logging.Logger = logging.getLogger(
            f'cloud_dyndns.backend.{self.name}'
        )

    @abstractmethod
    def get_record(self, name: str, type_: str,
                   timeout: Optional[float] = None) -> Optional[Record]:
        """Get the record currently associated with a name and type.

        **Must be overridden by subclasses.**

        :param name: Record name
        :param type_: Record type
        :param timeout: Timeout for any provider calls, in seconds
        :return: The matching :class:`Record`, or ``None`` if there is none
        :raises TransportError: if the provider could not be queried
        """
        raise NotImplementedError

    @abstractmethod
    def update_records(self, additions: Iterable[Record],
                       deletions: Iterable[Record],
                       timeout: Optional[float] = None) -> None:
        """Submit a single change adding and deleting the given records.

        Atomicity is whatever the provider offers for a single change.

        **Must be overridden by subclasses.**

        :param additions: Records to add
        :param deletions: Records to delete
        :param timeout: Timeout for any provider calls, in seconds
        :raises TransportError: if the change could not be submitted
        """
        raise NotImplementedError


class RateLimitedCachingBackend(DNSBackend):
    """Base class for backends whose provider can enumerate a whole zone. Keeps
    a snapshot of the zone and refreshes it at most ``capacity`` times per
    ``refill_interval`` seconds, no matter how often :meth:`get_record` is
    called. Lookups between refreshes are served from the snapshot.

    Subclasses implement :meth:`iter_records` and :meth:`submit_change`.

    :meth:`update_records` does not touch the snapshot. After an update,
    :meth:`get_record` keeps returning the old records until the next refresh
    the limiter allows. Callers comparing desired and actual records must
    tolerate that lag.

    :param name: Name of the backend
    :param refill_interval: Seconds between allowed zone refreshes
    :param capacity: Number of refreshes that may happen back to back
    :param clock: Monotonic clock for the limiter
    """

    def __init__(self, name: str, refill_interval: float = 5.0,
                 capacity: int = 1,
                 clock: Callable[[], float] = time.monotonic):
        super().__init__(name)
        self._cache: ZoneCache = ZoneCache(capacity, refill_interval, clock)

    def get_record(self, name: str, type_: str,
                   timeout: Optional[float] = None) -> Optional[Record]:
        """Get a record, refreshing the zone snapshot first if the limiter
        allows it. Being rate limited is not an error: the current snapshot is
        used instead, even if it is empty.

        :return: The matching :class:`Record`, or ``None`` if the snapshot has
                 no record with that name and type
        :raises TransportError: if a refresh was allowed but failed. The
                                previous snapshot is kept.
        """
        return self._cache.lookup_or_refresh(
            name, type_, lambda: self._logged_records(timeout)
        )

    def _logged_records(self, timeout: Optional[float]) -> Iterator[Record]:
        self.log.debug("Refreshing zone records")
        count = 0
        for record in self.iter_records(timeout):
            count += 1
            yield record
        self.log.debug("Zone refreshed with %d records", count)

    def update_records(self, additions: Iterable[Record],
                       deletions: Iterable[Record],
                       timeout: Optional[float] = None) -> None:
        add_list: List[Record] = [Record.coerce(r) for r in additions]
        del_list: List[Record] = [Record.coerce(r) for r in deletions]
        self.log.info("Submitting change with %d additions and %d deletions",
                      len(add_list), len(del_list))
        self.submit_change(add_list, del_list, timeout)

    @abstractmethod
    def iter_records(self, timeout: Optional[float]) -> Iterable[Record]:
        """Enumerate every record in the zone, following pagination until the
        provider has no more pages.

        **Must be overridden by subclasses.**

        :param timeout: Timeout for each provider call, in seconds
        :raises TransportError: if any page could not be fetched
        """
        raise NotImplementedError

    @abstractmethod
    def submit_change(self, additions: List[Record], deletions: List[Record],
                      timeout: Optional[float]) -> None:
        """Send one change request to the provider.

        **Must be overridden by subclasses.**

        :param additions: Records to add, in order
        :param deletions: Records to delete, in order
        :param timeout: Timeout for the provider call, in seconds
        :raises TransportError: if the change could not be submitted
        """
        raise NotImplementedError
