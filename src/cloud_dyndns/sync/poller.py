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

"""Poller that checks the current public IP address and broadcasts it"""

import logging
import queue
import threading
from typing import Dict, List, Optional

from ..exceptions import ConfigError, IPDetectionError
from .ipsource import ExternalIPSource, IPType, WebConsensus


class Subscription:
    """Receiving end of a poller subscription. Holds at most one address that
    has not been consumed yet.

    Delivery is latest-unconsumed-value, not guaranteed: while an address is
    waiting here, newer addresses from the poller are dropped for this
    subscriber. Consumers that fall behind see the oldest address they have
    not read, and then the next one polled after they read it.
    """

    def __init__(self):
        self._queue: 'queue.Queue[str]' = queue.Queue(maxsize=1)

    def get(self, block: bool = True, timeout: Optional[float] = None) -> str:
        """Take the waiting address, blocking until one arrives if ``block``
        is true.

        :raises queue.Empty: if no address arrived (non-blocking, or timed
                             out)
        """
        return self._queue.get(block, timeout)

    def get_nowait(self) -> str:
        """Take the waiting address without blocking.

        :raises queue.Empty: if there is none
        """
        return self._queue.get_nowait()

    def empty(self) -> bool:
        """Whether no address is waiting"""
        return self._queue.empty()

    def _offer(self, address: str) -> bool:
        """Deliver an address if the slot is free. Never blocks.

        :return: ``True`` if delivered, ``False`` if dropped
        """
        try:
            self._queue.put_nowait(address)
        except queue.Full:
            return False
        return True


class IPAddressPoller:
    """Periodically checks the current public IP address of one family and
    broadcasts it to every subscriber.

    :param name: Name of the poller (from config section heading)
    :param config: Dict of config options for this poller
    :param source: Where to get the current address. Defaults to a
                   :class:`~cloud_dyndns.sync.ipsource.WebConsensus` built
                   from the same config.

    :raises ConfigError: if the configuration is invalid
    """

    def __init__(self, name: str, config: Dict[str, str],
                 source: Optional[ExternalIPSource] = None):
        #: Poller name (from config section heading)
        self.name: str = name

        #: Logger (see standard :mod:`logging` module)
        self.log = logging.getLogger(f'cloud_dyndns.poller.{self.name}')

        # Address family to track, 4 or 6
        try:
            self.iptype: IPType = IPType.from_config(config.get('family', '4'))
        except ConfigError:
            self.log.critical("'family' config option must be 4 or 6")
            raise

        # Seconds between polls
        try:
            self.poll_interval: float = float(config.get('interval', '300'))
        except ValueError:
            self.log.critical("'interval' config option must be a number > 0")
            raise ConfigError(f"'interval' option for {self.name} poller "
                              "must be a number > 0") from None
        if self.poll_interval <= 0:
            self.log.critical("'interval' config option must be a number > 0")
            raise ConfigError(f"'interval' option for {self.name} poller "
                              "must be a number > 0")

        if source is None:
            source = WebConsensus(name, config)
        self.source: ExternalIPSource = source

        # Guards _subscriptions across registration and broadcast
        self._lock = threading.Lock()
        self._subscriptions: List[Subscription] = []

        # Used by start() and stop()
        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None

    def channel(self) -> Subscription:
        """Register a new subscriber. It receives every address polled from
        now on, subject to the drop behavior described in
        :class:`Subscription`. There is no way to unregister.

        Safe to call while the poller is running.
        """
        subscription = Subscription()
        with self._lock:
            self._subscriptions.append(subscription)
        self.log.debug("Registered subscriber %d", len(self._subscriptions))
        return subscription

    def poll(self) -> str:
        """Check the current address once and offer it to every subscriber.
        Subscribers still holding an unread address keep it, and miss this
        one.

        :return: The current address, as text
        :raises IPDetectionError: if the address could not be obtained. No
                                  subscriber is notified.
        """
        try:
            address = self.source.external_ip(self.iptype)
        except IPDetectionError as e:
            raise IPDetectionError(f"could not obtain IP address: {e}") from e
        if address.version != self.iptype:
            raise IPDetectionError(f"could not obtain IP address: source "
                                   f"returned {address}, which is not "
                                   f"IPv{self.iptype}")

        text = str(address)
        with self._lock:
            delivered = sum(s._offer(text) for s in self._subscriptions)
            total = len(self._subscriptions)
        self.log.debug("Polled %s, delivered to %d of %d subscribers",
                       text, delivered, total)
        return text

    def _poll_and_log(self) -> None:
        try:
            self.poll()
        except IPDetectionError as e:
            self.log.error("Error polling for IP: %s", e)

    def run(self, stop: threading.Event) -> None:
        """Poll immediately, then again every ``interval`` seconds until
        ``stop`` is set. Poll failures are logged and never end the loop.

        Blocks until ``stop`` is set.

        :param stop: Set this to make the loop return
        """
        self.log.info("Polling for IPv%d every %g secs", self.iptype,
                      self.poll_interval)
        self._poll_and_log()
        while not stop.wait(self.poll_interval):
            self._poll_and_log()
        self.log.info("Poller stopped")

    def start(self) -> None:
        """Run :meth:`run` on a background thread until :meth:`stop`"""
        with self._lock:
            if self._thread is not None:
                self.log.warning("Not starting poller: Already started")
                return
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self.run, args=(self._stop_event,),
                name=f'poller-{self.name}', daemon=True,
            )
            self._thread.start()

    def stop(self) -> None:
        """Stop a poller started with :meth:`start` and wait for its thread to
        finish. Does not raise, even if the poller was never started."""
        with self._lock:
            thread = self._thread
            stop_event = self._stop_event
            self._thread = None
            self._stop_event = None
        if thread is None or stop_event is None:
            self.log.warning("Not stopping poller: Not started")
            return
        stop_event.set()
        thread.join()
