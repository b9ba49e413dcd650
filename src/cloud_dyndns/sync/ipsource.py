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

"""Sources for the current public IP address"""

import collections
import enum
import ipaddress
import logging
import socket
# Note: We are not using abstractmethod the way it is intended. We are using it
# purely to get Sphinx to mark methods as abstract. Thus, we intentionally do
# NOT use ABCMeta or inherit from ABC.
from abc import abstractmethod
from typing import Counter, Dict, List, Optional, Union

import requests

from ..configuration import USER_AGENT
from ..exceptions import ConfigError, IPDetectionError
from ..util import RequestsFamilyRestriction


IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

#: What-is-my-IP services reachable over both IPv4 and IPv6 that answer with
#: the bare address as plain text
DEFAULT_URLS = [
    'https://icanhazip.com/',
    'https://ifconfig.co/ip',
    'https://api64.ipify.org/',
    'https://ident.me/',
    'https://ifconfig.me/ip',
]


class IPType(enum.IntEnum):
    """Address family tracked by a poller"""

    IPV4 = 4
    IPV6 = 6

    @classmethod
    def from_config(cls, value: str) -> 'IPType':
        """Parse an address family from a config value: ``4``, ``ipv4``, or
        ``inet`` for IPv4; ``6``, ``ipv6``, or ``inet6`` for IPv6

        :raises ConfigError: if the value is not one of those
        """
        normalized = value.strip().lower()
        if normalized in ('4', 'ipv4', 'inet'):
            return cls.IPV4
        if normalized in ('6', 'ipv6', 'inet6'):
            return cls.IPV6
        raise ConfigError(f"Unknown address family {value!r} (must be 4 or "
                          "6)")

    @property
    def socket_family(self) -> socket.AddressFamily:
        """The matching :mod:`socket` address family"""
        if self is IPType.IPV4:
            return socket.AF_INET
        return socket.AF_INET6


class ExternalIPSource:
    """Base class for anything that can report the host's current public IP
    address"""

    @abstractmethod
    def external_ip(self, family: IPType) -> IPAddress:
        """Get the current public address of the given family.

        **Must be overridden by subclasses.**

        :param family: Which address family to look up
        :return: The current address
        :raises IPDetectionError: if the address could not be determined
        """
        raise NotImplementedError


class WebConsensus(ExternalIPSource):
    """Asks several what-is-my-IP-style websites for the current address and
    only believes an answer enough of them agree on.

    :param name: Name of the owning poller, for logging
    :param config: Dict of config options

    :raises ConfigError: if the configuration is invalid
    """

    def __init__(self, name: str, config: Dict[str, str]):
        self.name = name
        self.log = logging.getLogger(f'cloud_dyndns.ipsource.{self.name}')

        # Whitespace-separated list of URLs that respond with the requester's
        # IP address as plain text
        try:
            self.urls: List[str] = config['urls'].split()
        except KeyError:
            self.urls = list(DEFAULT_URLS)
        if not self.urls:
            self.log.critical("'urls' config option cannot be empty")
            raise ConfigError(f"'urls' option for {self.name} cannot be "
                              "empty")

        # Number of sources that must report the same address. Defaults to a
        # strict majority.
        try:
            self.quorum = int(config.get('quorum',
                                         str(len(self.urls) // 2 + 1)))
        except ValueError:
            self.log.critical("'quorum' config option must be an integer")
            raise ConfigError(f"'quorum' option for {self.name} must be an "
                              "integer") from None
        if not (1 <= self.quorum <= len(self.urls)):
            self.log.critical("'quorum' config option must be from 1 to the "
                              "number of URLs (%d)", len(self.urls))
            raise ConfigError(f"'quorum' option for {self.name} must be from "
                              f"1 to {len(self.urls)}")

        # Timeout to use waiting for a response from each server, in seconds
        try:
            self.timeout = float(config.get('timeout', '10'))
        except ValueError:
            self.log.critical("'timeout' config option must be a number")
            raise ConfigError(f"'timeout' option for {self.name} must be a "
                              "number") from None

    def _query(self, url: str, family: IPType) -> Optional[IPAddress]:
        """Ask a single source for the address. Failures are logged and
        reported as ``None``."""
        with RequestsFamilyRestriction(family.socket_family):
            try:
                r = requests.get(url, timeout=self.timeout,
                                 headers={'User-Agent': USER_AGENT})
            except requests.exceptions.RequestException as e:
                self.log.error("Could not get IPv%d from %s: %s",
                               family, url, e)
                return None
        try:
            r.raise_for_status()
        except requests.exceptions.HTTPError:
            self.log.error("Received HTTP %d from %s: %s",
                           r.status_code, url, r.text)
            return None

        try:
            address = ipaddress.ip_address(r.text.strip())
        except ValueError:
            self.log.error('Response from %s did not contain valid IP '
                           'address: "%s"', url, r.text)
            return None
        if address.version != family:
            self.log.error("Response from %s was IPv%d, not IPv%d",
                           url, address.version, family)
            return None
        return address

    def external_ip(self, family: IPType) -> IPAddress:
        votes: Counter[IPAddress] = collections.Counter()
        for url in self.urls:
            address = self._query(url, family)
            if address is not None:
                votes[address] += 1

        if not votes:
            raise IPDetectionError(f"No source returned an IPv{family} "
                                   "address")
        address, count = votes.most_common(1)[0]
        if count < self.quorum:
            self.log.warning("No IPv%d consensus: %s", family,
                             ", ".join(f"{a} ({c})" for a, c in
                                       votes.most_common()))
            raise IPDetectionError(f"Best IPv{family} answer {address} had "
                                   f"{count} votes, needed {self.quorum}")
        self.log.debug("IPv%d consensus on %s with %d of %d sources",
                       family, address, count, len(self.urls))
        return address
