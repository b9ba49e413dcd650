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

"""cloud-dyndns backend for the Google Cloud DNS v1 API"""

import logging
import time
from json import JSONDecodeError
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

import requests

from ..configuration import USER_AGENT
from ..exceptions import BackendSetupError, ConfigError, TransportError
from .backend import RateLimitedCachingBackend
from .record import Record


DEFAULT_ENDPOINT = 'https://dns.googleapis.com/dns/v1'


class CloudDNSClient:
    """Minimal client for the parts of the Cloud DNS REST API the backend
    needs: listing a managed zone's record sets and creating changes.

    Credentials are not handled here. Pass either a :class:`requests.Session`
    that already authorizes its requests (e.g. a ``google-auth``
    ``AuthorizedSession``) or an OAuth access token.

    :param project: Google Cloud project ID
    :param zone: Managed zone name (not its DNS name)
    :param session: Authorized session to send requests with
    :param access_token: Bearer token, used when no session is given
    :param endpoint: Base URL of the API
    :param user_agent: User-Agent header to send

    :raises BackendSetupError: if the client cannot be constructed
    """

    def __init__(self, project: str, zone: str,
                 session: Optional[requests.Session] = None,
                 access_token: Optional[str] = None,
                 endpoint: str = DEFAULT_ENDPOINT,
                 user_agent: str = USER_AGENT):
        self.log = logging.getLogger('cloud_dyndns.gcp')

        if not project:
            raise BackendSetupError("Could not create Google Cloud DNS "
                                    "client: no project")
        if not zone:
            raise BackendSetupError("Could not create Google Cloud DNS "
                                    "client: no managed zone")
        self.project = project
        self.zone = zone

        if session is None:
            if not access_token:
                raise BackendSetupError("Could not create Google Cloud DNS "
                                        "client: no session or access token")
            session = requests.Session()
            session.headers['Authorization'] = f"Bearer {access_token}"
        self.session = session
        self.user_agent = user_agent

        self.zone_url = (f"{endpoint.rstrip('/')}/projects/{project}"
                         f"/managedZones/{zone}")

    def _api_request(self, method: str, api: str,
                     timeout: Optional[float],
                     params: Optional[Dict[str, str]] = None,
                     data: Optional[Dict[str, Any]] = None) -> Any:
        """Issue a Cloud DNS API request and decode the JSON response.

        :param method: HTTP method, ``'GET'`` or ``'POST'``
        :param api: Path under the managed zone, e.g. ``'/rrsets'``
        :param timeout: Request timeout in seconds
        :param params: URL query parameters
        :param data: A JSON-serializable dict to become the request body

        :return: The decoded JSON response
        :raises TransportError: on any network, HTTP, or decoding failure
                                (which will be logged)
        """
        url = self.zone_url + api
        try:
            r = self.session.request(method, url, params=params, json=data,
                                     headers={'User-Agent': self.user_agent},
                                     timeout=timeout)
        except requests.exceptions.RequestException as e:
            self.log.error("Could not %s %s: %s", method, url, e)
            raise TransportError(f"Could not {method} {url}: {e}") from e
        try:
            r.raise_for_status()
        except requests.exceptions.HTTPError as e:
            self.log.error("Received HTTP %d when trying to %s %s:\n%s",
                           r.status_code, method, url, r.text)
            raise TransportError(f"HTTP {r.status_code} from {method} "
                                 f"{url}") from e

        try:
            return r.json()
        except (JSONDecodeError, ValueError) as e:
            self.log.error("Could not parse JSON response from %s %s:\n%s",
                           method, url, r.text)
            raise TransportError(f"Could not parse JSON response from "
                                 f"{method} {url}") from e

    def _parse_rrset(self, rrset: Any) -> Optional[Record]:
        """Convert one ``ResourceRecordSet`` resource to a :class:`Record`,
        or ``None`` if it is malformed"""
        try:
            return Record.create(rrset['name'], rrset['type'], rrset['ttl'],
                                 rrset['rrdatas'])
        except (AttributeError, KeyError, TypeError, ValueError):
            self.log.warning("Skipping malformed record set: %r", rrset)
            return None

    def list_record_pages(
        self,
        timeout: Optional[float] = None,
    ) -> Iterator[List[Record]]:
        """Fetch the zone's record sets one page at a time, following
        ``nextPageToken`` until the last page.

        :param timeout: Timeout for each page request, in seconds
        :return: An iterator yielding the records on each page
        :raises TransportError: if any page could not be fetched
        """
        params: Dict[str, str] = dict()
        while True:
            response = self._api_request('GET', '/rrsets', timeout,
                                         params=dict(params))
            try:
                rrsets = response.get('rrsets', [])
                page_token = response.get('nextPageToken')
            except AttributeError:
                self.log.error("Unknown response structure from /rrsets:\n%r",
                               response)
                raise TransportError("Unknown response structure from "
                                     "/rrsets") from None

            page: List[Record] = []
            for rrset in rrsets:
                if rrset is None:
                    continue
                record = self._parse_rrset(rrset)
                if record is not None:
                    page.append(record)
            yield page

            if not page_token:
                return
            params['pageToken'] = page_token

    @staticmethod
    def _to_rrset(record: Record) -> Dict[str, Any]:
        return {
            'name': record.name,
            'type': record.type,
            'ttl': record.ttl,
            'rrdatas': list(record.data),
        }

    def create_change(self, additions: Iterable[Record],
                      deletions: Iterable[Record],
                      timeout: Optional[float] = None) -> Any:
        """Submit a single change to the zone.

        :param additions: Records to add, in order
        :param deletions: Records to delete, in order
        :param timeout: Request timeout in seconds
        :return: The ``Change`` resource returned by the API
        :raises TransportError: if the change could not be submitted
        """
        change = {
            'additions': [self._to_rrset(r) for r in additions],
            'deletions': [self._to_rrset(r) for r in deletions],
        }
        return self._api_request('POST', '/changes', timeout, data=change)


class CloudDNSBackend(RateLimitedCachingBackend):
    """cloud-dyndns backend for a Google Cloud DNS managed zone

    :param name: Name of the backend (from config section heading)
    :param config: Dict of config options for this backend
    :param client: A ready :class:`CloudDNSClient`. If not given, one is
                   constructed from the config.
    :param clock: Monotonic clock for the limiter

    :raises ConfigError: if the configuration is invalid
    :raises BackendSetupError: if the client could not be constructed
    """

    def __init__(self, name: str, config: Dict[str, str],
                 client: Optional[CloudDNSClient] = None,
                 clock: Callable[[], float] = time.monotonic):
        log = logging.getLogger(f'cloud_dyndns.backend.{name}')

        # Seconds between allowed zone refreshes
        try:
            refill_interval = float(config.get('refill_interval', '5'))
        except ValueError:
            log.critical("'refill_interval' config option must be a number "
                         "> 0")
            raise ConfigError(f"'refill_interval' option for {name} backend "
                              "must be a number > 0") from None
        if refill_interval <= 0:
            log.critical("'refill_interval' config option must be a number "
                         "> 0")
            raise ConfigError(f"'refill_interval' option for {name} backend "
                              "must be a number > 0")

        # Number of refreshes allowed back to back before limiting kicks in
        try:
            capacity = int(config.get('capacity', '1'))
        except ValueError:
            log.critical("'capacity' config option must be an integer >= 1")
            raise ConfigError(f"'capacity' option for {name} backend must be "
                              "an integer >= 1") from None
        if capacity < 1:
            log.critical("'capacity' config option must be an integer >= 1")
            raise ConfigError(f"'capacity' option for {name} backend must be "
                              "an integer >= 1")

        super().__init__(name, refill_interval, capacity, clock)

        # Default timeout for provider requests, in seconds, used when the
        # caller does not pass one
        try:
            self.timeout: float = float(config.get('timeout', '5'))
        except ValueError:
            self.log.critical("'timeout' config option must be a number > 0")
            raise ConfigError(f"'timeout' option for {self.name} backend "
                              "must be a number > 0") from None
        if self.timeout <= 0:
            self.log.critical("'timeout' config option must be a number > 0")
            raise ConfigError(f"'timeout' option for {self.name} backend "
                              "must be a number > 0")

        if client is None:
            try:
                client = CloudDNSClient(
                    config.get('project', ''),
                    config.get('zone', ''),
                    access_token=config.get('access_token'),
                    endpoint=config.get('endpoint', DEFAULT_ENDPOINT),
                )
            except BackendSetupError as e:
                self.log.critical("%s", e)
                raise
        self.client: CloudDNSClient = client

    def _timeout(self, timeout: Optional[float]) -> float:
        return self.timeout if timeout is None else timeout

    def iter_records(self, timeout: Optional[float]) -> Iterator[Record]:
        for page in self.client.list_record_pages(self._timeout(timeout)):
            yield from page

    def submit_change(self, additions: List[Record], deletions: List[Record],
                      timeout: Optional[float]) -> None:
        self.client.create_change(additions, deletions,
                                  self._timeout(timeout))
