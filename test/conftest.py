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

import pytest

import doubles
from cloud_dyndns import CloudDNSBackend, Record


@pytest.fixture
def clock():
    """Fixture creating a fake monotonic clock"""
    return doubles.FakeClock()


@pytest.fixture
def zone_pages():
    """A small zone split over three pages, the last one empty"""
    return [
        [
            Record('example.com.', 'A', 300, ('192.0.2.1',)),
            Record('example.com.', 'MX', 3600,
                   ('10 mx1.example.com.', '20 mx2.example.com.')),
        ],
        [
            Record('a.example.com.', 'A', 60, ('192.0.2.10',)),
            Record('a.example.com.', 'AAAA', 60, ('2001:db8::10',)),
            Record('b.example.com.', 'TXT', 120, ('"v=spf1 -all"', '"x"')),
        ],
        [],
    ]


@pytest.fixture
def fake_client(zone_pages):
    """Fixture creating a fake Cloud DNS client serving :func:`zone_pages`"""
    return doubles.FakeCloudDNSClient(zone_pages)


@pytest.fixture
def backend(fake_client, clock):
    """Fixture creating a backend with the default limiter (one refresh per 5
    seconds) on top of :func:`fake_client`"""
    return CloudDNSBackend('test', dict(), client=fake_client, clock=clock)
