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

import socket

import pytest
from requests.packages.urllib3.util import connection

from cloud_dyndns.util import RequestsFamilyRestriction


def test_restricts_only_inside_block():
    unrestricted = connection.allowed_gai_family()
    with RequestsFamilyRestriction(socket.AF_INET6) as restriction:
        assert restriction.family == socket.AF_INET6
        assert connection.allowed_gai_family() == socket.AF_INET6
    assert connection.allowed_gai_family() == unrestricted


def test_restriction_cleared_on_error():
    unrestricted = connection.allowed_gai_family()
    with pytest.raises(RuntimeError):
        with RequestsFamilyRestriction(socket.AF_INET):
            raise RuntimeError("request failed")
    assert connection.allowed_gai_family() == unrestricted
