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

"""All cloud-dyndns exceptions"""


class CloudDynDNSException(Exception):
    """Base class for all cloud-dyndns exceptions"""


class SetupError(CloudDynDNSException):
    """Base class for exceptions that happen while constructing backends and
    pollers"""


class ConfigError(SetupError):
    """Raised when the configuration is malformed or has other errors"""


class BackendSetupError(SetupError):
    """Raised when the provider client cannot be constructed (e.g. there are
    no usable credentials). This is fatal: the backend cannot be used."""


class TransportError(CloudDynDNSException):
    """Raised when a call to the DNS provider fails, whether at the network
    level, with an HTTP error, or with a response that cannot be understood.
    Never retried internally; the caller owns retry policy."""


class IPDetectionError(CloudDynDNSException):
    """IP sources should raise when the current address cannot be
    determined. The poller logs it and tries again on the next tick."""
