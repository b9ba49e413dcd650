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

"""cloud-dyndns: keep a cloud DNS provider's records pointed at the host's
current public IP address

Top-level module, re-exporting the backend and poller classes along with the
exceptions they raise.
"""

from .backends import (DNSBackend, RateLimitedCachingBackend, Record,
                       create_backend)
from .backends.gcp import CloudDNSBackend, CloudDNSClient
from .configuration import Config, read_config, read_config_from_path
from .exceptions import (CloudDynDNSException, SetupError, ConfigError,
                         BackendSetupError, TransportError, IPDetectionError)
from .sync import (ExternalIPSource, IPAddressPoller, IPType, Subscription,
                   WebConsensus)
