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

"""Built in DNS backends and the backend base classes"""

import logging
from typing import Dict, Type

from ..exceptions import ConfigError
from .backend import DNSBackend, RateLimitedCachingBackend
from .record import Record

from . import gcp

backends: Dict[str, Type[DNSBackend]] = {
    'gcp': gcp.CloudDNSBackend,
}


def create_backend(name: str, config: Dict[str, str]) -> DNSBackend:
    """Create a built-in backend from its config. The ``type`` option selects
    which one.

    :param name: Name of the backend (from config section heading)
    :param config: Dict of config options for this backend
    :raises ConfigError: if the type is missing or unknown, or the rest of the
                         config is invalid
    :raises BackendSetupError: if the provider client cannot be constructed
    """
    try:
        type_ = config['type']
    except KeyError:
        logging.getLogger('cloud_dyndns').critical(
            "Backend %s requires a type", name)
        raise ConfigError(f"Backend {name} requires a type") from None
    try:
        backend_class = backends[type_]
    except KeyError:
        logging.getLogger('cloud_dyndns').critical(
            "No built-in backend of type %s", type_)
        raise ConfigError(f"No built-in backend of type {type_}") from None
    return backend_class(name, config)


__all__ = ['DNSBackend', 'RateLimitedCachingBackend', 'Record',
           'create_backend']
