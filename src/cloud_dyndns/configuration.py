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

"""cloud-dyndns configuration parsing"""

import configparser
import pathlib
from importlib.metadata import PackageNotFoundError, version
from typing import Dict, TextIO, Union

from .exceptions import ConfigError


try:
    USER_AGENT = f"cloud-dyndns/{version('cloud-dyndns')}"
except PackageNotFoundError:
    USER_AGENT = "cloud-dyndns"

#: Name of the optional global config section
MAIN_SECTION = 'cloud-dyndns'


class Config:
    """cloud-dyndns configuration data

    :param main: Global options (from the ``[cloud-dyndns]`` section)
    :param backends: Backend configurations, keyed by name
    :param pollers: Poller configurations, keyed by name
    """

    def __init__(self,
                 main: Dict[str, str],
                 backends: Dict[str, Dict[str, str]],
                 pollers: Dict[str, Dict[str, str]]):
        #: Dict containing global configuration
        self.main: Dict[str, str] = main

        #: Backend configurations (from ``[backend.<name>]`` sections)
        self.backends: Dict[str, Dict[str, str]] = backends

        #: Poller configurations (from ``[poller.<name>]`` sections)
        self.pollers: Dict[str, Dict[str, str]] = pollers

        self._copy_globals()

    def _copy_globals(self) -> None:
        """Copy global options into every backend and poller config that does
        not set them itself"""
        for section_config in (list(self.backends.values()) +
                               list(self.pollers.values())):
            for key, value in self.main.items():
                section_config.setdefault(key, value)


def _process_config(config: configparser.ConfigParser) -> Config:
    """Process the given :class:`~configparser.ConfigParser` into a
    :class:`Config`

    :param config: The configuration to process
    :raises ConfigError: if the configuration is invalid
    :returns: the processed configuration
    """
    # Note: ConfigParser already handles catching duplicate sections and
    #   duplicate keys

    main: Dict[str, str] = dict()
    backends: Dict[str, Dict[str, str]] = dict()
    pollers: Dict[str, Dict[str, str]] = dict()

    for section in config.sections():
        if section == MAIN_SECTION:
            main.update(config[section])
            continue

        kind, _, name = section.partition('.')
        if name == '':
            raise ConfigError(f"Config section {section} needs a name, e.g. "
                              f"[{kind}.example]")
        if kind == 'backend':
            backends[name] = dict(config[section])
        elif kind == 'poller':
            pollers[name] = dict(config[section])
        else:
            raise ConfigError(f"Config section {section} is not a backend "
                              "or poller section")

    return Config(main, backends, pollers)


def read_config_from_path(filename: Union[str, pathlib.Path]) -> Config:
    """Read configuration from the named file or :class:`~pathlib.Path`

    :param filename: Filename or path to read from
    :raises ConfigError: if the config file cannot be read or is invalid
    :return: The parsed :class:`Config`
    """
    try:
        with open(filename, 'r') as f:
            return read_config(f)
    except OSError as e:
        raise ConfigError("Could not read config file %s: %s" %
                          (filename, e.strerror)) from e


def read_config(configfile: TextIO) -> Config:
    """Read configuration from a file-like object

    :param configfile: File-like object to read the config from
    :raises ConfigError: if the config file cannot be read or is invalid
    :return: The parsed :class:`Config`
    """
    config = configparser.ConfigParser(interpolation=None)
    try:
        config.read_file(configfile)
    except configparser.Error as e:
        raise ConfigError("Error in config file: %s" % e) from e

    return _process_config(config)

