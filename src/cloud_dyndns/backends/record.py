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

"""The DNS resource record value type"""

from typing import Iterable, NamedTuple, Tuple

import dns.exception    # type: ignore
import dns.rdatatype    # type: ignore


class Record(NamedTuple):
    """An immutable DNS resource record set: a name and type along with its
    TTL and data values. Compares by value.

    Build records from untrusted input with :meth:`create`, which validates
    and normalizes the fields.
    """

    #: Owner name, as the provider spells it (Cloud DNS uses FQDNs with a
    #: trailing dot, e.g. ``www.example.com.``)
    name: str

    #: Record type, e.g. ``'A'`` or ``'AAAA'``
    type: str

    #: Time to live, in seconds
    ttl: int

    #: Record data values, in order
    data: Tuple[str, ...]

    @classmethod
    def create(cls, name: str, type_: str, ttl: int,
               data: Iterable[str]) -> 'Record':
        """Create a record, validating and normalizing its fields

        :param name: Owner name
        :param type_: Record type (case insensitive, must be a known RR type)
        :param ttl: Time to live, a non-negative integer
        :param data: Record data values

        :raises ValueError: if any field is invalid
        :raises TypeError: if ``data`` is a single string rather than an
                           iterable of strings
        """
        if not name:
            raise ValueError("Record name cannot be empty")
        try:
            rdtype = dns.rdatatype.from_text(type_.upper())
        except (dns.exception.DNSException, ValueError):
            raise ValueError(f"Unknown record type {type_!r}") from None
        ttl = int(ttl)
        if ttl < 0:
            raise ValueError(f"Record TTL must be >= 0, not {ttl}")
        if isinstance(data, str):
            raise TypeError("Record data must be a sequence of strings, not "
                            "a single string")
        return cls(name, dns.rdatatype.to_text(rdtype), ttl,
                   tuple(str(value) for value in data))

    @classmethod
    def coerce(cls, record) -> 'Record':
        """Convert any object with ``name``, ``type``, ``ttl``, and ``data``
        attributes into a :class:`Record`, keeping the fields as they are"""
        if isinstance(record, cls):
            return record
        return cls(record.name, record.type, record.ttl, tuple(record.data))

    @property
    def key(self) -> Tuple[str, str]:
        """The ``(name, type)`` pair identifying this record set"""
        return (self.name, self.type)
