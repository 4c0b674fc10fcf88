# -*- coding: utf-8 -*-
"""IP address and CIDR length grammar for the ip4, ip6, a and mx mechanisms"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from typing import Optional

import pyleri

from spfparse.utils import SPFParseError

"""Copyright 2019-2023 Sean Whalen

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

   https://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License."""

# dec-octet, with the alternatives tried in this order
DEC_OCTET_REGEX_STRING = r"(?:25[0-5]|2[0-4][0-9]|1[0-9][0-9]|[1-9][0-9]|[0-9])"
H16_REGEX_STRING = r"[0-9A-Fa-f]{1,4}"
CIDR_LENGTH_REGEX_STRING = r"[0-9]+"

IP4_MAX_CIDR_LENGTH = 32
IP6_MAX_CIDR_LENGTH = 128


@dataclass(frozen=True)
class DualCIDRLength:
    """The optional IPv4 and IPv6 prefix lengths of an ``a`` or ``mx`` mechanism"""

    ip4: Optional[int] = None
    ip6: Optional[int] = None

    def __str__(self):
        cidr = ""
        if self.ip4 is not None:
            cidr += f"/{self.ip4}"
        if self.ip6 is not None:
            cidr += f"//{self.ip6}"
        return cidr

    def __bool__(self):
        return self.ip4 is not None or self.ip6 is not None


def _h16_colons(h16, colon, times: int):
    """``times`` repetitions of ``h16 ":"``"""
    return pyleri.Repeat(pyleri.Sequence(h16, colon), mi=times, ma=times)


def _leading_h16(h16, colon, times: int):
    """``[ *times( h16 ":" ) h16 ]``, the groups before a ``::``"""
    return pyleri.Optional(
        pyleri.Sequence(
            h16, pyleri.Repeat(pyleri.Sequence(colon, h16), mi=0, ma=times)
        )
    )


def ipv6_address(h16, ls32, colon, double_colon):
    """
    Builds the IPv6 address grammar from RFC 3986 § 3.2.2

    Alternatives are tried in order: the uncompressed form, then a ``::`` with
    0 through 6 leading groups, each followed by the number of trailing groups
    that keeps the address at 128 bits.

    Args:
        h16: The element matching 1-4 hex digits
        ls32: The element matching the low 32 bits
        colon: The ``:`` token
        double_colon: The ``::`` token

    Returns:
        pyleri.Choice: The IPv6 address element
    """
    return pyleri.Choice(
        pyleri.Sequence(_h16_colons(h16, colon, 6), ls32),
        pyleri.Sequence(double_colon, _h16_colons(h16, colon, 5), ls32),
        pyleri.Sequence(
            pyleri.Optional(h16), double_colon, _h16_colons(h16, colon, 4), ls32
        ),
        pyleri.Sequence(
            _leading_h16(h16, colon, 1),
            double_colon,
            _h16_colons(h16, colon, 3),
            ls32,
        ),
        pyleri.Sequence(
            _leading_h16(h16, colon, 2),
            double_colon,
            _h16_colons(h16, colon, 2),
            ls32,
        ),
        pyleri.Sequence(
            _leading_h16(h16, colon, 3),
            double_colon,
            _h16_colons(h16, colon, 1),
            ls32,
        ),
        pyleri.Sequence(_leading_h16(h16, colon, 4), double_colon, ls32),
        pyleri.Sequence(_leading_h16(h16, colon, 5), double_colon, h16),
        pyleri.Sequence(_leading_h16(h16, colon, 6), double_colon),
        most_greedy=False,
    )


def to_ipv4_address(text: str, record: str, position: int) -> ipaddress.IPv4Address:
    """Converts a matched ip4-network into an ``IPv4Address``"""
    try:
        return ipaddress.IPv4Address(text)
    except ipaddress.AddressValueError:
        raise SPFParseError(record, position, ["IPv4 address"])


def to_ipv6_address(text: str, record: str, position: int) -> ipaddress.IPv6Address:
    """Converts a matched ip6-network into an ``IPv6Address``"""
    try:
        return ipaddress.IPv6Address(text)
    except ipaddress.AddressValueError:
        raise SPFParseError(record, position, ["IPv6 address"])


def to_cidr_length(text: str, maximum: int, record: str, position: int) -> int:
    """
    Converts the digits of a CIDR length, checking its range

    Args:
        text (str): The digits, without the leading ``/``
        maximum (int): The largest allowed prefix length
        record (str): The record being parsed, for error reporting
        position (int): The position of the digits in ``record``

    Returns:
        int: The prefix length

    Raises:
        :exc:`spfparse.SPFParseError`
    """
    # digit runs longer than the maximum are rejected before conversion
    significant_digits = text.lstrip("0") or "0"
    if (
        len(significant_digits) > len(str(maximum))
        or int(significant_digits) > maximum
    ):
        raise SPFParseError(record, position, [f"a CIDR length of 0-{maximum}"])
    return int(significant_digits)
