# -*- coding: utf-8 -*-
"""Parsed SPF record terms"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Optional, TypedDict, Union

from spfparse.address import DualCIDRLength
from spfparse.macro import DomainSpec, MacroString

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


class Qualifier(Enum):
    """The result a directive yields when its mechanism matches"""

    PASS = "+"
    FAIL = "-"
    SOFT_FAIL = "~"
    NEUTRAL = "?"

    @classmethod
    def from_symbol(cls, symbol: str) -> Qualifier:
        """Returns the qualifier for ``+``, ``-``, ``~`` or ``?``"""
        return cls(symbol)

    @property
    def symbol(self) -> str:
        return self.value

    @property
    def action(self) -> str:
        return spf_qualifiers[self.value]


spf_qualifiers: dict[str, str] = {
    "": "pass",
    "?": "neutral",
    "+": "pass",
    "-": "fail",
    "~": "softfail",
}


class SPFMacro(TypedDict, total=False):
    letter: str
    digits: Union[int, None]
    reverse: bool
    delimiters: str
    escape: str


class ParsedSPFTerm(TypedDict, total=False):
    type: str
    name: str
    value: Union[str, None]
    qualifier: str
    action: str
    explicit: bool
    domain: Union[str, None]
    address: str
    prefix_length: Union[int, None]
    ip4_cidr_length: Union[int, None]
    ip6_cidr_length: Union[int, None]
    macros: list[SPFMacro]


class ParsedSPFRecord(TypedDict):
    version: str
    terms: list[ParsedSPFTerm]
    redirect: Union[str, None]
    exp: Union[str, None]
    all: Union[str, None]


def _domain_details(domain_spec: Optional[DomainSpec]) -> ParsedSPFTerm:
    details: ParsedSPFTerm = {"domain": None}
    if domain_spec is not None:
        details["domain"] = str(domain_spec)
        if domain_spec.has_macros:
            details["macros"] = [
                segment.to_dict() for segment in domain_spec.macro_string.macros
            ]
    return details


@dataclass(frozen=True)
class AllMechanism:
    name: ClassVar[str] = "all"

    @property
    def value(self) -> None:
        return None

    def details(self) -> ParsedSPFTerm:
        return {}

    def __str__(self):
        return self.name


@dataclass(frozen=True)
class IncludeMechanism:
    domain_spec: DomainSpec
    name: ClassVar[str] = "include"

    @property
    def value(self) -> str:
        return str(self.domain_spec)

    def details(self) -> ParsedSPFTerm:
        return _domain_details(self.domain_spec)

    def __str__(self):
        return f"{self.name}:{self.value}"


@dataclass(frozen=True)
class ExistsMechanism:
    domain_spec: DomainSpec
    name: ClassVar[str] = "exists"

    @property
    def value(self) -> str:
        return str(self.domain_spec)

    def details(self) -> ParsedSPFTerm:
        return _domain_details(self.domain_spec)

    def __str__(self):
        return f"{self.name}:{self.value}"


@dataclass(frozen=True)
class PTRMechanism:
    domain_spec: Optional[DomainSpec] = None
    name: ClassVar[str] = "ptr"

    @property
    def value(self) -> Optional[str]:
        if self.domain_spec is None:
            return None
        return str(self.domain_spec)

    def details(self) -> ParsedSPFTerm:
        return _domain_details(self.domain_spec)

    def __str__(self):
        if self.domain_spec is None:
            return self.name
        return f"{self.name}:{self.value}"


@dataclass(frozen=True)
class _HostMechanism:
    """Shared shape of the ``a`` and ``mx`` mechanisms"""

    domain_spec: Optional[DomainSpec] = None
    cidr: DualCIDRLength = DualCIDRLength()
    name: ClassVar[str] = ""

    @property
    def value(self) -> Optional[str]:
        """The domain-spec and dual-cidr-length text, or ``None``"""
        value = ""
        if self.domain_spec is not None:
            value = str(self.domain_spec)
        value += str(self.cidr)
        return value or None

    def details(self) -> ParsedSPFTerm:
        details = _domain_details(self.domain_spec)
        details["ip4_cidr_length"] = self.cidr.ip4
        details["ip6_cidr_length"] = self.cidr.ip6
        return details

    def __str__(self):
        if self.domain_spec is None:
            return f"{self.name}{self.cidr}"
        return f"{self.name}:{self.domain_spec}{self.cidr}"


@dataclass(frozen=True)
class AMechanism(_HostMechanism):
    name: ClassVar[str] = "a"


@dataclass(frozen=True)
class MXMechanism(_HostMechanism):
    name: ClassVar[str] = "mx"


@dataclass(frozen=True)
class IP4Mechanism:
    address: ipaddress.IPv4Address
    prefix_length: Optional[int] = None
    name: ClassVar[str] = "ip4"

    @property
    def network(self) -> ipaddress.IPv4Network:
        """The matching network; a missing prefix length means ``/32``"""
        prefix_length = 32 if self.prefix_length is None else self.prefix_length
        return ipaddress.IPv4Network(f"{self.address}/{prefix_length}", strict=False)

    @property
    def value(self) -> str:
        if self.prefix_length is None:
            return str(self.address)
        return f"{self.address}/{self.prefix_length}"

    def details(self) -> ParsedSPFTerm:
        return {"address": str(self.address), "prefix_length": self.prefix_length}

    def __str__(self):
        return f"{self.name}:{self.value}"


@dataclass(frozen=True)
class IP6Mechanism:
    address: ipaddress.IPv6Address
    prefix_length: Optional[int] = None
    name: ClassVar[str] = "ip6"

    @property
    def network(self) -> ipaddress.IPv6Network:
        """The matching network; a missing prefix length means ``/128``"""
        prefix_length = 128 if self.prefix_length is None else self.prefix_length
        return ipaddress.IPv6Network(f"{self.address}/{prefix_length}", strict=False)

    @property
    def value(self) -> str:
        if self.prefix_length is None:
            return str(self.address)
        return f"{self.address}/{self.prefix_length}"

    def details(self) -> ParsedSPFTerm:
        return {"address": str(self.address), "prefix_length": self.prefix_length}

    def __str__(self):
        return f"{self.name}:{self.value}"


MechanismTerm = Union[
    AllMechanism,
    IncludeMechanism,
    AMechanism,
    MXMechanism,
    PTRMechanism,
    IP4Mechanism,
    IP6Mechanism,
    ExistsMechanism,
]


@dataclass(frozen=True)
class Directive:
    """A mechanism and the qualifier that precedes it"""

    mechanism: MechanismTerm
    qualifier: Qualifier = Qualifier.PASS
    explicit: bool = False

    def to_dict(self) -> ParsedSPFTerm:
        parsed: ParsedSPFTerm = {
            "type": "mechanism",
            "name": self.mechanism.name,
            "value": self.mechanism.value,
            "qualifier": self.qualifier.symbol,
            "action": self.qualifier.action,
            "explicit": self.explicit,
        }
        parsed.update(self.mechanism.details())
        return parsed

    def __str__(self):
        if self.explicit:
            return f"{self.qualifier.symbol}{self.mechanism}"
        return str(self.mechanism)


@dataclass(frozen=True)
class _DomainSpecModifier:
    """Shared shape of the ``redirect`` and ``exp`` modifiers"""

    domain_spec: DomainSpec
    name: ClassVar[str] = ""

    @property
    def value(self) -> str:
        return str(self.domain_spec)

    def to_dict(self) -> ParsedSPFTerm:
        parsed: ParsedSPFTerm = {
            "type": "modifier",
            "name": self.name,
            "value": self.value,
        }
        parsed.update(_domain_details(self.domain_spec))
        return parsed

    def __str__(self):
        return f"{self.name}={self.value}"


@dataclass(frozen=True)
class RedirectModifier(_DomainSpecModifier):
    name: ClassVar[str] = "redirect"


@dataclass(frozen=True)
class ExplanationModifier(_DomainSpecModifier):
    name: ClassVar[str] = "exp"


@dataclass(frozen=True)
class UnknownModifier:
    name: str
    macro_string: MacroString = MacroString()

    @property
    def value(self) -> str:
        return str(self.macro_string)

    def to_dict(self) -> ParsedSPFTerm:
        parsed: ParsedSPFTerm = {
            "type": "modifier",
            "name": self.name,
            "value": self.value,
        }
        if self.macro_string.macros:
            parsed["macros"] = [macro.to_dict() for macro in self.macro_string.macros]
        return parsed

    def __str__(self):
        return f"{self.name}={self.value}"


Modifier = Union[RedirectModifier, ExplanationModifier, UnknownModifier]
Term = Union[Directive, Modifier]


@dataclass(frozen=True)
class SPFRecord:
    """A parsed ``v=spf1`` record"""

    terms: tuple[Term, ...]
    version: str = "spf1"

    @property
    def directives(self) -> list[Directive]:
        return [term for term in self.terms if isinstance(term, Directive)]

    @property
    def modifiers(self) -> list[Modifier]:
        return [term for term in self.terms if not isinstance(term, Directive)]

    @property
    def redirect(self) -> Optional[RedirectModifier]:
        for modifier in self.modifiers:
            if isinstance(modifier, RedirectModifier):
                return modifier
        return None

    @property
    def exp(self) -> Optional[ExplanationModifier]:
        for modifier in self.modifiers:
            if isinstance(modifier, ExplanationModifier):
                return modifier
        return None

    @property
    def all(self) -> Optional[Directive]:
        """The first ``all`` directive, if any"""
        for directive in self.directives:
            if isinstance(directive.mechanism, AllMechanism):
                return directive
        return None

    def to_dict(self) -> ParsedSPFRecord:
        redirect = self.redirect
        exp = self.exp
        all_ = self.all
        return {
            "version": self.version,
            "terms": [term.to_dict() for term in self.terms],
            "redirect": None if redirect is None else redirect.value,
            "exp": None if exp is None else exp.value,
            "all": None if all_ is None else all_.qualifier.action,
        }

    def __str__(self):
        return " ".join([f"v={self.version}"] + [str(term) for term in self.terms])
