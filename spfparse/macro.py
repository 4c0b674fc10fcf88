# -*- coding: utf-8 -*-
"""SPF macro strings and domain specifications (RFC 7208 § 7.1)"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Union

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

MACRO_LETTERS = "slodiphcrt"
MACRO_DELIMITERS = "-.+,/_="
MACRO_ESCAPES = "%_-"
DEFAULT_MACRO_DELIMITER = "."

MACRO_LETTER_REGEX_STRING = rf"[{MACRO_LETTERS}]"
MACRO_DELIMITERS_REGEX_STRING = r"[\-.+,/_=]+"
MACRO_DIGITS_REGEX_STRING = r"[0-9]+"

# macro-literal = %x21-24 / %x26-7E
MACRO_LITERAL_REGEX_STRING = r"[\x21-\x24\x26-\x7e]+"

# Inside a domain-spec a "/" that starts a trailing dual-cidr-length
# (/N, //N or /N//N) ends the domain-spec
DOMAIN_LITERAL_REGEX_STRING = (
    r"(?:[\x21-\x24\x26-\x2e\x30-\x7e]|/(?!/?[0-9]+(?://[0-9]+)?\Z))+"
)

# Matched against a single label
TOPLABEL_REGEX = re.compile(
    r"(?=[a-z0-9]*[a-z])[a-z0-9]+|[a-z0-9]+-[a-z0-9\-]*[a-z0-9]", re.IGNORECASE
)

# Significant digits accepted in a macro transformer
MACRO_DIGITS_MAX_LENGTH = 9


@dataclass(frozen=True)
class MacroLiteral:
    """A run of literal macro-string characters"""

    text: str

    def __str__(self):
        return self.text


@dataclass(frozen=True)
class MacroExpand:
    """
    A macro-expand: ``%{<letter><digits><r><delimiters>}`` or one of the
    ``%%``, ``%_`` and ``%-`` escapes

    The macro is only recognized here. Expanding it is left to an SPF
    evaluator.
    """

    letter: Optional[str] = None
    digits: Optional[int] = None
    reverse: bool = False
    delimiters: str = ""
    escape: Optional[str] = None

    @property
    def is_escape(self) -> bool:
        return self.escape is not None

    @property
    def effective_delimiters(self) -> str:
        """The delimiters to split on; ``.`` when none were given"""
        return self.delimiters or DEFAULT_MACRO_DELIMITER

    def to_dict(self) -> dict:
        if self.is_escape:
            return {"escape": str(self)}
        return {
            "letter": self.letter,
            "digits": self.digits,
            "reverse": self.reverse,
            "delimiters": self.effective_delimiters,
        }

    def __str__(self):
        if self.is_escape:
            return f"%{self.escape}"
        digits = "" if self.digits is None else str(self.digits)
        reverse = "r" if self.reverse else ""
        return f"%{{{self.letter}{digits}{reverse}{self.delimiters}}}"


MacroSegment = Union[MacroLiteral, MacroExpand]


@dataclass(frozen=True)
class MacroString:
    """An ordered sequence of literal runs and macro-expands"""

    segments: tuple[MacroSegment, ...] = ()

    @property
    def macros(self) -> list[MacroExpand]:
        """The ``%{...}`` macros, without the ``%%``, ``%_`` and ``%-`` escapes"""
        return [
            segment
            for segment in self.segments
            if isinstance(segment, MacroExpand) and not segment.is_escape
        ]

    @property
    def has_macros(self) -> bool:
        return any(isinstance(segment, MacroExpand) for segment in self.segments)

    def __str__(self):
        return "".join(str(segment) for segment in self.segments)

    def __len__(self):
        return len(self.segments)


@dataclass(frozen=True)
class DomainSpec:
    """
    A domain-spec: a macro-string that ends in a top label or a macro-expand

    ``macro_string`` holds every segment in source order; ``domain_end`` is
    either the trailing ``MacroExpand`` or the trailing top label text,
    including its leading dot (e.g. ``.com``).
    """

    macro_string: MacroString
    domain_end: Union[str, MacroExpand]

    @property
    def has_macros(self) -> bool:
        return self.macro_string.has_macros

    @property
    def domain(self) -> Optional[str]:
        """The domain name, when the domain-spec has no macros"""
        if self.has_macros:
            return None
        return str(self.macro_string).lower()

    def __str__(self):
        return str(self.macro_string)


def _domain_end(text: str) -> Optional[str]:
    """Returns the trailing ``.toplabel`` of a literal, with any final dot"""
    labels = text[:-1] if text.endswith(".") else text
    head, dot, toplabel = labels.rpartition(".")
    if dot == "" or TOPLABEL_REGEX.fullmatch(toplabel) is None:
        return None
    return text[len(head) :]


def to_macro_digits(text: str, record: str, position: int) -> int:
    """
    Converts the digits of a macro transformer

    Zero is accepted; what it means is left to an SPF evaluator.

    Raises:
        :exc:`spfparse.SPFParseError`
    """
    significant_digits = text.lstrip("0") or "0"
    if len(significant_digits) > MACRO_DIGITS_MAX_LENGTH:
        raise SPFParseError(
            record,
            position,
            [f"a number of parts of at most {MACRO_DIGITS_MAX_LENGTH} digits"],
        )
    return int(significant_digits)


def build_domain_spec(
    segments: list[MacroSegment], record: str, end_position: int
) -> DomainSpec:
    """
    Builds a ``DomainSpec`` from parsed segments, checking its domain-end

    Args:
        segments (list): Macro-string segments in source order
        record (str): The record being parsed, for error reporting
        end_position (int): The position in ``record`` just past the segments

    Returns:
        DomainSpec: The domain-spec

    Raises:
        :exc:`spfparse.SPFParseError`
    """
    macro_string = MacroString(tuple(segments))
    if len(macro_string) == 0:
        raise SPFParseError(record, end_position, ["domain-spec"])
    last = macro_string.segments[-1]
    if isinstance(last, MacroExpand):
        return DomainSpec(macro_string, last)
    domain_end = _domain_end(last.text)
    if domain_end is None:
        raise SPFParseError(record, end_position, ["domain-end"])
    return DomainSpec(macro_string, domain_end)
