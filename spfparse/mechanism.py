# -*- coding: utf-8 -*-
"""SPF mechanism value objects for use by an SPF evaluator"""

from __future__ import annotations

from typing import Optional, Union

from spfparse.terms import Directive, Qualifier, SPFRecord

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


class Mechanism:
    """
    A mechanism name and value, with the qualifier it was given

    A mechanism without a qualifier is treated as ``pass``. Serializing always
    writes the qualifier symbol, so a mechanism that had no qualifier and one
    that had an explicit ``+`` produce the same text.
    """

    __slots__ = ("_name", "_value", "_qualifier")

    def __init__(
        self,
        name: str,
        value: Optional[str] = None,
        qualifier: Optional[Union[Qualifier, str]] = None,
    ):
        """
        Args:
            name (str): The mechanism name, e.g. ``include``
            value (str): The mechanism value, if any
            qualifier: A ``Qualifier``, a qualifier symbol, or ``None``
        """
        if isinstance(qualifier, str):
            qualifier = Qualifier.from_symbol(qualifier)
        object.__setattr__(self, "_name", name.lower())
        object.__setattr__(self, "_value", value)
        object.__setattr__(self, "_qualifier", qualifier)

    @classmethod
    def from_directive(cls, directive: Directive) -> Mechanism:
        """
        Creates a ``Mechanism`` from a parsed directive

        Args:
            directive (Directive): A directive from a parsed record

        Returns:
            Mechanism: The mechanism
        """
        qualifier = directive.qualifier if directive.explicit else None
        return cls(
            directive.mechanism.name, directive.mechanism.value, qualifier=qualifier
        )

    def __setattr__(self, key, value):
        raise AttributeError(f"{self.__class__.__name__} objects are immutable")

    @property
    def name(self) -> str:
        return self._name

    @property
    def value(self) -> Optional[str]:
        return self._value

    @property
    def qualifier(self) -> Qualifier:
        """The qualifier, defaulting to ``Qualifier.PASS``"""
        if self._qualifier is None:
            return Qualifier.PASS
        return self._qualifier

    @property
    def is_pass(self) -> bool:
        return self._qualifier is None or self._qualifier is Qualifier.PASS

    @property
    def is_fail(self) -> bool:
        return self._qualifier is Qualifier.FAIL

    @property
    def is_soft_fail(self) -> bool:
        return self._qualifier is Qualifier.SOFT_FAIL

    @property
    def is_neutral(self) -> bool:
        return self._qualifier is Qualifier.NEUTRAL

    def _key(self):
        return self._name, self._value, self.qualifier

    def __eq__(self, other):
        if not isinstance(other, Mechanism):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self):
        return hash(self._key())

    def __repr__(self):
        return (
            f"{self.__class__.__name__}({self._name!r}, value={self._value!r}, "
            f"qualifier={self.qualifier.name})"
        )

    def __str__(self):
        text = f"{self.qualifier.symbol}{self._name}"
        if self._value:
            # a and mx values may be only a CIDR length, e.g. "a/24"
            separator = "" if self._value.startswith("/") else ":"
            text += f"{separator}{self._value}"
        return text


def get_mechanisms(record: SPFRecord) -> list[Mechanism]:
    """
    Returns the directives of a parsed record as ``Mechanism`` objects

    Args:
        record (SPFRecord): A parsed SPF record

    Returns:
        list: A ``list`` of ``Mechanism`` objects, in record order
    """
    return [Mechanism.from_directive(directive) for directive in record.directives]
