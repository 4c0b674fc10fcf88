# -*- coding: utf-8 -*-
"""Sender Policy Framework (SPF) record parsing"""

from __future__ import annotations

import logging
import os
import re
from typing import Optional

import pyleri
from expiringdict import ExpiringDict

from spfparse._constants import (
    PARSE_CACHE_MAX_AGE_SECONDS,
    PARSE_CACHE_MAX_LEN,
    SPF_VERSION_TAG,
    SYNTAX_ERROR_MARKER,
)
from spfparse.address import (
    CIDR_LENGTH_REGEX_STRING,
    DEC_OCTET_REGEX_STRING,
    H16_REGEX_STRING,
    IP4_MAX_CIDR_LENGTH,
    IP6_MAX_CIDR_LENGTH,
    DualCIDRLength,
    ipv6_address,
    to_cidr_length,
    to_ipv4_address,
    to_ipv6_address,
)
from spfparse.macro import (
    DOMAIN_LITERAL_REGEX_STRING,
    MACRO_DELIMITERS_REGEX_STRING,
    MACRO_DIGITS_REGEX_STRING,
    MACRO_ESCAPES,
    MACRO_LETTER_REGEX_STRING,
    MACRO_LITERAL_REGEX_STRING,
    DomainSpec,
    MacroExpand,
    MacroLiteral,
    MacroString,
    build_domain_spec,
    to_macro_digits,
)
from spfparse.terms import (
    AllMechanism,
    AMechanism,
    Directive,
    ExistsMechanism,
    ExplanationModifier,
    IncludeMechanism,
    IP4Mechanism,
    IP6Mechanism,
    MXMechanism,
    PTRMechanism,
    Qualifier,
    RedirectModifier,
    SPFRecord,
    Term,
    UnknownModifier,
)
from spfparse.utils import SPFError, SPFParseError

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

TERM_REGEX = re.compile(r"[^ ]+")
INVALID_CHARACTER_REGEX = re.compile(r"[^\x20-\x7e]")

# Modifier names that require a domain-spec value
RESERVED_MODIFIER_NAMES = ("redirect", "exp")

PARSE_CACHE = ExpiringDict(
    max_len=PARSE_CACHE_MAX_LEN, max_age_seconds=PARSE_CACHE_MAX_AGE_SECONDS
)

# Human-readable names for grammar elements in error messages
_EXPECTING_DESCRIPTIONS = {
    "qualifier": "a qualifier (+, -, ~ or ?)",
    "colon": '":"',
    "double_colon": '"::"',
    "slash": '"/"',
    "dot": '"."',
    "equals": '"="',
    "macro_open": '"%{"',
    "macro_close": '"}"',
    "macro_escape": '"%%", "%_" or "%-"',
    "macro_letter": "a macro letter",
    "macro_digits": "a number of parts",
    "macro_reverse": '"r"',
    "macro_delimiters": "a macro delimiter",
    "macro_literal": "a macro literal",
    "domain_literal": "a domain name",
    "modifier_name": "a modifier name",
    "dec_octet": "a decimal octet",
    "h16": "a 16-bit hex group",
    "cidr_digits": "a CIDR length",
    "end_of_statement": "a space or the end of the record",
}


class _SPFTermGrammar(pyleri.Grammar):
    """Defines Pyleri grammar for a single SPF term (RFC 7208 § 12)"""

    colon = pyleri.Token(":")
    double_colon = pyleri.Token("::")
    slash = pyleri.Token("/")
    dot = pyleri.Token(".")
    equals = pyleri.Token("=")

    qualifier = pyleri.Regex(r"[+\-~?]")

    # Macro strings
    macro_open = pyleri.Token("%{")
    macro_close = pyleri.Token("}")
    macro_letter = pyleri.Regex(MACRO_LETTER_REGEX_STRING)
    macro_digits = pyleri.Regex(MACRO_DIGITS_REGEX_STRING)
    macro_reverse = pyleri.Token("r")
    macro_delimiters = pyleri.Regex(MACRO_DELIMITERS_REGEX_STRING)
    macro_escape = pyleri.Tokens(" ".join(f"%{escape}" for escape in MACRO_ESCAPES))
    macro_expand = pyleri.Choice(
        pyleri.Sequence(
            macro_open,
            macro_letter,
            pyleri.Optional(macro_digits),
            pyleri.Optional(macro_reverse),
            pyleri.Optional(macro_delimiters),
            macro_close,
        ),
        macro_escape,
        most_greedy=False,
    )
    macro_literal = pyleri.Regex(MACRO_LITERAL_REGEX_STRING)
    macro_string = pyleri.Repeat(
        pyleri.Choice(macro_expand, macro_literal, most_greedy=False)
    )

    # The domain-end is checked when the parse tree is converted
    domain_literal = pyleri.Regex(DOMAIN_LITERAL_REGEX_STRING)
    domain_spec = pyleri.Repeat(
        pyleri.Choice(macro_expand, domain_literal, most_greedy=False), mi=1
    )

    # Addresses and CIDR lengths
    dec_octet = pyleri.Regex(DEC_OCTET_REGEX_STRING)
    ip4_network = pyleri.Sequence(
        dec_octet, dot, dec_octet, dot, dec_octet, dot, dec_octet
    )
    h16 = pyleri.Regex(H16_REGEX_STRING)
    ls32 = pyleri.Choice(
        pyleri.Sequence(h16, colon, h16), ip4_network, most_greedy=False
    )
    ip6_network = ipv6_address(h16, ls32, colon, double_colon)
    cidr_digits = pyleri.Regex(CIDR_LENGTH_REGEX_STRING)
    ip4_cidr_length = pyleri.Sequence(slash, cidr_digits)
    ip6_cidr_length = pyleri.Sequence(slash, cidr_digits)
    dual_cidr_length = pyleri.Sequence(
        pyleri.Optional(ip4_cidr_length),
        pyleri.Optional(pyleri.Sequence(slash, ip6_cidr_length)),
    )

    # Mechanisms (RFC 7208 § 5)
    k_all = pyleri.Keyword("all", ign_case=True)
    k_include = pyleri.Keyword("include", ign_case=True)
    k_a = pyleri.Keyword("a", ign_case=True)
    k_mx = pyleri.Keyword("mx", ign_case=True)
    k_ptr = pyleri.Keyword("ptr", ign_case=True)
    k_ip4 = pyleri.Keyword("ip4", ign_case=True)
    k_ip6 = pyleri.Keyword("ip6", ign_case=True)
    k_exists = pyleri.Keyword("exists", ign_case=True)
    k_redirect = pyleri.Keyword("redirect", ign_case=True)
    k_exp = pyleri.Keyword("exp", ign_case=True)

    all_mechanism = pyleri.Sequence(k_all)
    include_mechanism = pyleri.Sequence(k_include, colon, domain_spec)
    a_mechanism = pyleri.Sequence(
        k_a, pyleri.Optional(pyleri.Sequence(colon, domain_spec)), dual_cidr_length
    )
    mx_mechanism = pyleri.Sequence(
        k_mx, pyleri.Optional(pyleri.Sequence(colon, domain_spec)), dual_cidr_length
    )
    ptr_mechanism = pyleri.Sequence(
        k_ptr, pyleri.Optional(pyleri.Sequence(colon, domain_spec))
    )
    ip4_mechanism = pyleri.Sequence(
        k_ip4, colon, ip4_network, pyleri.Optional(ip4_cidr_length)
    )
    ip6_mechanism = pyleri.Sequence(
        k_ip6, colon, ip6_network, pyleri.Optional(ip6_cidr_length)
    )
    exists_mechanism = pyleri.Sequence(k_exists, colon, domain_spec)
    mechanism = pyleri.Choice(
        all_mechanism,
        include_mechanism,
        a_mechanism,
        mx_mechanism,
        ptr_mechanism,
        ip4_mechanism,
        ip6_mechanism,
        exists_mechanism,
        most_greedy=False,
    )
    directive = pyleri.Sequence(pyleri.Optional(qualifier), mechanism)

    # Modifiers (RFC 7208 § 6)
    modifier_name = pyleri.Regex(r"[A-Za-z][A-Za-z0-9\-_.]*")
    redirect_modifier = pyleri.Sequence(k_redirect, equals, domain_spec)
    explanation_modifier = pyleri.Sequence(k_exp, equals, domain_spec)
    unknown_modifier = pyleri.Sequence(modifier_name, equals, macro_string)
    modifier = pyleri.Choice(
        redirect_modifier, explanation_modifier, unknown_modifier, most_greedy=False
    )

    START = pyleri.Choice(directive, modifier, most_greedy=False)


def _iter_named(node, names):
    """Yields the outermost descendants of a parse tree node with one of the given element names"""
    for child in node.children:
        if getattr(child.element, "name", None) in names:
            yield child
        else:
            yield from _iter_named(child, names)


def _find(node, *names):
    return next(_iter_named(node, names), None)


def _describe(element) -> str:
    name = getattr(element, "name", None) or str(element).strip('"')
    if name.startswith("k_"):
        # keywords
        return f'"{name[2:]}"'
    return _EXPECTING_DESCRIPTIONS.get(name, name.replace("_", " "))


class _TermConverter:
    """Converts the parse tree of one term into a ``Term``"""

    def __init__(self, record: str, offset: int):
        self.record = record
        self.offset = offset

    def error(self, position: int, *expecting: str) -> SPFParseError:
        return SPFParseError(self.record, self.offset + position, expecting)

    def macro_expand(self, node) -> MacroExpand:
        escape = _find(node, "macro_escape")
        if escape is not None:
            return MacroExpand(escape=escape.string[1])
        digits = None
        digits_node = _find(node, "macro_digits")
        if digits_node is not None:
            digits = to_macro_digits(
                digits_node.string, self.record, self.offset + digits_node.start
            )
        delimiters_node = _find(node, "macro_delimiters")
        return MacroExpand(
            letter=_find(node, "macro_letter").string,
            digits=digits,
            reverse=_find(node, "macro_reverse") is not None,
            delimiters="" if delimiters_node is None else delimiters_node.string,
        )

    def segments(self, node, literal_name: str) -> list:
        segments = []
        for child in _iter_named(node, ("macro_expand", literal_name)):
            if child.element.name == literal_name:
                segments.append(MacroLiteral(child.string))
            else:
                segments.append(self.macro_expand(child))
        return segments

    def macro_string(self, node) -> MacroString:
        if node is None:
            return MacroString()
        return MacroString(tuple(self.segments(node, "macro_literal")))

    def domain_spec(self, node) -> Optional[DomainSpec]:
        if node is None:
            return None
        return build_domain_spec(
            self.segments(node, "domain_literal"), self.record, self.offset + node.end
        )

    def cidr_length(self, node, maximum: int) -> Optional[int]:
        if node is None:
            return None
        digits = _find(node, "cidr_digits")
        return to_cidr_length(
            digits.string, maximum, self.record, self.offset + digits.start
        )

    def dual_cidr_length(self, node) -> DualCIDRLength:
        return DualCIDRLength(
            ip4=self.cidr_length(_find(node, "ip4_cidr_length"), IP4_MAX_CIDR_LENGTH),
            ip6=self.cidr_length(_find(node, "ip6_cidr_length"), IP6_MAX_CIDR_LENGTH),
        )

    def mechanism(self, node):
        name = node.element.name
        if name == "all_mechanism":
            return AllMechanism()
        if name == "include_mechanism":
            return IncludeMechanism(self.domain_spec(_find(node, "domain_spec")))
        if name == "exists_mechanism":
            return ExistsMechanism(self.domain_spec(_find(node, "domain_spec")))
        if name == "ptr_mechanism":
            return PTRMechanism(self.domain_spec(_find(node, "domain_spec")))
        if name in ("a_mechanism", "mx_mechanism"):
            mechanism_class = AMechanism if name == "a_mechanism" else MXMechanism
            return mechanism_class(
                domain_spec=self.domain_spec(_find(node, "domain_spec")),
                cidr=self.dual_cidr_length(node),
            )
        if name == "ip4_mechanism":
            network = _find(node, "ip4_network")
            return IP4Mechanism(
                to_ipv4_address(
                    network.string, self.record, self.offset + network.start
                ),
                self.cidr_length(
                    _find(node, "ip4_cidr_length"), IP4_MAX_CIDR_LENGTH
                ),
            )
        network = _find(node, "ip6_network")
        return IP6Mechanism(
            to_ipv6_address(network.string, self.record, self.offset + network.start),
            self.cidr_length(_find(node, "ip6_cidr_length"), IP6_MAX_CIDR_LENGTH),
        )

    def directive(self, node) -> Directive:
        qualifier = _find(node, "qualifier")
        mechanism = _find(node, "mechanism").children[0]
        if qualifier is None:
            return Directive(self.mechanism(mechanism))
        return Directive(
            self.mechanism(mechanism),
            qualifier=Qualifier.from_symbol(qualifier.string),
            explicit=True,
        )

    def modifier(self, node):
        name = node.element.name
        if name == "redirect_modifier":
            return RedirectModifier(self.domain_spec(_find(node, "domain_spec")))
        if name == "explanation_modifier":
            return ExplanationModifier(self.domain_spec(_find(node, "domain_spec")))
        modifier_name = _find(node, "modifier_name")
        if modifier_name.string.lower() in RESERVED_MODIFIER_NAMES:
            raise self.error(_find(node, "equals").end, "domain-spec")
        return UnknownModifier(
            modifier_name.string, self.macro_string(_find(node, "macro_string"))
        )

    def term(self, tree) -> Term:
        node = _find(tree, "directive", "modifier")
        if node.element.name == "directive":
            return self.directive(node)
        return self.modifier(node.children[0])


def _parse_term(grammar: _SPFTermGrammar, record: str, text: str, offset: int) -> Term:
    parsed_term = grammar.parse(text)
    if not parsed_term.is_valid:
        expecting = [_describe(element) for element in parsed_term.expecting]
        raise SPFParseError(record, offset + parsed_term.pos, expecting)
    return _TermConverter(record, offset).term(parsed_term.tree)


def parse_spf_record(
    record: str, *, cache: Optional[ExpiringDict] = PARSE_CACHE
) -> SPFRecord:
    """
    Parses an SPF record into its terms

    The record must consist of the ``v=spf1`` version tag and one or more
    terms, separated by one or more spaces. Parsing is all-or-nothing.

    Args:
        record (str): An SPF record
        cache (ExpiringDict): Cache storage, or ``None`` to skip caching

    Returns:
        SPFRecord: The parsed record

    Raises:
        :exc:`spfparse.SPFParseError`
    """
    if isinstance(cache, ExpiringDict):
        cached_record = cache.get(record)
        if isinstance(cached_record, SPFRecord):
            logging.debug("Using a cached parse of the SPF record")
            return cached_record

    logging.debug(f"Parsing the SPF record: {record}")
    invalid_character = INVALID_CHARACTER_REGEX.search(record)
    if invalid_character:
        raise SPFParseError(
            record, invalid_character.start(), ["a printable ASCII character"]
        )
    if not record.startswith(SPF_VERSION_TAG):
        pos = len(os.path.commonprefix([record, SPF_VERSION_TAG]))
        raise SPFParseError(record, pos, [f'"{SPF_VERSION_TAG}"'])
    pos = len(SPF_VERSION_TAG)
    if record[pos : pos + 1] != " ":
        raise SPFParseError(record, pos, ["a space"])

    # pyleri grammars hold the state of the parse in progress
    spf_syntax_checker = _SPFTermGrammar()
    terms = [
        _parse_term(spf_syntax_checker, record, match.group(0), match.start())
        for match in TERM_REGEX.finditer(record, pos)
    ]
    if len(terms) == 0:
        raise SPFParseError(record, len(record), ["a mechanism or modifier"])

    parsed_record = SPFRecord(tuple(terms))
    logging.debug(f"Parsed {len(terms)} SPF terms")
    if cache is not None:
        cache[record] = parsed_record

    return parsed_record


def check_spf_record(
    record: str,
    *,
    syntax_error_marker: str = SYNTAX_ERROR_MARKER,
    cache: Optional[ExpiringDict] = PARSE_CACHE,
) -> dict:
    """
    Returns a dictionary with a parsed SPF record or an error.

    Args:
        record (str): An SPF record
        syntax_error_marker (str): The marker for pointing out syntax errors
        cache (ExpiringDict): Cache storage, or ``None`` to skip caching

    Returns:
        dict: A ``dict`` with the following keys:
            - ``record`` - The SPF record string
            - ``valid`` - True
            - ``parsed`` - The parsed SPF record

        If a syntax error is found, the dictionary will have the following keys:
            - ``record`` - The SPF record string
            - ``valid`` - False
            - ``error`` - The error message
            - ``position`` - The position of the error
            - ``expecting`` - A ``list`` of what was expected at that position
    """
    spf_results = {"record": record, "valid": True}
    try:
        spf_results["parsed"] = parse_spf_record(record, cache=cache).to_dict()
    except SPFError as error:
        spf_results["valid"] = False
        spf_results["error"] = str(error.args[0])
        if isinstance(error, SPFParseError):
            spf_results["error"] += (
                f" (marked with {syntax_error_marker}) in: "
                f"{error.marked(syntax_error_marker)}"
            )
        if hasattr(error, "data") and error.data:
            for key in error.data:
                spf_results[key] = error.data[key]

    return spf_results
