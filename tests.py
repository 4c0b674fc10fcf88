#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Automated tests"""

import ipaddress
import json
import unittest
from concurrent.futures import ThreadPoolExecutor

from expiringdict import ExpiringDict

import spfparse
from spfparse import (
    AllMechanism,
    AMechanism,
    Directive,
    ExplanationModifier,
    IncludeMechanism,
    IP4Mechanism,
    IP6Mechanism,
    MacroExpand,
    MacroLiteral,
    Mechanism,
    MXMechanism,
    Qualifier,
    RedirectModifier,
    SPFParseError,
    SPFRecord,
    UnknownModifier,
    check_spf_record,
    get_mechanisms,
    join_txt_segments,
    parse_spf_record,
)

known_good_records = [
    "v=spf1 -all",
    "v=spf1 include:_spf.google.com ~all",
    "v=spf1 ip4:192.0.2.0/24 ip4:198.51.100.7 ip6:2001:db8::/32 ?all",
    "v=spf1 a mx a:mail.example.com/28 mx:example.com/24//64 a//64 -all",
    "v=spf1 ptr ptr:example.org exists:%{ir}.%{l1r+-}._spf.%{d} -all",
    "v=spf1 redirect=_spf.example.com",
    "v=spf1 include:example.com exp=explain._spf.%{d} -all",
    "v=spf1 +mx -ip4:203.0.113.1 ~include:example.net ?a:example.org all",
    "v=spf1 ip4:213.5.39.110 -all MS=83859DAEBD1978F9A7A67D3",
]


class Test(unittest.TestCase):
    def testKnownGood(self):
        """Known good SPF records parse"""
        for record in known_good_records:
            parsed_record = parse_spf_record(record, cache=None)
            self.assertIsInstance(parsed_record, SPFRecord)

    def testFailAll(self):
        """A lone -all is one fail directive"""
        parsed_record = parse_spf_record("v=spf1 -all", cache=None)

        self.assertEqual(len(parsed_record.terms), 1)
        directive = parsed_record.terms[0]
        self.assertIsInstance(directive, Directive)
        self.assertIsInstance(directive.mechanism, AllMechanism)
        self.assertEqual(directive.qualifier, Qualifier.FAIL)
        self.assertTrue(directive.explicit)
        self.assertIsNone(directive.mechanism.value)

    def testIncludeDefaultsToPass(self):
        """Directives without a qualifier default to pass"""
        record = "v=spf1 include:example.com -all"
        parsed_record = parse_spf_record(record, cache=None)

        include, all_ = parsed_record.terms
        self.assertIsInstance(include.mechanism, IncludeMechanism)
        self.assertEqual(include.mechanism.value, "example.com")
        self.assertEqual(include.qualifier, Qualifier.PASS)
        self.assertFalse(include.explicit)
        self.assertEqual(all_.qualifier, Qualifier.FAIL)
        self.assertIs(parsed_record.all, all_)

    def testIP4Network(self):
        record = "v=spf1 ip4:192.0.2.0/24 -all"
        mechanism = parse_spf_record(record, cache=None).terms[0].mechanism

        self.assertIsInstance(mechanism, IP4Mechanism)
        self.assertEqual(mechanism.address, ipaddress.IPv4Address("192.0.2.0"))
        self.assertEqual(mechanism.prefix_length, 24)
        self.assertEqual(mechanism.network, ipaddress.IPv4Network("192.0.2.0/24"))

    def testIP4WithoutPrefixLength(self):
        record = "v=spf1 ip4:192.0.2.10 -all"
        mechanism = parse_spf_record(record, cache=None).terms[0].mechanism

        self.assertIsNone(mechanism.prefix_length)
        self.assertEqual(mechanism.network.prefixlen, 32)

    def testUppercaseSPFMechanism(self):
        """Treat uppercase SPF mechanisms as valid"""
        record = "v=spf1 IP4:147.75.8.208 -ALL"
        parsed_record = parse_spf_record(record, cache=None)

        self.assertEqual(parsed_record.terms[0].mechanism.name, "ip4")
        self.assertEqual(str(parsed_record), "v=spf1 ip4:147.75.8.208 -all")

    def testMacroDomainSpec(self):
        """Macro-expands and literals are kept in order"""
        record = "v=spf1 a:%{d}.example.com -all"
        mechanism = parse_spf_record(record, cache=None).terms[0].mechanism

        self.assertIsInstance(mechanism, AMechanism)
        self.assertEqual(
            mechanism.domain_spec.macro_string.segments,
            (MacroExpand(letter="d"), MacroLiteral(".example.com")),
        )
        self.assertEqual(mechanism.domain_spec.domain_end, ".com")
        self.assertIsNone(mechanism.domain_spec.domain)

    def testMacroTransformers(self):
        record = "v=spf1 exists:%{ir}.%{l1r+-}._spf.%{d} -all"
        domain_spec = parse_spf_record(record, cache=None).terms[0].mechanism.domain_spec

        macros = domain_spec.macro_string.macros
        self.assertEqual(macros[0], MacroExpand(letter="i", reverse=True))
        self.assertEqual(
            macros[1], MacroExpand(letter="l", digits=1, reverse=True, delimiters="+-")
        )
        self.assertEqual(macros[0].effective_delimiters, ".")
        self.assertEqual(domain_spec.domain_end, MacroExpand(letter="d"))

    def testMacroEscapes(self):
        record = "v=spf1 exp=explain.%{d}%%%_%- -all"
        exp = parse_spf_record(record, cache=None).exp

        self.assertIsInstance(exp, ExplanationModifier)
        self.assertEqual(exp.value, "explain.%{d}%%%_%-")
        self.assertEqual(exp.domain_spec.domain_end, MacroExpand(escape="-"))
        self.assertEqual(len(exp.domain_spec.macro_string.macros), 1)

    def testMacroZeroDigits(self):
        """Macro digits of zero are captured as given"""
        record = "v=spf1 exists:%{d0}.example.com"
        domain_spec = parse_spf_record(record, cache=None).terms[0].mechanism.domain_spec

        self.assertEqual(domain_spec.macro_string.macros[0].digits, 0)
        self.assertEqual(str(domain_spec), "%{d0}.example.com")

    def testMacroLongDigits(self):
        """Overlong macro digit runs are syntax errors"""
        record = "v=spf1 exists:%{d" + "1" * 5000 + "}.example.com"
        results = check_spf_record(record, cache=None)

        self.assertFalse(results["valid"])
        self.assertEqual(results["position"], 17)

        record = "v=spf1 exists:%{d" + "0" * 5000 + "12}.example.com"
        domain_spec = parse_spf_record(record, cache=None).terms[0].mechanism.domain_spec
        self.assertEqual(domain_spec.macro_string.macros[0].digits, 12)

    def testLongCIDRLength(self):
        """Overlong CIDR lengths are syntax errors"""
        results = check_spf_record("v=spf1 a/" + "1" * 5000, cache=None)
        self.assertFalse(results["valid"])
        self.assertEqual(results["position"], 9)

        results = check_spf_record("v=spf1 ip6:::1/" + "9" * 5000, cache=None)
        self.assertFalse(results["valid"])
        self.assertEqual(results["position"], 15)

        record = "v=spf1 ip4:192.0.2.0/" + "0" * 5000 + "24"
        mechanism = parse_spf_record(record, cache=None).terms[0].mechanism
        self.assertEqual(mechanism.prefix_length, 24)

    def testLongInvalidTopLabel(self):
        """Long labels that are not a valid domain-end fail quickly"""
        record = "v=spf1 include:x." + "a" * 100000 + "_"
        with self.assertRaises(SPFParseError) as context:
            parse_spf_record(record, cache=None)

        self.assertEqual(context.exception.expecting, ["domain-end"])
        self.assertEqual(context.exception.position, len(record))

    def testTopLabels(self):
        valid = ["example.com", "example.c0m", "example.x-1", "example.123a"]
        for domain in valid:
            record = f"v=spf1 include:{domain} -all"
            self.assertIsInstance(parse_spf_record(record, cache=None), SPFRecord)

        invalid = ["example.123", "example.-com", "example.com-", "example"]
        for domain in invalid:
            record = f"v=spf1 include:{domain} -all"
            self.assertRaises(SPFParseError, parse_spf_record, record, cache=None)

    def testUnknownMacroLetter(self):
        record = "v=spf1 exists:%{v}.example.com -all"
        self.assertRaises(SPFParseError, parse_spf_record, record, cache=None)

    def testMissingDomainEnd(self):
        """A domain-spec must end in a top label or a macro"""
        record = "v=spf1 include:example -all"
        with self.assertRaises(SPFParseError) as context:
            parse_spf_record(record, cache=None)

        self.assertEqual(context.exception.position, 22)
        self.assertEqual(context.exception.expecting, ["domain-end"])
        self.assertEqual(
            str(context.exception), "Expected domain-end at position 22"
        )

    def testTrailingDotDomain(self):
        record = "v=spf1 include:example.com. -all"
        include = parse_spf_record(record, cache=None).terms[0].mechanism

        self.assertEqual(include.value, "example.com.")
        self.assertEqual(include.domain_spec.domain_end, ".com.")

    def testDualCIDRLength(self):
        record = "v=spf1 a/24 mx:example.com/24//64 a//64 -all"
        a_24, mx, a_64, _ = parse_spf_record(record, cache=None).terms

        self.assertIsNone(a_24.mechanism.domain_spec)
        self.assertEqual(a_24.mechanism.cidr.ip4, 24)
        self.assertIsNone(a_24.mechanism.cidr.ip6)
        self.assertEqual(a_24.mechanism.value, "/24")
        self.assertIsInstance(mx.mechanism, MXMechanism)
        self.assertEqual(mx.mechanism.domain_spec.domain, "example.com")
        self.assertEqual(mx.mechanism.cidr.ip4, 24)
        self.assertEqual(mx.mechanism.cidr.ip6, 64)
        self.assertIsNone(a_64.mechanism.cidr.ip4)
        self.assertEqual(a_64.mechanism.cidr.ip6, 64)

    def testIPv6Forms(self):
        """IPv6 addresses in all their compressed forms"""
        addresses = [
            "::1",
            "::",
            "2001:db8::1",
            "fe80::",
            "1:2:3:4:5:6:7:8",
            "1::2:3:4:5:6:7",
            "::ffff:192.0.2.1",
            "2001:DB8:0:0:8:800:200C:417A",
        ]
        for address in addresses:
            record = f"v=spf1 ip6:{address} -all"
            mechanism = parse_spf_record(record, cache=None).terms[0].mechanism
            self.assertIsInstance(mechanism, IP6Mechanism)
            self.assertEqual(mechanism.address, ipaddress.IPv6Address(address))

    def testIPv6TooManyGroups(self):
        record = "v=spf1 ip6:1:2:3:4:5:6:7:8:9 -all"
        self.assertRaises(SPFParseError, parse_spf_record, record, cache=None)

    def testIPv6CompressionPositions(self):
        """A :: may follow any number of leading groups up to seven"""
        addresses = [
            "1::3:4:5:6:7:8",
            "1:2::3:4:5:6:7",
            "1:2:3::4:5:6:7",
            "1:2:3:4::5:6:7",
            "1:2:3:4:5::6:7",
            "1:2:3:4:5:6::7",
            "1:2:3:4:5:6:7::",
            "1:2:3:4::192.0.2.1",
            "1:2::3:4:192.0.2.1",
        ]
        for address in addresses:
            record = f"v=spf1 ip6:{address} -all"
            mechanism = parse_spf_record(record, cache=None).terms[0].mechanism
            self.assertEqual(mechanism.address, ipaddress.IPv6Address(address))

    def testIPv6OverlongCompression(self):
        """Compressed addresses with eight explicit groups are invalid"""
        addresses = [
            "1:2:3:4:5:6::1.2.3.4",
            "1:2:3:4:5:6:7::8",
            "1:2:3:4:5:6:7:8::",
        ]
        for address in addresses:
            record = f"v=spf1 ip6:{address} -all"
            self.assertRaises(SPFParseError, parse_spf_record, record, cache=None)

    def testQualifiedModifier(self):
        """Qualifiers may only precede mechanisms"""
        for record in [
            "v=spf1 -redirect=foo.com",
            "v=spf1 ~exp=explain.example.com -all",
            "v=spf1 +foo=bar",
        ]:
            self.assertRaises(SPFParseError, parse_spf_record, record, cache=None)

    def testSPFSyntaxErrors(self):
        """SPF record syntax errors raise SPFParseError"""
        spf_record = join_txt_segments(
            '"v=spf1 mx a:mail.cohaesio.net include: trustpilotservice.com ~all"'
        )
        self.assertRaises(SPFParseError, parse_spf_record, spf_record, cache=None)

    def testSPFInvalidIPv4(self):
        """Invalid ipv4 SPF mechanism values raise SPFParseError"""
        spf_record = (
            "v=spf1 ip4:78.46.96.236 +a +mx +ip4:138.201.239.158 "
            "+ip4:78.46.224.83 "
            "+ip4:relay.mailchannels.net +ip4:138.201.60.20 ~all"
        )
        self.assertRaises(SPFParseError, parse_spf_record, spf_record, cache=None)

    def testSPFInvalidIPv6inIPv4(self):
        """Invalid ipv4 SPF mechanism values raise SPFParseError"""
        spf_record = "v=spf1 ip4:1200:0000:AB00:1234:0000:2552:7777:1313 ~all"
        self.assertRaises(SPFParseError, parse_spf_record, spf_record, cache=None)

    def testSPFInvalidIPv4Octet(self):
        spf_record = "v=spf1 ip4:192.0.2.256 ~all"
        self.assertRaises(SPFParseError, parse_spf_record, spf_record, cache=None)

    def testSPFInvalidIPv4Range(self):
        """Invalid ipv4 SPF mechanism values raise SPFParseError"""
        spf_record = "v=spf1 ip4:78.46.96.236/99 ~all"
        self.assertRaises(SPFParseError, parse_spf_record, spf_record, cache=None)

    def testSPFInvalidIPv6(self):
        """Invalid ipv6 SPF mechanism values raise SPFParseError"""
        spf_record = "v=spf1 ip6:1200:0000:AB00:1234:O000:2552:7777:1313 ~all"
        self.assertRaises(SPFParseError, parse_spf_record, spf_record, cache=None)

    def testSPFInvalidIPv4inIPv6(self):
        """Invalid ipv6 SPF mechanism values raise SPFParseError"""
        spf_record = "v=spf1 ip6:78.46.96.236 ~all"
        self.assertRaises(SPFParseError, parse_spf_record, spf_record, cache=None)

    def testSPFInvalidIPv6Range(self):
        """Invalid ipv6 SPF mechanism values raise SPFParseError"""
        record = "v=spf1 ip6:1200:0000:AB00:1234:0000:2552:7777:1313/130 ~all"
        self.assertRaises(SPFParseError, parse_spf_record, record, cache=None)

    def testVersionTag(self):
        """Only v=spf1 followed by a space is accepted"""
        with self.assertRaises(SPFParseError) as context:
            parse_spf_record("v=spf2 -all", cache=None)
        self.assertEqual(context.exception.position, 5)

        with self.assertRaises(SPFParseError) as context:
            parse_spf_record("v=spf1", cache=None)
        self.assertEqual(context.exception.position, 6)

        with self.assertRaises(SPFParseError) as context:
            parse_spf_record("v=spf10 -all", cache=None)
        self.assertEqual(context.exception.position, 6)

    def testNoTerms(self):
        with self.assertRaises(SPFParseError) as context:
            parse_spf_record("v=spf1   ", cache=None)
        self.assertEqual(context.exception.position, 9)

    def testExtraSpaces(self):
        """Terms may be separated by more than one space"""
        parsed_record = parse_spf_record("v=spf1  -all", cache=None)
        self.assertEqual(len(parsed_record.terms), 1)

        parsed_record = parse_spf_record("v=spf1 mx   -all ", cache=None)
        self.assertEqual(len(parsed_record.terms), 2)

    def testInvalidCharacters(self):
        """Characters outside of printable ASCII are rejected"""
        with self.assertRaises(SPFParseError) as context:
            parse_spf_record("v=spf1 include:exämple.com -all", cache=None)
        self.assertEqual(context.exception.position, 17)

        with self.assertRaises(SPFParseError) as context:
            parse_spf_record("v=spf1\t-all", cache=None)
        self.assertEqual(context.exception.position, 6)

    def testErrorPosition(self):
        """Errors report the farthest position reached in the record"""
        with self.assertRaises(SPFParseError) as context:
            parse_spf_record("v=spf1 include: -all", cache=None)
        self.assertEqual(context.exception.position, 15)
        self.assertEqual(
            context.exception.marked("^"), "v=spf1 include:^ -all"
        )

    def testModifiers(self):
        record = "v=spf1 mx redirect=_spf.example.com foo=%{l}@%{d} bar="
        parsed_record = parse_spf_record(record, cache=None)

        redirect = parsed_record.redirect
        self.assertIsInstance(redirect, RedirectModifier)
        self.assertEqual(redirect.value, "_spf.example.com")
        foo, bar = parsed_record.modifiers[1:]
        self.assertIsInstance(foo, UnknownModifier)
        self.assertEqual(foo.name, "foo")
        self.assertEqual(foo.value, "%{l}@%{d}")
        self.assertEqual(len(foo.macro_string.macros), 2)
        self.assertEqual(bar.value, "")
        self.assertIsNone(parsed_record.all)

    def testEmptyRedirect(self):
        """redirect and exp require a domain-spec"""
        for record, position in [("v=spf1 redirect=", 16), ("v=spf1 EXP= -all", 11)]:
            with self.assertRaises(SPFParseError) as context:
                parse_spf_record(record, cache=None)
            self.assertEqual(context.exception.expecting, ["domain-spec"])
            self.assertEqual(context.exception.position, position)

    def testCanonicalSerialization(self):
        """Serialized records parse into equal records"""
        for record in known_good_records:
            parsed_record = parse_spf_record(record, cache=None)
            reparsed_record = parse_spf_record(str(parsed_record), cache=None)
            self.assertEqual(parsed_record, reparsed_record)

    def testSerializationKeepsExplicitQualifiers(self):
        record = "v=spf1 +mx ip6:2001:DB8::1 ~all"
        self.assertEqual(
            str(parse_spf_record(record, cache=None)),
            "v=spf1 +mx ip6:2001:db8::1 ~all",
        )

    def testMechanismPredicates(self):
        record = "v=spf1 include:example.com +a ?ptr ~mx -ip4:192.0.2.1"
        include, a, ptr, mx, ip4 = get_mechanisms(
            parse_spf_record(record, cache=None)
        )

        self.assertTrue(include.is_pass)
        self.assertEqual(include.qualifier, Qualifier.PASS)
        self.assertTrue(a.is_pass)
        self.assertFalse(include.is_neutral)
        self.assertTrue(ptr.is_neutral)
        self.assertTrue(mx.is_soft_fail)
        self.assertTrue(ip4.is_fail)
        self.assertEqual(ip4.value, "192.0.2.1")
        self.assertIsNone(ptr.value)

    def testMechanismString(self):
        """Mechanism strings always carry a qualifier"""
        self.assertEqual(
            str(Mechanism("include", "example.com")), "+include:example.com"
        )
        self.assertEqual(str(Mechanism("ALL", qualifier="-")), "-all")
        self.assertEqual(str(Mechanism("a", "/24", qualifier="~")), "~a/24")
        self.assertEqual(
            str(Mechanism("mx", "example.com/24//64")), "+mx:example.com/24//64"
        )

    def testMechanismEquality(self):
        self.assertEqual(Mechanism("a"), Mechanism("A", qualifier=Qualifier.PASS))
        self.assertEqual(hash(Mechanism("a")), hash(Mechanism("a", qualifier="+")))
        self.assertNotEqual(Mechanism("a"), Mechanism("a", qualifier="?"))
        self.assertNotEqual(Mechanism("a"), Mechanism("a", "example.com"))

    def testMechanismImmutable(self):
        mechanism = Mechanism("all", qualifier="-")
        with self.assertRaises(AttributeError):
            mechanism.name = "include"

    def testSplitSPFRecord(self):
        """Split SPF records are parsed properly"""
        rec = '"v=spf1 ip4:147.75.8.208 " "include:_spf.salesforce.com -all"'

        results = check_spf_record(join_txt_segments(rec), cache=None)

        self.assertTrue(results["valid"])
        self.assertEqual(results["parsed"]["all"], "fail")
        self.assertEqual(
            results["record"],
            "v=spf1 ip4:147.75.8.208 include:_spf.salesforce.com -all",
        )

    def testJoinTXTSegments(self):
        self.assertEqual(join_txt_segments("v=spf1 -all"), "v=spf1 -all")
        self.assertEqual(join_txt_segments('"v=spf1" " -all"'), "v=spf1 -all")
        self.assertEqual(join_txt_segments('"v=spf1 " "-all"'), "v=spf1 -all")

    def testCheckSPFRecordError(self):
        results = check_spf_record(
            "v=spf1 include:example -all", syntax_error_marker="^", cache=None
        )

        self.assertFalse(results["valid"])
        self.assertEqual(results["position"], 22)
        self.assertEqual(results["expecting"], ["domain-end"])
        self.assertIn("v=spf1 include:example^ -all", results["error"])
        self.assertNotIn("parsed", results)

    def testCheckSPFRecordDetails(self):
        results = check_spf_record(
            "v=spf1 include:_spf.example.com a:%{d}.example.com/24 ~all",
            cache=None,
        )

        parsed = results["parsed"]
        self.assertEqual(parsed["all"], "softfail")
        include, a, all_ = parsed["terms"]
        self.assertEqual(include["domain"], "_spf.example.com")
        self.assertEqual(include["action"], "pass")
        self.assertEqual(a["ip4_cidr_length"], 24)
        self.assertEqual(a["macros"][0]["letter"], "d")
        self.assertEqual(all_["qualifier"], "~")

    def testCache(self):
        """Successful parses are cached per record"""
        cache = ExpiringDict(max_len=10, max_age_seconds=60)
        record = "v=spf1 mx -all"

        parsed_record = parse_spf_record(record, cache=cache)

        self.assertIs(parse_spf_record(record, cache=cache), parsed_record)
        self.assertIsNot(parse_spf_record(record, cache=None), parsed_record)
        self.assertRaises(SPFParseError, parse_spf_record, "v=spf1 a=", cache=cache)
        self.assertEqual(len(cache), 1)

    def testConcurrentParsing(self):
        records = known_good_records * 10
        with ThreadPoolExecutor(max_workers=8) as executor:
            results = list(
                executor.map(lambda r: parse_spf_record(r, cache=None), records)
            )
        for record, parsed_record in zip(records, results):
            self.assertEqual(parsed_record, parse_spf_record(record, cache=None))

    def testOutput(self):
        results = [
            check_spf_record("v=spf1 include:example.com -all", cache=None),
            check_spf_record("v=spf2 -all", cache=None),
        ]

        self.assertEqual(json.loads(spfparse.results_to_json(results)), results)
        rows = spfparse.results_to_csv_rows(results)
        self.assertEqual(len(rows), 3)
        self.assertEqual(rows[1]["name"], "all")
        self.assertFalse(rows[2]["valid"])
        csv = spfparse.results_to_csv(results)
        self.assertTrue(csv.startswith("record,valid,type,qualifier"))


if __name__ == "__main__":
    unittest.main(verbosity=2)
