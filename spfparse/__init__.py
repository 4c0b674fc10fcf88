# -*- coding: utf-8 -*-

"""Parses and validates Sender Policy Framework (SPF) records"""

from __future__ import annotations

import json
from csv import DictWriter
from io import StringIO
from typing import Union

import spfparse._constants
from spfparse.address import DualCIDRLength
from spfparse.grammar import PARSE_CACHE, check_spf_record, parse_spf_record
from spfparse.macro import DomainSpec, MacroExpand, MacroLiteral, MacroString
from spfparse.mechanism import Mechanism, get_mechanisms
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
    UnknownModifier,
)
from spfparse.utils import SPFError, SPFParseError, join_txt_segments

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


__version__ = spfparse._constants.__version__

__all__ = [
    "__version__",
    "PARSE_CACHE",
    "parse_spf_record",
    "check_spf_record",
    "join_txt_segments",
    "SPFError",
    "SPFParseError",
    "Mechanism",
    "get_mechanisms",
    "SPFRecord",
    "Directive",
    "Qualifier",
    "AllMechanism",
    "IncludeMechanism",
    "AMechanism",
    "MXMechanism",
    "PTRMechanism",
    "IP4Mechanism",
    "IP6Mechanism",
    "ExistsMechanism",
    "RedirectModifier",
    "ExplanationModifier",
    "UnknownModifier",
    "DomainSpec",
    "DualCIDRLength",
    "MacroExpand",
    "MacroLiteral",
    "MacroString",
    "results_to_json",
    "results_to_csv_rows",
    "results_to_csv",
    "output_to_file",
]


def results_to_json(
    results: Union[dict[str, object], list[dict[str, object]]],
) -> str:
    """
    Converts a dictionary of results or list of results to a JSON string

    Args:
        results (dict): A dictionary of results

    Returns:
        str: Results in JSON format
    """
    return json.dumps(results, ensure_ascii=False, indent=2)


def results_to_csv_rows(
    results: Union[dict, list[dict]],
) -> list[dict]:
    """
    Converts a results dictionary or list of dictionaries and returns a
    list of CSV row dictionaries, with one row per SPF term

    Invalid records get a single row with the error.

    Args:
        results (dict): A dictionary of results

    Returns:
        list: A list of CSV row dictionaries
    """
    rows = []

    if type(results) is dict:
        results = [results]

    for result in results:
        if not result["valid"]:
            rows.append(
                {
                    "record": result["record"],
                    "valid": False,
                    "error": result["error"],
                }
            )
            continue
        for term in result["parsed"]["terms"]:
            row = {"record": result["record"], "valid": True}
            row["type"] = term["type"]
            row["qualifier"] = term.get("qualifier")
            row["action"] = term.get("action")
            row["name"] = term["name"]
            row["value"] = term["value"]
            if "macros" in term:
                row["macros"] = "|".join(
                    macro.get("escape") or macro["letter"] for macro in term["macros"]
                )
            rows.append(row)
    return rows


def results_to_csv(results: Union[dict, list[dict]]) -> str:
    """
    Converts a dictionary of results to CSV

    Args:
        results (dict): A dictionary of results

    Returns:
        str: A CSV of results
    """
    fields = [
        "record",
        "valid",
        "type",
        "qualifier",
        "action",
        "name",
        "value",
        "macros",
        "error",
    ]
    output = StringIO(newline="\n")
    writer = DictWriter(output, fieldnames=fields)
    writer.writeheader()
    rows = results_to_csv_rows(results)
    writer.writerows(rows)
    output.flush()

    return output.getvalue()


def output_to_file(path: str, content: str):
    """
    Write given content to the given path

    Args:
        path (str): A file path
        content (str): JSON or CSV text
    """
    with open(
        path, "w", newline="\n", encoding="utf-8", errors="ignore"
    ) as output_file:
        output_file.write(content)
