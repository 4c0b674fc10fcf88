#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Parses and validates SPF records"""

from __future__ import annotations

import os
from argparse import ArgumentParser

import logging

from spfparse import (
    __version__,
    SPFParseError,
    check_spf_record,
    get_mechanisms,
    join_txt_segments,
    parse_spf_record,
    results_to_json,
    results_to_csv,
    output_to_file,
)

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


def _main():
    """Called when the module is executed"""
    arg_parser = ArgumentParser(description=__doc__)
    arg_parser.add_argument(
        "record",
        nargs="+",
        help="one or more SPF records, or a single path to a "
        "file containing one record per line",
    )
    arg_parser.add_argument(
        "-f",
        "--format",
        default="json",
        help="specify JSON or CSV screen output format",
    )
    arg_parser.add_argument(
        "-o",
        "--output",
        nargs="+",
        help="one or more file paths to output to "
        "(must end in .json or .csv) "
        "(silences screen output)",
    )
    arg_parser.add_argument(
        "-m",
        "--mechanisms",
        action="store_true",
        help="print the mechanisms of each record, one per line",
    )
    arg_parser.add_argument("-v", "--version", action="version", version=__version__)
    arg_parser.add_argument(
        "--debug", action="store_true", help="enable debugging output"
    )

    args = arg_parser.parse_args()

    logging_format = "%(asctime)s - %(levelname)s: %(message)s"
    logging.basicConfig(level=logging.WARNING, format=logging_format)

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)
        logging.debug("Debug output enabled")
    records = args.record
    if len(records) == 1 and os.path.exists(records[0]):
        with open(records[0]) as records_file:
            records = [line.strip() for line in records_file.readlines()]
            records = [record for record in records if record != ""]
    records = [join_txt_segments(record) for record in records]

    if args.mechanisms:
        for record in records:
            try:
                for mechanism in get_mechanisms(parse_spf_record(record)):
                    print(mechanism)
            except SPFParseError as error:
                logging.error(f"{error}: {error.marked()}")
        return

    results = [check_spf_record(record) for record in records]
    if len(results) == 1:
        results = results[0]

    if args.output is None:
        if args.format.lower() == "json":
            results = results_to_json(results)
        elif args.format.lower() == "csv":
            results = results_to_csv(results)
        print(results)
    else:
        for path in args.output:
            json_path = path.lower().endswith(".json")
            csv_path = path.lower().endswith(".csv")

            if not json_path and not csv_path:
                logging.error(f"Output path {path} must end in .json or .csv")
            else:
                if json_path:
                    output_to_file(path, results_to_json(results))
                elif csv_path:
                    output_to_file(path, results_to_csv(results))


if __name__ == "__main__":
    _main()
