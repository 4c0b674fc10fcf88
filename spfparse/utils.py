# -*- coding: utf-8 -*-
"""Shared exceptions and helpers"""

from __future__ import annotations

import re
from typing import Optional
from collections.abc import Sequence

from spfparse._constants import SYNTAX_ERROR_MARKER

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

QUOTED_TXT_SEGMENT_REGEX = re.compile(r'"((?:[^"\\]|\\.)*)"')


class SPFError(Exception):
    """Raised when a fatal SPF error occurs"""

    def __init__(self, msg: str, data: Optional[dict] = None):
        """
        Args:
            msg (str): The error message
            data (dict): A dictionary of data to include in the output
        """
        self.data = data
        Exception.__init__(self, msg)


class SPFParseError(SPFError):
    """Raised when an SPF record does not match the SPF grammar"""

    def __init__(self, record: str, position: int, expecting: Sequence[str]):
        """
        Args:
            record (str): The record that failed to parse
            position (int): The farthest position the parser reached
            expecting (list): Descriptions of what was expected at ``position``
        """
        self.record = record
        self.position = position
        self.expecting = sorted(set(expecting))
        expecting_str = " or ".join(self.expecting)
        SPFError.__init__(
            self,
            f"Expected {expecting_str} at position {position}",
            data={"position": position, "expecting": self.expecting},
        )

    def marked(self, syntax_error_marker: str = SYNTAX_ERROR_MARKER) -> str:
        """
        Returns the record with a marker inserted at the error position

        Args:
            syntax_error_marker (str): The marker to insert

        Returns:
            str: The marked record
        """
        pos = self.position
        return self.record[:pos] + syntax_error_marker + self.record[pos:]


def join_txt_segments(record: str) -> str:
    """
    Joins the quoted character-strings of a TXT record into a single string

    RFC 7208 § 3.3 requires the strings to be concatenated without adding
    spaces. Records without quotes are returned unchanged.

    Args:
        record (str): A TXT record, e.g. ``"v=spf1 " "-all"``

    Returns:
        str: The joined record
    """
    record = record.strip()
    if not record.startswith('"'):
        return record
    segments = QUOTED_TXT_SEGMENT_REGEX.findall(record)
    return "".join(segment.replace('\\"', '"') for segment in segments)
