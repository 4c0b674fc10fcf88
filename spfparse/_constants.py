# -*- coding: utf-8 -*-
"""Constant values"""

from __future__ import annotations
import os

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

__version__ = "1.0.0"

SPF_VERSION_TAG = "v=spf1"
SYNTAX_ERROR_MARKER = "➞"
CACHE_MAX_LEN = 200000
CACHE_MAX_AGE_SECONDS = 1800

env = os.environ

if "SYNTAX_ERROR_MARKER" in env:
    SYNTAX_ERROR_MARKER = env["SYNTAX_ERROR_MARKER"]
if "CACHE_MAX_LEN" in env:
    CACHE_MAX_LEN = int(env["CACHE_MAX_LEN"])
if "CACHE_MAX_AGE_SECONDS" in env:
    CACHE_MAX_AGE_SECONDS = int(env["CACHE_MAX_AGE_SECONDS"])

PARSE_CACHE_MAX_LEN = CACHE_MAX_LEN
if "PARSE_CACHE_MAX_LEN" in env:
    PARSE_CACHE_MAX_LEN = int(env["PARSE_CACHE_MAX_LEN"])
PARSE_CACHE_MAX_AGE_SECONDS = CACHE_MAX_AGE_SECONDS
if "PARSE_CACHE_MAX_AGE_SECONDS" in env:
    PARSE_CACHE_MAX_AGE_SECONDS = int(env["PARSE_CACHE_MAX_AGE_SECONDS"])
