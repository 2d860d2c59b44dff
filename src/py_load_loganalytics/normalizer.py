# Copyright 2025 Gowtham Rao <rao@ohdsi.org>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Sanitizes field names and infers typed values for a single record.

Inference is a strict priority chain: boolean, then number, then
timestamp, then the untouched original string. Empty or absent values
become null. Nothing in this module raises on bad input.
"""

import math
import re
from datetime import datetime, timezone

# The closed set of values a normalized field may carry. Timestamps are
# carried as UTC ISO-8601 strings ending in 'Z'.
TypedValue = None | bool | float | str

MAX_NAME_LENGTH = 45
PLACEHOLDER_NAME = "col"

_INVALID_NAME_CHARS = re.compile(r"[^A-Za-z0-9_]")
# Plain decimal or scientific notation, no thousands separators.
_NUMBER_PATTERN = re.compile(
    r"^\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?\s*$", re.ASCII
)

# Formats tried after ISO-8601, covering the common spreadsheet exports.
_DATETIME_FORMATS = (
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y %I:%M %p",
    "%m/%d/%Y",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d",
    "%d %B %Y",
    "%d %b %Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%a, %d %b %Y %H:%M:%S GMT",
)


def sanitize_name(raw: str) -> str:
    """Return a column name safe for the destination table.

    Every character outside ``[A-Za-z0-9_]`` becomes ``_``, a leading digit
    gets a ``_`` prefix, an empty result becomes ``col`` and the name is cut
    to 45 characters. Distinct raw names may collide; callers keep the last.
    """
    name = _INVALID_NAME_CHARS.sub("_", raw)
    if name[:1].isdigit():
        name = "_" + name
    if not name:
        name = PLACEHOLDER_NAME
    return name[:MAX_NAME_LENGTH]


def parse_timestamp(raw: str) -> datetime | None:
    """Parse a date/time string into an aware UTC datetime.

    Naive values are taken to be UTC. Returns None when no format matches
    or the UTC instant is outside the datetime range.
    """
    text = raw.strip()
    if not text:
        return None

    parsed: datetime | None = None
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        for fmt in _DATETIME_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except OverflowError:
        # The UTC instant falls outside years 1..9999.
        return None


def format_timestamp(value: datetime) -> str:
    """Render a datetime as round-trippable ISO-8601 in UTC with a 'Z' suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_number(raw: str) -> float | None:
    if not _NUMBER_PATTERN.match(raw):
        return None
    number = float(raw)
    # JSON has no representation for overflowed values.
    if not math.isfinite(number):
        return None
    return number


def infer_type(raw: str | None) -> TypedValue:
    """Convert a raw field value into the first type it parses as."""
    if raw is None or raw == "":
        return None

    lowered = raw.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False

    number = _parse_number(raw)
    if number is not None:
        return number

    timestamp = parse_timestamp(raw)
    if timestamp is not None:
        return format_timestamp(timestamp)

    return raw
