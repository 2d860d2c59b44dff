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
"""Builds wire-ready records from raw source rows."""

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from .normalizer import (
    TypedValue,
    format_timestamp,
    infer_type,
    parse_timestamp,
    sanitize_name,
)

TIME_GENERATED = "TimeGenerated"

RawRecord = Mapping[str, str | None] | Iterable[tuple[str, str | None]]
AssembledRecord = dict[str, TypedValue]


def _pairs(raw: RawRecord) -> Iterable[tuple[str, Any]]:
    if isinstance(raw, Mapping):
        return raw.items()
    return raw


def _is_timestamp(value: TypedValue) -> bool:
    # Numbers are floats, so a string that parses was inferred as a timestamp.
    return isinstance(value, str) and parse_timestamp(value) is not None


def assemble(
    raw: RawRecord,
    time_column: str | None,
    fallback_timestamp: datetime,
) -> AssembledRecord:
    """Normalize a raw row and guarantee it carries a ``TimeGenerated`` field.

    Fields keep the source order. When ``time_column`` names a field whose
    value parses as a date/time, that instant becomes ``TimeGenerated`` and
    replaces anything inferred for it. Otherwise an existing
    ``TimeGenerated`` field is kept if it was inferred as a timestamp, and
    failing that the fallback timestamp is used.

    Args:
        raw: A mapping or an iterable of ``(name, value)`` pairs.
        time_column: Raw name of the column holding the event time, if any.
        fallback_timestamp: The run-start instant.

    Returns:
        A new ordered dict of sanitized names to typed values.
    """
    record: AssembledRecord = {}
    designated: str | None = None

    for name, value in _pairs(raw):
        record[sanitize_name(name)] = infer_type(value)
        if time_column is not None and name == time_column:
            designated = value

    if designated:
        parsed = parse_timestamp(designated)
        if parsed is not None:
            record[TIME_GENERATED] = format_timestamp(parsed)
            return record

    if not _is_timestamp(record.get(TIME_GENERATED)):
        record[TIME_GENERATED] = format_timestamp(fallback_timestamp)
    return record
