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
"""Reads raw records from CSV and JSON files."""

import csv
import json
import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

RawRow = dict[str, str | None]

JSON_LINES_SUFFIXES = {".jsonl", ".ndjson"}


def read_csv_records(path: str | Path, encoding: str = "utf-8-sig") -> Iterator[RawRow]:
    """Yield one raw record per CSV data row, keyed by the header row.

    Cells missing at the end of a short row are None. Cells beyond the
    header are dropped with a warning.
    """
    with open(path, "r", encoding=encoding, newline="") as f:
        reader = csv.DictReader(f)
        for row in reader:
            extra = row.pop(None, None)
            if extra:
                logger.warning(
                    "Dropping %d cell(s) beyond the header on line %d of %s.",
                    len(extra),
                    reader.line_num,
                    path,
                )
            yield row


def _to_raw(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    # Numbers and nested structures as compact JSON text.
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _to_row(item: Any, where: str) -> RawRow:
    if not isinstance(item, dict):
        raise ValueError(f"Expected a JSON object at {where}, got {type(item).__name__}.")
    return {str(key): _to_raw(value) for key, value in item.items()}


def read_json_records(path: str | Path, lines: bool | None = None) -> Iterator[RawRow]:
    """Yield raw records from a JSON array, a single object, or JSON Lines.

    JSON Lines is assumed for .jsonl and .ndjson files unless ``lines`` says otherwise.
    """
    path = Path(path)
    if lines is None:
        lines = path.suffix.lower() in JSON_LINES_SUFFIXES
    with open(path, "r", encoding="utf-8-sig") as f:
        if lines:
            for line_number, line in enumerate(f, start=1):
                if line.strip():
                    yield _to_row(json.loads(line), f"{path}:{line_number}")
            return
        data = json.load(f)

    if isinstance(data, list):
        for index, item in enumerate(data):
            yield _to_row(item, f"{path}[{index}]")
    else:
        yield _to_row(data, str(path))


def open_records(path: str | Path, fmt: str | None = None) -> Iterator[RawRow]:
    """Pick a reader from ``fmt`` or, failing that, the file suffix."""
    path = Path(path)
    kind = (fmt or path.suffix.lstrip(".")).lower()
    if kind == "csv":
        return read_csv_records(path)
    if kind == "json":
        return read_json_records(path)
    if kind in {"jsonl", "ndjson"}:
        return read_json_records(path, lines=True)
    raise ValueError(f"Cannot tell the input format of {path}; pass csv or json.")
