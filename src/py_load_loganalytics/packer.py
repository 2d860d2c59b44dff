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
"""Packs assembled records into POST bodies under a byte ceiling."""

import json
import logging
from collections.abc import Callable, Sequence

from .assembler import AssembledRecord

logger = logging.getLogger(__name__)

DEFAULT_MAX_POST_BYTES = 900_000

Batch = tuple[AssembledRecord, ...]


def serialize_record(record: AssembledRecord) -> bytes:
    """Serialize one record to compact UTF-8 JSON."""
    return json.dumps(record, separators=(",", ":"), ensure_ascii=False).encode(
        "utf-8"
    )


def serialize_batch(records: Sequence[AssembledRecord]) -> bytes:
    """Serialize records to a compact UTF-8 JSON array, preserving order."""
    return json.dumps(
        list(records), separators=(",", ":"), ensure_ascii=False
    ).encode("utf-8")


def _array_size(total: int, count: int) -> int:
    # Brackets plus one comma between each pair of elements.
    return total + 2 + max(count - 1, 0)


class BatchPacker:
    """Accumulates records and hands them off in byte-bounded batches.

    A batch is flushed as soon as appending the next record would bring its
    serialized size to the ceiling or above; that record then starts the
    next batch. A record that is too large on its own still goes out, as a
    batch of one. Records are never dropped and empty batches are never
    flushed.

    Sizes are tracked incrementally. Because compact JSON arrays are the
    comma-joined compact elements between brackets, the tracked size is
    exactly ``len(serialize_batch(buffer))``.
    """

    def __init__(
        self,
        on_flush: Callable[[Batch], None],
        max_post_bytes: int = DEFAULT_MAX_POST_BYTES,
    ) -> None:
        """Initialize the packer.

        Args:
            on_flush: Called with an immutable snapshot of each full batch.
            max_post_bytes: Uncompressed size ceiling for one batch.
        """
        if max_post_bytes <= 0:
            raise ValueError("max_post_bytes must be positive")
        self.on_flush = on_flush
        self.max_post_bytes = max_post_bytes
        self._buffer: list[AssembledRecord] = []
        self._record_bytes = 0
        self.batches_flushed = 0

    @property
    def pending(self) -> int:
        """Number of records waiting in the current batch."""
        return len(self._buffer)

    @property
    def pending_bytes(self) -> int:
        """Serialized size of the current batch."""
        return _array_size(self._record_bytes, len(self._buffer))

    def add(self, record: AssembledRecord) -> None:
        """Append a record, flushing the current batch first if it would overflow."""
        size = len(serialize_record(record))
        candidate = _array_size(self._record_bytes + size, len(self._buffer) + 1)

        if candidate < self.max_post_bytes:
            self._buffer.append(record)
            self._record_bytes += size
            return

        if self._buffer:
            self._flush()
        if _array_size(size, 1) >= self.max_post_bytes:
            logger.warning(
                "Record of %d bytes exceeds the %d byte ceiling; sending it alone.",
                size,
                self.max_post_bytes,
            )
        self._buffer.append(record)
        self._record_bytes = size

    def close(self) -> None:
        """Flush whatever remains once the input is exhausted."""
        if self._buffer:
            self._flush()

    def _flush(self) -> None:
        batch: Batch = tuple(self._buffer)
        self._buffer = []
        self._record_bytes = 0
        self.on_flush(batch)
        self.batches_flushed += 1
