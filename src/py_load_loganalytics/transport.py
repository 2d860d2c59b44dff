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
"""Compresses batches and posts them to the ingestion endpoint with retry."""

import enum
import gzip
import logging
import time
from collections.abc import Callable, Sequence

import httpx

from .assembler import AssembledRecord
from .models import DeliveryOutcome
from .packer import serialize_batch

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 5
MAX_BACKOFF_SECONDS = 30
RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})


class AttemptResult(enum.Enum):
    """How a single POST attempt ended."""

    SUCCESS = "success"
    RETRYABLE = "retryable"
    FATAL = "fatal"


def classify_status(status_code: int) -> AttemptResult:
    """Map an HTTP status to the action the retry loop should take."""
    if 200 <= status_code < 300:
        return AttemptResult.SUCCESS
    if status_code in RETRYABLE_STATUSES:
        return AttemptResult.RETRYABLE
    return AttemptResult.FATAL


def classify_transport_error(error: httpx.TransportError) -> AttemptResult:
    """Timeouts and network failures may clear up; protocol and setup errors will not."""
    if isinstance(error, (httpx.TimeoutException, httpx.NetworkError)):
        return AttemptResult.RETRYABLE
    return AttemptResult.FATAL


def backoff_delay(attempt: int) -> int:
    """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
    return min(MAX_BACKOFF_SECONDS, 2**attempt)


def compress(body: bytes) -> bytes:
    """Gzip a request body at the highest compression level."""
    return gzip.compress(body, compresslevel=9)


class Transport:
    """Delivers batches to a Logs Ingestion API stream."""

    def __init__(
        self,
        client: httpx.Client,
        max_attempts: int = MAX_ATTEMPTS,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            client: The HTTP client used for every POST.
            max_attempts: Total attempts per batch, including the first.
            sleep: Blocking wait between attempts; defaults to ``time.sleep``.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.client = client
        self.max_attempts = max_attempts
        self.sleep = sleep if sleep is not None else time.sleep

    def deliver(
        self,
        batch: Sequence[AssembledRecord],
        token: str,
        endpoint_uri: str,
    ) -> DeliveryOutcome:
        """POST one batch, retrying throttling and server errors.

        The same compressed body is resent on every attempt. A 2xx ends the
        loop with success; a non-retryable status ends it with failure
        straight away; otherwise the loop waits ``backoff_delay(attempt)``
        and tries again until ``max_attempts`` is used up.
        """
        body = serialize_batch(batch)
        payload = compress(body)
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Content-Encoding": "gzip",
        }

        status_code: int | None = None
        error = ""
        response_text: str | None = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                response = self.client.post(endpoint_uri, content=payload, headers=headers)
            except httpx.TransportError as e:
                status_code = None
                response_text = None
                error = f"{type(e).__name__}: {e}"
                result = classify_transport_error(e)
            else:
                status_code = response.status_code
                response_text = response.text
                error = f"HTTP {status_code}: {response_text}"
                result = classify_status(status_code)

            if result is AttemptResult.SUCCESS:
                logger.info(
                    "Sent %d records (%d bytes, %d gzipped) on attempt %d.",
                    len(batch),
                    len(body),
                    len(payload),
                    attempt,
                )
                return DeliveryOutcome(
                    success=True,
                    record_count=len(batch),
                    attempts=attempt,
                    status_code=status_code,
                    uncompressed_bytes=len(body),
                    compressed_bytes=len(payload),
                )

            if result is AttemptResult.FATAL:
                logger.error("Delivery rejected with no retry: %s", error)
                break

            if attempt == self.max_attempts:
                logger.error(
                    "Delivery failed after %d attempts: %s", self.max_attempts, error
                )
                break

            delay = backoff_delay(attempt)
            logger.warning(
                "Attempt %d/%d failed (%s); retrying in %d s.",
                attempt,
                self.max_attempts,
                error,
                delay,
            )
            self.sleep(delay)

        return DeliveryOutcome(
            success=False,
            record_count=len(batch),
            attempts=attempt,
            status_code=status_code,
            error=error,
            response_text=response_text,
            uncompressed_bytes=len(body),
            compressed_bytes=len(payload),
        )
