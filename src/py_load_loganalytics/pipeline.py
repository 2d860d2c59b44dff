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
"""Drives records from a source through to the ingestion endpoint."""

import logging
import uuid
from collections.abc import Callable, Iterable
from datetime import datetime, timezone

from .assembler import RawRecord, assemble
from .auth import TokenProvider
from .config import Settings
from .errors import DeliveryError, IngestionError, TokenAcquisitionError
from .models import PreflightReport, RunSummary
from .packer import Batch, BatchPacker
from .transport import Transport

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IngestionPipeline:
    """Normalizes, batches and delivers records for one stream.

    Runs are strictly sequential: a batch is sent and acknowledged before
    the next one starts. Batches already accepted when a delivery fails are
    not rolled back.
    """

    def __init__(
        self,
        settings: Settings,
        token_provider: TokenProvider,
        transport: Transport,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.settings = settings
        self.token_provider = token_provider
        self.transport = transport
        self.clock = clock or _utcnow

    def _acquire_token(self) -> str:
        try:
            token = self.token_provider.get_token()
        except TokenAcquisitionError:
            raise
        except Exception as e:
            raise TokenAcquisitionError(f"Token provider failed: {e}") from e
        if not token:
            raise TokenAcquisitionError("Token provider returned an empty token.")
        return token

    def preflight(self) -> PreflightReport:
        """Check configuration and token acquisition without sending data."""
        token_error: str | None = None
        try:
            self._acquire_token()
        except TokenAcquisitionError as e:
            token_error = str(e)
            logger.error("Preflight could not acquire a token: %s", e)

        return PreflightReport(
            stream_name=self.settings.effective_stream_name,
            ingestion_uri=self.settings.ingestion_uri,
            max_post_bytes=self.settings.max_post_bytes,
            time_column=self.settings.time_column,
            token_acquired=token_error is None,
            token_error=token_error,
        )

    def run(self, records: Iterable[RawRecord]) -> RunSummary:
        """Send every record and return the run totals.

        Raises:
            TokenAcquisitionError: Before any data is read, if no token is available.
            DeliveryError: When a batch is rejected or its retries run out.
                ``records_sent`` holds the total accepted up to that point.
        """
        run_id = str(uuid.uuid4())
        started_at = self.clock()
        uri = self.settings.ingestion_uri
        logger.info("Starting ingestion run %s to %s", run_id, uri)

        token = self._acquire_token()

        records_read = 0
        records_sent = 0
        batches_sent = 0

        def send(batch: Batch) -> None:
            nonlocal records_sent, batches_sent
            outcome = self.transport.deliver(batch, token, uri)
            if not outcome.success:
                raise DeliveryError(
                    f"Batch {batches_sent + 1} of {outcome.record_count} records "
                    f"failed after {outcome.attempts} attempt(s): {outcome.error}",
                    status_code=outcome.status_code,
                    attempts=outcome.attempts,
                    response_text=outcome.response_text,
                    records_sent=records_sent,
                )
            records_sent += outcome.record_count
            batches_sent += 1
            logger.info(
                "Batch %d accepted; %d records sent so far.", batches_sent, records_sent
            )

        packer = BatchPacker(on_flush=send, max_post_bytes=self.settings.max_post_bytes)
        try:
            for raw in records:
                records_read += 1
                packer.add(assemble(raw, self.settings.time_column, started_at))
            packer.close()
        except IngestionError:
            logger.error(
                "Run %s aborted after %d of %d records read were sent.",
                run_id,
                records_sent,
                records_read,
            )
            raise
        finally:
            duration = self.clock() - started_at
            logger.info("Ingestion run %s finished in %s.", run_id, duration)

        summary = RunSummary(
            run_id=run_id,
            records_read=records_read,
            records_sent=records_sent,
            batches_sent=batches_sent,
            started_at=started_at,
            finished_at=self.clock(),
        )
        logger.info(
            "Sent %d of %d records in %d batches.",
            summary.records_sent,
            summary.records_read,
            summary.batches_sent,
        )
        return summary
