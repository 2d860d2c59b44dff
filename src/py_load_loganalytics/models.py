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
"""Defines the Pydantic models reported by the pipeline."""

from datetime import datetime

from pydantic import BaseModel, Field


class DeliveryOutcome(BaseModel):
    """Result of delivering one batch, after any retries."""

    success: bool
    record_count: int = Field(..., description="Number of records in the batch.")
    attempts: int = Field(..., description="HTTP attempts made, including retries.")
    status_code: int | None = Field(
        default=None, description="Status of the last response, if one arrived."
    )
    error: str | None = Field(
        default=None, description="Description of the last error on failure."
    )
    response_text: str | None = None
    uncompressed_bytes: int = 0
    compressed_bytes: int = 0


class RunSummary(BaseModel):
    """Totals for a completed ingestion run."""

    run_id: str
    records_read: int
    records_sent: int
    batches_sent: int
    started_at: datetime
    finished_at: datetime


class PreflightReport(BaseModel):
    """What a preflight check found, without any data being sent."""

    stream_name: str
    ingestion_uri: str
    max_post_bytes: int
    time_column: str | None = None
    token_acquired: bool
    token_error: str | None = None
