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
"""Exception hierarchy for the ingestion pipeline."""


class IngestionError(Exception):
    """Base class for all errors raised by py-load-loganalytics."""


class ConfigurationError(IngestionError):
    """A required setting is missing or malformed."""


class TokenAcquisitionError(IngestionError):
    """The bearer token could not be obtained."""


class DeliveryError(IngestionError):
    """A batch could not be delivered to the ingestion endpoint.

    Raised for non-retryable HTTP statuses and after the retry budget is
    exhausted. ``records_sent`` holds the number of records the endpoint had
    already accepted in the current run when the failure happened.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        attempts: int = 0,
        response_text: str | None = None,
        records_sent: int = 0,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.attempts = attempts
        self.response_text = response_text
        self.records_sent = records_sent
