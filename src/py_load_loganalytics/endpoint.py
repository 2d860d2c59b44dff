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
"""Builds the Logs Ingestion API request URI."""

from urllib.parse import quote

from .errors import ConfigurationError

API_VERSION = "2023-01-01"
STREAM_PREFIX = "Custom-"
STREAM_SUFFIX = "_CL"


def normalize_stream_name(stream_name: str) -> str:
    """Apply the ``Custom-`` prefix and ``_CL`` suffix, each at most once.

    >>> normalize_stream_name("Foo")
    'Custom-Foo_CL'
    >>> normalize_stream_name("Custom-Foo_CL")
    'Custom-Foo_CL'
    """
    name = stream_name.strip()
    if not name:
        raise ConfigurationError("Stream name must not be empty.")
    if "?" in name:
        raise ConfigurationError(
            f"Stream name {stream_name!r} must not contain a query string."
        )
    if not name.startswith(STREAM_PREFIX):
        name = STREAM_PREFIX + name
    if not name.endswith(STREAM_SUFFIX):
        name = name + STREAM_SUFFIX
    return name


def build_ingestion_uri(endpoint: str, dcr_immutable_id: str, stream_name: str) -> str:
    """Return the POST target for a stream of a data collection rule."""
    if not dcr_immutable_id:
        raise ConfigurationError("DCR immutable id must not be empty.")
    stream = normalize_stream_name(stream_name)
    return (
        f"{endpoint.rstrip('/')}/dataCollectionRules/{quote(dcr_immutable_id, safe='')}"
        f"/streams/{quote(stream, safe='')}?api-version={API_VERSION}"
    )
