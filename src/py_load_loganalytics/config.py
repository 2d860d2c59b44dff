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
"""Manages the application's configuration using Pydantic."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, ValidationError, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .auth import DEFAULT_AUTHORITY_HOST
from .endpoint import build_ingestion_uri, normalize_stream_name
from .errors import ConfigurationError
from .packer import DEFAULT_MAX_POST_BYTES

# The service rejects bodies above roughly one megabyte.
REMOTE_MAX_POST_BYTES = 1_000_000


class Settings(BaseSettings):
    """Manages configuration for an ingestion run.

    Reads settings from environment variables with the prefix 'LOGANALYTICS_'.
    """

    model_config = SettingsConfigDict(env_prefix="LOGANALYTICS_")

    # Service principal used for the client-credentials grant
    tenant_id: str
    client_id: str
    client_secret: str

    # Target of the upload
    dce_endpoint: str
    dcr_immutable_id: str
    stream_name: str

    time_column: str | None = None
    max_post_bytes: int = Field(
        default=DEFAULT_MAX_POST_BYTES, gt=0, le=REMOTE_MAX_POST_BYTES
    )
    preflight: bool = False
    authority_host: str = DEFAULT_AUTHORITY_HOST
    request_timeout: float = Field(default=60.0, gt=0)

    @field_validator("tenant_id", "client_id", "client_secret", "dcr_immutable_id")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value.strip()

    @field_validator("stream_name")
    @classmethod
    def _check_stream_name(cls, value: str) -> str:
        if "?" in value:
            raise ValueError("must not contain a query string")
        if not value.strip():
            raise ValueError("must not be empty")
        return value.strip()

    @field_validator("dce_endpoint")
    @classmethod
    def _check_endpoint(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith(("https://", "http://")):
            raise ValueError("must be an http(s) URL")
        return value.rstrip("/")

    @field_validator("time_column")
    @classmethod
    def _blank_time_column_is_none(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value

    @computed_field
    @property
    def effective_stream_name(self) -> str:
        """Stream name with the custom-stream prefix and suffix applied."""
        return normalize_stream_name(self.stream_name)

    @computed_field
    @property
    def ingestion_uri(self) -> str:
        """Full POST target, including the API version."""
        return build_ingestion_uri(
            self.dce_endpoint, self.dcr_immutable_id, self.stream_name
        )


def load_config(config_file: str | Path | None) -> dict[str, Any]:
    """Loads configuration from a YAML file."""
    if not config_file:
        return {}
    try:
        with open(config_file, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Config file not found: {config_file}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Config file {config_file} is not valid YAML: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {config_file} must hold a mapping.")
    return data


def _describe(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        field = ".".join(str(loc) for loc in item["loc"]) or "settings"
        parts.append(f"{field}: {item['msg']}")
    return "; ".join(parts)


def load_settings(config_file: str | Path | None = None, **overrides: Any) -> Settings:
    """Build settings from the environment, a YAML file and explicit overrides.

    Explicit overrides win over the YAML file, which wins over the
    environment. Overrides that are None are ignored.

    Raises:
        ConfigurationError: A required value is missing or a value is malformed.
    """
    values = load_config(config_file)
    values.update({key: value for key, value in overrides.items() if value is not None})
    try:
        return Settings(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {_describe(e)}") from e
