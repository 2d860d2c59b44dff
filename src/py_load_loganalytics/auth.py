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
"""Bearer token providers for the Logs Ingestion API."""

import logging
from typing import Protocol

import httpx

from .errors import TokenAcquisitionError

logger = logging.getLogger(__name__)

DEFAULT_AUTHORITY_HOST = "https://login.microsoftonline.com"
MONITOR_SCOPE = "https://monitor.azure.com//.default"


class TokenProvider(Protocol):
    """Anything that can hand out a bearer token."""

    def get_token(self) -> str: ...


class StaticTokenProvider:
    """Returns a token that was acquired elsewhere."""

    def __init__(self, token: str) -> None:
        self.token = token

    def get_token(self) -> str:
        if not self.token:
            raise TokenAcquisitionError("No bearer token was supplied.")
        return self.token


class ClientCredentialsTokenProvider:
    """Acquires a token with the OAuth2 client-credentials grant.

    The token is requested once and reused for the lifetime of the provider,
    which matches the length of a single ingestion run.
    """

    def __init__(
        self,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        client: httpx.Client,
        authority_host: str = DEFAULT_AUTHORITY_HOST,
        scope: str = MONITOR_SCOPE,
    ) -> None:
        self.tenant_id = tenant_id
        self.client_id = client_id
        self.client_secret = client_secret
        self.client = client
        self.authority_host = authority_host.rstrip("/")
        self.scope = scope
        self._token: str | None = None

    @property
    def token_url(self) -> str:
        return f"{self.authority_host}/{self.tenant_id}/oauth2/v2.0/token"

    def get_token(self) -> str:
        """Return the cached token, requesting it on first use."""
        if self._token:
            return self._token

        form = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "scope": self.scope,
        }
        try:
            response = self.client.post(self.token_url, data=form)
            response.raise_for_status()
            payload = response.json()
        except (httpx.RequestError, httpx.HTTPStatusError) as e:
            raise TokenAcquisitionError(f"Token request failed: {e}") from e
        except ValueError as e:
            raise TokenAcquisitionError("Token endpoint returned invalid JSON.") from e

        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not token:
            raise TokenAcquisitionError("Token endpoint returned no access_token.")

        logger.info("Acquired bearer token for client %s.", self.client_id)
        self._token = token
        return token
