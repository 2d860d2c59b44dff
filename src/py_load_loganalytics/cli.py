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
"""Command line entry point for py-load-loganalytics."""

import csv
import logging
from pathlib import Path

import httpx
import typer

from . import __version__
from .auth import ClientCredentialsTokenProvider
from .config import load_settings
from .errors import ConfigurationError, DeliveryError, TokenAcquisitionError
from .pipeline import IngestionPipeline
from .sources import open_records
from .transport import Transport

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

USER_AGENT = f"py-load-loganalytics/{__version__}"

app = typer.Typer(help="Upload CSV and JSON records to an Azure Monitor custom table.")


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


@app.command()
def ingest(
    input_path: Path = typer.Argument(
        None, exists=True, dir_okay=False, help="CSV or JSON file to upload."
    ),
    fmt: str = typer.Option(None, "--format", help="Input format: csv, json or jsonl."),
    config_file: Path = typer.Option(None, help="Path to YAML config file."),
    tenant_id: str = typer.Option(None, help="Entra ID tenant."),
    client_id: str = typer.Option(None, help="Application (client) id."),
    client_secret: str = typer.Option(None, help="Client secret."),
    dce_endpoint: str = typer.Option(None, help="Data collection endpoint URI."),
    dcr_immutable_id: str = typer.Option(None, help="Immutable id of the DCR."),
    stream_name: str = typer.Option(None, help="Stream name, e.g. Custom-MyTable_CL."),
    time_column: str = typer.Option(None, help="Column that holds the event time."),
    max_post_bytes: int = typer.Option(None, help="Uncompressed byte ceiling per POST."),
    preflight: bool = typer.Option(
        False, "--preflight", help="Check setup and exit without sending."
    ),
) -> None:
    """Normalize a file of records and send it to the Logs Ingestion API."""
    try:
        settings = load_settings(
            config_file,
            tenant_id=tenant_id,
            client_id=client_id,
            client_secret=client_secret,
            dce_endpoint=dce_endpoint,
            dcr_immutable_id=dcr_immutable_id,
            stream_name=stream_name,
            time_column=time_column,
            max_post_bytes=max_post_bytes,
            # Leave an unset flag to the environment or config file.
            preflight=preflight or None,
        )
    except ConfigurationError as e:
        logger.error("%s", e)
        raise typer.Exit(code=2)

    if not settings.preflight and input_path is None:
        logger.error("An input file is required unless --preflight is given.")
        raise typer.Exit(code=2)

    with httpx.Client(
        headers={"User-Agent": USER_AGENT},
        timeout=settings.request_timeout,
    ) as client:
        token_provider = ClientCredentialsTokenProvider(
            tenant_id=settings.tenant_id,
            client_id=settings.client_id,
            client_secret=settings.client_secret,
            client=client,
            authority_host=settings.authority_host,
        )
        pipeline = IngestionPipeline(settings, token_provider, Transport(client))

        if settings.preflight:
            report = pipeline.preflight()
            typer.echo(report.model_dump_json(indent=2))
            raise typer.Exit(code=0 if report.token_acquired else 1)

        try:
            records = open_records(input_path, fmt)
        except ValueError as e:
            logger.error("%s", e)
            raise typer.Exit(code=2)

        try:
            summary = pipeline.run(records)
        except TokenAcquisitionError as e:
            logger.error("Could not acquire a bearer token: %s", e)
            raise typer.Exit(code=1)
        except DeliveryError as e:
            logger.error("%s (%d records were sent before the failure)", e, e.records_sent)
            raise typer.Exit(code=1)
        except (OSError, ValueError, csv.Error) as e:
            logger.error("Could not read %s: %s", input_path, e)
            raise typer.Exit(code=1)

    typer.echo(summary.model_dump_json(indent=2))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
