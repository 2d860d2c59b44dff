import csv
import gzip
import json

import httpx
import pytest
from typer.testing import CliRunner

from py_load_loganalytics.auth import StaticTokenProvider
from py_load_loganalytics.cli import app
from py_load_loganalytics.transport import Transport

pytestmark = pytest.mark.unit

runner = CliRunner()


@pytest.fixture
def env(monkeypatch, settings_values):
    for key, value in settings_values.items():
        monkeypatch.setenv(f"LOGANALYTICS_{key.upper()}", value)


@pytest.fixture
def endpoint(mocker):
    """Swap the network collaborators of the CLI for in-memory ones."""
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(gzip.decompress(request.content)))
        return httpx.Response(204)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    mocker.patch(
        "py_load_loganalytics.cli.ClientCredentialsTokenProvider",
        return_value=StaticTokenProvider("tok"),
    )
    mocker.patch(
        "py_load_loganalytics.cli.Transport",
        return_value=Transport(client, sleep=lambda seconds: None),
    )
    return bodies


def test_ingest_csv(tmp_path, env, endpoint):
    """Tests the ingest command end to end with mocked network collaborators."""
    data = tmp_path / "rows.csv"
    data.write_text("A 1,Qty\ntrue,42\nfalse,3.5\n")

    result = runner.invoke(app, ["ingest", str(data)])

    assert result.exit_code == 0
    assert '"records_sent": 2' in result.output
    assert [r["Qty"] for r in endpoint[0]] == [42, 3.5]


def test_options_override_environment(tmp_path, env, endpoint):
    data = tmp_path / "rows.json"
    data.write_text('[{"Seen": "2024-01-01T00:00:00Z"}]')

    result = runner.invoke(
        app, ["ingest", str(data), "--time-column", "Seen", "--stream-name", "Bar"]
    )

    assert result.exit_code == 0
    assert endpoint[0][0]["TimeGenerated"] == "2024-01-01T00:00:00Z"


def test_preflight_sends_nothing(env, endpoint):
    result = runner.invoke(app, ["ingest", "--preflight"])

    assert result.exit_code == 0
    assert '"token_acquired": true' in result.output
    assert "Custom-Foo_CL" in result.output
    assert endpoint == []


def test_missing_configuration_exits_2(tmp_path, endpoint):
    """Tests that missing settings abort before any network call."""
    data = tmp_path / "rows.csv"
    data.write_text("a\n1\n")

    result = runner.invoke(app, ["ingest", str(data)])

    assert result.exit_code == 2
    assert endpoint == []


def test_stream_name_with_query_string_exits_2(tmp_path, env, endpoint):
    data = tmp_path / "rows.csv"
    data.write_text("a\n1\n")

    result = runner.invoke(app, ["ingest", str(data), "--stream-name", "Foo?x=1"])

    assert result.exit_code == 2


def test_input_required_without_preflight(env, endpoint):
    result = runner.invoke(app, ["ingest"])
    assert result.exit_code == 2


def test_delivery_failure_exits_1(tmp_path, env, mocker):
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(403)))
    mocker.patch(
        "py_load_loganalytics.cli.ClientCredentialsTokenProvider",
        return_value=StaticTokenProvider("tok"),
    )
    mocker.patch(
        "py_load_loganalytics.cli.Transport",
        return_value=Transport(client, sleep=lambda seconds: None),
    )
    data = tmp_path / "rows.csv"
    data.write_text("a\n1\n")

    result = runner.invoke(app, ["ingest", str(data)])

    assert result.exit_code == 1


def test_unreadable_csv_exits_1(tmp_path, env, endpoint):
    """Tests that a cell over the csv field size limit ends with exit code 1."""
    data = tmp_path / "huge.csv"
    data.write_text("a\n" + "x" * (csv.field_size_limit() + 10) + "\n")

    result = runner.invoke(app, ["ingest", str(data)])

    assert result.exit_code == 1
    assert not isinstance(result.exception, csv.Error)
    assert endpoint == []
