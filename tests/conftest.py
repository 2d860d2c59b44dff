import os

import pytest

from py_load_loganalytics.config import Settings


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch):
    """Keep LOGANALYTICS_* variables from the host out of the tests."""
    for name in list(os.environ):
        if name.startswith("LOGANALYTICS_"):
            monkeypatch.delenv(name)


@pytest.fixture
def settings_values() -> dict:
    return {
        "tenant_id": "tenant-1",
        "client_id": "client-1",
        "client_secret": "secret-1",
        "dce_endpoint": "https://my-dce.eastus-1.ingest.monitor.azure.com/",
        "dcr_immutable_id": "dcr-0123456789abcdef",
        "stream_name": "Foo",
    }


@pytest.fixture
def settings(settings_values) -> Settings:
    return Settings(**settings_values)
