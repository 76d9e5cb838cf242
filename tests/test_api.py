"""Tests for the HTTP surface."""

from unittest.mock import Mock, patch

import pytest
from fastapi.testclient import TestClient
from pymongo.errors import OperationFailure

from mongodb_exporter.api.main import create_app
from mongodb_exporter.api.routes.metrics import SCRAPE_TIMEOUT_HEADER
from mongodb_exporter.client import connect_error
from mongodb_exporter.config.settings import Settings
from mongodb_exporter.core.errors import ConnectivityError, InternalInvariantError
from mongodb_exporter.exporter import Exporter
from mongodb_exporter.flatten.declarations import default_declarations


@pytest.fixture
def exporter():
    """An exporter double."""
    exporter = Mock(spec=Exporter)
    exporter.settings = Settings(web_telemetry_path="/metrics")
    exporter.scrape.return_value = b"mongodb_ss_uptime 100.0\n"
    return exporter


@pytest.fixture
def client(exporter):
    """Test client for the app."""
    return TestClient(create_app(exporter))


class TestMetricsEndpoint:
    """Tests for the metrics endpoint."""

    def test_scrape(self, client, exporter):
        """GET /metrics returns the exposition text."""
        response = client.get("/metrics")

        assert response.status_code == 200
        assert response.text == "mongodb_ss_uptime 100.0\n"
        assert response.headers["content-type"].startswith("text/plain")
        exporter.scrape.assert_called_once_with(timeout=None)

    def test_scrape_timeout_header(self, client, exporter):
        """The scraper's timeout header bounds the scrape."""
        client.get("/metrics", headers={SCRAPE_TIMEOUT_HEADER: "4.5"})
        exporter.scrape.assert_called_once_with(timeout=4.5)

    @pytest.mark.parametrize("value", ["abc", "0", "-1"])
    def test_invalid_timeout_header_ignored(self, client, exporter, value):
        """Unusable header values fall back to the configured deadline."""
        client.get("/metrics", headers={SCRAPE_TIMEOUT_HEADER: value})
        exporter.scrape.assert_called_once_with(timeout=None)

    def test_connect_failure(self, client, exporter):
        """A connection failure returns HTTP 500 with the error."""
        exporter.scrape.side_effect = ConnectivityError("connection refused")

        response = client.get("/metrics")

        assert response.status_code == 500
        assert "connection refused" in response.text

    def test_authentication_failure(self):
        """Bad credentials on a per-request connection return HTTP 500 with the error."""
        exporter = Exporter(
            Settings(global_conn_pool=False), declarations=default_declarations()
        )
        auth_failure = connect_error(OperationFailure("Authentication failed.", code=18))

        with patch.object(Exporter, "connect", side_effect=auth_failure):
            response = TestClient(create_app(exporter)).get("/metrics")

        assert response.status_code == 500
        assert response.text == "cannot connect to MongoDB: Authentication failed.\n"

    def test_other_exporter_error(self, client, exporter):
        """Any exporter error is answered by the endpoint itself."""
        exporter.scrape.side_effect = InternalInvariantError("duplicate series emitted")

        response = client.get("/metrics")

        assert response.status_code == 500
        assert response.text == "scrape failed: duplicate series emitted\n"

    def test_custom_telemetry_path(self, exporter):
        """The endpoint is served under the configured path."""
        exporter.settings = Settings(web_telemetry_path="/mongo-metrics")
        client = TestClient(create_app(exporter))

        assert client.get("/mongo-metrics").status_code == 200
        assert client.get("/metrics").status_code == 404


class TestHealthEndpoint:
    """Tests for the health endpoint."""

    def test_health(self, client, exporter):
        """GET /health does not scrape."""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        exporter.scrape.assert_not_called()


class TestLifespan:
    """Tests the app lifespan."""

    def test_exporter_closed_on_shutdown(self, exporter):
        """The exporter's connection is closed when the app stops."""
        with TestClient(create_app(exporter)):
            exporter.close.assert_not_called()
        exporter.close.assert_called_once()
