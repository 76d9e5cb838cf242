"""Root test configuration."""

import logging
from unittest.mock import Mock

import pytest
import structlog

from mongodb_exporter.client import DatabaseClient
from mongodb_exporter.collectors.base import CollectorContext
from mongodb_exporter.flatten.declarations import default_declarations
from mongodb_exporter.suppression import SuppressionLedger


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


@pytest.fixture
def ledger():
    """A fresh suppression ledger."""
    return SuppressionLedger()


@pytest.fixture
def context(ledger):
    """Collector context with the built-in declarations."""
    return CollectorContext(declarations=default_declarations(), ledger=ledger)


@pytest.fixture
def mock_client():
    """A database client double."""
    return Mock(spec=DatabaseClient)
