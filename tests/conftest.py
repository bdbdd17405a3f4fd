"""Shared test fixtures for the userfinder test suite.

Provides the application under test with a recording command sink, a
TestClient bound to it, and a cleanup hook for the package logger.
"""

from __future__ import annotations

import logging

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from userfinder.domain.models import LookupCommand
from userfinder.endpoint.server import create_app


# ---------------------------------------------------------------------------
# Application Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def received_commands() -> list[LookupCommand]:
    """Commands handed to the recording sink, in arrival order."""
    return []


@pytest.fixture
def app(received_commands: list[LookupCommand]) -> FastAPI:
    """The userfinder app with a sink that records every decoded command."""
    return create_app(command_sink=received_commands.append)


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture
def lookup_body() -> bytes:
    """A well-formed lookup request body."""
    return b'{"DisplayName": "alice"}'


# ---------------------------------------------------------------------------
# Logging Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clean_package_logger():
    """Restore the 'userfinder' logger's handlers and level after a test."""
    package_logger = logging.getLogger("userfinder")
    handlers = list(package_logger.handlers)
    level = package_logger.level
    yield package_logger
    for handler in list(package_logger.handlers):
        if handler not in handlers:
            package_logger.removeHandler(handler)
            handler.close()
    package_logger.setLevel(level)
