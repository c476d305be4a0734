"""Shared test setup: .env.tests variables and the client logging pipeline."""

from pathlib import Path

import pytest
import structlog
from dotenv import load_dotenv

from shared.logging import configure_structlog

load_dotenv(Path(__file__).resolve().parent.parent / ".env.tests")

# Same processor chain as a running client; caplog reads the stdlib records.
configure_structlog()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Keep bound contextvars (participant_id and friends) from leaking between tests."""
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()
