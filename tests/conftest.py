"""Pytest configuration - loads .env for integration tests and provides stub fixtures."""

from pathlib import Path

import pytest
from dotenv import load_dotenv

from stubs import BASE_URL, StubTransport, login_response

# Load .env from project root
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(env_path)


@pytest.fixture
def transport() -> StubTransport:
    """Stub transport with a successful login queued."""
    return StubTransport().queue(login_response())


@pytest.fixture
def polarion(transport):
    """Logged-in client over the stub transport."""
    from polarion_ws import Polarion

    return Polarion(BASE_URL, "jdoe", "secret-token", timeout=7, transport=transport)
