import logging
from pathlib import Path

import pytest
import structlog

from config import Settings
from models import TransactionRecord
from services import get_ledger_service

FIXTURES = Path(__file__).parent / "fixtures"


def record(type, client, tx, amount=None):
    return TransactionRecord(type=type, client=client, tx=tx, amount=amount)


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers bound to captured streams between tests."""
    yield
    structlog.reset_defaults()
    logging.getLogger().handlers.clear()


@pytest.fixture
def fixture_path():
    def _path(name):
        return str(FIXTURES / name)
    return _path


@pytest.fixture
def make_service():
    def _make(**overrides):
        return get_ledger_service(Settings(**overrides))
    return _make
