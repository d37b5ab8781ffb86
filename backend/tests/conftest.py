import os

import pytest
from fastapi.testclient import TestClient
from dotenv import load_dotenv
from unittest.mock import AsyncMock

# Load the test environment FIRST, before any app imports, so the
# module-level Settings instance picks it up.
load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), "..", ".env.test"))

from ledgerbot.config.settings import settings  # noqa: E402
from ledgerbot.flows.base import FlowServices  # noqa: E402
from ledgerbot.main import app  # noqa: E402
from ledgerbot.models.domain import Account, Budget, Category, LedgerTransaction  # noqa: E402
from ledgerbot.services.ai_service import IntentLabels  # noqa: E402
from ledgerbot.services.cache_service import ExtractionCaches  # noqa: E402
from ledgerbot.services.conversation_service import create_conversation_service  # noqa: E402


class FakeClock:
    """Manually advanced stand-in for time.monotonic."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ledger():
    """A ledger client double with one budget and two open accounts."""
    mock = AsyncMock()
    mock.list_budgets.return_value = [Budget(id="b1", name="Personal")]
    mock.list_accounts.return_value = [
        Account(id="a1", name="Checking", balance=1500.0),
        Account(id="a2", name="Credit Card", balance=-250.5),
    ]
    mock.list_categories.return_value = [
        Category(id="c1", name="Groceries", group="Everyday"),
        Category(id="c2", name="Dining Out", group="Everyday"),
        Category(id="c3", name="Transportation", group="Bills"),
    ]
    mock.list_transactions.return_value = [
        LedgerTransaction(id="t1", date="2024-03-02", amount=-45.0, payee="Supermarket"),
        LedgerTransaction(id="t2", date="2024-03-01", amount=-12.5, payee="Uber"),
    ]
    mock.create_transaction.return_value = LedgerTransaction(id="new", date="2024-03-03", amount=-12.0, payee="Cafe")
    mock.update_transaction_category.return_value = LedgerTransaction(id="t1", date="2024-03-02", amount=-45.0)
    return mock


@pytest.fixture
def ai():
    mock = AsyncMock()
    mock.classify_intent.return_value = IntentLabels.UNKNOWN
    mock.extract_transactions.return_value = []
    return mock


@pytest.fixture
def caches(clock):
    return ExtractionCaches(categorization_ttl=1800, document_ttl=300, clock=clock)


@pytest.fixture
def flow_services(ledger, ai, caches):
    return FlowServices(ledger=ledger, ai=ai, caches=caches)


@pytest.fixture
def conversation(ledger, ai, clock):
    """A fully wired conversation service with isolated stores and a fake clock."""
    return create_conversation_service(settings, ledger=ledger, ai=ai, clock=clock)


@pytest.fixture(scope="function")
def test_client(conversation):
    """
    Provides a TestClient for API integration tests.
    The lifespan keeps the pre-wired conversation service instead of building one.
    """
    app.state.conversation_service = conversation
    try:
        with TestClient(app) as client:
            yield client
    finally:
        app.state.conversation_service = None
