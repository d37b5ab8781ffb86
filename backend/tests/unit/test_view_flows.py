# backend/tests/unit/test_view_flows.py
import pytest

from ledgerbot.config import strings
from ledgerbot.flows.view_balance import ViewBalanceFlow
from ledgerbot.flows.view_transactions import ViewTransactionsFlow
from ledgerbot.models.events import InboundEvent
from ledgerbot.services.ledger_service import LedgerError


def event(text):
    return InboundEvent(user_key="alice", text=text)


# --- Balances ---

def test_balance_matching_and_hint_extraction():
    assert ViewBalanceFlow.matches("show balances")
    assert ViewBalanceFlow.matches("mi saldo")
    assert not ViewBalanceFlow.matches("show transactions")
    assert ViewBalanceFlow.extract_params("balance of my checking?") == {"account_hint": "checking"}
    assert ViewBalanceFlow.extract_params("show balances") == {}


@pytest.mark.asyncio
async def test_balances_list_every_account_with_total(flow_services):
    flow = ViewBalanceFlow("alice", flow_services)

    reply = await flow.start(event("show balances"))

    assert flow.is_complete
    assert reply.startswith(strings.BALANCES_HEADER.format(budget="Personal"))
    assert "🏦 Checking: +1,500.00" in reply
    assert "🏦 Credit Card: -250.50" in reply
    assert "*Total:* +1,249.50" in reply


@pytest.mark.asyncio
async def test_balance_hint_narrows_to_one_account(flow_services):
    flow = ViewBalanceFlow("alice", flow_services)

    reply = await flow.start(event("balance of my checking"))

    assert "Checking" in reply
    assert "Credit Card" not in reply
    assert "Total" not in reply


@pytest.mark.asyncio
async def test_balance_ledger_failure(flow_services, ledger):
    ledger.list_accounts.side_effect = LedgerError("list_accounts", "HTTP 500")
    flow = ViewBalanceFlow("alice", flow_services)

    reply = await flow.start(event("show balances"))

    assert reply == strings.COLLABORATOR_ERROR
    assert flow.is_cancelled


# --- Transactions ---

@pytest.mark.parametrize("text, expected", [
    ("last 5", {"limit": 5}),
    ("últimos 3 movimientos", {"limit": 3}),
    ("last 500 transactions", {"limit": 50}),
    ("show transactions", {}),
    ("transactions of my checking", {"account_hint": "checking"}),
    ("last 5 transactions in Credit Card?", {"limit": 5, "account_hint": "Credit Card"}),
])
def test_transactions_extract_params(text, expected):
    assert ViewTransactionsFlow.extract_params(text) == expected


def test_transactions_matching_excludes_categorization():
    assert ViewTransactionsFlow.matches("show transactions")
    assert not ViewTransactionsFlow.matches("categorize transactions")


@pytest.mark.asyncio
async def test_transactions_respect_limit(flow_services, ledger):
    flow = ViewTransactionsFlow("alice", flow_services, params={"limit": 1})

    prompt = await flow.start(event("last 1"))
    assert strings.ALL_ACCOUNTS_OPTION in prompt

    reply = await flow.dispatch_turn(event("all"))

    assert reply.startswith(strings.TRANSACTIONS_HEADER.format(count=1, budget="Personal"))
    assert "1. 2024-03-02 | -45.00 | Supermarket" in reply
    assert "Uber" not in reply
    assert "*Account:*" not in reply
    ledger.list_transactions.assert_awaited_once_with("b1", account_id=None)


@pytest.mark.asyncio
async def test_transactions_default_limit_shows_all(flow_services):
    flow = ViewTransactionsFlow("alice", flow_services)
    await flow.start(event("show transactions"))

    reply = await flow.dispatch_turn(event("0"))

    assert flow.data["limit"] == 10
    assert "2. 2024-03-01 | -12.50 | Uber" in reply


@pytest.mark.asyncio
async def test_transactions_of_one_chosen_account(flow_services, ledger):
    flow = ViewTransactionsFlow("alice", flow_services)
    await flow.start(event("show transactions"))

    reply = await flow.dispatch_turn(event("2"))

    assert flow.is_complete
    assert "*Account:* Credit Card" in reply
    ledger.list_transactions.assert_awaited_once_with("b1", account_id="a2")


@pytest.mark.asyncio
async def test_account_named_in_the_request_skips_the_question(flow_services, ledger):
    flow = ViewTransactionsFlow("alice", flow_services)

    reply = await flow.start(event("last 5 transactions of my checking"))

    assert flow.is_complete
    assert "*Account:* Checking" in reply
    ledger.list_transactions.assert_awaited_once_with("b1", account_id="a1")


@pytest.mark.asyncio
async def test_no_transactions(flow_services, ledger):
    ledger.list_transactions.return_value = []
    flow = ViewTransactionsFlow("alice", flow_services)
    await flow.start(event("show transactions"))

    assert await flow.dispatch_turn(event("all")) == strings.NO_TRANSACTIONS


@pytest.mark.asyncio
async def test_transactions_ledger_failure(flow_services, ledger):
    ledger.list_transactions.side_effect = LedgerError("list_transactions", "HTTP 500")
    flow = ViewTransactionsFlow("alice", flow_services)
    await flow.start(event("show transactions"))

    assert await flow.dispatch_turn(event("all")) == strings.COLLABORATOR_ERROR
    assert flow.is_cancelled
