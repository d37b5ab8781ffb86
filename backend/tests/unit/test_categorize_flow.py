# backend/tests/unit/test_categorize_flow.py
import pytest

from ledgerbot.config import strings
from ledgerbot.flows.categorize import CategorizeSteps, CategorizeTransactionsFlow
from ledgerbot.models.events import InboundEvent
from ledgerbot.services.ledger_service import LedgerError


def event(text):
    return InboundEvent(user_key="alice", text=text)


async def started_flow(flow_services):
    flow = CategorizeTransactionsFlow("alice", flow_services)
    await flow.start(event("categorize transactions"))
    return flow


@pytest.mark.parametrize("text", ["categorize transactions", "Categorise please", "clasificar movimientos"])
def test_matches(text):
    assert CategorizeTransactionsFlow.matches(text)


def test_does_not_match_plain_listing():
    assert not CategorizeTransactionsFlow.matches("show transactions")


@pytest.mark.asyncio
async def test_start_stages_working_set_in_cache(flow_services, ledger, caches):
    flow = CategorizeTransactionsFlow("alice", flow_services)

    reply = await flow.start(event("categorize transactions"))

    assert reply.startswith(f"{strings.CATEGORIZE_HEADER} - Personal")
    assert "1. 2024-03-02 | -45.00 | Supermarket" in reply
    assert flow.step == CategorizeSteps.CATEGORIZING
    ledger.list_transactions.assert_awaited_once_with("b1", uncategorized=True)
    working_set = caches.categorization.get("alice")
    assert [t.id for t in working_set.transactions] == ["t1", "t2"]
    assert len(working_set.categories) == 3


@pytest.mark.asyncio
async def test_nothing_to_categorize(flow_services, ledger, caches):
    ledger.list_transactions.return_value = []
    flow = CategorizeTransactionsFlow("alice", flow_services)

    reply = await flow.start(event("categorize transactions"))

    assert reply == strings.NO_UNCATEGORIZED
    assert flow.is_complete
    assert caches.categorization.get("alice") is None


@pytest.mark.asyncio
async def test_assignments_update_ledger_until_list_is_empty(flow_services, ledger, caches):
    flow = await started_flow(flow_services)

    reply = await flow.dispatch_turn(event("1 Groceries"))

    assert "Supermarket → Groceries (1 left)" in reply
    ledger.update_transaction_category.assert_awaited_once_with("b1", "t1", "c1")
    remaining = caches.categorization.get("alice")
    assert [t.id for t in remaining.transactions] == ["t2"]
    assert remaining.categorized == 1
    assert not flow.is_complete

    reply = await flow.dispatch_turn(event("1 dining out"))

    assert strings.CATEGORIZE_DONE.format(count=2) in reply
    assert flow.is_complete
    assert caches.categorization.get("alice") is None
    ledger.update_transaction_category.assert_awaited_with("b1", "t2", "c2")


@pytest.mark.asyncio
async def test_unknown_category_keeps_working_set(flow_services, ledger, caches):
    flow = await started_flow(flow_services)

    reply = await flow.dispatch_turn(event("1 Zzzz"))

    assert reply == strings.CATEGORIZE_UNKNOWN_CATEGORY.format(name="Zzzz")
    ledger.update_transaction_category.assert_not_awaited()
    assert len(caches.categorization.get("alice").transactions) == 2


@pytest.mark.asyncio
async def test_bad_input_and_out_of_range(flow_services):
    flow = await started_flow(flow_services)

    assert await flow.dispatch_turn(event("groceries please")) == strings.CATEGORIZE_BAD_INPUT
    assert await flow.dispatch_turn(event("5 Groceries")) == strings.INVALID_SELECTION.format(count=2)
    assert not flow.is_complete


@pytest.mark.asyncio
async def test_expired_working_set_ends_flow(flow_services, ledger, clock):
    flow = await started_flow(flow_services)
    clock.advance(1801)

    reply = await flow.dispatch_turn(event("1 Groceries"))

    assert reply == strings.CATEGORIZE_EXPIRED
    assert flow.is_complete
    ledger.update_transaction_category.assert_not_awaited()


@pytest.mark.asyncio
async def test_done_clears_cache(flow_services, caches):
    flow = await started_flow(flow_services)

    reply = await flow.dispatch_turn(event("done"))

    assert reply == strings.CATEGORIZE_DONE.format(count=0)
    assert caches.categorization.get("alice") is None


@pytest.mark.asyncio
async def test_ledger_failure_during_update_keeps_flow_open(flow_services, ledger):
    ledger.update_transaction_category.side_effect = LedgerError("update_transaction_category", "HTTP 503")
    flow = await started_flow(flow_services)

    reply = await flow.dispatch_turn(event("1 Groceries"))

    assert reply == strings.COLLABORATOR_ERROR
    assert flow.step == CategorizeSteps.CATEGORIZING
