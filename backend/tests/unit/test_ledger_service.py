# backend/tests/unit/test_ledger_service.py
import json
from datetime import date, timedelta

import httpx
import pytest

from ledgerbot.models.domain import Account, Category
from ledgerbot.services.ledger_service import LedgerError, LedgerService, find_by_name, find_category_by_name


class Recorder:
    """MockTransport handler that records requests and replays canned responses."""

    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self.payload = payload or {}
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.payload)


def make_service(recorder):
    client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
    return LedgerService(base_url="https://ledger.test/v1/", token="secret", http_client=client)


@pytest.mark.asyncio
async def test_list_budgets_sends_bearer_token():
    recorder = Recorder(payload={"data": {"budgets": [{"id": "b1", "name": "Personal"}]}})
    service = make_service(recorder)

    budgets = await service.list_budgets()

    assert [b.name for b in budgets] == ["Personal"]
    request = recorder.requests[0]
    assert str(request.url) == "https://ledger.test/v1/budgets"
    assert request.headers["Authorization"] == "Bearer secret"
    await service.close()


@pytest.mark.asyncio
async def test_list_accounts_converts_milliunits_and_skips_closed():
    recorder = Recorder(payload={"data": {"accounts": [
        {"id": "a1", "name": "Checking", "balance": 1500250},
        {"id": "a2", "name": "Old Savings", "balance": 0, "closed": True},
        {"id": "a3", "name": "Gone", "balance": 0, "deleted": True},
    ]}})
    service = make_service(recorder)

    accounts = await service.list_accounts("b1")

    assert accounts == [Account(id="a1", name="Checking", balance=1500.25)]
    assert len(await service.list_accounts("b1", include_closed=True)) == 2


@pytest.mark.asyncio
async def test_list_categories_flattens_visible_groups():
    recorder = Recorder(payload={"data": {"category_groups": [
        {"name": "Everyday", "categories": [
            {"id": "c1", "name": "Groceries"},
            {"id": "c9", "name": "Hidden", "hidden": True},
        ]},
        {"name": "Archived", "hidden": True, "categories": [{"id": "c5", "name": "Old"}]},
    ]}})
    service = make_service(recorder)

    categories = await service.list_categories("b1")

    assert categories == [Category(id="c1", name="Groceries", group="Everyday")]


@pytest.mark.asyncio
async def test_list_transactions_filters_and_sorts_newest_first():
    recorder = Recorder(payload={"data": {"transactions": [
        {"id": "t1", "date": "2024-03-01", "amount": -12500, "payee_name": "Uber"},
        {"id": "t2", "date": "2024-03-05", "amount": -45000, "payee_name": "Supermarket"},
        {"id": "t3", "date": "2024-03-04", "amount": -1000, "deleted": True},
    ]}})
    service = make_service(recorder)

    transactions = await service.list_transactions("b1", uncategorized=True, days=30)

    assert [t.id for t in transactions] == ["t2", "t1"]
    assert transactions[1].amount == -12.5
    params = recorder.requests[0].url.params
    assert params["type"] == "uncategorized"
    assert params["since_date"] == (date.today() - timedelta(days=30)).isoformat()


@pytest.mark.asyncio
async def test_list_transactions_for_one_account_uses_account_path():
    recorder = Recorder(payload={"data": {"transactions": []}})
    service = make_service(recorder)

    await service.list_transactions("b1", account_id="a1")

    assert recorder.requests[0].url.path == "/v1/budgets/b1/accounts/a1/transactions"
    assert "type" not in recorder.requests[0].url.params


@pytest.mark.asyncio
async def test_create_transaction_posts_milliunits():
    recorder = Recorder(payload={"data": {"transaction": {
        "id": "new", "date": "2024-03-03", "amount": -12340, "payee_name": "Cafe",
    }}})
    service = make_service(recorder)

    created = await service.create_transaction(
        budget_id="b1", account_id="a1", amount=-12.34, payee="Cafe", category_id="c2", txn_date="2024-03-03"
    )

    body = json.loads(recorder.requests[0].content)["transaction"]
    assert body == {
        "account_id": "a1",
        "date": "2024-03-03",
        "amount": -12340,
        "payee_name": "Cafe",
        "cleared": "cleared",
        "category_id": "c2",
    }
    assert recorder.requests[0].method == "POST"
    assert created.amount == -12.34


@pytest.mark.asyncio
async def test_update_transaction_category_approves():
    recorder = Recorder(payload={"data": {"transaction": {"id": "t1", "date": "2024-03-01", "amount": -1000}}})
    service = make_service(recorder)

    await service.update_transaction_category("b1", "t1", "c1")

    request = recorder.requests[0]
    assert request.method == "PUT"
    assert request.url.path == "/v1/budgets/b1/transactions/t1"
    assert json.loads(request.content) == {"transaction": {"category_id": "c1", "approved": True}}


@pytest.mark.asyncio
async def test_http_error_becomes_ledger_error():
    service = make_service(Recorder(status_code=500, payload={"error": "boom"}))

    with pytest.raises(LedgerError) as exc_info:
        await service.list_budgets()

    assert exc_info.value.operation == "list_budgets"
    assert "HTTP 500" in str(exc_info.value)


@pytest.mark.asyncio
async def test_create_transaction_without_transaction_in_body_raises_ledger_error():
    service = make_service(Recorder(payload={"data": {}}))

    with pytest.raises(LedgerError) as exc_info:
        await service.create_transaction(budget_id="b1", account_id="a1", amount=-1.0, payee="Cafe")

    assert exc_info.value.operation == "create_transaction"


@pytest.mark.asyncio
async def test_malformed_bodies_raise_ledger_error():
    with pytest.raises(LedgerError):
        await make_service(Recorder(payload={"data": {"transaction": None}})).update_transaction_category("b1", "t1", "c1")
    with pytest.raises(LedgerError):
        await make_service(Recorder(payload={"data": {"accounts": [{"name": "no id"}]}})).list_accounts("b1")
    with pytest.raises(LedgerError):
        await make_service(Recorder(payload={"data": ["not", "an", "object"]})).list_budgets()


@pytest.mark.asyncio
async def test_open_circuit_stops_calling_the_api():
    recorder = Recorder(status_code=503)
    service = make_service(recorder)

    for _ in range(service.circuit_breaker.failure_threshold):
        with pytest.raises(LedgerError):
            await service.list_budgets()
    calls_before = len(recorder.requests)

    with pytest.raises(LedgerError) as exc_info:
        await service.list_budgets()

    assert "OPEN" in str(exc_info.value)
    assert len(recorder.requests) == calls_before


CATEGORIES = [
    Category(id="c1", name="Groceries"),
    Category(id="c2", name="Dining Out"),
    Category(id="c3", name="Transportation"),
]


def test_find_by_name_prefers_exact_case_insensitive_match():
    assert find_category_by_name("groceries", CATEGORIES).id == "c1"


def test_find_by_name_tolerates_typos():
    assert find_category_by_name("Grocerys", CATEGORIES).id == "c1"
    assert find_category_by_name("transportaton", CATEGORIES).id == "c3"


def test_find_by_name_rejects_weak_matches():
    assert find_category_by_name("Housing", CATEGORIES) is None
    assert find_by_name("", CATEGORIES) is None
    assert find_by_name("Groceries", []) is None
