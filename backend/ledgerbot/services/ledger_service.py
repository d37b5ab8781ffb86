# /ledgerbot/services/ledger_service.py

import httpx
import logging
import tenacity
from datetime import date, timedelta
from typing import Optional, List, Dict, Any, Sequence

from rapidfuzz import process, fuzz, utils as fuzz_utils

from ledgerbot.config.settings import settings
from ledgerbot.models.domain import Budget, Account, Category, LedgerTransaction, MILLIUNITS
from ledgerbot.utils.circuit_breaker import CircuitBreaker, CircuitOpenError
from ledgerbot.utils.metrics import ledger_requests_counter

# Client for the YNAB-compatible budgeting API. Every public method either
# returns parsed domain models or raises LedgerError, so flows only need to
# handle a single failure type.

logger = logging.getLogger(__name__)

FUZZY_MATCH_CUTOFF = 80


class LedgerError(Exception):
    """The budgeting API could not complete an operation."""

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation


class LedgerService:
    def __init__(
        self,
        base_url: str = settings.ledger_api_url,
        token: Optional[str] = settings.ledger_api_token,
        timeout: float = settings.ledger_timeout,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.circuit_breaker = CircuitBreaker(name="ledger")
        self.http_client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=5.0)
        )

    @tenacity.retry(
        retry=tenacity.retry_if_exception_type((httpx.RequestError, httpx.TimeoutException)),
        stop=tenacity.stop_after_attempt(3),
        wait=tenacity.wait_exponential(multiplier=2, min=1, max=10),
        before_sleep=tenacity.before_sleep_log(logger, logging.WARNING)
    )
    async def resilient_api_call(self, func, *args, **kwargs):
        return await func(*args, **kwargs)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _send(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        resp = await self.resilient_api_call(self.http_client.request, method, url, headers=self._headers(), **kwargs)
        resp.raise_for_status()
        body = resp.json()
        data = body.get("data", {}) if isinstance(body, dict) else None
        if not isinstance(data, dict):
            raise ValueError(f"{method} {path} returned no data object")
        return data

    async def _call(self, operation: str, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            data = await self.circuit_breaker.call(self._send, method, path, **kwargs)
        except httpx.HTTPStatusError as e:
            ledger_requests_counter.labels(operation=operation, status="error").inc()
            logger.error(f"Ledger API {operation} returned {e.response.status_code}: {e.response.text[:200]}")
            raise LedgerError(operation, f"HTTP {e.response.status_code}") from e
        except (httpx.HTTPError, tenacity.RetryError, CircuitOpenError, ValueError) as e:
            ledger_requests_counter.labels(operation=operation, status="error").inc()
            logger.error(f"Ledger API {operation} error: {e}")
            raise LedgerError(operation, str(e)) from e
        ledger_requests_counter.labels(operation=operation, status="success").inc()
        return data

    def _parse(self, operation: str, parser, data: Dict[str, Any]):
        """Maps a malformed 200 body onto LedgerError like any other API failure."""
        try:
            return parser(data)
        except (KeyError, TypeError, AttributeError, ValueError) as e:
            logger.error(f"Ledger API {operation} returned an unexpected body: {e!r}")
            raise LedgerError(operation, "unexpected response body") from e

    # --- Reads ---

    async def list_budgets(self) -> List[Budget]:
        data = await self._call("list_budgets", "GET", "/budgets")
        return self._parse("list_budgets", lambda d: [Budget.from_api(b) for b in d.get("budgets", [])], data)

    async def list_accounts(self, budget_id: str, include_closed: bool = False) -> List[Account]:
        data = await self._call("list_accounts", "GET", f"/budgets/{budget_id}/accounts")
        accounts = self._parse(
            "list_accounts",
            lambda d: [Account.from_api(a) for a in d.get("accounts", []) if not a.get("deleted")],
            data,
        )
        if not include_closed:
            accounts = [a for a in accounts if not a.closed]
        return accounts

    async def list_categories(self, budget_id: str) -> List[Category]:
        data = await self._call("list_categories", "GET", f"/budgets/{budget_id}/categories")
        return self._parse("list_categories", lambda d: Category.list_from_api(d.get("category_groups", [])), data)

    async def list_transactions(
        self,
        budget_id: str,
        account_id: Optional[str] = None,
        days: int = 90,
        uncategorized: bool = False,
    ) -> List[LedgerTransaction]:
        """Transactions of the last `days` days, newest first."""
        path = f"/budgets/{budget_id}/transactions"
        if account_id:
            path = f"/budgets/{budget_id}/accounts/{account_id}/transactions"
        params = {"since_date": (date.today() - timedelta(days=days)).isoformat()}
        if uncategorized:
            params["type"] = "uncategorized"

        data = await self._call("list_transactions", "GET", path, params=params)
        transactions = self._parse(
            "list_transactions",
            lambda d: [LedgerTransaction.from_api(t) for t in d.get("transactions", []) if not t.get("deleted")],
            data,
        )
        transactions.sort(key=lambda t: t.date, reverse=True)
        return transactions

    # --- Writes ---

    async def create_transaction(
        self,
        budget_id: str,
        account_id: str,
        amount: float,
        payee: str,
        category_id: Optional[str] = None,
        memo: Optional[str] = None,
        txn_date: Optional[str] = None,
    ) -> LedgerTransaction:
        payload: Dict[str, Any] = {
            "account_id": account_id,
            "date": txn_date or date.today().isoformat(),
            "amount": int(round(amount * MILLIUNITS)),
            "payee_name": payee,
            "cleared": "cleared",
        }
        if memo:
            payload["memo"] = memo
        if category_id:
            payload["category_id"] = category_id

        data = await self._call("create_transaction", "POST", f"/budgets/{budget_id}/transactions", json={"transaction": payload})
        created = self._parse("create_transaction", lambda d: LedgerTransaction.from_api(d["transaction"]), data)
        logger.info(f"Created ledger transaction in budget {budget_id}: {payee} {amount:.2f}")
        return created

    async def update_transaction_category(
        self, budget_id: str, transaction_id: str, category_id: str, approve: bool = True
    ) -> LedgerTransaction:
        update: Dict[str, Any] = {"category_id": category_id}
        if approve:
            update["approved"] = True
        data = await self._call(
            "update_transaction", "PUT", f"/budgets/{budget_id}/transactions/{transaction_id}",
            json={"transaction": update},
        )
        return self._parse("update_transaction", lambda d: LedgerTransaction.from_api(d["transaction"]), data)

    async def close(self):
        await self.http_client.aclose()


def find_by_name(name: str, items: Sequence[Any]) -> Optional[Any]:
    name = (name or "").strip()
    if not name or not items:
        return None

    lowered = name.lower()
    for item in items:
        if item.name.lower() == lowered:
            return item

    names = [item.name for item in items]
    match = process.extractOne(
        name, names, scorer=fuzz.WRatio, processor=fuzz_utils.default_process, score_cutoff=FUZZY_MATCH_CUTOFF
    )
    if match is None:
        return None
    _, score, index = match
    logger.debug(f"Fuzzy matched '{name}' to '{names[index]}' (score {score:.0f})")
    return items[index]


def find_category_by_name(name: str, categories: Sequence[Category]) -> Optional[Category]:
    return find_by_name(name, categories)


def find_account_by_name(name: str, accounts: Sequence[Account]) -> Optional[Account]:
    return find_by_name(name, accounts)
