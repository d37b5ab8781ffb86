# /ledgerbot/flows/view_balance.py

import re
import logging
from typing import Any, Dict, Optional

from ledgerbot.config import strings
from ledgerbot.flows.base import BaseFlow, ChildResult
from ledgerbot.flows.selection import SelectBudgetFlow
from ledgerbot.models.domain import format_amount
from ledgerbot.models.events import InboundEvent
from ledgerbot.services.ledger_service import LedgerError, find_account_by_name

logger = logging.getLogger(__name__)

BALANCE_RE = re.compile(r"\b(balances?|saldos?)\b", re.IGNORECASE)
ACCOUNT_HINT_RE = re.compile(
    r"\b(?:balances?|saldos?|how much)\b.*?\b(?:of|for|in|de|en)\s+(?:my\s+|mi\s+)?(.+)$", re.IGNORECASE
)


class ViewBalanceFlow(BaseFlow):
    intent = "view_balance"

    @classmethod
    def matches(cls, text: str) -> bool:
        return bool(BALANCE_RE.search(text))

    @classmethod
    def extract_params(cls, text: str) -> Dict[str, Any]:
        hint = ACCOUNT_HINT_RE.search(text.strip())
        if hint:
            return {"account_hint": hint.group(1).strip(" ?.!")}
        return {}

    async def start(self, event: InboundEvent) -> Optional[str]:
        for key, value in self.extract_params(event.clean_text).items():
            self.data.setdefault(key, value)
        child = SelectBudgetFlow(self.user_key, self.services)
        return await self.delegate_to(child, event)

    async def accept_turn(self, event: InboundEvent) -> Optional[str]:
        # Every turn is consumed by the budget selection child
        return self.handle_common_commands(event) or strings.FLOW_INVALID_STATE

    async def on_child_complete(self, result: ChildResult) -> Optional[str]:
        if result.cancelled:
            self.cancel()
            return None

        budget_name = result.data.get("budget_name", "")
        try:
            accounts = await self.services.ledger.list_accounts(result.data["budget_id"])
        except LedgerError as e:
            logger.error(f"Failed to load balances for {self.user_key}: {e}")
            self.cancel()
            return strings.COLLABORATOR_ERROR

        hint = self.data.get("account_hint")
        if hint:
            match = find_account_by_name(hint, accounts)
            if match is not None:
                accounts = [match]

        if not accounts:
            return self.finish(strings.NO_ACCOUNTS)

        lines = [strings.BALANCES_HEADER.format(budget=budget_name), ""]
        lines += [f"🏦 {account.name}: {format_amount(account.balance)}" for account in accounts]
        if len(accounts) > 1:
            total = sum(account.balance for account in accounts)
            lines += ["", f"*Total:* {format_amount(total)}"]
        return self.finish("\n".join(lines))
