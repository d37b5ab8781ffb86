# /ledgerbot/flows/view_transactions.py

import re
import logging
from typing import Any, Dict, Optional

from ledgerbot.config import strings
from ledgerbot.flows.base import BaseFlow, ChildResult
from ledgerbot.flows.selection import SelectAccountFlow
from ledgerbot.models.domain import format_amount
from ledgerbot.models.events import InboundEvent
from ledgerbot.services.ledger_service import LedgerError

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
MAX_LIMIT = 50

TRANSACTIONS_RE = re.compile(r"\b(transactions?|transacci[oó]n(?:es)?|movements?|movimientos?)\b", re.IGNORECASE)
LAST_N_RE = re.compile(r"\b(?:last|[uú]ltim[oa]s)\s+(\d{1,3})\b", re.IGNORECASE)
ACCOUNT_HINT_RE = re.compile(
    r"\b(?:transactions?|transacci[oó]n(?:es)?|movements?|movimientos?)\s+(?:of|for|in|from|de|en)\s+(?:my\s+|mi\s+)?(.+)$",
    re.IGNORECASE,
)


class ViewTransactionsFlow(BaseFlow):
    """Lists recent transactions of one account, or of the whole budget when the user picks "all"."""
    intent = "view_transactions"

    @classmethod
    def matches(cls, text: str) -> bool:
        return bool(TRANSACTIONS_RE.search(text)) and not re.search(r"\bcategori", text, re.IGNORECASE)

    @classmethod
    def extract_params(cls, text: str) -> Dict[str, Any]:
        params: Dict[str, Any] = {}
        last = LAST_N_RE.search(text)
        if last:
            params["limit"] = max(1, min(int(last.group(1)), MAX_LIMIT))
        hint = ACCOUNT_HINT_RE.search(text.strip())
        if hint:
            params["account_hint"] = hint.group(1).strip(" ?.!")
        return params

    async def start(self, event: InboundEvent) -> Optional[str]:
        for key, value in self.extract_params(event.clean_text).items():
            self.data.setdefault(key, value)
        self.data.setdefault("limit", DEFAULT_LIMIT)

        params: Dict[str, Any] = {"allow_all": True}
        if self.data.get("account_hint"):
            params["account_hint"] = self.data["account_hint"]
        return await self.delegate_to(SelectAccountFlow(self.user_key, self.services, params=params), event)

    async def accept_turn(self, event: InboundEvent) -> Optional[str]:
        return self.handle_common_commands(event) or strings.FLOW_INVALID_STATE

    async def on_child_complete(self, result: ChildResult) -> Optional[str]:
        if result.cancelled:
            self.cancel()
            return None

        account_id = result.data.get("account_id")
        try:
            transactions = await self.services.ledger.list_transactions(result.data["budget_id"], account_id=account_id)
        except LedgerError as e:
            logger.error(f"Failed to load transactions for {self.user_key}: {e}")
            self.cancel()
            return strings.COLLABORATOR_ERROR

        if not transactions:
            return self.finish(strings.NO_TRANSACTIONS)

        shown = transactions[:self.data["limit"]]
        lines = [strings.TRANSACTIONS_HEADER.format(count=len(shown), budget=result.data.get("budget_name") or "")]
        if account_id:
            lines.append(f"*Account:* {result.data.get('account_name')}")
        lines.append("")
        for i, txn in enumerate(shown, start=1):
            line = f"{i}. {txn.date} | {format_amount(txn.amount)} | {txn.payee or '-'}"
            if txn.category_name:
                line += f" 🏷️ {txn.category_name}"
            lines.append(line)
        return self.finish("\n".join(lines))
