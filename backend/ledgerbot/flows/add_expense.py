# /ledgerbot/flows/add_expense.py

import re
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from ledgerbot.config import strings
from ledgerbot.flows.base import BaseFlow, ChildResult, FlowSteps
from ledgerbot.flows.selection import SKIP_WORDS, SelectAccountFlow, SelectCategoryFlow
from ledgerbot.models.domain import format_amount
from ledgerbot.models.events import InboundEvent
from ledgerbot.services.ledger_service import LedgerError

logger = logging.getLogger(__name__)

MATCH_PATTERNS = [
    re.compile(r"\b(expense|spent|spend|purchase|bought|buy|paid|pagu[ée]|compr[ée]|gast[oée])\b", re.IGNORECASE),
    re.compile(r"\b(add|new|agregar|crear|registrar)\s+(gasto|transacci[oó]n|expense|transaction)", re.IGNORECASE),
    re.compile(r"\$\s*\d"),
    re.compile(r"\bS/\s*\d"),
]

DOLLAR_RE = re.compile(r"\$\s*([\d,]+(?:\.\d+)?)")
SOLES_RE = re.compile(r"\bS/\s*([\d,]+(?:\.\d+)?)")
WORD_AMOUNT_RE = re.compile(r"\b([\d,]+(?:\.\d+)?)\s*(soles|dollars?|usd|pen)\b", re.IGNORECASE)
PLAIN_AMOUNT_RE = re.compile(r"([-+]?\d[\d,]*(?:\.\d+)?)")
AT_PAYEE_RE = re.compile(r"\b(?:at|en|in)\s+([A-Z][a-zA-Z\s]+)")
FOR_PAYEE_RE = re.compile(r"\b(?:for|para)\s+([A-Z][a-zA-Z\s]+)")


YES_WORDS = {"yes", "y", "si", "sí", "ok", "confirm", "confirmar"}
NO_WORDS = {"no", "n"}


class AddExpenseSteps(FlowSteps):
    ASK_AMOUNT = "ask_amount"
    ASK_PAYEE = "ask_payee"
    SELECT_ACCOUNT = "select_account"
    SELECT_CATEGORY = "select_category"
    ASK_MEMO = "ask_memo"
    CONFIRM = "confirm"


def _to_float(raw: str) -> float:
    return float(raw.replace(",", ""))


class AddExpenseFlow(BaseFlow):
    """
    Records one expense.

    A message that already carries amount and payee ("spent $12 at Cafe")
    only needs the account and is created right away. Otherwise the flow is
    guided: amount, payee, account, an optional category, an optional memo and
    a yes/no confirmation before anything is written to the ledger.
    """
    intent = "add_expense"

    @classmethod
    def matches(cls, text: str) -> bool:
        return any(pattern.search(text) for pattern in MATCH_PATTERNS)

    @classmethod
    def extract_params(cls, text: str) -> Dict[str, Any]:
        params: Dict[str, Any] = {}

        dollar = DOLLAR_RE.search(text)
        soles = SOLES_RE.search(text)
        worded = WORD_AMOUNT_RE.search(text)
        if dollar:
            params["amount"] = -_to_float(dollar.group(1))
            params["currency"] = "USD"
        elif soles:
            params["amount"] = -_to_float(soles.group(1))
            params["currency"] = "PEN"
        elif worded:
            params["amount"] = -_to_float(worded.group(1))
            params["currency"] = "PEN" if "sol" in worded.group(2).lower() else "USD"

        payee = AT_PAYEE_RE.search(text) or FOR_PAYEE_RE.search(text)
        if payee:
            params["payee"] = payee.group(1).strip()

        return params

    @property
    def guided(self) -> bool:
        return bool(self.data.get("guided"))

    async def start(self, event: InboundEvent) -> Optional[str]:
        for key, value in self.extract_params(event.clean_text).items():
            self.data.setdefault(key, value)
        return await self._next_step(event)

    async def _next_step(self, event: InboundEvent) -> Optional[str]:
        if not self.data.get("amount"):
            self.data["guided"] = True
            self.step = AddExpenseSteps.ASK_AMOUNT
            return strings.ASK_AMOUNT
        if not self.data.get("payee"):
            self.data["guided"] = True
            self.step = AddExpenseSteps.ASK_PAYEE
            return strings.ASK_PAYEE

        self.step = AddExpenseSteps.SELECT_ACCOUNT
        child = SelectAccountFlow(self.user_key, self.services, params={
            k: self.data[k] for k in ("budget_id", "budget_name") if self.data.get(k)
        })
        return await self.delegate_to(child, event)

    async def accept_turn(self, event: InboundEvent) -> Optional[str]:
        common = self.handle_common_commands(event)
        if common:
            return common

        if self.step == AddExpenseSteps.ASK_AMOUNT:
            return await self._handle_amount(event)
        if self.step == AddExpenseSteps.ASK_PAYEE:
            return await self._handle_payee(event)
        if self.step == AddExpenseSteps.ASK_MEMO:
            return self._handle_memo(event)
        if self.step == AddExpenseSteps.CONFIRM:
            return await self._handle_confirmation(event)
        return strings.FLOW_INVALID_STATE

    async def _handle_amount(self, event: InboundEvent) -> Optional[str]:
        text = event.clean_text
        amount = self.extract_params(text).get("amount")
        if amount is None:
            plain = PLAIN_AMOUNT_RE.search(text)
            amount = _to_float(plain.group(1)) if plain else None
        if not amount:
            return strings.INVALID_AMOUNT

        self.data["amount"] = amount
        return await self._next_step(event)

    async def _handle_payee(self, event: InboundEvent) -> Optional[str]:
        payee = event.clean_text
        if not payee:
            return strings.INVALID_PAYEE
        self.data["payee"] = payee
        return await self._next_step(event)

    def _handle_memo(self, event: InboundEvent) -> str:
        memo = event.clean_text
        if memo and memo.lower() not in SKIP_WORDS:
            self.data["memo"] = memo
        return self._ask_confirmation()

    def _ask_confirmation(self) -> str:
        self.step = AddExpenseSteps.CONFIRM
        lines = [strings.CONFIRM_EXPENSE.format(
            account=self.data["account_name"],
            amount=format_amount(self.data["amount"]),
            payee=self.data["payee"],
        )]
        lines += self._detail_lines()
        lines += ["", strings.CONFIRM_EXPENSE_QUESTION]
        return "\n".join(lines)

    async def _handle_confirmation(self, event: InboundEvent) -> Optional[str]:
        answer = event.clean_text.lower().strip(".!")
        if answer in NO_WORDS:
            self.cancel()
            return strings.EXPENSE_DISCARDED
        if answer not in YES_WORDS:
            return strings.CONFIRM_EXPENSE_REPROMPT
        return await self._create()

    def _detail_lines(self) -> List[str]:
        lines = []
        if self.data.get("category_name"):
            lines.append(f"🏷️ {self.data['category_name']}")
        if self.data.get("memo"):
            lines.append(f"💭 {self.data['memo']}")
        return lines

    async def on_child_complete(self, result: ChildResult) -> Optional[str]:
        if result.cancelled:
            self.cancel()
            return None

        if result.intent == SelectCategoryFlow.intent:
            self.data.update({k: result.data.get(k) for k in ("category_id", "category_name")})
            self.step = AddExpenseSteps.ASK_MEMO
            return strings.ASK_MEMO

        self.data.update({k: result.data.get(k) for k in ("budget_id", "budget_name", "account_id", "account_name")})
        if not self.guided:
            return await self._create()

        self.step = AddExpenseSteps.SELECT_CATEGORY
        child = SelectCategoryFlow(self.user_key, self.services, params={"budget_id": self.data["budget_id"]})
        return await self.delegate_to(child, InboundEvent(user_key=self.user_key))

    async def _create(self) -> Optional[str]:
        txn_date = date.today().isoformat()
        try:
            await self.services.ledger.create_transaction(
                budget_id=self.data["budget_id"],
                account_id=self.data["account_id"],
                amount=self.data["amount"],
                payee=self.data["payee"],
                category_id=self.data.get("category_id"),
                memo=self.data.get("memo"),
                txn_date=txn_date,
            )
        except LedgerError as e:
            logger.error(f"Failed to create expense for {self.user_key}: {e}")
            self.cancel()
            return strings.COLLABORATOR_ERROR

        reply = strings.EXPENSE_CREATED.format(
            account=self.data["account_name"],
            amount=format_amount(self.data["amount"]),
            payee=self.data["payee"],
            date=txn_date,
        )
        return self.finish("\n".join([reply] + self._detail_lines()))
