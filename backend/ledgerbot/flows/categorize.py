# /ledgerbot/flows/categorize.py

import re
import logging
from typing import Optional

from ledgerbot.config import strings
from ledgerbot.flows.base import BaseFlow, ChildResult, FlowSteps
from ledgerbot.flows.selection import SelectBudgetFlow
from ledgerbot.models.domain import CategorizationWorkingSet, format_amount
from ledgerbot.models.events import InboundEvent
from ledgerbot.services.ledger_service import LedgerError, find_category_by_name

# Walks the user through their uncategorized transactions. The working set
# lives in the categorization cache, not in the flow, and is re-read on
# every turn so an expired list is noticed even mid-conversation.

logger = logging.getLogger(__name__)

CATEGORIZE_RE = re.compile(r"\b(categori[zs]|clasific)", re.IGNORECASE)
ASSIGN_RE = re.compile(r"^(\d+)\s*[:.-]?\s+(.+)$")
DONE_WORDS = {"done", "finish", "listo", "terminar", "fin"}


class CategorizeSteps(FlowSteps):
    SELECT_BUDGET = "select_budget"
    CATEGORIZING = "categorizing"


def render_working_set(working_set: CategorizationWorkingSet) -> str:
    lines = [CategorizeTransactionsFlow.header(working_set), ""]
    for i, txn in enumerate(working_set.transactions, start=1):
        lines.append(f"{i}. {txn.date} | {format_amount(txn.amount)} | {txn.payee or '-'}")
    lines += ["", strings.CATEGORIZE_FOOTER]
    return "\n".join(lines)


class CategorizeTransactionsFlow(BaseFlow):
    intent = "categorize_transactions"

    @classmethod
    def matches(cls, text: str) -> bool:
        return bool(CATEGORIZE_RE.search(text))

    @staticmethod
    def header(working_set: CategorizationWorkingSet) -> str:
        return f"{strings.CATEGORIZE_HEADER} - {working_set.budget_name}"

    @property
    def cache(self):
        return self.services.caches.categorization

    async def start(self, event: InboundEvent) -> Optional[str]:
        self.step = CategorizeSteps.SELECT_BUDGET
        return await self.delegate_to(SelectBudgetFlow(self.user_key, self.services), event)

    async def on_child_complete(self, result: ChildResult) -> Optional[str]:
        if result.cancelled:
            self.cancel()
            return None

        budget_id = result.data["budget_id"]
        try:
            transactions = await self.services.ledger.list_transactions(budget_id, uncategorized=True)
            categories = await self.services.ledger.list_categories(budget_id)
        except LedgerError as e:
            logger.error(f"Failed to load categorization data for {self.user_key}: {e}")
            self.cancel()
            return strings.COLLABORATOR_ERROR

        if not transactions:
            return self.finish(strings.NO_UNCATEGORIZED)

        working_set = CategorizationWorkingSet(
            budget_id=budget_id,
            budget_name=result.data.get("budget_name", ""),
            transactions=transactions,
            categories=categories,
        )
        self.cache.put(self.user_key, working_set)
        self.step = CategorizeSteps.CATEGORIZING
        logger.info(f"Staged {len(transactions)} uncategorized transactions for {self.user_key}")
        return render_working_set(working_set)

    async def accept_turn(self, event: InboundEvent) -> Optional[str]:
        common = self.handle_common_commands(event)
        if common:
            return common
        if self.step != CategorizeSteps.CATEGORIZING:
            return strings.FLOW_INVALID_STATE

        working_set: Optional[CategorizationWorkingSet] = self.cache.get(self.user_key)
        if working_set is None:
            return self.finish(strings.CATEGORIZE_EXPIRED)

        text = event.clean_text
        if text.lower() in DONE_WORDS:
            self.cache.delete(self.user_key)
            return self.finish(strings.CATEGORIZE_DONE.format(count=working_set.categorized))

        assignment = ASSIGN_RE.match(text)
        if not assignment:
            return strings.CATEGORIZE_BAD_INPUT

        index = int(assignment.group(1)) - 1
        if not 0 <= index < len(working_set.transactions):
            return strings.INVALID_SELECTION.format(count=len(working_set.transactions))

        category_name = assignment.group(2).strip()
        category = find_category_by_name(category_name, working_set.categories)
        if category is None:
            return strings.CATEGORIZE_UNKNOWN_CATEGORY.format(name=category_name)

        txn = working_set.transactions[index]
        try:
            await self.services.ledger.update_transaction_category(working_set.budget_id, txn.id, category.id)
        except LedgerError as e:
            logger.error(f"Failed to categorize transaction {txn.id} for {self.user_key}: {e}")
            return strings.COLLABORATOR_ERROR

        remaining = [t for i, t in enumerate(working_set.transactions) if i != index]
        updated = working_set.model_copy(update={
            "transactions": remaining,
            "categorized": working_set.categorized + 1,
        })
        applied = strings.CATEGORIZE_APPLIED.format(
            payee=txn.payee or "-", category=category.name, remaining=len(remaining)
        )

        if not remaining:
            self.cache.delete(self.user_key)
            return self.finish(f"{applied}\n\n{strings.CATEGORIZE_DONE.format(count=updated.categorized)}")

        self.cache.put(self.user_key, updated)
        return f"{applied}\n\n{render_working_set(updated)}"
