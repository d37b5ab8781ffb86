# /ledgerbot/flows/selection.py

import logging
from typing import Any, List, Optional, Sequence

from ledgerbot.config import strings
from ledgerbot.flows.base import BaseFlow, ChildResult, FlowSteps
from ledgerbot.models.domain import format_amount
from ledgerbot.models.events import InboundEvent
from ledgerbot.services.ledger_service import LedgerError, find_by_name, find_category_by_name

# Reusable child flows that ask the user to pick a budget, an account or a
# category and hand the choice back to whichever flow delegated to them.

logger = logging.getLogger(__name__)


class SelectionSteps(FlowSteps):
    SELECTING = "selecting"


SKIP_WORDS = {"skip", "omitir", "ninguna", "none"}
MORE_WORDS = {"more", "más", "mas"}
ALL_WORDS = {"0", "all", "todas", "todo"}
CATEGORY_PAGE_SIZE = 15


def pick_option(text: str, options: Sequence[Any]) -> Optional[Any]:
    """Resolves a reply to one of options, by 1-based number or by name."""
    text = text.strip()
    if not text or not options:
        return None
    if text.isdigit():
        index = int(text) - 1
        return options[index] if 0 <= index < len(options) else None

    lowered = text.lower()
    partial = [option for option in options if lowered in option.name.lower()]
    if len(partial) == 1:
        return partial[0]
    return find_by_name(text, options)


class SelectBudgetFlow(BaseFlow):
    intent = "select_budget"
    snapshot_exclude = ("budgets",)

    async def start(self, event: InboundEvent) -> Optional[str]:
        if self.data.get("budget_id"):
            return self.finish()

        try:
            budgets = await self.services.ledger.list_budgets()
        except LedgerError as e:
            logger.error(f"Could not load budgets for {self.user_key}: {e}")
            self.cancel()
            return strings.COLLABORATOR_ERROR

        if not budgets:
            self.cancel()
            return strings.NO_BUDGETS
        if len(budgets) == 1:
            return self._select(budgets[0])

        self.data["budgets"] = budgets
        self.step = SelectionSteps.SELECTING
        lines = [strings.SELECT_BUDGET_HEADER, ""]
        lines += [f"{i}. {budget.name}" for i, budget in enumerate(budgets, start=1)]
        lines += ["", "Reply with the number or the name of the budget."]
        return "\n".join(lines)

    async def accept_turn(self, event: InboundEvent) -> Optional[str]:
        common = self.handle_common_commands(event)
        if common:
            return common

        budgets = self.data.get("budgets") or []
        budget = pick_option(event.clean_text, budgets)
        if budget is None:
            return strings.INVALID_SELECTION.format(count=len(budgets))
        return self._select(budget)

    def _select(self, budget) -> Optional[str]:
        self.data["budget_id"] = budget.id
        self.data["budget_name"] = budget.name
        self.data.pop("budgets", None)
        logger.info(f"Budget '{budget.name}' selected for {self.user_key}")
        return self.finish()


class SelectAccountFlow(BaseFlow):
    """
    Asks for an account inside a budget. When no budget is known yet it
    first delegates to SelectBudgetFlow.

    Params: `account_hint` selects straight away when it names one account;
    `allow_all` adds an "All accounts" choice that completes with no account.
    """
    intent = "select_account"
    snapshot_exclude = ("accounts",)

    async def start(self, event: InboundEvent) -> Optional[str]:
        if not self.data.get("budget_id"):
            return await self.delegate_to(SelectBudgetFlow(self.user_key, self.services), event)
        return await self._show_accounts()

    async def on_child_complete(self, result: ChildResult) -> Optional[str]:
        if result.cancelled:
            self.cancel()
            return None
        self.data["budget_id"] = result.data["budget_id"]
        self.data["budget_name"] = result.data.get("budget_name")
        return await self._show_accounts()

    async def _show_accounts(self) -> Optional[str]:
        try:
            accounts: List = await self.services.ledger.list_accounts(self.data["budget_id"])
        except LedgerError as e:
            logger.error(f"Could not load accounts for {self.user_key}: {e}")
            self.cancel()
            return strings.COLLABORATOR_ERROR

        if not accounts:
            self.cancel()
            return strings.NO_ACCOUNTS

        hint = self.data.pop("account_hint", None)
        if hint:
            account = pick_option(hint, accounts)
            if account is not None:
                return self._select(account)

        self.data["accounts"] = accounts
        self.step = SelectionSteps.SELECTING
        lines = [strings.SELECT_ACCOUNT_HEADER]
        if self.data.get("budget_name"):
            lines.append(f"*Budget:* {self.data['budget_name']}")
        lines.append("")
        if self.data.get("allow_all"):
            lines.append(strings.ALL_ACCOUNTS_OPTION)
        lines += [
            f"{i}. {account.name} ({format_amount(account.balance)})"
            for i, account in enumerate(accounts, start=1)
        ]
        lines += ["", "Reply with the number or the name of the account."]
        return "\n".join(lines)

    async def accept_turn(self, event: InboundEvent) -> Optional[str]:
        common = self.handle_common_commands(event)
        if common:
            return common

        if self.step != SelectionSteps.SELECTING:
            return strings.FLOW_INVALID_STATE

        if self.data.get("allow_all") and event.clean_text.lower() in ALL_WORDS:
            return self._select(None)

        accounts = self.data.get("accounts") or []
        account = pick_option(event.clean_text, accounts)
        if account is None:
            return strings.INVALID_SELECTION.format(count=len(accounts))
        return self._select(account)

    def _select(self, account) -> Optional[str]:
        self.data["account_id"] = account.id if account else None
        self.data["account_name"] = account.name if account else None
        self.data.pop("accounts", None)
        logger.info(f"Account '{account.name if account else 'all'}' selected for {self.user_key}")
        return self.finish()


class SelectCategoryFlow(BaseFlow):
    """
    Asks for a category of a known budget, fifteen at a time ("more" shows
    the next page). Completes with category_id None when the user skips.
    """
    intent = "select_category"
    snapshot_exclude = ("categories",)

    async def start(self, event: InboundEvent) -> Optional[str]:
        categories = self.data.get("categories")
        if not categories:
            try:
                categories = await self.services.ledger.list_categories(self.data["budget_id"])
            except LedgerError as e:
                logger.error(f"Could not load categories for {self.user_key}: {e}")
                self.cancel()
                return strings.COLLABORATOR_ERROR

        if not categories:
            self._select(None)
            return strings.NO_CATEGORIES

        self.data["categories"] = categories
        self.data.setdefault("shown", CATEGORY_PAGE_SIZE)
        self.step = SelectionSteps.SELECTING
        return self._render()

    def _render(self) -> str:
        categories = self.data["categories"]
        shown = min(self.data["shown"], len(categories))
        lines = [strings.SELECT_CATEGORY_HEADER, ""]
        lines += [f"{i}. {category.name}" for i, category in enumerate(categories[:shown], start=1)]
        if len(categories) > shown:
            lines += ["", strings.CATEGORY_LIST_MORE.format(remaining=len(categories) - shown)]
        lines += ["", strings.CATEGORY_LIST_FOOTER]
        return "\n".join(lines)

    async def accept_turn(self, event: InboundEvent) -> Optional[str]:
        common = self.handle_common_commands(event)
        if common:
            return common

        if self.step != SelectionSteps.SELECTING:
            return strings.FLOW_INVALID_STATE

        text = event.clean_text
        normalized = text.lower()
        if normalized in SKIP_WORDS:
            return self._select(None)
        if normalized in MORE_WORDS:
            self.data["shown"] += CATEGORY_PAGE_SIZE
            return self._render()

        categories = self.data.get("categories") or []
        if text.isdigit():
            visible = categories[:self.data["shown"]]
            category = pick_option(text, visible)
            if category is None:
                return strings.INVALID_SELECTION.format(count=len(visible))
        else:
            category = find_category_by_name(text, categories)
            if category is None:
                return strings.CATEGORY_NOT_FOUND.format(name=text)
        return self._select(category)

    def _select(self, category) -> Optional[str]:
        self.data["category_id"] = category.id if category else None
        self.data["category_name"] = category.name if category else None
        self.data.pop("categories", None)
        return self.finish()
