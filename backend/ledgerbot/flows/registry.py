# /ledgerbot/flows/registry.py

from typing import Dict, List, Type

from ledgerbot.flows.add_expense import AddExpenseFlow
from ledgerbot.flows.base import BaseFlow
from ledgerbot.flows.categorize import CategorizeTransactionsFlow
from ledgerbot.flows.document import (
    ConfirmExtractedFlow,
    CorrectExtractedFlow,
    DiscardExtractedFlow,
    ProcessDocumentFlow,
)
from ledgerbot.flows.view_balance import ViewBalanceFlow
from ledgerbot.flows.view_transactions import ViewTransactionsFlow
from ledgerbot.services.ai_service import IntentLabels

# Routing tables. List order is the only priority between flows.

RULE_FLOWS: List[Type[BaseFlow]] = [
    AddExpenseFlow,
    ViewTransactionsFlow,
    ViewBalanceFlow,
    CategorizeTransactionsFlow,
    ConfirmExtractedFlow,
    CorrectExtractedFlow,
    DiscardExtractedFlow,
]

PARAM_FLOWS: List[Type[BaseFlow]] = [
    AddExpenseFlow,
    ViewTransactionsFlow,
    ViewBalanceFlow,
]

INTENT_FLOW_TABLE: Dict[str, Type[BaseFlow]] = {
    IntentLabels.ADD_EXPENSE: AddExpenseFlow,
    IntentLabels.VIEW_TRANSACTIONS: ViewTransactionsFlow,
    IntentLabels.VIEW_BALANCE: ViewBalanceFlow,
    IntentLabels.CATEGORIZE_TRANSACTIONS: CategorizeTransactionsFlow,
}

DOCUMENT_FLOW: Type[BaseFlow] = ProcessDocumentFlow
