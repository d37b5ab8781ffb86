# /ledgerbot/flows/document.py

"""
Statement processing as an extract/confirm workflow.

ProcessDocumentFlow picks the budget, extracts transactions from an attachment
with that budget's categories as hints, stages them in the documents cache
and finishes. The staged batch is then reviewed by standalone flows that
only need the user key to find it:

- ConfirmExtractedFlow ("yes") asks for an account and creates the batch.
- CorrectExtractedFlow ("1 is 146.16", "2 is Groceries") edits the batch.
- DiscardExtractedFlow ("discard") drops it.

The batch outlives the flow that created it and expires on its own TTL.
"""

import re
import logging
from typing import List, Optional, Tuple

from ledgerbot.config import strings
from ledgerbot.flows.base import BaseFlow, ChildResult
from ledgerbot.flows.selection import SelectAccountFlow, SelectBudgetFlow
from ledgerbot.models.domain import DocumentBatch, ExtractedTransaction, format_amount
from ledgerbot.models.events import InboundEvent
from ledgerbot.services.ai_service import DocumentExtractionError
from ledgerbot.services.cache_service import confirm_staged
from ledgerbot.services.ledger_service import LedgerError, find_category_by_name

logger = logging.getLogger(__name__)

CONFIRM_RE = re.compile(
    r"^(?:yes|y|s[ií]|ok|okay|dale|confirm|confirmar)(?:[\s,]+(?:confirm|confirmar|please|por favor))?[.!]*$",
    re.IGNORECASE,
)
DISCARD_RE = re.compile(r"^(discard|descartar|borrar|delete)[.!]*$", re.IGNORECASE)
CORRECTION_RE = re.compile(r"^(\d+)\s*(?:is|es|=|:|category|categoria)\s+(.+)$", re.IGNORECASE)
AMOUNT_VALUE_RE = re.compile(r"^-?\d+(\.\d{1,2})?$")


def render_batch(batch: DocumentBatch, ttl_seconds: float) -> str:
    lines = ["📄 *Extracted transactions*", ""]
    for i, txn in enumerate(batch.transactions, start=1):
        line = f"{i}. {txn.date} | {format_amount(txn.amount)} | {txn.payee}"
        if txn.category_name:
            line += f" 🏷️ {txn.category_name}"
        lines.append(line)
    lines += ["", strings.DOCUMENT_REVIEW_FOOTER.format(
        count=len(batch.transactions), minutes=max(1, int(ttl_seconds // 60))
    )]
    return "\n".join(lines)


def parse_corrections(text: str) -> List[Tuple[int, str]]:
    """Parses "1 is 146.16, 2 is Groceries" into (1-based index, value) pairs."""
    corrections = []
    for part in text.split(","):
        match = CORRECTION_RE.match(part.strip())
        if match:
            corrections.append((int(match.group(1)), match.group(2).strip().strip("\"'")))
    return corrections


class ProcessDocumentFlow(BaseFlow):
    """
    Resolves the budget first so extraction can suggest that budget's
    categories. With a single budget everything happens in the opening turn.
    """
    intent = "process_document"
    snapshot_exclude = ("attachment_payload",)

    async def start(self, event: InboundEvent) -> Optional[str]:
        if not event.attachment_payload:
            return self.finish(strings.DOCUMENT_MISSING)

        self.data.update(
            attachment_kind=event.attachment_kind,
            attachment_payload=event.attachment_payload,
            attachment_mime_type=event.attachment_mime_type,
        )
        return await self.delegate_to(SelectBudgetFlow(self.user_key, self.services), event)

    async def accept_turn(self, event: InboundEvent) -> Optional[str]:
        return self.handle_common_commands(event) or strings.FLOW_INVALID_STATE

    async def on_child_complete(self, result: ChildResult) -> Optional[str]:
        if result.cancelled:
            self.cancel()
            return None

        budget_id = result.data["budget_id"]
        try:
            categories = await self.services.ledger.list_categories(budget_id)
        except LedgerError as e:
            logger.warning(f"Extracting without category suggestions for {self.user_key}: {e}")
            categories = []

        try:
            transactions = await self.services.ai.extract_transactions(
                self.data["attachment_kind"],
                self.data["attachment_payload"],
                self.data["attachment_mime_type"],
                categories=categories,
            )
        except DocumentExtractionError as e:
            logger.error(f"Document extraction failed for {self.user_key}: {e}")
            return self.finish(strings.DOCUMENT_EXTRACTION_FAILED)

        if not transactions:
            return self.finish(strings.DOCUMENT_NO_TRANSACTIONS)

        cache = self.services.caches.documents
        batch = DocumentBatch(
            source=self.data["attachment_kind"],
            budget_id=budget_id,
            budget_name=result.data.get("budget_name"),
            transactions=transactions,
        )
        entry = cache.put(self.user_key, batch)
        self.data.pop("attachment_payload", None)
        self.data["staged"] = len(transactions)
        logger.info(f"Staged {len(transactions)} extracted transactions for {self.user_key}")
        return self.finish(render_batch(batch, entry.ttl))


class ConfirmExtractedFlow(BaseFlow):
    intent = "confirm_extracted"

    @classmethod
    def matches(cls, text: str) -> bool:
        return bool(CONFIRM_RE.match(text.strip()))

    def _resend(self) -> str:
        minutes = max(1, int(self.services.caches.documents.default_ttl // 60))
        return self.finish(strings.DOCUMENT_RESEND.format(minutes=minutes))

    async def start(self, event: InboundEvent) -> Optional[str]:
        batch = self.services.caches.documents.get(self.user_key)
        if batch is None:
            return self._resend()

        self.data["pending"] = len(batch.transactions)
        return await self.delegate_to(SelectAccountFlow(self.user_key, self.services, params={
            k: v for k, v in (("budget_id", batch.budget_id), ("budget_name", batch.budget_name)) if v
        }), event)

    async def accept_turn(self, event: InboundEvent) -> Optional[str]:
        return self.handle_common_commands(event) or strings.FLOW_INVALID_STATE

    async def on_child_complete(self, result: ChildResult) -> Optional[str]:
        if result.cancelled:
            self.cancel()
            return strings.DOCUMENT_CONFIRM_CANCELLED

        batch: Optional[DocumentBatch] = confirm_staged(self.services.caches.documents, self.user_key)
        if batch is None:
            return self._resend()

        budget_id = result.data["budget_id"]
        account_id = result.data["account_id"]
        try:
            categories = await self.services.ledger.list_categories(budget_id)
        except LedgerError as e:
            logger.warning(f"Creating extracted transactions without categories for {self.user_key}: {e}")
            categories = []

        created, failed = 0, 0
        for txn in batch.transactions:
            category = find_category_by_name(txn.category_name, categories) if txn.category_name else None
            try:
                await self.services.ledger.create_transaction(
                    budget_id=budget_id,
                    account_id=account_id,
                    amount=txn.amount,
                    payee=txn.payee,
                    category_id=category.id if category else None,
                    memo=txn.memo,
                    txn_date=txn.date,
                )
                created += 1
            except LedgerError as e:
                logger.error(f"Failed to create extracted transaction '{txn.payee}' for {self.user_key}: {e}")
                failed += 1

        total = len(batch.transactions)
        self.data.update(created=created, failed=failed)
        logger.info(f"Confirmed document batch for {self.user_key}: {created}/{total} created")
        if failed:
            return self.finish(strings.DOCUMENT_CREATED_WITH_FAILURES.format(created=created, failed=failed, total=total))
        return self.finish(strings.DOCUMENT_CREATED.format(created=created, total=total))


class CorrectExtractedFlow(BaseFlow):
    intent = "correct_extracted"

    @classmethod
    def matches(cls, text: str) -> bool:
        return bool(parse_corrections(text.strip()))

    async def start(self, event: InboundEvent) -> Optional[str]:
        cache = self.services.caches.documents
        batch: Optional[DocumentBatch] = cache.get(self.user_key)
        if batch is None:
            minutes = max(1, int(cache.default_ttl // 60))
            return self.finish(strings.DOCUMENT_RESEND.format(minutes=minutes))

        transactions: List[ExtractedTransaction] = list(batch.transactions)
        applied = 0
        for index, value in parse_corrections(event.clean_text):
            if not 1 <= index <= len(transactions):
                return self.finish(strings.DOCUMENT_CORRECTION_OUT_OF_RANGE.format(index=index, count=len(transactions)))
            current = transactions[index - 1]
            if AMOUNT_VALUE_RE.match(value):
                transactions[index - 1] = current.model_copy(update={"amount": float(value)})
            else:
                transactions[index - 1] = current.model_copy(update={"category_name": value})
            applied += 1

        updated = batch.with_transactions(transactions)
        entry = cache.put(self.user_key, updated)
        logger.info(f"Applied {applied} corrections to staged batch for {self.user_key}")
        return self.finish(
            f"{strings.DOCUMENT_CORRECTED.format(count=applied)}\n\n{render_batch(updated, entry.ttl)}"
        )

    async def accept_turn(self, event: InboundEvent) -> Optional[str]:
        return strings.FLOW_INVALID_STATE


class DiscardExtractedFlow(BaseFlow):
    intent = "discard_extracted"

    @classmethod
    def matches(cls, text: str) -> bool:
        return bool(DISCARD_RE.match(text.strip()))

    async def start(self, event: InboundEvent) -> Optional[str]:
        if self.services.caches.documents.delete(self.user_key):
            logger.info(f"Discarded staged batch for {self.user_key}")
            return self.finish(strings.DOCUMENT_DISCARDED)
        return self.finish(strings.DOCUMENT_NOTHING_TO_DISCARD)

    async def accept_turn(self, event: InboundEvent) -> Optional[str]:
        return strings.FLOW_INVALID_STATE
