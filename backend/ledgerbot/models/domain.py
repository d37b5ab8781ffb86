# /ledgerbot/models/domain.py

import re
import logging
from datetime import date
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any

# Pydantic models for the ledger entities the domain flows work with.
# Amounts are plain currency units here; the ledger client converts to and
# from the API's milliunits.

logger = logging.getLogger(__name__)

MILLIUNITS = 1000
DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class Budget(BaseModel):
    id: str
    name: str

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Budget":
        return cls(id=str(data["id"]), name=data.get("name", "Unnamed budget"))


class Account(BaseModel):
    id: str
    name: str
    balance: float = 0.0
    closed: bool = False

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Account":
        return cls(
            id=str(data["id"]),
            name=data.get("name", "Unnamed account"),
            balance=(data.get("balance") or 0) / MILLIUNITS,
            closed=bool(data.get("closed", False)),
        )


class Category(BaseModel):
    id: str
    name: str
    group: Optional[str] = None

    @classmethod
    def list_from_api(cls, groups: List[Dict[str, Any]]) -> List["Category"]:
        """Flattens the API's category groups, skipping hidden and deleted categories."""
        categories = []
        for group in groups:
            if group.get("hidden") or group.get("deleted"):
                continue
            for item in group.get("categories", []):
                if item.get("hidden") or item.get("deleted"):
                    continue
                categories.append(cls(id=str(item["id"]), name=item.get("name", ""), group=group.get("name")))
        return categories


class LedgerTransaction(BaseModel):
    id: str
    date: str
    amount: float
    payee: Optional[str] = None
    category_id: Optional[str] = None
    category_name: Optional[str] = None
    account_name: Optional[str] = None
    memo: Optional[str] = None
    approved: bool = True

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "LedgerTransaction":
        return cls(
            id=str(data["id"]),
            date=data.get("date", ""),
            amount=(data.get("amount") or 0) / MILLIUNITS,
            payee=data.get("payee_name"),
            category_id=data.get("category_id"),
            category_name=data.get("category_name"),
            account_name=data.get("account_name"),
            memo=data.get("memo"),
            approved=bool(data.get("approved", True)),
        )


class ExtractedTransaction(BaseModel):
    """A transaction read out of a statement, waiting for the user's confirmation."""
    date: str
    amount: float
    payee: str = Field(..., min_length=1)
    category_name: Optional[str] = None
    memo: Optional[str] = None

    @field_validator("date")
    @classmethod
    def date_must_be_iso(cls, v: str) -> str:
        if not DATE_RE.match(v):
            raise ValueError(f"Invalid date format: {v}")
        date.fromisoformat(v)
        return v

    @field_validator("payee")
    @classmethod
    def strip_payee(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Payee cannot be blank")
        return v

    @classmethod
    def validate_records(cls, records: Any) -> List["ExtractedTransaction"]:
        """Builds models from raw extractor output, dropping records that fail validation."""
        if not isinstance(records, list):
            raise ValueError("Extractor output must be a list of transactions")
        valid = []
        for raw in records:
            if not isinstance(raw, dict):
                logger.warning(f"Skipping non-object transaction record: {raw!r}")
                continue
            raw = dict(raw)
            if "categoryName" in raw and "category_name" not in raw:
                raw["category_name"] = raw.pop("categoryName")
            if isinstance(raw.get("amount"), bool) or raw.get("amount") in (None, 0):
                logger.warning(f"Skipping transaction without amount: {raw!r}")
                continue
            try:
                valid.append(cls(**raw))
            except (ValueError, TypeError) as e:
                logger.warning(f"Skipping invalid transaction {raw!r}: {e}")
        logger.info(f"Validated {len(valid)}/{len(records)} extracted transactions")
        return valid


class DocumentBatch(BaseModel):
    """Payload staged in the documents cache between extraction and confirmation."""
    source: str = Field(default="document", description="Attachment kind the batch came from")
    budget_id: Optional[str] = Field(default=None, description="Budget the extraction was categorized against")
    budget_name: Optional[str] = None
    transactions: List[ExtractedTransaction] = Field(default_factory=list)

    def with_transactions(self, transactions: List[ExtractedTransaction]) -> "DocumentBatch":
        return self.model_copy(update={"transactions": transactions})


class CategorizationWorkingSet(BaseModel):
    """Payload staged in the categorization cache while the user assigns categories."""
    budget_id: str
    budget_name: str
    transactions: List[LedgerTransaction] = Field(default_factory=list)
    categories: List[Category] = Field(default_factory=list)
    categorized: int = 0


def format_amount(amount: float) -> str:
    """Signed amount with two decimals, e.g. -12.00 or +1,500.50."""
    return f"{amount:+,.2f}"
