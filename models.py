from pydantic import BaseModel, Field, model_validator
from enum import Enum
from typing import Optional
from decimal import Decimal


MAX_CLIENT_ID = 65535
MAX_TX_ID = 4294967295
UNDECODABLE = "\ufffd"


class TransactionType(str, Enum):
    deposit = "deposit"
    withdrawal = "withdrawal"
    dispute = "dispute"
    resolve = "resolve"
    chargeback = "chargeback"

    @property
    def carries_amount(self) -> bool:
        return self in (TransactionType.deposit, TransactionType.withdrawal)


class TransactionStatus(str, Enum):
    normal = "normal"
    disputed = "disputed"
    resolved = "resolved"
    charged_back = "charged_back"


class TransactionRecord(BaseModel):
    # Kept as a plain string so unknown tags reach the engine instead of
    # failing as a shape error.
    type: str = Field(..., min_length=1, description="Transaction type tag")
    client: int = Field(..., ge=0, le=MAX_CLIENT_ID, description="Client identifier")
    tx: int = Field(..., ge=0, le=MAX_TX_ID, description="Transaction identifier")
    amount: Optional[Decimal] = Field(None, description="Amount for deposits and withdrawals")

    @model_validator(mode="before")
    @classmethod
    def strip_whitespace(cls, data):
        if not isinstance(data, dict):
            return data
        cleaned = {}
        for key, value in data.items():
            # csv.DictReader files surplus fields under a None key
            if not isinstance(key, str):
                continue
            key = key.strip()
            if isinstance(value, str):
                if UNDECODABLE in value:
                    raise ValueError(f"{key} contains bytes that are not valid UTF-8")
                value = value.strip()
            cleaned[key] = value
        if cleaned.get("amount") == "":
            cleaned["amount"] = None
        return cleaned


class RecordedTransaction(BaseModel):
    """An amount-bearing transaction kept for later dispute lookups."""

    tx: int
    client: int
    amount: Decimal
    status: TransactionStatus = TransactionStatus.normal


class Account(BaseModel):
    client: int = Field(..., ge=0, le=MAX_CLIENT_ID)
    available: Decimal = Decimal("0")
    held: Decimal = Decimal("0")
    locked: bool = False

    @property
    def total(self) -> Decimal:
        return self.available + self.held

    def to_row(self, precision: int = 4) -> list:
        return [
            str(self.client),
            f"{self.available:.{precision}f}",
            f"{self.held:.{precision}f}",
            f"{self.total:.{precision}f}",
            "true" if self.locked else "false",
        ]
