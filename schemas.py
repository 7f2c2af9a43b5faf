"""
Database Schemas for the Bank Analytics API

Payload models for the three MongoDB collections plus the rows produced
by the reporting endpoints. Fields not declared here are kept as-is.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


def parse_total(value: str) -> Decimal:
    """Parse a string-encoded decimal ``total``; raise ValueError if it is not numeric."""
    try:
        parsed = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"total is not a decimal number: {value!r}")
    if not parsed.is_finite():
        raise ValueError(f"total is not a finite number: {value!r}")
    return parsed


class Account(BaseModel):
    """
    Accounts collection schema
    Collection: "accounts"
    """
    model_config = ConfigDict(extra="allow")

    account_id: int = Field(..., description="Business key, referenced by customers and transactions")
    limit: Optional[float] = Field(None, description="Credit limit")
    products: List[str] = Field(default_factory=list, description="Product names")


class Customer(BaseModel):
    """
    Customers collection schema
    Collection: "customers"
    """
    model_config = ConfigDict(extra="allow")

    username: Optional[str] = None
    name: Optional[str] = None
    address: Optional[str] = None
    birthday: Optional[datetime] = None
    email: Optional[EmailStr] = Field(None, description="Lookup key, not unique")
    active: Optional[bool] = None
    accounts: List[int] = Field(default_factory=list, description="account_id values owned by the customer")
    # opaque records, stored verbatim
    tier_and_details: List[Dict[str, Any]] = Field(default_factory=list)


class TransactionItem(BaseModel):
    model_config = ConfigDict(extra="allow")

    date: datetime
    amount: int
    transaction_code: str
    symbol: Optional[str] = None
    price: Optional[float] = None
    total: str = Field(..., description="Decimal encoded as text")

    @field_validator("total", mode="before")
    @classmethod
    def check_total(cls, v: Any) -> str:
        parse_total(v)
        return str(v)


class TransactionBucket(BaseModel):
    """
    Transactions collection schema
    Collection: "transactions"
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[str] = Field(None, alias="_id")
    account_id: int
    bucket_start_date: Optional[datetime] = None
    bucket_end_date: Optional[datetime] = None
    transaction_count: int = 0
    transactions: List[TransactionItem] = Field(default_factory=list)


# Report rows. "_id" carries the group key, as returned by the store.

class CustomerTransactionGroup(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    account_id: int = Field(..., alias="_id")
    totalTransactionCount: int
    transactions: List[List[TransactionItem]]


class CustomerTransactions(BaseModel):
    customer: Dict[str, Any]
    transactions: List[CustomerTransactionGroup]


class TopCustomer(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    customer_id: str = Field(..., alias="_id")
    username: Optional[str] = None
    totalTransactionCount: int
    transactions: List[TransactionBucket]


class TransactionAmount(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    transaction_code: Optional[str] = Field(None, alias="_id")
    totalAmount: float
    priceTotal: float
