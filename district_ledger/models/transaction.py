"""SQLModel models for reconciliation data (transactions, bills, wallet, audit log)."""
from typing import Optional
from datetime import date, datetime
from sqlmodel import SQLModel, Field

from district_ledger.models.master import _utcnow

STATUS_OPEN = "Open"
STATUS_PENDING_CLOSE = "PendingClose"
STATUS_CLOSED = "Closed"

ENTRY_ADVANCE = "advance"
ENTRY_GST = "gst"
ENTRY_PROFIT = "profit"
ENTRY_MANUAL = "manual"
WALLET_ENTRY_TYPES = (ENTRY_ADVANCE, ENTRY_GST, ENTRY_PROFIT, ENTRY_MANUAL)


class Transaction(SQLModel, table=True):
    """Expected procurement value for one vendor in one month."""

    __tablename__ = "transactions"

    id: Optional[int] = Field(default=None, primary_key=True)
    txn_id: str = Field(index=True, unique=True)

    # Vendor snapshot taken at creation
    vendor_code: str = Field(index=True)
    vendor_name: str
    district: str = Field(index=True)

    # Period
    financial_year: str = Field(index=True)  # "2025-26"
    month: str  # "April" … "March"
    period_start: date = Field(index=True)

    # Inputs
    expected_amount: float
    advance_amount: float = Field(default=0.0)
    gst_percent: float

    # Derived – always written by the calculators, never edited directly
    gst_amount: float = Field(default=0.0)
    gst_balance: float = Field(default=0.0)
    bills_received: float = Field(default=0.0)
    remaining_expected: float = Field(default=0.0)

    # Lifecycle
    status: str = Field(default=STATUS_OPEN, index=True)  # Open, PendingClose, Closed
    closed_by_district: bool = Field(default=False)
    confirmed_by_admin: bool = Field(default=False)
    profit: float = Field(default=0.0)

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    closed_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None


class Bill(SQLModel, table=True):
    """An itemized invoice submitted against a transaction."""

    __tablename__ = "bills"

    id: Optional[int] = Field(default=None, primary_key=True)
    txn_id: str = Field(foreign_key="transactions.txn_id", index=True)
    bill_number: str = Field(index=True)  # not unique across vendors

    vendor_code: str = Field(index=True)
    vendor_name: str
    district: str = Field(index=True)

    bill_date: date
    bill_amount: float  # taxable value
    gst_percent: float

    gst_amount: float = Field(default=0.0)
    total_amount: float = Field(default=0.0)  # bill_amount × 1.18, whatever gst_percent is

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class WalletEntry(SQLModel, table=True):
    """One append-only row of the admin wallet. Never updated after insert."""

    __tablename__ = "wallet_entries"

    id: Optional[int] = Field(default=None, primary_key=True)
    date: datetime = Field(default_factory=_utcnow, index=True)
    description: str
    # Plain reference: the transaction may later be deleted
    txn_id: Optional[str] = Field(default=None, index=True)
    debit: float = Field(default=0.0)
    credit: float = Field(default=0.0)
    balance: float  # snapshot after this entry
    type: str = Field(index=True)  # advance, gst, profit, manual
    created_by: Optional[str] = None


class AuditLog(SQLModel, table=True):
    """Who did what to which entity, with before/after snapshots."""

    __tablename__ = "audit_logs"

    id: Optional[int] = Field(default=None, primary_key=True)
    timestamp: datetime = Field(default_factory=_utcnow, index=True)
    user: Optional[str] = None
    action: str  # CREATE, UPDATE, DELETE, CLOSE, CONFIRM
    entity: str = Field(index=True)  # Transaction, Vendor, Bill, Wallet
    entity_id: str = Field(index=True)
    before: Optional[str] = None  # JSON snapshot
    after: Optional[str] = None  # JSON snapshot
