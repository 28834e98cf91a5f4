"""Pydantic request/response schemas for API endpoints."""
from __future__ import annotations

from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict


class HealthResponse(BaseModel):
    status: str
    db: str
    version: str = "1.0.0"


# ── Vendors ───────────────────────────────────────────────────────────────────


class VendorCreate(BaseModel):
    vendor_name: str
    district: str
    business_type: str
    reg_year: str
    mobile: str
    email: Optional[str] = None
    address: Optional[str] = None
    gst_no: Optional[str] = None


class VendorContactPatch(BaseModel):
    mobile: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    gst_no: Optional[str] = None
    active: Optional[bool] = None


class VendorRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    vendor_code: str
    vendor_name: str
    district: str
    business_type: str
    reg_year: str
    mobile: Optional[str]
    email: Optional[str]
    address: Optional[str]
    gst_no: Optional[str]
    active: bool
    created_at: datetime


# ── Transactions ──────────────────────────────────────────────────────────────


class TransactionCreate(BaseModel):
    vendor_code: str
    expected_amount: float
    advance_amount: float = 0.0
    gst_percent: float
    month: str
    financial_year: Optional[str] = None  # defaults to the current FY


class TransactionPatch(BaseModel):
    expected_amount: Optional[float] = None
    advance_amount: Optional[float] = None
    gst_percent: Optional[float] = None
    month: Optional[str] = None


class TransactionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    txn_id: str
    vendor_code: str
    vendor_name: str
    district: str
    financial_year: str
    month: str
    period_start: date
    expected_amount: float
    advance_amount: float
    gst_percent: float
    gst_amount: float
    gst_balance: float
    bills_received: float
    remaining_expected: float
    status: str
    closed_by_district: bool
    confirmed_by_admin: bool
    profit: float
    created_at: datetime
    closed_at: Optional[datetime]
    confirmed_at: Optional[datetime]


# ── Bills ─────────────────────────────────────────────────────────────────────


class BillCreate(BaseModel):
    bill_number: str
    bill_date: date
    bill_amount: float
    gst_percent: float


class BillPatch(BaseModel):
    bill_number: Optional[str] = None
    bill_date: Optional[date] = None
    bill_amount: Optional[float] = None
    gst_percent: Optional[float] = None


class BillRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    txn_id: str
    bill_number: str
    vendor_code: str
    vendor_name: str
    district: str
    bill_date: date
    bill_amount: float
    gst_percent: float
    gst_amount: float
    total_amount: float
    created_at: datetime


# ── Wallet ────────────────────────────────────────────────────────────────────


class WalletEntryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    date: datetime
    description: str
    txn_id: Optional[str]
    debit: float
    credit: float
    balance: float
    type: str
    created_by: Optional[str]


class WalletRead(BaseModel):
    balance: float
    entries: list[WalletEntryRead]


class WalletManualEntryIn(BaseModel):
    description: str
    debit: float = 0.0
    credit: float = 0.0


class WalletSetBalanceIn(BaseModel):
    target: float


class WalletSetBalanceResponse(BaseModel):
    balance: float
    entry: Optional[WalletEntryRead]


class WalletVerifyResponse(BaseModel):
    ok: bool
    entries_checked: int
    mismatched_ids: list[int]


# ── Reports ───────────────────────────────────────────────────────────────────


class DashboardResponse(BaseModel):
    district: Optional[str]
    total_expected: float
    total_bills_received: float
    total_gst: float
    total_profit: float
    open_count: int
    pending_close_count: int
    closed_count: int
    wallet_balance: Optional[float]
    pending_close: list[TransactionRead] = []


class AuditLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    timestamp: datetime
    user: Optional[str]
    action: str
    entity: str
    entity_id: str
    before: Optional[str]
    after: Optional[str]
