"""SQLModel models for master data (vendors, district users)."""
from typing import Optional
from datetime import datetime, timezone
from sqlmodel import SQLModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Vendor(SQLModel, table=True):
    """A supplier registered by a district office."""

    __tablename__ = "vendors"

    id: Optional[int] = Field(default=None, primary_key=True)
    # e.g. "CBE25HW001" – assigned once at registration, never regenerated
    vendor_code: str = Field(index=True, unique=True)
    vendor_name: str = Field(index=True)
    district: str = Field(index=True)
    business_type: str
    reg_year: str

    # Contact fields (the only mutable part of a vendor)
    mobile: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    gst_no: Optional[str] = None

    active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class ManagedUser(SQLModel, table=True):
    """District office login, consumed only as an access lookup."""

    __tablename__ = "managed_users"

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, unique=True)
    district: str = Field(index=True)
    active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=_utcnow)
