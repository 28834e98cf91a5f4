"""
Vendor registry.

Vendor codes look like ``CBE25HW001``:
  district abbreviation + registration year (YY) + business abbreviation + serial.
The serial is one more than the number of vendors already registered with the
same district and business type. A code is issued once at registration and is
never regenerated, so renames or contact edits leave it alone.
"""
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Optional

from loguru import logger
from sqlmodel import Session, func, select

from district_ledger.core.exceptions import NotFound, ValidationError
from district_ledger.engine import audit, locks
from district_ledger.models.master import Vendor
from district_ledger.models.transaction import Transaction

DIST_SHORT: dict[str, str] = {
    "Ariyalur": "ARI", "Chengalpattu": "CGP", "Chennai": "CHE", "Coimbatore": "CBE",
    "Cuddalore": "CUD", "Dharmapuri": "DHP", "Dindigul": "DGL", "Erode": "ERD",
    "Kallakurichi": "KLK", "Kanchipuram": "KCP", "Kanniyakumari": "KNK", "Karur": "KRR",
    "Krishnagiri": "KRG", "Madurai": "MDU", "Mayiladuthurai": "MYD", "Nagapattinam": "NGP",
    "Namakkal": "NMK", "Nilgiris": "NLG", "Perambalur": "PBR", "Pudukkottai": "PDK",
    "Ramanathapuram": "RMN", "Ranipet": "RNP", "Salem": "SLM", "Sivagangai": "SVG",
    "Tenkasi": "TNK", "Thanjavur": "TNJ", "Theni": "THN", "Thoothukudi": "TUT",
    "Tiruchirappalli": "TRP", "Tirunelveli": "TNV", "Tirupathur": "TPT", "Tiruppur": "TPR",
    "Tiruvallur": "TVR", "Tiruvannamalai": "TVL", "Tiruvarur": "TVU", "Vellore": "VLR",
    "Viluppuram": "VLP", "Virudhunagar": "VRN",
}

BIZ_SHORT: dict[str, str] = {
    "Hardware": "HW", "Electrical": "EL", "Civil": "CV", "Plumbing": "PL",
    "Mechanical": "MC", "Catering": "CT", "Transport": "TR", "Stationery": "ST",
    "IT": "IT", "Medical": "MD", "General": "GN",
}

CONTACT_FIELDS = ("mobile", "email", "address", "gst_no", "active")

_NAME_RE = re.compile(r"^[a-zA-Z\s&.,-]+$")
_MOBILE_RE = re.compile(r"^[6-9]\d{9}$")
_GSTIN_RE = re.compile(r"^\d{2}[A-Z]{5}\d{4}[A-Z]\d[Z][A-Z\d]$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_YEAR_RE = re.compile(r"^\d{4}$")


def generate_vendor_code(district: str, business_type: str, reg_year: str, existing_count: int) -> str:
    """Deterministic: same inputs always give the same code."""
    d = DIST_SHORT.get(district) or district[:3].upper()
    b = BIZ_SHORT.get(business_type) or business_type[:2].upper()
    y = reg_year[-2:]
    return f"{d}{y}{b}{existing_count + 1:03d}"


# ── Validation ────────────────────────────────────────────────────────────────


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _validate_contact(field: str, value: Any) -> Any:
    if field == "active":
        if not isinstance(value, bool):
            raise ValidationError("active must be true or false")
        return value
    value = _clean(value)
    if value is None:
        if field == "mobile":
            raise ValidationError("Mobile number required")
        return None
    if field == "mobile" and not _MOBILE_RE.match(value):
        raise ValidationError("Invalid mobile number (10 digits, must start with 6-9)")
    if field == "gst_no" and not _GSTIN_RE.match(value.upper()):
        raise ValidationError(f"Invalid GST number {value!r}")
    if field == "email" and not _EMAIL_RE.match(value):
        raise ValidationError(f"Invalid email address {value!r}")
    return value.upper() if field == "gst_no" else value


# ── Queries ───────────────────────────────────────────────────────────────────


def get_vendor(session: Session, vendor_code: str) -> Vendor:
    vendor = session.exec(select(Vendor).where(Vendor.vendor_code == vendor_code)).first()
    if vendor is None:
        raise NotFound(f"Vendor {vendor_code} not found")
    return vendor


def list_vendors(session: Session, district: Optional[str] = None) -> list[Vendor]:
    stmt = select(Vendor)
    if district:
        stmt = stmt.where(Vendor.district == district)
    return list(session.exec(stmt.order_by(Vendor.vendor_code)).all())


# ── Commands ──────────────────────────────────────────────────────────────────


def register_vendor(
    session: Session,
    vendor_name: str,
    district: str,
    business_type: str,
    reg_year: str,
    mobile: str,
    email: Optional[str] = None,
    address: Optional[str] = None,
    gst_no: Optional[str] = None,
    user: Optional[str] = None,
) -> Vendor:
    name = _clean(vendor_name) or ""
    if not (3 <= len(name) <= 100) or not _NAME_RE.match(name):
        raise ValidationError("Vendor name must be 3-100 letters and basic punctuation")
    district = _clean(district) or ""
    business_type = _clean(business_type) or ""
    if not district or not business_type:
        raise ValidationError("District and business type are required")
    reg_year = _clean(reg_year) or ""
    if not _YEAR_RE.match(reg_year):
        raise ValidationError(f"reg_year must be a 4-digit year, got {reg_year!r}")
    contact = {
        "mobile": _validate_contact("mobile", mobile),
        "email": _validate_contact("email", email),
        "address": _validate_contact("address", address),
        "gst_no": _validate_contact("gst_no", gst_no),
    }

    with locks.vendor_lock:
        existing = session.exec(
            select(func.count()).select_from(Vendor).where(
                Vendor.district == district, Vendor.business_type == business_type
            )
        ).one()
        code = generate_vendor_code(district, business_type, reg_year, existing)
        # A deleted vendor leaves a gap in the count; never hand out a used code twice
        while session.exec(select(Vendor.id).where(Vendor.vendor_code == code)).first() is not None:
            existing += 1
            code = generate_vendor_code(district, business_type, reg_year, existing)

        vendor = Vendor(
            vendor_code=code,
            vendor_name=name,
            district=district,
            business_type=business_type,
            reg_year=reg_year,
            **contact,
        )
        session.add(vendor)
        session.flush()
        audit.record(session, "CREATE", "Vendor", code, user=user, after=audit.snapshot(vendor))
        session.commit()

    session.refresh(vendor)
    logger.info(f"Registered vendor {code} ({name}, {district})")
    return vendor


def update_vendor_contact(
    session: Session,
    vendor_code: str,
    patch: dict[str, Any],
    user: Optional[str] = None,
) -> Vendor:
    """Only contact fields (and the active flag) may change after registration."""
    unknown = set(patch) - set(CONTACT_FIELDS)
    if unknown:
        raise ValidationError(f"Vendor fields cannot be edited: {', '.join(sorted(unknown))}")
    cleaned = {field: _validate_contact(field, value) for field, value in patch.items()}

    vendor = get_vendor(session, vendor_code)
    before = audit.snapshot(vendor)
    for field, value in cleaned.items():
        setattr(vendor, field, value)
    vendor.updated_at = datetime.now(timezone.utc)
    session.add(vendor)
    audit.record(session, "UPDATE", "Vendor", vendor_code, user=user, before=before, after=audit.snapshot(vendor))
    session.commit()
    session.refresh(vendor)
    return vendor


def delete_vendor(session: Session, vendor_code: str, user: Optional[str] = None) -> None:
    vendor = get_vendor(session, vendor_code)
    in_use = session.exec(
        select(Transaction.id).where(Transaction.vendor_code == vendor_code)
    ).first()
    if in_use is not None:
        raise ValidationError(f"Vendor {vendor_code} has transactions and cannot be deleted")
    audit.record(session, "DELETE", "Vendor", vendor_code, user=user, before=audit.snapshot(vendor))
    session.delete(vendor)
    session.commit()
    logger.info(f"Deleted vendor {vendor_code}")
