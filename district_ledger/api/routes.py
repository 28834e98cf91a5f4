"""
REST API routes for vendors, transactions and bills.

Endpoints:
  GET    /api/health
  GET    /api/vendors
  POST   /api/vendors
  GET    /api/vendors/{vendor_code}
  PATCH  /api/vendors/{vendor_code}
  DELETE /api/vendors/{vendor_code}
  GET    /api/transactions
  POST   /api/transactions
  GET    /api/transactions/{txn_id}
  PATCH  /api/transactions/{txn_id}
  DELETE /api/transactions/{txn_id}
  POST   /api/transactions/{txn_id}/close
  POST   /api/transactions/{txn_id}/confirm
  GET    /api/transactions/{txn_id}/bills
  POST   /api/transactions/{txn_id}/bills
  PATCH  /api/bills/{bill_id}
  DELETE /api/bills/{bill_id}
  GET    /api/dashboard
  GET    /api/audit-logs

Routes never compute amounts; they hand inputs to the engine and return what
it stored. Engine errors are turned into HTTP responses by the handlers
registered in main.py.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, status
from sqlmodel import Session, select

from district_ledger.core.database import get_session
from district_ledger.engine import access, audit, lifecycle, reports, vendors
from district_ledger.engine.access import Actor
from district_ledger.engine.periods import current_financial_year
from district_ledger.models.master import Vendor
from district_ledger.schemas.responses import (
    AuditLogRead,
    BillCreate,
    BillPatch,
    BillRead,
    DashboardResponse,
    HealthResponse,
    TransactionCreate,
    TransactionPatch,
    TransactionRead,
    VendorContactPatch,
    VendorCreate,
    VendorRead,
)

router = APIRouter(prefix="/api")


def get_actor(
    x_user: Optional[str] = Header(default=None),
    session: Session = Depends(get_session),
) -> Actor:
    """FastAPI dependency: who is calling (X-User header)."""
    return access.resolve_actor(session, x_user)


def _scope(actor: Actor, district: Optional[str]) -> Optional[str]:
    """District users always see their own district only."""
    return district if actor.is_admin else actor.district


# ── Health ────────────────────────────────────────────────────────────────────


@router.get("/health", response_model=HealthResponse)
def health(session: Session = Depends(get_session)):
    try:
        session.exec(select(Vendor).limit(1))
        db_status = "ok"
    except Exception as e:
        db_status = f"error: {e}"
    return HealthResponse(status="ok", db=db_status)


# ── Vendors ───────────────────────────────────────────────────────────────────


@router.get("/vendors", response_model=list[VendorRead])
def list_vendors(
    district: Optional[str] = Query(default=None),
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    return vendors.list_vendors(session, _scope(actor, district))


@router.post("/vendors", response_model=VendorRead, status_code=status.HTTP_201_CREATED)
def register_vendor(
    body: VendorCreate,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    access.require_district(actor, body.district)
    return vendors.register_vendor(session, **body.model_dump(), user=actor.username)


@router.get("/vendors/{vendor_code}", response_model=VendorRead)
def get_vendor(
    vendor_code: str,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    vendor = vendors.get_vendor(session, vendor_code)
    access.require_district(actor, vendor.district)
    return vendor


@router.patch("/vendors/{vendor_code}", response_model=VendorRead)
def update_vendor(
    vendor_code: str,
    body: VendorContactPatch,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    access.require_district(actor, vendors.get_vendor(session, vendor_code).district)
    return vendors.update_vendor_contact(
        session, vendor_code, body.model_dump(exclude_unset=True), user=actor.username
    )


@router.delete("/vendors/{vendor_code}")
def delete_vendor(
    vendor_code: str,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
) -> dict:
    access.require_district(actor, vendors.get_vendor(session, vendor_code).district)
    vendors.delete_vendor(session, vendor_code, user=actor.username)
    return {"status": "deleted", "vendor_code": vendor_code}


# ── Transactions ──────────────────────────────────────────────────────────────


@router.get("/transactions", response_model=list[TransactionRead])
def list_transactions(
    district: Optional[str] = Query(default=None),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    vendor_code: Optional[str] = Query(default=None),
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    return lifecycle.list_transactions(
        session, district=_scope(actor, district), status=status_filter, vendor_code=vendor_code
    )


@router.post("/transactions", response_model=TransactionRead, status_code=status.HTTP_201_CREATED)
def create_transaction(
    body: TransactionCreate,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    access.require_district(actor, vendors.get_vendor(session, body.vendor_code).district)
    return lifecycle.create_transaction(
        session,
        vendor_code=body.vendor_code,
        expected_amount=body.expected_amount,
        advance_amount=body.advance_amount,
        gst_percent=body.gst_percent,
        month=body.month,
        financial_year=body.financial_year or current_financial_year(),
        user=actor.username,
    )


@router.get("/transactions/{txn_id}", response_model=TransactionRead)
def get_transaction(
    txn_id: str,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    txn = lifecycle.get_transaction(session, txn_id)
    access.require_district(actor, txn.district)
    return txn


@router.patch("/transactions/{txn_id}", response_model=TransactionRead)
def edit_transaction(
    txn_id: str,
    body: TransactionPatch,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    access.require_district(actor, lifecycle.get_transaction(session, txn_id).district)
    return lifecycle.edit_transaction(
        session, txn_id, body.model_dump(exclude_none=True), user=actor.username
    )


@router.delete("/transactions/{txn_id}")
def delete_transaction(
    txn_id: str,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
) -> dict:
    access.require_district(actor, lifecycle.get_transaction(session, txn_id).district)
    lifecycle.delete_transaction(session, txn_id, user=actor.username)
    return {"status": "deleted", "txn_id": txn_id}


@router.post("/transactions/{txn_id}/close", response_model=TransactionRead)
def request_district_close(
    txn_id: str,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    access.require_district(actor, lifecycle.get_transaction(session, txn_id).district)
    return lifecycle.request_district_close(session, txn_id, user=actor.username)


@router.post("/transactions/{txn_id}/confirm", response_model=TransactionRead)
def confirm_admin_close(
    txn_id: str,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    access.require_admin(actor)
    return lifecycle.confirm_admin_close(session, txn_id, user=actor.username)


# ── Bills ─────────────────────────────────────────────────────────────────────


@router.get("/transactions/{txn_id}/bills", response_model=list[BillRead])
def list_bills(
    txn_id: str,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    access.require_district(actor, lifecycle.get_transaction(session, txn_id).district)
    return lifecycle.list_bills(session, txn_id)


@router.post(
    "/transactions/{txn_id}/bills",
    response_model=BillRead,
    status_code=status.HTTP_201_CREATED,
)
def submit_bill(
    txn_id: str,
    body: BillCreate,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    access.require_district(actor, lifecycle.get_transaction(session, txn_id).district)
    return lifecycle.submit_bill(session, txn_id, **body.model_dump(), user=actor.username)


@router.patch("/bills/{bill_id}", response_model=BillRead)
def edit_bill(
    bill_id: int,
    body: BillPatch,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    access.require_district(actor, lifecycle.get_bill(session, bill_id).district)
    return lifecycle.edit_bill(session, bill_id, body.model_dump(exclude_none=True), user=actor.username)


@router.delete("/bills/{bill_id}", response_model=TransactionRead)
def delete_bill(
    bill_id: int,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    """Delete a bill; returns the owning transaction with re-derived totals."""
    access.require_district(actor, lifecycle.get_bill(session, bill_id).district)
    return lifecycle.delete_bill(session, bill_id, user=actor.username)


# ── Reports ───────────────────────────────────────────────────────────────────


@router.get("/dashboard", response_model=DashboardResponse)
def dashboard(
    district: Optional[str] = Query(default=None),
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    scope = _scope(actor, district)
    summary = reports.dashboard_summary(session, scope)
    pending = reports.pending_close(session, scope)
    return DashboardResponse(
        **summary,
        pending_close=[TransactionRead.model_validate(t) for t in pending],
    )


@router.get("/audit-logs", response_model=list[AuditLogRead])
def audit_logs(
    entity: Optional[str] = Query(default=None),
    entity_id: Optional[str] = Query(default=None),
    limit: int = Query(default=200, ge=1, le=1000),
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    access.require_admin(actor)
    return audit.list_logs(session, entity=entity, entity_id=entity_id, limit=limit)
