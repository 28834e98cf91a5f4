"""
Transaction lifecycle: Open → PendingClose → Closed.

Every public function here is one unit of work:

  lock(txn) → read transaction + bills → validate → derive amounts
            → append wallet rows → audit → commit

Validation failures raise before anything is added to the session, and any
error inside the unit rolls the session back, so a refused action leaves the
transaction, its bills and the wallet untouched. The commit happens while the
transaction lock and the wallet lock are both held; other readers see the
state change and its wallet rows together or not at all.

Wallet effects:
  create  – advance > 0            → debit  "advance"
  close   – gst_amount − advance > 0 → debit  "gst"
  confirm – 8% of expected         → credit "profit"
"""
from __future__ import annotations

import uuid
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Any, Iterator, Optional

from loguru import logger
from sqlmodel import Session, col, select

from district_ledger.core.config import settings
from district_ledger.core.exceptions import InvalidStateTransition, NotFound, ValidationError
from district_ledger.engine import audit, locks
from district_ledger.engine.calculator import (
    aggregate_bills,
    calculate_bill,
    profit_for,
    require_gst_rate,
    require_non_negative,
    require_positive,
    transaction_gst,
)
from district_ledger.engine.money import round2
from district_ledger.engine.periods import period_start, validate_month
from district_ledger.engine.vendors import get_vendor
from district_ledger.engine.wallet import WalletLedger
from district_ledger.models.transaction import (
    ENTRY_ADVANCE,
    ENTRY_GST,
    ENTRY_PROFIT,
    STATUS_CLOSED,
    STATUS_OPEN,
    STATUS_PENDING_CLOSE,
    Bill,
    Transaction,
)

TRANSACTION_EDIT_FIELDS = ("expected_amount", "advance_amount", "gst_percent", "month")
BILL_EDIT_FIELDS = ("bill_number", "bill_date", "bill_amount", "gst_percent")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def new_txn_id() -> str:
    return "TXN" + uuid.uuid4().hex[:12].upper()


# ── Unit of work ──────────────────────────────────────────────────────────────


@contextmanager
def _unit_of_work(session: Session, txn_id: str) -> Iterator[None]:
    with locks.transaction_lock(txn_id):
        try:
            yield
            session.commit()
        except Exception:
            session.rollback()
            raise


def _load_transaction(session: Session, txn_id: str) -> Transaction:
    # populate_existing: never trust a copy read before the lock was taken
    stmt = (
        select(Transaction)
        .where(Transaction.txn_id == txn_id)
        .execution_options(populate_existing=True)
    )
    txn = session.exec(stmt).first()
    if txn is None:
        raise NotFound(f"Transaction {txn_id} not found")
    return txn


def _load_bill(session: Session, bill_id: int) -> Bill:
    stmt = select(Bill).where(Bill.id == bill_id).execution_options(populate_existing=True)
    bill = session.exec(stmt).first()
    if bill is None:
        raise NotFound(f"Bill {bill_id} not found")
    return bill


def _require_status(txn: Transaction, expected: str, action: str) -> None:
    if txn.status != expected:
        raise InvalidStateTransition(
            f"Cannot {action} transaction {txn.txn_id}: status is {txn.status}, needs {expected}"
        )


# ── Input validation ──────────────────────────────────────────────────────────


def _validate_amount(value: float, field: str) -> float:
    value = require_positive(value, field)
    if value > settings.MAX_AMOUNT:
        raise ValidationError(f"{field} {value} exceeds the limit of {settings.MAX_AMOUNT:g}")
    return value


def _validate_advance(advance: float, expected: float) -> float:
    advance = require_non_negative(advance, "advance_amount")
    cap = round2(expected * settings.MAX_ADVANCE_RATIO)
    if advance > cap:
        raise ValidationError(
            f"advance_amount {advance} exceeds {settings.MAX_ADVANCE_RATIO:.0%} of expected ({cap})"
        )
    return advance


def _validate_bill_number(bill_number: str) -> str:
    bill_number = (bill_number or "").strip()
    if not (3 <= len(bill_number) <= 50):
        raise ValidationError("bill_number must be 3-50 characters")
    return bill_number


def _validate_bill_date(bill_date: date) -> date:
    if isinstance(bill_date, datetime) or not isinstance(bill_date, date):
        raise ValidationError(f"bill_date must be a date, got {bill_date!r}")
    if bill_date > date.today():
        raise ValidationError(f"bill_date {bill_date.isoformat()} is in the future")
    return bill_date


# ── Derivation ────────────────────────────────────────────────────────────────


def _apply_gst(txn: Transaction) -> None:
    gst = transaction_gst(txn.expected_amount, txn.advance_amount, txn.gst_percent)
    txn.gst_amount = gst.gst_amount
    txn.gst_balance = gst.gst_balance


def _recompute_bills(session: Session, txn: Transaction) -> None:
    """Re-derive bills_received / remaining_expected over the current bill set."""
    amounts = session.exec(
        select(Bill.bill_amount).where(Bill.txn_id == txn.txn_id).order_by(Bill.id)
    ).all()
    agg = aggregate_bills(txn.expected_amount, amounts)
    txn.bills_received = agg.bills_received
    txn.remaining_expected = agg.remaining_expected
    txn.updated_at = _now()
    session.add(txn)


# ── Reads ─────────────────────────────────────────────────────────────────────


def get_transaction(session: Session, txn_id: str) -> Transaction:
    txn = session.exec(select(Transaction).where(Transaction.txn_id == txn_id)).first()
    if txn is None:
        raise NotFound(f"Transaction {txn_id} not found")
    return txn


def list_transactions(
    session: Session,
    district: Optional[str] = None,
    status: Optional[str] = None,
    vendor_code: Optional[str] = None,
) -> list[Transaction]:
    stmt = select(Transaction)
    if district:
        stmt = stmt.where(Transaction.district == district)
    if status:
        stmt = stmt.where(Transaction.status == status)
    if vendor_code:
        stmt = stmt.where(Transaction.vendor_code == vendor_code)
    stmt = stmt.order_by(col(Transaction.period_start).desc(), col(Transaction.id).desc())
    return list(session.exec(stmt).all())


def get_bill(session: Session, bill_id: int) -> Bill:
    bill = session.get(Bill, bill_id)
    if bill is None:
        raise NotFound(f"Bill {bill_id} not found")
    return bill


def list_bills(session: Session, txn_id: str) -> list[Bill]:
    get_transaction(session, txn_id)
    return list(session.exec(select(Bill).where(Bill.txn_id == txn_id).order_by(Bill.id)).all())


# ── Transactions ──────────────────────────────────────────────────────────────


def create_transaction(
    session: Session,
    vendor_code: str,
    expected_amount: float,
    advance_amount: float,
    gst_percent: float,
    month: str,
    financial_year: str,
    user: Optional[str] = None,
) -> Transaction:
    expected_amount = _validate_amount(expected_amount, "expected_amount")
    advance_amount = _validate_advance(advance_amount, expected_amount)
    gst_percent = require_gst_rate(gst_percent)
    start = period_start(month, financial_year)
    vendor = get_vendor(session, vendor_code)
    if not vendor.active:
        raise ValidationError(f"Vendor {vendor_code} is inactive")

    txn_id = new_txn_id()
    with _unit_of_work(session, txn_id):
        txn = Transaction(
            txn_id=txn_id,
            vendor_code=vendor.vendor_code,
            vendor_name=vendor.vendor_name,
            district=vendor.district,
            financial_year=financial_year,
            month=month,
            period_start=start,
            expected_amount=expected_amount,
            advance_amount=advance_amount,
            gst_percent=gst_percent,
            bills_received=0.0,
            remaining_expected=expected_amount,
            status=STATUS_OPEN,
            closed_by_district=False,
            confirmed_by_admin=False,
            profit=0.0,
        )
        _apply_gst(txn)
        session.add(txn)
        session.flush()

        if advance_amount > 0:
            WalletLedger(session).append(
                f"Advance Paid — {vendor.vendor_name} ({txn_id})",
                advance_amount,
                0.0,
                ENTRY_ADVANCE,
                txn_id=txn_id,
                created_by=user,
            )
        audit.record(session, "CREATE", "Transaction", txn_id, user=user, after=audit.snapshot(txn))

    session.refresh(txn)
    logger.info(
        f"Created {txn_id} for {vendor.vendor_code}: expected={expected_amount} "
        f"advance={advance_amount} gst={txn.gst_amount}"
    )
    return txn


def edit_transaction(
    session: Session,
    txn_id: str,
    patch: dict[str, Any],
    user: Optional[str] = None,
) -> Transaction:
    """Change expected/advance/GST%/month of an Open transaction and re-derive."""
    unknown = set(patch) - set(TRANSACTION_EDIT_FIELDS)
    if unknown:
        raise ValidationError(f"Transaction fields cannot be edited: {', '.join(sorted(unknown))}")

    with _unit_of_work(session, txn_id):
        txn = _load_transaction(session, txn_id)
        _require_status(txn, STATUS_OPEN, "edit")

        expected = txn.expected_amount
        if "expected_amount" in patch:
            expected = _validate_amount(patch["expected_amount"], "expected_amount")
        advance = _validate_advance(patch.get("advance_amount", txn.advance_amount), expected)
        gst_percent = require_gst_rate(patch.get("gst_percent", txn.gst_percent))
        month = validate_month(patch.get("month", txn.month))
        start = period_start(month, txn.financial_year)

        before = audit.snapshot(txn)
        if advance != txn.advance_amount:
            # The advance row posted at creation stays; no wallet correction here
            logger.warning(
                f"{txn_id}: advance changed {txn.advance_amount} → {advance}; "
                "wallet not adjusted"
            )
        txn.expected_amount = expected
        txn.advance_amount = advance
        txn.gst_percent = gst_percent
        txn.month = month
        txn.period_start = start
        _apply_gst(txn)
        _recompute_bills(session, txn)
        audit.record(session, "UPDATE", "Transaction", txn_id, user=user, before=before, after=audit.snapshot(txn))

    session.refresh(txn)
    logger.info(f"Edited {txn_id}: {patch}")
    return txn


def delete_transaction(session: Session, txn_id: str, user: Optional[str] = None) -> None:
    """
    Remove a transaction (any state) and its bills.

    Wallet rows already posted for it are kept; they show up in
    ``WalletLedger.orphaned_entries()`` for manual review.
    """
    with _unit_of_work(session, txn_id):
        txn = _load_transaction(session, txn_id)
        bills = session.exec(select(Bill).where(Bill.txn_id == txn_id)).all()
        posted = WalletLedger(session).entries(txn_id=txn_id)
        status = txn.status

        audit.record(session, "DELETE", "Transaction", txn_id, user=user, before=audit.snapshot(txn))
        for bill in bills:
            session.delete(bill)
        session.flush()
        session.delete(txn)

    locks.forget(txn_id)
    if posted:
        logger.warning(
            f"Deleted {txn_id} ({status}) with {len(posted)} wallet entries "
            "left in place for review"
        )
    else:
        logger.info(f"Deleted {txn_id} and {len(bills)} bills")


def request_district_close(session: Session, txn_id: str, user: Optional[str] = None) -> Transaction:
    """
    Open → PendingClose. Debits the unpaid GST balance from the wallet.

    Closing with remaining_expected > 0 is allowed (district force close);
    remaining_expected is forced to 0 either way.
    """
    with _unit_of_work(session, txn_id):
        txn = _load_transaction(session, txn_id)
        _require_status(txn, STATUS_OPEN, "close")

        before = audit.snapshot(txn)
        if txn.remaining_expected > 0:
            logger.warning(f"{txn_id}: force close with {txn.remaining_expected} still expected")

        gst_bal = round2(txn.gst_amount - txn.advance_amount)
        if gst_bal > 0:
            WalletLedger(session).append(
                f"GST Balance Debit — {txn.vendor_name} ({txn_id})",
                gst_bal,
                0.0,
                ENTRY_GST,
                txn_id=txn_id,
                created_by=user,
            )
        txn.status = STATUS_PENDING_CLOSE
        txn.closed_by_district = True
        txn.remaining_expected = 0.0
        txn.closed_at = txn.updated_at = _now()
        session.add(txn)
        audit.record(session, "CLOSE", "Transaction", txn_id, user=user, before=before, after=audit.snapshot(txn))

    session.refresh(txn)
    logger.info(f"{txn_id} closed by district, awaiting admin confirmation")
    return txn


def confirm_admin_close(session: Session, txn_id: str, user: Optional[str] = None) -> Transaction:
    """PendingClose → Closed. Credits 8% of expected as profit, exactly once."""
    with _unit_of_work(session, txn_id):
        txn = _load_transaction(session, txn_id)
        if txn.status == STATUS_CLOSED or txn.confirmed_by_admin:
            logger.warning(f"{txn_id}: confirm refused, already closed")
            raise InvalidStateTransition(f"Transaction {txn_id} is already closed")
        _require_status(txn, STATUS_PENDING_CLOSE, "confirm")

        wallet = WalletLedger(session)
        if wallet.has_entry(txn_id, ENTRY_PROFIT):
            logger.warning(f"{txn_id}: confirm refused, profit already credited")
            raise InvalidStateTransition(f"Profit for {txn_id} was already credited")

        before = audit.snapshot(txn)
        profit = profit_for(txn.expected_amount)
        wallet.append(
            f"8% Profit Credit — {txn.vendor_name} ({txn_id})",
            0.0,
            profit,
            ENTRY_PROFIT,
            txn_id=txn_id,
            created_by=user,
        )
        txn.status = STATUS_CLOSED
        txn.confirmed_by_admin = True
        txn.profit = profit
        txn.confirmed_at = txn.updated_at = _now()
        session.add(txn)
        audit.record(session, "CONFIRM", "Transaction", txn_id, user=user, before=before, after=audit.snapshot(txn))

    session.refresh(txn)
    logger.info(f"{txn_id} confirmed, profit {profit} credited")
    return txn


# ── Bills ─────────────────────────────────────────────────────────────────────


def submit_bill(
    session: Session,
    txn_id: str,
    bill_number: str,
    bill_date: date,
    bill_amount: float,
    gst_percent: float,
    user: Optional[str] = None,
) -> Bill:
    bill_number = _validate_bill_number(bill_number)
    bill_date = _validate_bill_date(bill_date)
    bill_amount = _validate_amount(bill_amount, "bill_amount")
    amounts = calculate_bill(bill_amount, gst_percent)

    with _unit_of_work(session, txn_id):
        txn = _load_transaction(session, txn_id)
        _require_status(txn, STATUS_OPEN, "bill against")

        bill = Bill(
            txn_id=txn_id,
            bill_number=bill_number,
            vendor_code=txn.vendor_code,
            vendor_name=txn.vendor_name,
            district=txn.district,
            bill_date=bill_date,
            bill_amount=bill_amount,
            gst_percent=float(gst_percent),
            gst_amount=amounts.gst_amount,
            total_amount=amounts.total_amount,
        )
        session.add(bill)
        session.flush()
        _recompute_bills(session, txn)
        audit.record(session, "CREATE", "Bill", bill.id, user=user, after=audit.snapshot(bill))

    session.refresh(bill)
    logger.info(
        f"Bill {bill.bill_number} ({bill.bill_amount}) on {txn_id}: "
        f"remaining {txn.remaining_expected}"
    )
    return bill


def edit_bill(
    session: Session,
    bill_id: int,
    patch: dict[str, Any],
    user: Optional[str] = None,
) -> Bill:
    unknown = set(patch) - set(BILL_EDIT_FIELDS)
    if unknown:
        raise ValidationError(f"Bill fields cannot be edited: {', '.join(sorted(unknown))}")

    txn_id = get_bill(session, bill_id).txn_id
    with _unit_of_work(session, txn_id):
        bill = _load_bill(session, bill_id)
        txn = _load_transaction(session, bill.txn_id)
        _require_status(txn, STATUS_OPEN, "edit a bill of")

        bill_number = _validate_bill_number(patch.get("bill_number", bill.bill_number))
        bill_date = _validate_bill_date(patch.get("bill_date", bill.bill_date))
        bill_amount = _validate_amount(patch.get("bill_amount", bill.bill_amount), "bill_amount")
        gst_percent = patch.get("gst_percent", bill.gst_percent)
        amounts = calculate_bill(bill_amount, gst_percent)

        before = audit.snapshot(bill)
        bill.bill_number = bill_number
        bill.bill_date = bill_date
        bill.bill_amount = bill_amount
        bill.gst_percent = float(gst_percent)
        bill.gst_amount = amounts.gst_amount
        bill.total_amount = amounts.total_amount
        bill.updated_at = _now()
        session.add(bill)
        session.flush()
        _recompute_bills(session, txn)
        audit.record(session, "UPDATE", "Bill", bill_id, user=user, before=before, after=audit.snapshot(bill))

    session.refresh(bill)
    logger.info(f"Edited bill {bill_id} on {txn_id}: {patch}")
    return bill


def delete_bill(session: Session, bill_id: int, user: Optional[str] = None) -> Transaction:
    """Remove a bill and return its re-derived transaction."""
    txn_id = get_bill(session, bill_id).txn_id
    with _unit_of_work(session, txn_id):
        bill = _load_bill(session, bill_id)
        txn = _load_transaction(session, bill.txn_id)
        _require_status(txn, STATUS_OPEN, "delete a bill of")

        audit.record(session, "DELETE", "Bill", bill_id, user=user, before=audit.snapshot(bill))
        session.delete(bill)
        session.flush()
        _recompute_bills(session, txn)

    session.refresh(txn)
    logger.info(f"Deleted bill {bill_id} from {txn_id}: remaining {txn.remaining_expected}")
    return txn
