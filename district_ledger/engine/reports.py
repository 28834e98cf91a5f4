"""Dashboard figures – read-only sums over stored (already derived) values."""
from __future__ import annotations

from typing import Optional

from sqlmodel import Session, col, func, select

from district_ledger.engine.money import round2
from district_ledger.engine.wallet import WalletLedger
from district_ledger.models.transaction import (
    STATUS_CLOSED,
    STATUS_OPEN,
    STATUS_PENDING_CLOSE,
    Transaction,
)


def pending_close(session: Session, district: Optional[str] = None) -> list[Transaction]:
    """Transactions closed by a district and waiting for admin confirmation."""
    stmt = select(Transaction).where(Transaction.status == STATUS_PENDING_CLOSE)
    if district:
        stmt = stmt.where(Transaction.district == district)
    return list(session.exec(stmt.order_by(col(Transaction.closed_at))).all())


def dashboard_summary(session: Session, district: Optional[str] = None) -> dict:
    """
    Totals for the dashboard cards. Profit counts only Closed transactions;
    the wallet balance is included only for the all-district (admin) view.
    """
    def _total(column, *where):
        stmt = select(func.coalesce(func.sum(column), 0.0))
        if district:
            stmt = stmt.where(Transaction.district == district)
        for clause in where:
            stmt = stmt.where(clause)
        return round2(float(session.exec(stmt).one()))

    count_stmt = select(Transaction.status, func.count()).group_by(Transaction.status)
    if district:
        count_stmt = count_stmt.where(Transaction.district == district)
    counts = {status: n for status, n in session.exec(count_stmt).all()}

    return {
        "district": district,
        "total_expected": _total(Transaction.expected_amount),
        "total_bills_received": _total(Transaction.bills_received),
        "total_gst": _total(Transaction.gst_amount),
        "total_profit": _total(Transaction.profit, Transaction.status == STATUS_CLOSED),
        "open_count": counts.get(STATUS_OPEN, 0),
        "pending_close_count": counts.get(STATUS_PENDING_CLOSE, 0),
        "closed_count": counts.get(STATUS_CLOSED, 0),
        "wallet_balance": None if district else WalletLedger(session).current_balance(),
    }
