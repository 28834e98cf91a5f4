"""
Admin wallet – an append-only running-balance ledger.

    balance[i] = round2(balance[i-1] − debit[i] + credit[i]),  balance[-1] = 0

The current balance is always the last row's ``balance``; there is no separate
running total to drift. Rows are never updated or deleted: corrections,
including "set balance", are new rows layered on top.

``WalletLedger`` only adds rows to the caller's session. Committing is the
caller's job (the lifecycle commits ledger rows together with the transaction
change that caused them), and the caller must hold ``locks.wallet_lock``
between reading the balance and committing. The admin commands at the bottom
(`post_manual_entry`, `post_set_balance`) do both for a standalone wallet edit.
"""
from __future__ import annotations

import math
from typing import Iterable, Optional

from loguru import logger
from sqlmodel import Session, col, select

from district_ledger.core.config import settings
from district_ledger.core.exceptions import ValidationError
from district_ledger.engine import audit, locks
from district_ledger.engine.calculator import require_non_negative
from district_ledger.engine.money import round2
from district_ledger.models.transaction import (
    ENTRY_MANUAL,
    WALLET_ENTRY_TYPES,
    Transaction,
    WalletEntry,
)


def replay(entries: Iterable[WalletEntry]) -> list[float]:
    """Recompute every running balance from an empty ledger."""
    balances: list[float] = []
    balance = 0.0
    for entry in entries:
        balance = round2(balance - entry.debit + entry.credit)
        balances.append(balance)
    return balances


def _within_limit(amount: float, field: str) -> float:
    if amount > settings.MAX_AMOUNT:
        raise ValidationError(f"{field} {amount:g} exceeds the limit of {settings.MAX_AMOUNT:g}")
    return amount


class WalletLedger:
    """Ledger operations over one database session."""

    def __init__(self, session: Session):
        self.session = session

    # ── Reads ─────────────────────────────────────────────────────────────────

    def last_entry(self) -> Optional[WalletEntry]:
        stmt = select(WalletEntry).order_by(col(WalletEntry.id).desc()).limit(1)
        return self.session.exec(stmt).first()

    def current_balance(self) -> float:
        last = self.last_entry()
        return last.balance if last else 0.0

    def entries(self, txn_id: Optional[str] = None) -> list[WalletEntry]:
        stmt = select(WalletEntry)
        if txn_id is not None:
            stmt = stmt.where(WalletEntry.txn_id == txn_id)
        return list(self.session.exec(stmt.order_by(WalletEntry.id)).all())

    def has_entry(self, txn_id: str, entry_type: str) -> bool:
        stmt = select(WalletEntry.id).where(
            WalletEntry.txn_id == txn_id, WalletEntry.type == entry_type
        )
        return self.session.exec(stmt).first() is not None

    def verify(self) -> list[int]:
        """Ids of rows whose stored balance differs from a full replay."""
        rows = self.entries()
        return [
            row.id
            for row, expected in zip(rows, replay(rows))
            if row.balance != expected
        ]

    def orphaned_entries(self) -> list[WalletEntry]:
        """
        Rows that reference a transaction which no longer exists.

        Deleting a transaction never reverses its wallet rows; these are left
        for an admin to review and correct with a manual entry.
        """
        existing = select(Transaction.txn_id)
        stmt = (
            select(WalletEntry)
            .where(col(WalletEntry.txn_id).isnot(None))
            .where(col(WalletEntry.txn_id).not_in(existing))
            .order_by(WalletEntry.id)
        )
        return list(self.session.exec(stmt).all())

    # ── Writes ────────────────────────────────────────────────────────────────

    def append(
        self,
        description: str,
        debit: float,
        credit: float,
        entry_type: str,
        txn_id: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> WalletEntry:
        if entry_type not in WALLET_ENTRY_TYPES:
            raise ValidationError(f"Unknown wallet entry type {entry_type!r}")
        debit = round2(_within_limit(require_non_negative(debit, "debit"), "debit"))
        credit = round2(_within_limit(require_non_negative(credit, "credit"), "credit"))

        prior = self.current_balance()
        entry = WalletEntry(
            description=description,
            txn_id=txn_id,
            debit=debit,
            credit=credit,
            balance=round2(prior - debit + credit),
            type=entry_type,
            created_by=created_by,
        )
        self.session.add(entry)
        self.session.flush()
        logger.info(
            f"Wallet {entry_type}: -{debit} +{credit} → {entry.balance}"
            + (f" (txn {txn_id})" if txn_id else "")
        )
        return entry

    def manual_entry(
        self,
        description: str,
        debit: float,
        credit: float,
        created_by: Optional[str] = None,
    ) -> WalletEntry:
        """Arbitrary admin adjustment; debit and credit may both be set."""
        description = (description or "").strip()
        if not description:
            raise ValidationError("description is required for a manual wallet entry")
        if not debit and not credit:
            raise ValidationError("manual wallet entry needs a debit or a credit")
        return self.append(description, debit, credit, ENTRY_MANUAL, created_by=created_by)

    def set_balance(self, target: float, created_by: Optional[str] = None) -> Optional[WalletEntry]:
        """
        Move the balance to ``target`` with one delta row.

        Returns None (and writes nothing) when the balance already equals target.
        """
        if isinstance(target, bool) or not isinstance(target, (int, float)) or not math.isfinite(target):
            raise ValidationError(f"target balance must be a number, got {target!r}")
        _within_limit(abs(target), "target balance")
        diff = round2(target - self.current_balance())
        if diff > 0:
            return self.append("Balance Adjustment (Credit)", 0.0, diff, ENTRY_MANUAL, created_by=created_by)
        if diff < 0:
            return self.append("Balance Adjustment (Debit)", abs(diff), 0.0, ENTRY_MANUAL, created_by=created_by)
        return None


# ── Admin commands (one committed unit each) ──────────────────────────────────


def wallet_balance(session: Session) -> float:
    return WalletLedger(session).current_balance()


def post_manual_entry(
    session: Session,
    description: str,
    debit: float,
    credit: float,
    user: Optional[str] = None,
) -> WalletEntry:
    with locks.wallet_lock:
        try:
            entry = WalletLedger(session).manual_entry(description, debit, credit, created_by=user)
            audit.record(session, "CREATE", "Wallet", entry.id, user=user, after=audit.snapshot(entry))
            session.commit()
        except Exception:
            session.rollback()
            raise
    session.refresh(entry)
    return entry


def post_set_balance(session: Session, target: float, user: Optional[str] = None) -> Optional[WalletEntry]:
    """Commit the delta row for ``set_balance``; None when nothing was needed."""
    with locks.wallet_lock:
        try:
            entry = WalletLedger(session).set_balance(target, created_by=user)
            if entry is None:
                logger.info(f"Wallet already at {target}; nothing posted")
                return None
            audit.record(session, "UPDATE", "Wallet", entry.id, user=user, after=audit.snapshot(entry))
            session.commit()
        except Exception:
            session.rollback()
            raise
    session.refresh(entry)
    return entry
