"""
Admin wallet API.

Endpoints:
  GET    /api/wallet               – balance + every entry in insertion order
  POST   /api/wallet/manual        – arbitrary manual debit/credit
  POST   /api/wallet/balance       – set balance (posted as one delta entry)
  GET    /api/wallet/verify        – replay the ledger and report mismatches
  GET    /api/wallet/orphans       – entries whose transaction was deleted

The wallet is append-only: there is no update or delete endpoint.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, status
from loguru import logger
from sqlmodel import Session

from district_ledger.api.routes import get_actor
from district_ledger.core.database import get_session
from district_ledger.engine import access, wallet
from district_ledger.engine.access import Actor
from district_ledger.engine.wallet import WalletLedger
from district_ledger.schemas.responses import (
    WalletEntryRead,
    WalletManualEntryIn,
    WalletRead,
    WalletSetBalanceIn,
    WalletSetBalanceResponse,
    WalletVerifyResponse,
)

wallet_router = APIRouter(prefix="/api/wallet", tags=["wallet"])


def require_admin_actor(actor: Actor = Depends(get_actor)) -> Actor:
    access.require_admin(actor)
    return actor


@wallet_router.get("", response_model=WalletRead)
def get_wallet(
    session: Session = Depends(get_session),
    actor: Actor = Depends(require_admin_actor),
):
    ledger = WalletLedger(session)
    return WalletRead(
        balance=ledger.current_balance(),
        entries=[WalletEntryRead.model_validate(e) for e in ledger.entries()],
    )


@wallet_router.post("/manual", response_model=WalletEntryRead, status_code=status.HTTP_201_CREATED)
def manual_entry(
    body: WalletManualEntryIn,
    session: Session = Depends(get_session),
    actor: Actor = Depends(require_admin_actor),
):
    return wallet.post_manual_entry(
        session, body.description, body.debit, body.credit, user=actor.username
    )


@wallet_router.post("/balance", response_model=WalletSetBalanceResponse)
def set_balance(
    body: WalletSetBalanceIn,
    session: Session = Depends(get_session),
    actor: Actor = Depends(require_admin_actor),
):
    entry = wallet.post_set_balance(session, body.target, user=actor.username)
    return WalletSetBalanceResponse(
        balance=wallet.wallet_balance(session),
        entry=WalletEntryRead.model_validate(entry) if entry is not None else None,
    )


@wallet_router.get("/verify", response_model=WalletVerifyResponse)
def verify_wallet(
    session: Session = Depends(get_session),
    actor: Actor = Depends(require_admin_actor),
):
    ledger = WalletLedger(session)
    mismatched = ledger.verify()
    if mismatched:
        logger.error(f"Wallet replay mismatch on entries {mismatched}")
    return WalletVerifyResponse(
        ok=not mismatched,
        entries_checked=len(ledger.entries()),
        mismatched_ids=mismatched,
    )


@wallet_router.get("/orphans", response_model=list[WalletEntryRead])
def orphaned_entries(
    session: Session = Depends(get_session),
    actor: Actor = Depends(require_admin_actor),
):
    return WalletLedger(session).orphaned_entries()
