"""
Read-only authorization gate: (username, district, active) lookup.

This sits in front of the engine; the reconciliation rules never depend on it.
With AUTH_ENABLED=false every caller is treated as the admin.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from loguru import logger
from sqlmodel import Session, select

from district_ledger.core.config import settings
from district_ledger.core.exceptions import AccessDenied
from district_ledger.models.master import ManagedUser


@dataclass(frozen=True)
class Actor:
    username: str
    district: Optional[str] = None
    is_admin: bool = False


def resolve_actor(session: Session, username: Optional[str]) -> Actor:
    if not settings.AUTH_ENABLED:
        return Actor(username=username or settings.ADMIN_USERNAME, is_admin=True)
    if not username:
        raise AccessDenied("Missing user")
    if username == settings.ADMIN_USERNAME:
        return Actor(username=username, is_admin=True)

    user = session.exec(select(ManagedUser).where(ManagedUser.username == username)).first()
    if user is None:
        logger.warning(f"Access refused for unknown user '{username}'")
        raise AccessDenied(f"Unknown user '{username}'")
    if not user.active:
        logger.warning(f"Access refused for deactivated user '{username}'")
        raise AccessDenied(f"User '{username}' is deactivated")
    return Actor(username=user.username, district=user.district)


def require_admin(actor: Actor) -> None:
    if not actor.is_admin:
        raise AccessDenied("Admin only")


def require_district(actor: Actor, district: str) -> None:
    """District users may only act on their own district's records."""
    if actor.is_admin or actor.district == district:
        return
    raise AccessDenied(f"User '{actor.username}' cannot act on district '{district}'")
