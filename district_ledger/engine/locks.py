"""
In-process mutual exclusion for ledger writes.

Lock order is always: transaction lock, then the wallet lock. Actions on
different transactions interleave freely; actions on the same transaction
run one at a time. The wallet lock covers "read last balance → append →
commit" so two appends can never be computed from the same prior balance.
"""
from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator

wallet_lock = threading.RLock()

_registry_lock = threading.Lock()
_txn_locks: dict[str, threading.Lock] = {}


def _lock_for(txn_id: str) -> threading.Lock:
    with _registry_lock:
        lock = _txn_locks.get(txn_id)
        if lock is None:
            lock = _txn_locks[txn_id] = threading.Lock()
        return lock


@contextmanager
def transaction_lock(txn_id: str) -> Iterator[None]:
    """Hold the per-transaction lock and the wallet lock for one unit of work."""
    with _lock_for(txn_id):
        with wallet_lock:
            yield


def forget(txn_id: str) -> None:
    """Drop the lock of a deleted transaction."""
    with _registry_lock:
        _txn_locks.pop(txn_id, None)


# Vendor registration: serial numbers are derived from a count of existing rows
vendor_lock = threading.Lock()
