from district_ledger.models.master import ManagedUser, Vendor
from district_ledger.models.transaction import AuditLog, Bill, Transaction, WalletEntry

__all__ = [
    "Vendor",
    "ManagedUser",
    "Transaction",
    "Bill",
    "WalletEntry",
    "AuditLog",
]
