from .accounts import AccountRepository
from .contacts import ContactRepository
from .ledger import LedgerService
from .transfers import TransferRepository

__all__ = [
    "AccountRepository",
    "ContactRepository",
    "LedgerService",
    "TransferRepository",
]
