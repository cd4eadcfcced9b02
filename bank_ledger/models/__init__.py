from .db import Account as AccountModel
from .db import Contact as ContactModel
from .db import Transfer as TransferModel
from .schemas import (
    CAUSAL_LENGTH,
    Account,
    AccountCreate,
    Contact,
    ContactCreate,
    NewTransferRequest,
    Transfer,
    TransferHistory,
)

__all__ = [
    "CAUSAL_LENGTH",
    "Account",
    "AccountCreate",
    "Contact",
    "ContactCreate",
    "NewTransferRequest",
    "Transfer",
    "TransferHistory",
    "AccountModel",
    "ContactModel",
    "TransferModel",
]
