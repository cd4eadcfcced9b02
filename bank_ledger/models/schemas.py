from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

CAUSAL_LENGTH = 1024

class Account(BaseModel):
    id: Optional[str] = Field(default=None, description="Surrogate id token, set once persisted")
    owner_id: Optional[str] = Field(default=None, description="Surrogate id token of the owning user")
    balance: int = Field(default=0, ge=0, description="Balance in minor units (e.g. cents)")

class Transfer(BaseModel):
    id: Optional[str] = None
    date: Optional[datetime] = None
    amount: int = Field(..., description="Amount moved, in minor units")
    to_id: Optional[str] = None
    to_balance: int = Field(default=0, description="Destination balance before this transfer")
    from_id: Optional[str] = None
    from_balance: int = Field(default=0, description="Source balance before this transfer")
    causal: Optional[str] = Field(default=None, description="Memo explaining the transfer")

class TransferHistory(BaseModel):
    incoming: list[Transfer] = Field(default_factory=list)
    outgoing: list[Transfer] = Field(default_factory=list)

class Contact(BaseModel):
    owner_id: Optional[str] = None
    contact_id: Optional[str] = None

class AccountCreate(BaseModel):
    owner_id: str = Field(..., description="Surrogate id token of the account holder")

class ContactCreate(BaseModel):
    contact_id: str

class NewTransferRequest(BaseModel):
    from_user_id: str
    from_account_id: str
    to_user_id: str
    to_account_id: str
    amount: int = Field(..., description="Amount in minor units (must be >= 1)")
    causal: str = Field(..., description="Narrative shown on both accounts' history")
