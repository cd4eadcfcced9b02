from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy import CheckConstraint
from sqlmodel import Field, SQLModel

class Account(SQLModel, table=True):
    __tablename__ = "accounts"
    __table_args__ = (CheckConstraint("balance >= 0", name="ck_accounts_balance"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    owner_id: int = Field(index=True, sa_column_kwargs={"name": "ownerId"})
    balance: int = Field(default=0, ge=0)

class Transfer(SQLModel, table=True):
    __tablename__ = "transfers"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transfers_amount"),
        CheckConstraint('"toId" <> "fromId"', name="ck_transfers_endpoints"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    date: datetime = Field(index=True)
    amount: int
    to_id: int = Field(index=True, sa_column_kwargs={"name": "toId"})
    to_balance: int = Field(sa_column_kwargs={"name": "toBalance"})
    from_id: int = Field(index=True, sa_column_kwargs={"name": "fromId"})
    from_balance: int = Field(sa_column_kwargs={"name": "fromBalance"})
    causal: str = Field(max_length=1024)

class Contact(SQLModel, table=True):
    __tablename__ = "contacts"

    owner_id: int = Field(primary_key=True, sa_column_kwargs={"name": "ownerId"})
    contact_id: int = Field(primary_key=True, sa_column_kwargs={"name": "contactId"})
