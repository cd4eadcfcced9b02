from __future__ import annotations

import logging
from typing import Optional

from sqlmodel import Session

from ..core import errors, ids
from ..core.db import atomically
from ..core.result import ApiResult
from ..models import (
    Account,
    Contact,
    NewTransferRequest,
    Transfer,
    TransferHistory,
)
from .accounts import AccountRepository
from .contacts import ContactRepository
from .transfers import TransferRepository


logger = logging.getLogger(__name__)


class LedgerService:
    def __init__(
        self,
        session: Session,
        accounts: Optional[AccountRepository] = None,
        transfers: Optional[TransferRepository] = None,
        contacts: Optional[ContactRepository] = None,
    ) -> None:
        self.session = session
        self.accounts = accounts or AccountRepository(session)
        self.transfers = transfers or TransferRepository(session, self.accounts)
        self.contacts = contacts or ContactRepository(session)

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------
    def create_account_for(self, owner_id: Optional[str]) -> ApiResult[Account]:
        """Open an empty account for the given user."""
        return ids.parse(owner_id, "ownerId").then(
            lambda: self.accounts.insert(Account(owner_id=owner_id, balance=0))
        )

    def account(self, account_id: Optional[str]) -> ApiResult[Account]:
        return self.accounts.by_id(account_id)

    def accounts_of(self, owner_id: Optional[str]) -> ApiResult[list[Account]]:
        return self.accounts.of_user(owner_id)

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------
    def transfer(self, request: Optional[NewTransferRequest]) -> ApiResult[Transfer]:
        """Check both accounts belong to the named users, then move the money."""
        if request is None:
            return ApiResult.error(errors.null_parameter("transferRequest"))

        def execute() -> ApiResult[Transfer]:
            return (
                self._check_ownership(request.from_user_id, request.from_account_id, "fromAccountId")
                .then(
                    lambda: self._check_ownership(
                        request.to_user_id, request.to_account_id, "toAccountId"
                    )
                )
                .then(
                    lambda: self.transfers.new_transfer(
                        request.from_account_id,
                        request.to_account_id,
                        request.amount,
                        request.causal,
                    )
                )
            )

        return atomically(self.session, execute)

    def transfer_by_id(self, transfer_id: Optional[str]) -> ApiResult[Transfer]:
        return self.transfers.by_id(transfer_id)

    def history(self, account_id: Optional[str]) -> ApiResult[TransferHistory]:
        return self.transfers.in_and_out_of(account_id)

    def _check_ownership(
        self, user_id: Optional[str], account_id: Optional[str], param: str
    ) -> ApiResult[list[Account]]:
        if not account_id:
            return ApiResult.error(errors.malformed_parameter(param))
        return self.accounts.of_user(user_id).flat_map(
            lambda owned: ApiResult.ok(owned)
            if any(account.id == account_id for account in owned)
            else ApiResult.error(errors.not_found(param))
        )

    # ------------------------------------------------------------------
    # Contacts
    # ------------------------------------------------------------------
    def save_contact(
        self, owner_id: Optional[str], contact_id: Optional[str]
    ) -> ApiResult[Contact]:
        result = self.contacts.insert(Contact(owner_id=owner_id, contact_id=contact_id))
        result.consume(
            lambda contact: logger.info(
                "contact.saved",
                extra={"owner_id": contact.owner_id, "contact_id": contact.contact_id},
            ),
            lambda _: None,
        )
        return result

    def contacts_of(self, owner_id: Optional[str]) -> ApiResult[list[Contact]]:
        return self.contacts.of_user(owner_id)
