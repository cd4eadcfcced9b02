from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from ..core import errors, ids
from ..core.db import atomically
from ..core.result import ApiResult
from ..models import Account, AccountModel


logger = logging.getLogger(__name__)


def _to_account(row: AccountModel) -> Account:
    return Account(
        id=ids.encode(row.id),
        owner_id=ids.encode(row.owner_id),
        balance=row.balance,
    )


class AccountRepository:
    """Reads and writes account rows through a borrowed session.

    Mutating calls run in an atomic section: they commit on their own unless
    the caller already holds one open, in which case they join it.
    """

    def __init__(self, session: Session) -> None:
        if session is None:
            raise TypeError("session must not be None")
        self.session = session

    # Queries ------------------------------------------------------------
    def by_id(self, token: Optional[str], lock: bool = False) -> ApiResult[Account]:
        """Account with the given id; ``lock`` holds its row until the transaction ends."""
        return ids.parse(token, "id").flat_map(
            lambda account_id: self._fetch(account_id, lock)
        ).flat_map(
            lambda row: ApiResult.ok(_to_account(row))
            if row is not None
            else ApiResult.error(errors.not_found(f"id {token}"))
        )

    def of_user(self, owner_token: Optional[str]) -> ApiResult[list[Account]]:
        def query(owner_id: int) -> ApiResult[list[Account]]:
            stmt = select(AccountModel).where(AccountModel.owner_id == owner_id)
            try:
                rows = list(self.session.exec(stmt))
            except SQLAlchemyError as exc:
                return ApiResult.error(errors.storage_unavailable(exc))
            return ApiResult.ok([_to_account(row) for row in rows])

        return ids.parse(owner_token, "ownerId").flat_map(query)

    def is_persisted(self, account: Optional[Account]) -> bool:
        if account is None or account.id is None:
            return False
        return self.by_id(account.id).is_ok()

    # Commands -----------------------------------------------------------
    def insert(self, account: Optional[Account]) -> ApiResult[Account]:
        """Persist a new account; the storage engine assigns its id."""
        if account is None:
            return ApiResult.error(errors.null_parameter("account"))
        if not ids.is_valid(account.owner_id) or account.balance < 0:
            return ApiResult.error(errors.malformed_parameter("account"))
        if self.is_persisted(account):
            return ApiResult.error(errors.conflict("account"))

        def write() -> ApiResult[Account]:
            row = AccountModel(owner_id=ids.decode(account.owner_id), balance=account.balance)
            try:
                self.session.add(row)
                self.session.flush()
            except SQLAlchemyError as exc:
                return ApiResult.error(errors.storage_unavailable(exc))
            account.id = ids.encode(row.id)
            return ApiResult.ok(account)

        result = atomically(self.session, write)
        result.consume(
            lambda created: logger.info(
                "account.created",
                extra={"account_id": created.id, "owner_id": created.owner_id},
            ),
            lambda _: None,
        )
        return result

    def update(self, account: Optional[Account]) -> ApiResult[Account]:
        """Overwrite owner and balance of an existing account.

        Balances should only move through a transfer; calling this directly
        bypasses the transfer ledger.
        """
        if account is None:
            return ApiResult.error(errors.null_parameter("account"))
        if account.id is None or not ids.is_valid(account.owner_id) or account.balance < 0:
            return ApiResult.error(errors.malformed_parameter("account"))

        def write(account_id: int) -> ApiResult[Account]:
            return self._fetch(account_id, lock=False).flat_map(
                lambda row: self._overwrite(row, account)
                if row is not None
                else ApiResult.error(errors.not_found(f"id {account.id}"))
            )

        return ids.parse(account.id, "account.id").flat_map(
            lambda account_id: atomically(self.session, lambda: write(account_id))
        )

    # Helpers ------------------------------------------------------------
    def _fetch(self, account_id: int, lock: bool) -> ApiResult[Optional[AccountModel]]:
        stmt = select(AccountModel).where(AccountModel.id == account_id)
        if lock:
            stmt = stmt.with_for_update()
        try:
            return ApiResult.ok(self.session.exec(stmt).first())
        except SQLAlchemyError as exc:
            return ApiResult.error(errors.storage_unavailable(exc))

    def _overwrite(self, row: AccountModel, account: Account) -> ApiResult[Account]:
        row.owner_id = ids.decode(account.owner_id)
        row.balance = account.balance
        try:
            self.session.add(row)
            self.session.flush()
        except SQLAlchemyError as exc:
            return ApiResult.error(errors.storage_unavailable(exc))
        return ApiResult.ok(account)
