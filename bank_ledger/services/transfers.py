from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import NamedTuple, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, or_, select

from ..core import errors, ids
from ..core.db import atomically
from ..core.result import ApiResult
from ..models import CAUSAL_LENGTH, Account, Transfer, TransferHistory, TransferModel
from .accounts import AccountRepository


logger = logging.getLogger(__name__)


class _Endpoints(NamedTuple):
    source: Account
    destination: Account


def _to_transfer(row: TransferModel) -> Transfer:
    date = row.date
    if date.tzinfo is None:
        date = date.replace(tzinfo=UTC)
    return Transfer(
        id=ids.encode(row.id),
        date=date,
        amount=row.amount,
        to_id=ids.encode(row.to_id),
        to_balance=row.to_balance,
        from_id=ids.encode(row.from_id),
        from_balance=row.from_balance,
        causal=row.causal,
    )


def _valid_amount(amount: object) -> bool:
    return isinstance(amount, int) and not isinstance(amount, bool) and amount > 0


def _valid_causal(causal: str) -> bool:
    return 1 <= len(causal) <= CAUSAL_LENGTH


class TransferRepository:
    """Append-only transfer ledger and the balance transfer that feeds it."""

    def __init__(self, session: Session, accounts: AccountRepository) -> None:
        if session is None or accounts is None:
            raise TypeError("session and accounts must not be None")
        self.session = session
        self.accounts = accounts

    @classmethod
    def with_new_objects(cls, session: Session) -> "TransferRepository":
        return cls(session, AccountRepository(session))

    # Queries ------------------------------------------------------------
    def by_id(self, token: Optional[str]) -> ApiResult[Transfer]:
        def query(transfer_id: int) -> ApiResult[Transfer]:
            try:
                row = self.session.get(TransferModel, transfer_id)
            except SQLAlchemyError as exc:
                return ApiResult.error(errors.storage_unavailable(exc))
            if row is None:
                return ApiResult.error(errors.not_found(f"id {token}"))
            return ApiResult.ok(_to_transfer(row))

        return ids.parse(token, "id").flat_map(query)

    def in_and_out_of(self, account_token: Optional[str]) -> ApiResult[TransferHistory]:
        """Transfers received and sent by an account, newest first."""

        def query(account_id: int) -> ApiResult[TransferHistory]:
            stmt = (
                select(TransferModel)
                .where(
                    or_(
                        TransferModel.to_id == account_id,
                        TransferModel.from_id == account_id,
                    )
                )
                .order_by(TransferModel.date.desc(), TransferModel.id.desc())
            )
            try:
                rows = list(self.session.exec(stmt))
            except SQLAlchemyError as exc:
                return ApiResult.error(errors.storage_unavailable(exc))

            history = TransferHistory()
            for row in rows:
                if row.to_id == account_id:
                    history.incoming.append(_to_transfer(row))
                else:
                    history.outgoing.append(_to_transfer(row))
            return ApiResult.ok(history)

        return ids.parse(account_token, "account").flat_map(query)

    def is_persisted(self, transfer: Optional[Transfer]) -> bool:
        if transfer is None or transfer.id is None:
            return False
        return self.by_id(transfer.id).is_ok()

    # Transfer -----------------------------------------------------------
    def new_transfer(
        self,
        from_id: Optional[str],
        to_id: Optional[str],
        amount: int,
        causal: Optional[str],
    ) -> ApiResult[Transfer]:
        """Move ``amount`` from one account to another and record it.

        Both balance updates and the ledger row are written in one atomic
        section: either all three land or none does.
        """
        if from_id is None:
            return ApiResult.error(errors.null_parameter("fromId"))
        if to_id is None:
            return ApiResult.error(errors.null_parameter("toId"))
        if causal is None:
            return ApiResult.error(errors.null_parameter("causal"))
        if not ids.is_valid(from_id):
            return ApiResult.error(errors.malformed_parameter("fromId"))
        if not ids.is_valid(to_id):
            return ApiResult.error(errors.malformed_parameter("toId"))
        if from_id == to_id:
            return ApiResult.error(errors.malformed_parameter("toId"))
        if not _valid_amount(amount):
            return ApiResult.error(errors.malformed_parameter("amount"))
        if not _valid_causal(causal):
            return ApiResult.error(errors.malformed_parameter("causal"))

        result = atomically(
            self.session, lambda: self._execute(from_id, to_id, amount, causal)
        )
        result.consume(
            lambda transfer: logger.info(
                "transfer.created",
                extra={
                    "transfer_id": transfer.id,
                    "from_id": transfer.from_id,
                    "to_id": transfer.to_id,
                    "amount": transfer.amount,
                },
            ),
            lambda error: logger.info(
                "transfer.rejected",
                extra={"from_id": from_id, "to_id": to_id, "code": error.code},
            ),
        )
        return result

    def _execute(self, from_id: str, to_id: str, amount: int, causal: str) -> ApiResult[Transfer]:
        return (
            self._load(from_id, to_id)
            .flat_map(lambda endpoints: self._check_balance(endpoints, amount))
            .flat_map(self._check_not_same)
            .flat_map(lambda endpoints: self._move(endpoints, amount, causal))
        )

    def _load(self, from_id: str, to_id: str) -> ApiResult[_Endpoints]:
        # Row locks are taken in ascending id order whatever the direction.
        loaded = {
            token: self.accounts.by_id(token, lock=True)
            for token in sorted((from_id, to_id), key=ids.decode)
        }
        return loaded[from_id].flat_map(
            lambda source: loaded[to_id].map(
                lambda destination: _Endpoints(source, destination)
            )
        )

    def _check_balance(self, endpoints: _Endpoints, amount: int) -> ApiResult[_Endpoints]:
        if endpoints.source.balance < amount:
            return ApiResult.error(errors.conflict("amount"))
        return ApiResult.ok(endpoints)

    def _check_not_same(self, endpoints: _Endpoints) -> ApiResult[_Endpoints]:
        # Distinct tokens may still decode to the same row.
        if endpoints.source.id == endpoints.destination.id:
            return ApiResult.error(errors.malformed_parameter("toId"))
        return ApiResult.ok(endpoints)

    def _move(self, endpoints: _Endpoints, amount: int, causal: str) -> ApiResult[Transfer]:
        source, destination = endpoints
        transfer = Transfer(
            date=datetime.now(UTC),
            amount=amount,
            to_id=destination.id,
            to_balance=destination.balance,
            from_id=source.id,
            from_balance=source.balance,
            causal=causal,
        )
        destination.balance += amount
        source.balance -= amount

        first, second = sorted(endpoints, key=lambda account: ids.decode(account.id))
        return (
            self.accounts.update(first)
            .then(lambda: self.accounts.update(second))
            .then(lambda: self.insert(transfer))
        )

    # Raw writes ---------------------------------------------------------
    def insert(self, transfer: Optional[Transfer]) -> ApiResult[Transfer]:
        """Append a transfer row as given.

        Unsafe outside :meth:`new_transfer`: neither account balance is
        touched, so the ledger and the balances can drift apart.
        """
        if transfer is None:
            return ApiResult.error(errors.null_parameter("transfer"))
        if transfer.date is None or transfer.causal is None:
            return ApiResult.error(errors.malformed_parameter("transfer"))
        if not ids.is_valid(transfer.from_id):
            return ApiResult.error(errors.malformed_parameter("transfer.fromId"))
        if not ids.is_valid(transfer.to_id):
            return ApiResult.error(errors.malformed_parameter("transfer.toId"))
        if ids.decode(transfer.from_id) == ids.decode(transfer.to_id):
            return ApiResult.error(errors.malformed_parameter("transfer.toId"))
        if not _valid_amount(transfer.amount):
            return ApiResult.error(errors.malformed_parameter("transfer.amount"))
        if not _valid_causal(transfer.causal):
            return ApiResult.error(errors.malformed_parameter("transfer.causal"))
        if self.is_persisted(transfer):
            return ApiResult.error(errors.conflict("transfer"))

        def write() -> ApiResult[Transfer]:
            row = TransferModel(
                date=transfer.date,
                amount=transfer.amount,
                to_id=ids.decode(transfer.to_id),
                to_balance=transfer.to_balance,
                from_id=ids.decode(transfer.from_id),
                from_balance=transfer.from_balance,
                causal=transfer.causal,
            )
            try:
                self.session.add(row)
                self.session.flush()
            except SQLAlchemyError as exc:
                return ApiResult.error(errors.storage_unavailable(exc))
            transfer.id = ids.encode(row.id)
            return ApiResult.ok(transfer)

        return atomically(self.session, write)

    def update(self, transfer: Optional[Transfer]) -> ApiResult[Transfer]:
        """Transfers are immutable once written."""
        return ApiResult.error(errors.operation_not_permitted())
