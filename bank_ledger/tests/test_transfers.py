from datetime import UTC, datetime

import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import Session

from ..core import errors, ids
from ..core.db import get_autocommit, set_autocommit
from ..core.result import ApiResult
from ..models import Transfer, TransferModel
from ..services import AccountRepository, TransferRepository

ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"


def alias(token: str) -> str:
    """A different token that decodes to the same id (the last two bits are ignored)."""
    return token[:-1] + ALPHABET[ALPHABET.index(token[-1]) + 1]


def test_transfer_moves_money_and_snapshots_balances(
    transfers: TransferRepository, open_account, stored_balance
) -> None:
    source = open_account(100)
    dest = open_account(50, owner=2)

    transfer = transfers.new_transfer(source.id, dest.id, 30, "rent").get()

    assert stored_balance(source.id) == 70
    assert stored_balance(dest.id) == 80
    assert transfer.id is not None
    assert transfer.from_id == source.id
    assert transfer.to_id == dest.id
    assert transfer.from_balance == 100
    assert transfer.to_balance == 50
    assert transfer.amount == 30
    assert transfer.causal == "rent"
    assert transfers.by_id(transfer.id).get() == transfer


def test_transfer_can_drain_the_source(
    transfers: TransferRepository, open_account, stored_balance
) -> None:
    source = open_account(40)
    dest = open_account(0)

    assert transfers.new_transfer(source.id, dest.id, 40, "all of it").is_ok()
    assert stored_balance(source.id) == 0
    assert stored_balance(dest.id) == 40


def test_amount_zero_is_malformed(
    transfers: TransferRepository, open_account, stored_balance
) -> None:
    source = open_account(100)
    dest = open_account(50)

    error = transfers.new_transfer(source.id, dest.id, 0, "x").get_error()

    assert error == errors.malformed_parameter("amount")
    assert stored_balance(source.id) == 100
    assert stored_balance(dest.id) == 50


@pytest.mark.parametrize(
    ("amount", "causal", "expected"),
    [
        (-5, "x", errors.malformed_parameter("amount")),
        (1.5, "x", errors.malformed_parameter("amount")),
        (True, "x", errors.malformed_parameter("amount")),
        (10, "", errors.malformed_parameter("causal")),
        (10, "c" * 1025, errors.malformed_parameter("causal")),
        (10, None, errors.null_parameter("causal")),
    ],
)
def test_invalid_requests_leave_balances_alone(
    transfers: TransferRepository, open_account, stored_balance, amount, causal, expected
) -> None:
    source = open_account(100)
    dest = open_account(50)

    assert transfers.new_transfer(source.id, dest.id, amount, causal).get_error() == expected
    assert stored_balance(source.id) == 100
    assert stored_balance(dest.id) == 50


def test_causal_at_maximum_length_is_accepted(
    transfers: TransferRepository, open_account
) -> None:
    source = open_account(10)
    dest = open_account(0)
    assert transfers.new_transfer(source.id, dest.id, 1, "c" * 1024).is_ok()


def test_bad_tokens(transfers: TransferRepository, open_account, stored_balance) -> None:
    source = open_account(100)

    assert transfers.new_transfer(None, source.id, 1, "x").get_error() == errors.null_parameter("fromId")
    assert transfers.new_transfer(source.id, None, 1, "x").get_error() == errors.null_parameter("toId")
    assert transfers.new_transfer("bad", source.id, 1, "x").get_error() == errors.malformed_parameter("fromId")
    assert transfers.new_transfer(source.id, "bad", 1, "x").get_error() == errors.malformed_parameter("toId")
    assert transfers.new_transfer(source.id, source.id, 1, "x").get_error() == errors.malformed_parameter("toId")
    assert stored_balance(source.id) == 100


def test_missing_account_is_not_found(
    transfers: TransferRepository, open_account, stored_balance
) -> None:
    source = open_account(100)

    outgoing = transfers.new_transfer(source.id, ids.encode(999), 10, "x").get_error()
    incoming = transfers.new_transfer(ids.encode(999), source.id, 10, "x").get_error()

    assert outgoing.code == 404
    assert incoming.code == 404
    assert stored_balance(source.id) == 100


def test_two_tokens_for_one_account_are_rejected(
    transfers: TransferRepository, open_account, stored_balance
) -> None:
    account = open_account(100)
    other = alias(account.id)
    assert other != account.id
    assert ids.decode(other) == ids.decode(account.id)

    error = transfers.new_transfer(account.id, other, 10, "loop").get_error()

    assert error == errors.malformed_parameter("toId")
    assert stored_balance(account.id) == 100


def test_insufficient_funds_writes_nothing(
    monkeypatch, transfers: TransferRepository, accounts: AccountRepository, open_account, stored_balance
) -> None:
    source = open_account(20)
    dest = open_account(5)
    writes = []
    monkeypatch.setattr(accounts, "update", lambda account: writes.append(account))
    monkeypatch.setattr(transfers, "insert", lambda transfer: writes.append(transfer))

    error = transfers.new_transfer(source.id, dest.id, 21, "too much").get_error()

    assert error == errors.conflict("amount")
    assert writes == []
    assert stored_balance(source.id) == 20
    assert stored_balance(dest.id) == 5


def test_failed_ledger_insert_rolls_back_both_updates(
    monkeypatch, transfers: TransferRepository, accounts: AccountRepository, open_account, stored_balance
) -> None:
    source = open_account(100)
    dest = open_account(50)
    failure = errors.storage_unavailable(OperationalError("insert", {}, Exception("disk I/O error")))
    updated = []
    real_update = accounts.update

    def tracking_update(account):
        updated.append(account.id)
        return real_update(account)

    monkeypatch.setattr(accounts, "update", tracking_update)
    monkeypatch.setattr(transfers, "insert", lambda transfer: ApiResult.error(failure))

    assert transfers.new_transfer(source.id, dest.id, 30, "rent").get_error() == failure
    assert sorted(updated) == sorted([source.id, dest.id])
    assert stored_balance(source.id) == 100
    assert stored_balance(dest.id) == 50
    assert accounts.by_id(source.id).get().balance == 100
    assert accounts.by_id(dest.id).get().balance == 50


def test_storage_failure_at_ledger_insert_rolls_back(
    engine, transfers: TransferRepository, accounts: AccountRepository, open_account, stored_balance
) -> None:
    source = open_account(100)
    dest = open_account(50)
    TransferModel.__table__.drop(engine)

    error = transfers.new_transfer(source.id, dest.id, 30, "rent").get_error()

    assert error.code == 500
    assert error.errors[0].reason == "OperationalError"
    assert "transfers" in error.errors[0].message
    assert stored_balance(source.id) == 100
    assert stored_balance(dest.id) == 50
    assert accounts.by_id(source.id).get().balance == 100
    assert accounts.by_id(dest.id).get().balance == 50


def test_updates_follow_ascending_id_order(
    monkeypatch, transfers: TransferRepository, accounts: AccountRepository, open_account
) -> None:
    low = open_account(100)
    high = open_account(100)
    order = []
    real_update = accounts.update

    def tracking_update(account):
        order.append(ids.decode(account.id))
        return real_update(account)

    monkeypatch.setattr(accounts, "update", tracking_update)

    transfers.new_transfer(low.id, high.id, 1, "up").get()
    transfers.new_transfer(high.id, low.id, 1, "down").get()

    first, second = ids.decode(low.id), ids.decode(high.id)
    assert order == [first, second, first, second]


def test_joins_outer_transaction_without_committing(
    session: Session, transfers: TransferRepository, open_account, stored_balance
) -> None:
    source = open_account(100)
    dest = open_account(50)

    set_autocommit(session, False)
    assert transfers.new_transfer(source.id, dest.id, 30, "pending").is_ok()
    assert get_autocommit(session) is False
    assert stored_balance(source.id) == 100

    session.rollback()
    set_autocommit(session, True)
    assert stored_balance(source.id) == 100
    assert stored_balance(dest.id) == 50


def test_history_splits_and_orders_by_date(
    transfers: TransferRepository, open_account
) -> None:
    account = open_account(100)
    first_sender = open_account(100)
    second_sender = open_account(100)

    transfers.new_transfer(first_sender.id, account.id, 10, "one").get()
    transfers.new_transfer(account.id, first_sender.id, 5, "two").get()
    transfers.new_transfer(second_sender.id, account.id, 20, "three").get()

    history = transfers.in_and_out_of(account.id).get()

    assert len(history.incoming) == 2
    assert len(history.outgoing) == 1
    assert [t.causal for t in history.incoming] == ["three", "one"]
    dates = [t.date for t in history.incoming]
    assert dates == sorted(dates, reverse=True)
    assert all(t.to_id == account.id for t in history.incoming)
    assert history.outgoing[0].from_id == account.id


def test_history_of_unused_account_is_empty(transfers: TransferRepository, open_account) -> None:
    history = transfers.in_and_out_of(open_account(0).id).get()
    assert history.incoming == [] and history.outgoing == []
    assert transfers.in_and_out_of(None).get_error().code == 400


def test_by_id_errors(transfers: TransferRepository) -> None:
    assert transfers.by_id(None).get_error() == errors.null_parameter("id")
    assert transfers.by_id("x").get_error() == errors.malformed_parameter("id")
    assert transfers.by_id(ids.encode(12)).get_error().code == 404


def test_direct_insert_does_not_touch_balances(
    transfers: TransferRepository, open_account, stored_balance
) -> None:
    source = open_account(10)
    dest = open_account(10)
    raw = Transfer(
        date=datetime.now(UTC),
        amount=3,
        to_id=dest.id,
        to_balance=10,
        from_id=source.id,
        from_balance=10,
        causal="backfill",
    )

    inserted = transfers.insert(raw).get()

    assert inserted.id is not None
    assert transfers.is_persisted(inserted)
    assert transfers.insert(inserted).get_error().code == 409
    assert stored_balance(source.id) == 10
    assert stored_balance(dest.id) == 10


def test_direct_insert_validation(transfers: TransferRepository, open_account) -> None:
    a, b = open_account(0), open_account(0)
    now = datetime.now(UTC)

    assert transfers.insert(None).get_error() == errors.null_parameter("transfer")
    undated = Transfer(amount=1, to_id=a.id, from_id=b.id, causal="x")
    assert transfers.insert(undated).get_error() == errors.malformed_parameter("transfer")
    same = Transfer(date=now, amount=1, to_id=a.id, from_id=a.id, causal="x")
    assert transfers.insert(same).get_error() == errors.malformed_parameter("transfer.toId")
    free = Transfer(date=now, amount=0, to_id=a.id, from_id=b.id, causal="x")
    assert transfers.insert(free).get_error() == errors.malformed_parameter("transfer.amount")


def test_transfers_are_immutable(transfers: TransferRepository, open_account) -> None:
    source, dest = open_account(5), open_account(0)
    transfer = transfers.new_transfer(source.id, dest.id, 5, "x").get()

    assert transfers.update(transfer).get_error() == errors.operation_not_permitted()
