from collections.abc import Callable

import pytest
from sqlmodel import Session, SQLModel

from ..core import ids
from ..core.db import create_engine_for_url
from ..models import Account, AccountModel
from ..services import AccountRepository, ContactRepository, TransferRepository


@pytest.fixture
def engine(tmp_path):
    engine = create_engine_for_url(f"sqlite:///{tmp_path / 'ledger.db'}")
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def accounts(session: Session) -> AccountRepository:
    return AccountRepository(session)


@pytest.fixture
def transfers(session: Session, accounts: AccountRepository) -> TransferRepository:
    return TransferRepository(session, accounts)


@pytest.fixture
def contacts(session: Session) -> ContactRepository:
    return ContactRepository(session)


@pytest.fixture
def open_account(accounts: AccountRepository) -> Callable[..., Account]:
    def _open(balance: int, owner: int = 1) -> Account:
        return accounts.insert(Account(owner_id=ids.encode(owner), balance=balance)).get()

    return _open


@pytest.fixture
def stored_balance(engine) -> Callable[[str], int]:
    """Balance as committed in the database, read through a fresh session."""

    def _read(token: str) -> int:
        with Session(engine) as fresh:
            return fresh.get(AccountModel, ids.decode(token)).balance

    return _read
