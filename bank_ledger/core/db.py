from __future__ import annotations

import logging
from collections.abc import Generator
from typing import Any, Callable, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, create_engine

from ..models import db as _db_models  # noqa: F401 - ensure models register with metadata
from . import errors
from .config import get_settings
from .result import ApiResult

T = TypeVar("T")

AUTOCOMMIT_KEY = "autocommit"

logger = logging.getLogger(__name__)


def create_engine_for_url(database_url: str, echo: bool = False, busy_timeout: float = 5.0):
    connect_args: dict[str, Any] = {}
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": busy_timeout}
    return create_engine(database_url, echo=echo, connect_args=connect_args)


settings = get_settings()
engine = create_engine_for_url(
    settings.database_url,
    echo=settings.database_echo,
    busy_timeout=settings.sqlite_busy_timeout,
)


def init_db() -> None:
    SQLModel.metadata.create_all(engine)


def get_session() -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


def set_engine(new_engine) -> None:
    global engine
    engine = new_engine


# Atomic sections -----------------------------------------------------------
def get_autocommit(session: Session) -> bool:
    """True unless some caller currently owns a transaction on ``session``."""
    return session.info.get(AUTOCOMMIT_KEY, True)


def set_autocommit(session: Session, flag: bool) -> None:
    session.info[AUTOCOMMIT_KEY] = flag


def atomically(session: Session, work: Callable[[], ApiResult[T]]) -> ApiResult[T]:
    """Run ``work`` as one all-or-nothing unit on ``session``.

    When the auto-commit flag is on, this call owns the transaction: the flag
    is switched off while ``work`` runs, an ``Ok`` is committed and an ``Err``
    (or an escaping exception) is rolled back. When the flag is already off an
    outer caller owns the transaction and ``work`` simply joins it, leaving
    commit and rollback to that caller. The flag is restored on every path.
    """
    previous = get_autocommit(session)
    if not previous:
        return work()

    set_autocommit(session, False)
    try:
        try:
            result = work()
        except BaseException:
            session.rollback()
            raise
        if result.is_ok():
            return _commit(session, result)
        return _rollback(session, result)
    finally:
        set_autocommit(session, previous)


def _commit(session: Session, result: ApiResult[T]) -> ApiResult[T]:
    try:
        session.commit()
    except SQLAlchemyError as exc:
        logger.error("transaction.commit_failed", extra={"error": str(exc)})
        return _rollback(session, ApiResult.error(errors.storage_unavailable(exc)))
    return result


def _rollback(session: Session, result: ApiResult[T]) -> ApiResult[T]:
    logger.info(
        "transaction.rollback",
        extra={"code": result.fold(lambda _: None, lambda error: error.code)},
    )
    try:
        session.rollback()
    except SQLAlchemyError as exc:
        logger.error("transaction.rollback_failed", extra={"error": str(exc)})
        return ApiResult.error(errors.storage_unavailable(exc))
    return result
