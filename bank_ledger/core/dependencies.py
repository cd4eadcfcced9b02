from fastapi import Depends
from sqlmodel import Session

from ..services import LedgerService
from .db import get_session

def get_ledger_service(session: Session = Depends(get_session)) -> LedgerService:
    return LedgerService(session)
