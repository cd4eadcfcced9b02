from typing import NoReturn, TypeVar

from fastapi import APIRouter, Depends, status

from ..core.dependencies import get_ledger_service
from ..core.errors import ApiError, ApiException
from ..core.result import ApiResult
from ..models import (
    Account,
    AccountCreate,
    Contact,
    ContactCreate,
    NewTransferRequest,
    Transfer,
    TransferHistory,
)
from ..services import LedgerService

T = TypeVar("T")


def _raise(error: ApiError) -> NoReturn:
    raise ApiException(error)

def unwrap(result: ApiResult[T]) -> T:
    """Hand the value to FastAPI, or turn the error into an HTTP response."""
    return result.fold(lambda value: value, _raise)


router = APIRouter(prefix="/accounts", tags=["accounts"])

@router.post("", response_model=Account, status_code=status.HTTP_201_CREATED)
def create_account(
    payload: AccountCreate,
    service: LedgerService = Depends(get_ledger_service),
) -> Account:
    return unwrap(service.create_account_for(payload.owner_id))

@router.get("/{account_id}", response_model=Account)
def get_account(
    account_id: str,
    service: LedgerService = Depends(get_ledger_service),
) -> Account:
    return unwrap(service.account(account_id))

@router.get("/{account_id}/transfers", response_model=TransferHistory)
def get_history(
    account_id: str,
    service: LedgerService = Depends(get_ledger_service),
) -> TransferHistory:
    return unwrap(service.history(account_id))

user_router = APIRouter(prefix="/users", tags=["users"])

@user_router.get("/{user_id}/accounts", response_model=list[Account])
def list_accounts(
    user_id: str,
    service: LedgerService = Depends(get_ledger_service),
) -> list[Account]:
    return unwrap(service.accounts_of(user_id))

@user_router.get("/{user_id}/contacts", response_model=list[Contact])
def list_contacts(
    user_id: str,
    service: LedgerService = Depends(get_ledger_service),
) -> list[Contact]:
    return unwrap(service.contacts_of(user_id))

@user_router.post(
    "/{user_id}/contacts", response_model=Contact, status_code=status.HTTP_201_CREATED
)
def save_contact(
    user_id: str,
    payload: ContactCreate,
    service: LedgerService = Depends(get_ledger_service),
) -> Contact:
    return unwrap(service.save_contact(user_id, payload.contact_id))

transfer_router = APIRouter(prefix="/transfers", tags=["transfers"])

@transfer_router.post("", response_model=Transfer, status_code=status.HTTP_201_CREATED)
def create_transfer(
    payload: NewTransferRequest,
    service: LedgerService = Depends(get_ledger_service),
) -> Transfer:
    return unwrap(service.transfer(payload))

@transfer_router.get("/{transfer_id}", response_model=Transfer)
def get_transfer(
    transfer_id: str,
    service: LedgerService = Depends(get_ledger_service),
) -> Transfer:
    return unwrap(service.transfer_by_id(transfer_id))

__all__ = ["router", "transfer_router", "user_router"]
