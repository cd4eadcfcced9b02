from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from ..core import errors, ids
from ..core.db import atomically
from ..core.result import ApiResult
from ..models import Contact, ContactModel


logger = logging.getLogger(__name__)


class ContactRepository:
    """Address book of users each user has sent money to. Insert-only."""

    def __init__(self, session: Session) -> None:
        if session is None:
            raise TypeError("session must not be None")
        self.session = session

    def by_id(self, token: Optional[str]) -> ApiResult[Contact]:
        # A contact is keyed by its (owner, contact) pair, not by a single id.
        if token is None:
            return ApiResult.error(errors.null_parameter("id"))
        return ApiResult.error(errors.operation_not_permitted())

    def of_user(self, owner_token: Optional[str]) -> ApiResult[list[Contact]]:
        def query(owner_id: int) -> ApiResult[list[Contact]]:
            stmt = select(ContactModel).where(ContactModel.owner_id == owner_id)
            try:
                rows = list(self.session.exec(stmt))
            except SQLAlchemyError as exc:
                return ApiResult.error(errors.storage_unavailable(exc))
            return ApiResult.ok(
                [
                    Contact(
                        owner_id=ids.encode(row.owner_id),
                        contact_id=ids.encode(row.contact_id),
                    )
                    for row in rows
                ]
            )

        return ids.parse(owner_token, "ownerId").flat_map(query)

    def is_persisted(self, contact: Optional[Contact]) -> bool:
        if contact is None:
            return False
        if not ids.is_valid(contact.owner_id) or not ids.is_valid(contact.contact_id):
            return False
        key = (ids.decode(contact.owner_id), ids.decode(contact.contact_id))
        return self._lookup(*key).fold(lambda found: found, lambda _: False)

    def insert(self, contact: Optional[Contact]) -> ApiResult[Contact]:
        if contact is None:
            return ApiResult.error(errors.null_parameter("contact"))
        if not ids.is_valid(contact.owner_id) or not ids.is_valid(contact.contact_id):
            return ApiResult.error(errors.malformed_parameter("contact"))
        owner_id = ids.decode(contact.owner_id)
        contact_id = ids.decode(contact.contact_id)
        if owner_id == contact_id:
            return ApiResult.error(errors.malformed_parameter("contact"))

        def write(found: bool) -> ApiResult[Contact]:
            if found:
                return ApiResult.error(errors.conflict("contact"))
            try:
                self.session.add(ContactModel(owner_id=owner_id, contact_id=contact_id))
                self.session.flush()
            except SQLAlchemyError as exc:
                return ApiResult.error(errors.storage_unavailable(exc))
            return ApiResult.ok(contact)

        return atomically(
            self.session,
            lambda: self._lookup(owner_id, contact_id).flat_map(write),
        )

    def update(self, contact: Optional[Contact]) -> ApiResult[Contact]:
        if contact is None:
            return ApiResult.error(errors.null_parameter("contact"))
        return ApiResult.error(errors.operation_not_permitted())

    def _lookup(self, owner_id: int, contact_id: int) -> ApiResult[bool]:
        try:
            row = self.session.get(ContactModel, (owner_id, contact_id))
        except SQLAlchemyError as exc:
            logger.error("contact.lookup_failed", extra={"error": str(exc)})
            return ApiResult.error(errors.storage_unavailable(exc))
        return ApiResult.ok(row is not None)
