# src/worksync/remote/memory.py

from __future__ import annotations

"""
In-process remote backend.

Used for offline/demo runs (remote_backend=memory, auth_backend=memory) and as
the test double for the remote ports. Data lives for the lifetime of the process.
"""

import asyncio
import copy
import logging
from collections.abc import Sequence
from typing import Any

from ..core.errors import AuthError, DocumentNotFound
from ..core.models import new_id
from ..core.ports import AuthAccount, AuthListener, AuthStateBroadcaster, Document, WhereClause

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def _sort_key(value: Any) -> tuple[int, Any]:
    # Missing values sort before everything else (ascending).
    if value is None:
        return (0, 0)
    return (1, value)


class InMemoryDocumentStore:
    def __init__(self) -> None:
        self._collections: dict[str, dict[str, Document]] = {}
        self._lock = asyncio.Lock()

    def _coll(self, collection: str) -> dict[str, Document]:
        return self._collections.setdefault(collection.strip("/"), {})

    async def get(self, collection: str, doc_id: str) -> Document | None:
        async with self._lock:
            doc = self._coll(collection).get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    async def set(self, collection: str, doc_id: str, data: Document) -> None:
        async with self._lock:
            self._coll(collection)[doc_id] = copy.deepcopy(dict(data))

    async def update(self, collection: str, doc_id: str, fields: Document) -> None:
        async with self._lock:
            coll = self._coll(collection)
            if doc_id not in coll:
                raise DocumentNotFound(collection, doc_id)
            coll[doc_id].update(copy.deepcopy(dict(fields)))

    async def delete(self, collection: str, doc_id: str) -> None:
        async with self._lock:
            self._coll(collection).pop(doc_id, None)

    async def query(
            self,
            collection: str,
            *,
            where: Sequence[WhereClause] = (),
            order_by: str | None = None,
            descending: bool = False,
    ) -> list[tuple[str, Document]]:
        async with self._lock:
            items = [
                (doc_id, copy.deepcopy(doc))
                for doc_id, doc in self._coll(collection).items()
                if all(doc.get(field) == value for field, value in where)
            ]
        if order_by:
            items.sort(key=lambda item: _sort_key(item[1].get(order_by)), reverse=descending)
        return items

    def document_count(self, collection: str) -> int:
        return len(self._coll(collection))


class InMemoryIdentityProvider:
    """Email/password accounts kept in a dict; one signed-in account at a time."""

    def __init__(self) -> None:
        self._accounts: dict[str, tuple[str, str]] = {}  # email -> (uid, password)
        self._current: AuthAccount | None = None
        self._broadcaster = AuthStateBroadcaster()

    def current_account(self) -> AuthAccount | None:
        return self._current

    def add_listener(self, listener: AuthListener) -> None:
        self._broadcaster.add(listener)

    def remove_listener(self, listener: AuthListener) -> None:
        self._broadcaster.remove(listener)

    def _set_current(self, account: AuthAccount | None) -> None:
        self._current = account
        self._broadcaster.emit(account)

    async def sign_in(self, email: str, password: str) -> AuthAccount:
        key = email.strip().lower()
        entry = self._accounts.get(key)
        if entry is None:
            raise AuthError("There is no user record corresponding to this email.")
        uid, stored = entry
        if stored != password:
            raise AuthError("The password is invalid.")
        account = AuthAccount(uid=uid, email=key)
        self._set_current(account)
        logger.info("Signed in uid=%s", uid)
        return account

    async def create_account(self, email: str, password: str) -> AuthAccount:
        key = email.strip().lower()
        if key in self._accounts:
            raise AuthError("The email address is already in use by another account.")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthError("Password should be at least 6 characters.")
        uid = new_id()
        self._accounts[key] = (uid, password)
        account = AuthAccount(uid=uid, email=key)
        self._set_current(account)
        logger.info("Created account uid=%s", uid)
        return account

    async def sign_out(self) -> None:
        self._set_current(None)

    async def send_password_reset(self, email: str) -> None:
        key = email.strip().lower()
        if key not in self._accounts:
            raise AuthError("There is no user record corresponding to this email.")
        logger.info("Password reset requested email=%s", key)

    async def delete_account(self) -> None:
        if self._current is None:
            raise AuthError("No signed-in account to delete.")
        self._accounts.pop(self._current.email, None)
        self._set_current(None)
