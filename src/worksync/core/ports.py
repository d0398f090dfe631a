# src/worksync/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the repositories.

Repositories depend on Protocols instead of concrete SDK clients.
This keeps the remote backend / identity provider swappable (Firestore,
Firebase Auth, in-memory) and makes testing easier.
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

logger = logging.getLogger(__name__)

Document = dict[str, Any]
# Flat field map: str / int / bool / list[str] / None values.

WhereClause = tuple[str, Any]
# Equality filter: (field, value).


@dataclass(frozen=True, slots=True)
class AuthAccount:
    """Identity-provider view of a signed-in account (not the app-level User profile)."""

    uid: str
    email: str
    id_token: str | None = None
    refresh_token: str | None = None


AuthListener = Callable[[AuthAccount | None], None]


class DocumentStore(Protocol):
    """
    Remote document store.

    Collections are slash paths; nested collections are addressed as
    "<collection>/<doc_id>/<sub_collection>" (e.g. "tasks/abc/phases").
    """

    async def get(self, collection: str, doc_id: str) -> Document | None: ...

    async def set(self, collection: str, doc_id: str, data: Document) -> None: ...

    async def update(self, collection: str, doc_id: str, fields: Document) -> None:
        """Partial update. Raises DocumentNotFound if the document does not exist."""
        ...

    async def delete(self, collection: str, doc_id: str) -> None: ...

    async def query(
            self,
            collection: str,
            *,
            where: Sequence[WhereClause] = (),
            order_by: str | None = None,
            descending: bool = False,
    ) -> list[tuple[str, Document]]: ...


class IdentityProvider(Protocol):
    """
    External authentication service.

    Listeners are called with the current account (or None) on every
    auth-state change: sign-in, account creation, sign-out, deletion.
    """

    async def sign_in(self, email: str, password: str) -> AuthAccount: ...

    async def create_account(self, email: str, password: str) -> AuthAccount: ...

    async def sign_out(self) -> None: ...

    async def send_password_reset(self, email: str) -> None: ...

    async def delete_account(self) -> None: ...

    def current_account(self) -> AuthAccount | None: ...

    def add_listener(self, listener: AuthListener) -> None: ...

    def remove_listener(self, listener: AuthListener) -> None: ...


class AuthStateBroadcaster:
    """Listener bookkeeping shared by identity-provider adapters."""

    def __init__(self) -> None:
        self._listeners: list[AuthListener] = []

    def add(self, listener: AuthListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove(self, listener: AuthListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def emit(self, account: AuthAccount | None) -> None:
        for listener in list(self._listeners):
            try:
                listener(account)
            except Exception:
                logger.exception("Auth listener failed")
