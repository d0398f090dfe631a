# src/worksync/core/errors.py

from __future__ import annotations


class WorkSyncError(Exception):
    """Base for errors whose message is safe to show to the user as-is."""


class ValidationError(WorkSyncError):
    """Blank or malformed input, caught before any I/O."""


class RemoteStoreError(WorkSyncError):
    """The remote document store rejected or failed a call."""


class DocumentNotFound(RemoteStoreError):
    def __init__(self, collection: str, doc_id: str) -> None:
        super().__init__(f"Document not found: {collection}/{doc_id}")
        self.collection = collection
        self.doc_id = doc_id


class AuthError(WorkSyncError):
    """The identity provider rejected a call (bad credentials, email taken, ...)."""


def friendly_error_message(err: BaseException, default: str) -> str:
    """
    User-facing text for a failed operation.

    Our own typed errors already carry readable messages; anything else
    (driver errors, SDK internals) degrades to the generic `default`.
    """
    if isinstance(err, WorkSyncError):
        msg = str(err).strip()
        return msg or default
    return default
