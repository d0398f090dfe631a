# src/worksync/remote/firestore.py

from __future__ import annotations

"""
Cloud Firestore adapter for the DocumentStore port.

Thin: the repositories own the document layout (remote.documents); this class
only maps port calls to google-cloud-firestore's AsyncClient and converts SDK
errors into our own exception types.
"""

import inspect
import logging
from collections.abc import Sequence
from typing import Any

from google.api_core import exceptions as gexc
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from ..core.errors import DocumentNotFound, RemoteStoreError
from ..core.ports import Document, WhereClause

logger = logging.getLogger(__name__)


class FirestoreDocumentStore:
    def __init__(self, settings: Any | None = None, *, client: firestore.AsyncClient | None = None) -> None:
        if client is None:
            if settings is None:
                raise RuntimeError("FirestoreDocumentStore requires settings or an explicit client")

            project = (getattr(settings, "firebase_project_id", "") or "").strip()
            if not project:
                raise RuntimeError("firebase_project_id is not configured")
            database = (getattr(settings, "firestore_database", "") or "").strip() or None

            client = firestore.AsyncClient(project=project, database=database)
            logger.info("Firestore client ready project=%s database=%s", project, database or "(default)")

        self._client = client

    async def aclose(self) -> None:
        try:
            res = self._client.close()
            if inspect.isawaitable(res):
                await res
        except Exception:
            logger.debug("Firestore client close failed", exc_info=True)

    async def get(self, collection: str, doc_id: str) -> Document | None:
        try:
            snap = await self._client.collection(collection).document(doc_id).get()
        except gexc.GoogleAPICallError as e:
            raise RemoteStoreError(f"Failed to read {collection}/{doc_id}") from e
        if not snap.exists:
            return None
        return snap.to_dict() or {}

    async def set(self, collection: str, doc_id: str, data: Document) -> None:
        try:
            await self._client.collection(collection).document(doc_id).set(dict(data))
        except gexc.GoogleAPICallError as e:
            raise RemoteStoreError(f"Failed to write {collection}/{doc_id}") from e

    async def update(self, collection: str, doc_id: str, fields: Document) -> None:
        try:
            await self._client.collection(collection).document(doc_id).update(dict(fields))
        except gexc.NotFound as e:
            raise DocumentNotFound(collection, doc_id) from e
        except gexc.GoogleAPICallError as e:
            raise RemoteStoreError(f"Failed to update {collection}/{doc_id}") from e

    async def delete(self, collection: str, doc_id: str) -> None:
        try:
            await self._client.collection(collection).document(doc_id).delete()
        except gexc.GoogleAPICallError as e:
            raise RemoteStoreError(f"Failed to delete {collection}/{doc_id}") from e

    async def query(
            self,
            collection: str,
            *,
            where: Sequence[WhereClause] = (),
            order_by: str | None = None,
            descending: bool = False,
    ) -> list[tuple[str, Document]]:
        q: Any = self._client.collection(collection)
        for field, value in where:
            q = q.where(filter=FieldFilter(field, "==", value))
        if order_by:
            direction = firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
            q = q.order_by(order_by, direction=direction)

        out: list[tuple[str, Document]] = []
        try:
            async for snap in q.stream():
                out.append((snap.id, snap.to_dict() or {}))
        except gexc.GoogleAPICallError as e:
            raise RemoteStoreError(f"Failed to query {collection}") from e
        return out
