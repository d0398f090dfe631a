# src/worksync/repositories/user_repository.py

from __future__ import annotations

import logging

from ..cache.live import LiveQuery
from ..cache.store import TABLE_USERS, CacheStore
from ..core.models import User, UserRole
from ..core.ports import DocumentStore
from ..core.result import Result
from ..remote.documents import USERS, user_from_document, user_to_document

logger = logging.getLogger(__name__)


class UserRepository:
    """User profiles: cache for reads, remote for writes and sync."""

    def __init__(self, cache: CacheStore, remote: DocumentStore) -> None:
        self._cache = cache
        self._remote = remote

    def get_user_by_id(self, user_id: str) -> User | None:
        try:
            return self._cache.get_user_by_id(user_id)
        except Exception:
            logger.exception("get_user_by_id failed user_id=%s", user_id)
            return None

    def get_user_by_email(self, email: str) -> User | None:
        try:
            return self._cache.get_user_by_email(email)
        except Exception:
            logger.exception("get_user_by_email failed")
            return None

    def get_users_by_role(self, role: UserRole) -> LiveQuery[list[User]]:
        return LiveQuery(self._cache, (TABLE_USERS,), lambda: self._cache.list_users_by_role(role))

    def get_all_active_users(self) -> LiveQuery[list[User]]:
        return LiveQuery(self._cache, (TABLE_USERS,), self._cache.list_active_users)

    async def update_user(self, user: User) -> Result[User]:
        try:
            self._cache.upsert_user(user)
            await self._remote.set(USERS, user.id, user_to_document(user))
            return Result.success(user)
        except Exception as e:
            logger.exception("update_user failed user_id=%s", user.id)
            return Result.from_exception(e, "Failed to update user")

    async def _set_active(self, user_id: str, is_active: bool) -> Result[None]:
        try:
            self._cache.set_user_active(user_id, is_active)
            await self._remote.update(USERS, user_id, {"isActive": is_active})
            logger.info("User %s active=%s", user_id, is_active)
            return Result.success()
        except Exception as e:
            logger.exception("set_active failed user_id=%s active=%s", user_id, is_active)
            verb = "activate" if is_active else "deactivate"
            return Result.from_exception(e, f"Failed to {verb} user")

    async def activate_user(self, user_id: str) -> Result[None]:
        return await self._set_active(user_id, True)

    async def deactivate_user(self, user_id: str) -> Result[None]:
        """Soft delete: the profile stays, but drops out of active listings."""
        return await self._set_active(user_id, False)

    async def delete_user(self, user_id: str) -> Result[None]:
        try:
            await self._remote.delete(USERS, user_id)
            self._cache.delete_user(user_id)
            return Result.success()
        except Exception as e:
            logger.exception("delete_user failed user_id=%s", user_id)
            return Result.from_exception(e, "Failed to delete user")

    async def fetch_active_users(self, role: UserRole | None = None) -> Result[list[User]]:
        """Direct remote read (no caching), e.g. for an assignee picker."""
        try:
            where: list[tuple[str, object]] = [("isActive", True)]
            if role is not None:
                where.append(("role", role.name))
            docs = await self._remote.query(USERS, where=where)
            users = [user_from_document(doc_id, data) for doc_id, data in docs]
            users.sort(key=lambda u: u.name.lower())
            return Result.success(users)
        except Exception as e:
            logger.exception("fetch_active_users failed role=%s", role)
            return Result.from_exception(e, "Failed to load users")

    async def sync_users(self) -> Result[int]:
        """Pull active remote profiles into the cache (no deletions)."""
        res = await self.fetch_active_users()
        if not res.ok:
            return Result.failure(res.error or "Failed to sync users")
        try:
            n = self._cache.upsert_users(res.value or [])
            logger.info("Synced users=%d", n)
            return Result.success(n)
        except Exception as e:
            logger.exception("sync_users cache write failed")
            return Result.from_exception(e, "Failed to sync users")

    def cache_user(self, user: User) -> None:
        try:
            self._cache.upsert_user(user)
        except Exception:
            logger.exception("cache_user failed user_id=%s", user.id)
