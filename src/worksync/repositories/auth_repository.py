# src/worksync/repositories/auth_repository.py

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator

from ..cache.store import CacheStore
from ..core.models import User, UserRole, now_ms
from ..core.ports import AuthAccount, DocumentStore, IdentityProvider
from ..core.result import Result
from ..remote.documents import USERS, user_from_document, user_to_document

logger = logging.getLogger(__name__)


class AuthRepository:
    """
    Identity provider + user profile documents.

    The provider only knows uid/email; the profile (name, role, active flag)
    lives in users/{uid} and is mirrored into the cache on login.
    """

    def __init__(self, cache: CacheStore, remote: DocumentStore, identity: IdentityProvider) -> None:
        self._cache = cache
        self._remote = remote
        self._identity = identity

    async def _load_profile(self, uid: str) -> User | None:
        data = await self._remote.get(USERS, uid)
        if data is None:
            return None
        return user_from_document(uid, data)

    async def login(self, email: str, password: str) -> Result[User]:
        try:
            account = await self._identity.sign_in(email, password)
            user = await self._load_profile(account.uid)
            if user is None:
                return Result.failure("User data not found")
            self._cache.upsert_user(user)
            logger.info("Login ok uid=%s role=%s", user.id, user.role.value)
            return Result.success(user)
        except Exception as e:
            logger.warning("Login failed: %s", e)
            return Result.from_exception(e, "Login failed")

    async def register(self, email: str, password: str, name: str, role: UserRole) -> Result[User]:
        try:
            account = await self._identity.create_account(email, password)
            user = User(
                id=account.uid,
                email=email,
                name=name,
                role=role,
                created_at=now_ms(),
                is_active=True,
            )
            await self._remote.set(USERS, user.id, user_to_document(user))
            self._cache.upsert_user(user)
            logger.info("Registered uid=%s role=%s", user.id, role.value)
            return Result.success(user)
        except Exception as e:
            logger.warning("Registration failed: %s", e)
            return Result.from_exception(e, "Registration failed")

    async def logout(self) -> Result[None]:
        try:
            await self._identity.sign_out()
            self._cache.delete_all_users()
            return Result.success()
        except Exception as e:
            logger.exception("Logout failed")
            return Result.from_exception(e, "Logout failed")

    async def get_current_user(self) -> User | None:
        """Signed-in user's profile: cache first, then the remote document."""
        account = self._identity.current_account()
        if account is None:
            return None
        try:
            cached = self._cache.get_user_by_id(account.uid)
            if cached is not None:
                return cached
            user = await self._load_profile(account.uid)
            if user is not None:
                self._cache.upsert_user(user)
            return user
        except Exception:
            logger.exception("get_current_user failed uid=%s", account.uid)
            return None

    def is_user_logged_in(self) -> bool:
        return self._identity.current_account() is not None

    async def current_user_changes(self) -> AsyncIterator[User | None]:
        """
        Emit the signed-in user (or None) now and after every auth-state change.
        A sign-in whose profile cannot be loaded yet is not emitted.

        Stops when the consumer stops iterating; the provider listener is removed.
        """
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[AuthAccount | None] = asyncio.Queue()

        def _listener(account: AuthAccount | None) -> None:
            with contextlib.suppress(RuntimeError):
                loop.call_soon_threadsafe(queue.put_nowait, account)

        self._identity.add_listener(_listener)
        try:
            yield await self.get_current_user()
            while True:
                account = await queue.get()
                if account is None:
                    yield None
                    continue
                # During registration the account exists before its profile document.
                user = await self.get_current_user()
                if user is not None:
                    yield user
        finally:
            self._identity.remove_listener(_listener)

    async def reset_password(self, email: str) -> Result[None]:
        try:
            await self._identity.send_password_reset(email)
            return Result.success()
        except Exception as e:
            logger.warning("Password reset failed: %s", e)
            return Result.from_exception(e, "Failed to send password reset email")

    async def update_profile(self, user: User) -> Result[User]:
        try:
            await self._remote.set(USERS, user.id, user_to_document(user))
            self._cache.upsert_user(user)
            return Result.success(user)
        except Exception as e:
            logger.exception("update_profile failed uid=%s", user.id)
            return Result.from_exception(e, "Failed to update profile")

    async def delete_account(self) -> Result[None]:
        account = self._identity.current_account()
        if account is None:
            return Result.failure("You are not logged in.")
        try:
            await self._remote.delete(USERS, account.uid)
            self._cache.delete_user(account.uid)
            await self._identity.delete_account()
            logger.info("Account deleted uid=%s", account.uid)
            return Result.success()
        except Exception as e:
            logger.exception("delete_account failed uid=%s", account.uid)
            return Result.from_exception(e, "Failed to delete account")
