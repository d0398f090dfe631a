# src/worksync/viewmodels/auth_viewmodel.py

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass

from ..core.models import User, UserRole
from ..core.session import Session
from ..repositories.auth_repository import AuthRepository
from ..usecases.auth import LoginUseCase, LogoutUseCase, RegisterUseCase
from .base import StateFlow, ViewModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AuthUiState:
    is_loading: bool = False
    is_logged_in: bool = False
    current_user: User | None = None
    error_message: str | None = None
    success_message: str | None = None


class AuthViewModel(ViewModel):
    def __init__(
        self,
        login_use_case: LoginUseCase,
        register_use_case: RegisterUseCase,
        logout_use_case: LogoutUseCase,
        auth_repository: AuthRepository,
        session: Session,
    ) -> None:
        super().__init__()
        self._login = login_use_case
        self._register = register_use_case
        self._logout = logout_use_case
        self._repo = auth_repository
        self._session = session
        self.state: StateFlow[AuthUiState] = StateFlow(AuthUiState())

    def _set(self, **changes) -> None:
        self.state.update(lambda s: dataclasses.replace(s, **changes))

    def _apply_user(self, user: User | None) -> None:
        self._session.user = user
        self._set(is_logged_in=user is not None, current_user=user)

    async def start(self) -> None:
        """Initial auth check, then follow auth-state changes in the background."""
        logged_in = self._repo.is_user_logged_in()
        self._apply_user(await self._repo.get_current_user() if logged_in else None)
        self._launch("auth_state", self._observe_auth_state)

    async def _observe_auth_state(self) -> None:
        async for user in self._repo.current_user_changes():
            self._apply_user(user)

    async def login(self, email: str, password: str) -> None:
        self._set(is_loading=True, error_message=None)
        res = await self._login(email, password)
        if res.ok:
            self._session.user = res.value
            self._set(
                is_loading=False,
                is_logged_in=True,
                current_user=res.value,
                success_message="Login successful!",
            )
        else:
            self._set(is_loading=False, error_message=res.error or "Login failed")

    async def register(
        self,
        email: str,
        password: str,
        confirm_password: str,
        name: str,
        role: UserRole,
    ) -> None:
        self._set(is_loading=True, error_message=None)
        res = await self._register(email, password, confirm_password, name, role)
        if res.ok:
            self._session.user = res.value
            self._set(
                is_loading=False,
                is_logged_in=True,
                current_user=res.value,
                success_message="Registration successful!",
            )
        else:
            self._set(is_loading=False, error_message=res.error or "Registration failed")

    async def logout(self) -> None:
        self._set(is_loading=True)
        res = await self._logout()
        if res.ok:
            self._session.clear()
            self._set(
                is_loading=False,
                is_logged_in=False,
                current_user=None,
                success_message="Logged out successfully",
            )
        else:
            self._set(is_loading=False, error_message=res.error or "Logout failed")

    def clear_messages(self) -> None:
        self._set(error_message=None, success_message=None)
