# src/worksync/viewmodels/user_viewmodel.py

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field

from ..core.models import User, UserRole
from ..repositories.user_repository import UserRepository
from .base import StateFlow, ViewModel


@dataclass(frozen=True, slots=True)
class UserUiState:
    employees: list[User] = field(default_factory=list)
    all_users: list[User] = field(default_factory=list)
    is_loading: bool = False
    error_message: str | None = None


class UserViewModel(ViewModel):
    """Assignee pickers: reads the remote user list directly, bypassing the cache."""

    def __init__(self, user_repository: UserRepository) -> None:
        super().__init__()
        self._repo = user_repository
        self.state: StateFlow[UserUiState] = StateFlow(UserUiState())

    def _set(self, **changes) -> None:
        self.state.update(lambda s: dataclasses.replace(s, **changes))

    async def load_employees(self) -> list[User]:
        self._set(is_loading=True, error_message=None)
        res = await self._repo.fetch_active_users(UserRole.EMPLOYEE)
        if not res.ok:
            self._set(is_loading=False, error_message=res.error or "Failed to load employees")
            return []
        employees = res.value or []
        self._set(
            employees=employees,
            is_loading=False,
            error_message=None if employees else "No employees found",
        )
        return employees

    async def load_all_users(self) -> list[User]:
        self._set(is_loading=True, error_message=None)
        res = await self._repo.fetch_active_users()
        if not res.ok:
            self._set(is_loading=False, error_message=res.error or "Failed to load users")
            return []
        users = res.value or []
        self._set(
            all_users=users,
            is_loading=False,
            error_message=None if users else "No users found",
        )
        return users

    async def refresh_employees_once(self) -> list[User]:
        return await self.load_employees()
