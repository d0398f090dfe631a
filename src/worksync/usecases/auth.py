# src/worksync/usecases/auth.py

from __future__ import annotations

"""
Auth use cases: input validation in front of AuthRepository.

A failed check returns a failure Result without touching the identity provider.
"""

import re

from ..core.models import User, UserRole
from ..core.result import Result
from ..repositories.auth_repository import AuthRepository

MIN_PASSWORD_LENGTH = 6
MIN_NAME_LENGTH = 2

EMAIL_PATTERN = re.compile(
    r"[a-zA-Z0-9+._%\-]{1,256}"
    r"@"
    r"[a-zA-Z0-9][a-zA-Z0-9\-]{0,64}"
    r"(\.[a-zA-Z0-9][a-zA-Z0-9\-]{0,25})+"
)


def is_valid_email(email: str) -> bool:
    return EMAIL_PATTERN.fullmatch(email) is not None


def validate_credentials(email: str, password: str) -> str | None:
    if not email.strip():
        return "Email cannot be empty"
    if not password.strip():
        return "Password cannot be empty"
    if not is_valid_email(email.strip()):
        return "Please enter a valid email address"
    if len(password) < MIN_PASSWORD_LENGTH:
        return "Password must be at least 6 characters"
    return None


class LoginUseCase:
    def __init__(self, auth_repository: AuthRepository) -> None:
        self._repo = auth_repository

    async def __call__(self, email: str, password: str) -> Result[User]:
        error = validate_credentials(email, password)
        if error:
            return Result.failure(error)
        return await self._repo.login(email.strip(), password)


class RegisterUseCase:
    def __init__(self, auth_repository: AuthRepository) -> None:
        self._repo = auth_repository

    async def __call__(
            self,
            email: str,
            password: str,
            confirm_password: str,
            name: str,
            role: UserRole = UserRole.EMPLOYEE,
    ) -> Result[User]:
        if not email.strip():
            return Result.failure("Email cannot be empty")
        if not password.strip():
            return Result.failure("Password cannot be empty")
        if not name.strip():
            return Result.failure("Name cannot be empty")
        if not is_valid_email(email.strip()):
            return Result.failure("Please enter a valid email address")
        if len(password) < MIN_PASSWORD_LENGTH:
            return Result.failure("Password must be at least 6 characters")
        if password != confirm_password:
            return Result.failure("Passwords do not match")
        if len(name.strip()) < MIN_NAME_LENGTH:
            return Result.failure("Name must be at least 2 characters")

        return await self._repo.register(email.strip(), password, name.strip(), role)


class LogoutUseCase:
    def __init__(self, auth_repository: AuthRepository) -> None:
        self._repo = auth_repository

    async def __call__(self) -> Result[None]:
        return await self._repo.logout()
