# src/worksync/core/session.py

from __future__ import annotations

from dataclasses import dataclass

from .errors import AuthError
from .models import User


@dataclass(slots=True)
class Session:
    """
    Who is signed in, passed explicitly to whatever needs identity.

    The auth view model keeps it current; task creation, role checks and
    per-user sync read it instead of asking the identity provider.
    """

    user: User | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def is_admin(self) -> bool:
        return self.user is not None and self.user.is_admin

    def require_user(self) -> User:
        if self.user is None:
            raise AuthError("You are not logged in.")
        return self.user

    def clear(self) -> None:
        self.user = None
