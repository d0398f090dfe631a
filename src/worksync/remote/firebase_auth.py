# src/worksync/remote/firebase_auth.py

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..core.errors import AuthError
from ..core.ports import AuthAccount, AuthListener, AuthStateBroadcaster

logger = logging.getLogger(__name__)

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1"

# Identity Toolkit error codes -> text we can show to the user.
_ERROR_MESSAGES: dict[str, str] = {
    "EMAIL_NOT_FOUND": "There is no user record corresponding to this email.",
    "INVALID_PASSWORD": "The password is invalid.",
    "INVALID_LOGIN_CREDENTIALS": "Invalid email or password.",
    "USER_DISABLED": "This account has been disabled.",
    "EMAIL_EXISTS": "The email address is already in use by another account.",
    "INVALID_EMAIL": "The email address is badly formatted.",
    "WEAK_PASSWORD": "Password should be at least 6 characters.",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "Too many attempts. Try again later.",
    "OPERATION_NOT_ALLOWED": "Password sign-in is disabled for this project.",
    "INVALID_ID_TOKEN": "Your session has expired. Please log in again.",
    "USER_NOT_FOUND": "There is no user record corresponding to this account.",
    "CREDENTIAL_TOO_OLD_LOGIN_AGAIN": "Please log in again before deleting the account.",
}


def friendly_auth_error(code: str) -> str:
    """
    Map a provider error code to a readable message.

    Codes may carry a detail suffix: "WEAK_PASSWORD : Password should be ...".
    """
    key = (code or "").split(":", 1)[0].strip().upper()
    return _ERROR_MESSAGES.get(key, "Authentication failed")


class FirebaseIdentityProvider:
    """
    Email/password auth against the Firebase Identity Toolkit REST API.

    Only the current account's tokens are kept, in memory; nothing is persisted.
    """

    def __init__(self, settings: Any | None = None, *, client: httpx.AsyncClient | None = None) -> None:
        api_key = (getattr(settings, "firebase_api_key", None) or "").strip() if settings is not None else ""
        if not api_key:
            raise RuntimeError("Firebase API key is not set. Set WORKSYNC_FIREBASE_API_KEY in your .env.")

        timeout_s = float(getattr(settings, "auth_timeout_seconds", 15.0) or 15.0)

        self._api_key = api_key
        self._client = client or httpx.AsyncClient(
            base_url=IDENTITY_TOOLKIT_URL,
            timeout=httpx.Timeout(timeout_s, connect=5.0),
        )
        self._current: AuthAccount | None = None
        self._broadcaster = AuthStateBroadcaster()

    async def aclose(self) -> None:
        await self._client.aclose()

    def current_account(self) -> AuthAccount | None:
        return self._current

    def add_listener(self, listener: AuthListener) -> None:
        self._broadcaster.add(listener)

    def remove_listener(self, listener: AuthListener) -> None:
        self._broadcaster.remove(listener)

    def _set_current(self, account: AuthAccount | None) -> None:
        self._current = account
        self._broadcaster.emit(account)

    async def _post(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            resp = await self._client.post(f"/accounts:{endpoint}", params={"key": self._api_key}, json=payload)
        except httpx.HTTPError as e:
            logger.warning("Identity Toolkit request failed endpoint=%s: %s", endpoint, e)
            raise AuthError("Network error. Check your connection and try again.") from e

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if resp.is_error:
            err = data.get("error") if isinstance(data.get("error"), dict) else {}
            code = str(err.get("message") or resp.status_code)
            logger.info("Identity Toolkit rejected endpoint=%s code=%s", endpoint, code)
            raise AuthError(friendly_auth_error(code))

        return data

    @staticmethod
    def _account_from(data: dict[str, Any], fallback_email: str) -> AuthAccount:
        uid = data.get("localId")
        if not isinstance(uid, str) or not uid:
            raise AuthError("Authentication failed")
        return AuthAccount(
            uid=uid,
            email=str(data.get("email") or fallback_email),
            id_token=data.get("idToken"),
            refresh_token=data.get("refreshToken"),
        )

    async def sign_in(self, email: str, password: str) -> AuthAccount:
        data = await self._post(
            "signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        account = self._account_from(data, email)
        self._set_current(account)
        return account

    async def create_account(self, email: str, password: str) -> AuthAccount:
        data = await self._post(
            "signUp",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        account = self._account_from(data, email)
        self._set_current(account)
        return account

    async def sign_out(self) -> None:
        # Stateless tokens: forgetting them is the sign-out.
        self._set_current(None)

    async def send_password_reset(self, email: str) -> None:
        await self._post("sendOobCode", {"requestType": "PASSWORD_RESET", "email": email})

    async def delete_account(self) -> None:
        account = self._current
        if account is None or not account.id_token:
            raise AuthError("No signed-in account to delete.")
        await self._post("delete", {"idToken": account.id_token})
        self._set_current(None)
