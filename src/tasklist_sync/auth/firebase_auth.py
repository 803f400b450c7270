# src/tasklist_sync/auth/firebase_auth.py

from __future__ import annotations

import contextlib
import json
import logging
import os
from pathlib import Path
from typing import Any

import httpx

from ..core.errors import AuthError, AuthErrorKind
from ..core.models import Identity
from ..core.ports import IdentityCallback, Unsubscribe

logger = logging.getLogger(__name__)

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1"
SECURE_TOKEN_URL = "https://securetoken.googleapis.com/v1/token"

# REST error codes -> client-side kinds.
_ERROR_KINDS: dict[str, AuthErrorKind] = {
    "INVALID_EMAIL": AuthErrorKind.INVALID_EMAIL,
    "MISSING_EMAIL": AuthErrorKind.INVALID_EMAIL,
    "USER_DISABLED": AuthErrorKind.USER_DISABLED,
    "EMAIL_NOT_FOUND": AuthErrorKind.USER_NOT_FOUND,
    "USER_NOT_FOUND": AuthErrorKind.USER_NOT_FOUND,
    "INVALID_PASSWORD": AuthErrorKind.WRONG_PASSWORD,
    "INVALID_LOGIN_CREDENTIALS": AuthErrorKind.WRONG_PASSWORD,
    "EMAIL_EXISTS": AuthErrorKind.EMAIL_ALREADY_IN_USE,
    "WEAK_PASSWORD": AuthErrorKind.WEAK_PASSWORD,
}


def auth_error_kind_from_code(code: str | None) -> AuthErrorKind:
    """
    Map a REST error message onto AuthErrorKind.

    Messages may carry a suffix, e.g. "WEAK_PASSWORD : Password should be at least 6 characters".
    """
    if not code:
        return AuthErrorKind.UNKNOWN
    head = code.split(":", 1)[0].strip().split(" ", 1)[0]
    return _ERROR_KINDS.get(head, AuthErrorKind.UNKNOWN)


def _error_code(resp: httpx.Response) -> str | None:
    try:
        body = resp.json()
    except ValueError:
        return None
    err = body.get("error") if isinstance(body, dict) else None
    if isinstance(err, dict):
        msg = err.get("message")
        return msg if isinstance(msg, str) else None
    return None


def _load_session(path: Path) -> dict[str, Any]:
    val = json.loads(path.read_text("utf-8"))
    if isinstance(val, dict):
        return val
    raise ValueError("Expected JSON object")


def _atomic_write_json(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    tmp.write_text(json.dumps(data, ensure_ascii=False), "utf-8")
    os.replace(tmp, path)
    with contextlib.suppress(OSError):
        # Holds a refresh token: keep it private.
        os.chmod(path, 0o600)


class FirebaseIdentityProvider:
    """
    Email/password identity provider backed by the Firebase Auth REST API.

    Observers are called once on registration with the current identity and then
    on every sign-in/sign-out. Only the refresh token, uid and email are written to
    session.json (never the password).
    """

    def __init__(
            self,
            api_key: str,
            *,
            http_client: httpx.AsyncClient | None = None,
            session_path: str | Path | None = None,
            timeout_seconds: float = 10.0,
    ) -> None:
        if not api_key or not api_key.strip():
            raise ValueError("Firebase API key is required")
        self._api_key = api_key.strip()
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds))
        self._session_path = Path(session_path) if session_path else None

        self._identity: Identity | None = None
        self._refresh_token: str | None = None

        self._observers: dict[int, IdentityCallback] = {}
        self._next_observer_id = 0

    # ---- observation ----

    @property
    def identity(self) -> Identity | None:
        return self._identity

    def observe_identity(self, callback: IdentityCallback) -> Unsubscribe:
        key = self._next_observer_id
        self._next_observer_id += 1
        self._observers[key] = callback
        callback(self._identity)

        def _remove() -> None:
            self._observers.pop(key, None)

        return _remove

    def _emit(self) -> None:
        for cb in list(self._observers.values()):
            try:
                cb(self._identity)
            except Exception:
                logger.exception("Identity observer failed.")

    # ---- REST calls ----

    async def _post(self, url: str, **kwargs: Any) -> dict[str, Any]:
        try:
            resp = await self._http.post(url, params={"key": self._api_key}, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("Auth request failed: %r", e)
            raise AuthError(AuthErrorKind.UNKNOWN, e.__class__.__name__) from e

        if resp.status_code >= 400:
            code = _error_code(resp)
            raise AuthError(auth_error_kind_from_code(code), code)

        try:
            body = resp.json()
        except ValueError as e:
            raise AuthError(AuthErrorKind.UNKNOWN, "invalid JSON response") from e
        if not isinstance(body, dict):
            raise AuthError(AuthErrorKind.UNKNOWN, "unexpected response")
        return body

    async def _password_auth(self, endpoint: str, email: str, password: str) -> Identity:
        body = await self._post(
            f"{IDENTITY_TOOLKIT_URL}/accounts:{endpoint}",
            json={"email": email, "password": password, "returnSecureToken": True},
        )
        uid = body.get("localId")
        if not uid:
            raise AuthError(AuthErrorKind.UNKNOWN, "response without localId")

        identity = Identity(uid=str(uid), email=body.get("email") or email)
        self._start_session(identity, body.get("refreshToken"))
        return identity

    async def sign_in(self, email: str, password: str) -> Identity:
        identity = await self._password_auth("signInWithPassword", email, password)
        logger.info("Signed in uid=%s", identity.uid)
        return identity

    async def sign_up(self, email: str, password: str) -> Identity:
        identity = await self._password_auth("signUp", email, password)
        logger.info("Account created uid=%s", identity.uid)
        return identity

    async def sign_out(self) -> None:
        self._identity = None
        self._refresh_token = None
        if self._session_path is not None:
            try:
                self._session_path.unlink(missing_ok=True)
            except OSError:
                logger.warning("Failed to remove session file %s", self._session_path, exc_info=True)
        logger.info("Signed out.")
        self._emit()

    # ---- session persistence ----

    def _start_session(self, identity: Identity, refresh_token: Any) -> None:
        self._identity = identity
        self._refresh_token = refresh_token if isinstance(refresh_token, str) else None
        self._save_session()
        self._emit()

    def _save_session(self) -> None:
        if self._session_path is None or self._identity is None or not self._refresh_token:
            return
        try:
            _atomic_write_json(
                self._session_path,
                {
                    "uid": self._identity.uid,
                    "email": self._identity.email,
                    "refresh_token": self._refresh_token,
                },
            )
        except OSError:
            logger.exception("Failed to write session file %s", self._session_path)

    async def restore_session(self) -> Identity | None:
        """
        Re-establish the previous session from session.json (if any).

        Failure is not fatal: the provider just stays signed out.
        """
        path = self._session_path
        if path is None or not path.exists():
            return None

        try:
            data = _load_session(path)
            refresh_token = data.get("refresh_token")
            if not refresh_token:
                raise ValueError("session.json is missing refresh_token")
            body = await self._post(
                SECURE_TOKEN_URL,
                data={"grant_type": "refresh_token", "refresh_token": refresh_token},
            )
        except (AuthError, ValueError, OSError) as e:
            logger.warning("Failed to restore auth session from %s: %r", path, e)
            return None

        uid = body.get("user_id") or data.get("uid")
        if not uid:
            logger.warning("Token refresh returned no user id; staying signed out.")
            return None

        identity = Identity(uid=str(uid), email=data.get("email"))
        self._start_session(identity, body.get("refresh_token") or refresh_token)
        logger.info("Auth session restored uid=%s", identity.uid)
        return identity

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()
