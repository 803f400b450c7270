# src/tasklist_sync/core/errors.py

"""
Error taxonomy.

- ValidationError: rejected locally before any I/O (empty title).
- AuthRequired: mutation attempted in cloud mode with nobody signed in.
- AuthError: identity provider rejected a sign-in/sign-up; carries AuthErrorKind.
- StoreError: create/update/delete/subscribe failed at the backend; carries StoreErrorKind.

Validation and authorization errors never leave the engine: its public methods
convert them into a False return (and, for AuthRequired, an auth_error message).
StoreError is logged at the call site and otherwise swallowed; the view keeps
whatever the last snapshot produced.
"""

from __future__ import annotations

from enum import StrEnum


class TaskSyncError(Exception):
    """Base class for all tasklist-sync errors."""


class ValidationError(TaskSyncError):
    pass


class AuthRequired(TaskSyncError):
    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or AUTH_REQUIRED_MESSAGE)


class AuthErrorKind(StrEnum):
    INVALID_EMAIL = "invalid-email"
    USER_DISABLED = "user-disabled"
    USER_NOT_FOUND = "user-not-found"
    WRONG_PASSWORD = "wrong-password"
    EMAIL_ALREADY_IN_USE = "email-already-in-use"
    WEAK_PASSWORD = "weak-password"
    UNKNOWN = "unknown"


class AuthError(TaskSyncError):
    def __init__(self, kind: AuthErrorKind, detail: str | None = None) -> None:
        self.kind = kind
        self.detail = detail
        super().__init__(f"{kind.value}: {detail}" if detail else kind.value)


class StoreErrorKind(StrEnum):
    PERMISSION_DENIED = "permission-denied"
    NOT_FOUND = "not-found"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"


class StoreError(TaskSyncError):
    def __init__(self, kind: StoreErrorKind, op: str, detail: str | None = None) -> None:
        self.kind = kind
        self.op = op
        self.detail = detail
        msg = f"{op} failed ({kind.value})"
        super().__init__(f"{msg}: {detail}" if detail else msg)


AUTH_REQUIRED_MESSAGE = "Sign in to manage your tasks."
AUTH_UNAVAILABLE_MESSAGE = (
    "Cannot reach the authentication service. Check your environment settings."
)

_AUTH_MESSAGES: dict[AuthErrorKind, str] = {
    AuthErrorKind.INVALID_EMAIL: "The email address is not valid.",
    AuthErrorKind.USER_DISABLED: "This account has been disabled. Contact an administrator.",
    AuthErrorKind.USER_NOT_FOUND: "No account was found for this email. Try signing up.",
    AuthErrorKind.WRONG_PASSWORD: "The password is incorrect.",
    AuthErrorKind.EMAIL_ALREADY_IN_USE: "This email is already registered. Try signing in.",
    AuthErrorKind.WEAK_PASSWORD: "Use a password of at least 6 characters.",
    AuthErrorKind.UNKNOWN: "Sign-in failed. Please try again later.",
}


def auth_error_message(kind: AuthErrorKind | str | None) -> str:
    """User-facing text for an auth failure (unknown kinds get the generic message)."""
    if kind is None:
        return _AUTH_MESSAGES[AuthErrorKind.UNKNOWN]
    try:
        return _AUTH_MESSAGES[AuthErrorKind(kind)]
    except ValueError:
        return _AUTH_MESSAGES[AuthErrorKind.UNKNOWN]
