# tests/test_firebase_auth.py

from __future__ import annotations

import json
import stat
from pathlib import Path
from urllib.parse import parse_qs

import httpx
import pytest

from tasklist_sync.auth.firebase_auth import FirebaseIdentityProvider, auth_error_kind_from_code
from tasklist_sync.core.errors import AuthError, AuthErrorKind
from tasklist_sync.core.models import Identity

PASSWORD = "secret1"


def _error(message: str) -> httpx.Response:
    return httpx.Response(400, json={"error": {"code": 400, "message": message}})


def _handler(request: httpx.Request) -> httpx.Response:
    assert request.url.params["key"] == "test-key"

    if request.url.host == "securetoken.googleapis.com":
        form = parse_qs(request.content.decode())
        if form.get("refresh_token") == ["rt-1"]:
            return httpx.Response(
                200,
                json={"id_token": "id-2", "refresh_token": "rt-2", "user_id": "u1"},
            )
        return _error("INVALID_REFRESH_TOKEN")

    body = json.loads(request.content)
    if request.url.path.endswith("accounts:signInWithPassword"):
        if body["email"] == "disabled@example.com":
            return _error("USER_DISABLED")
        if body["password"] != PASSWORD:
            return _error("INVALID_LOGIN_CREDENTIALS")
        return httpx.Response(
            200,
            json={"localId": "u1", "email": body["email"], "idToken": "id-1", "refreshToken": "rt-1"},
        )
    if request.url.path.endswith("accounts:signUp"):
        if len(body["password"]) < 6:
            return _error("WEAK_PASSWORD : Password should be at least 6 characters")
        return _error("EMAIL_EXISTS")
    return httpx.Response(404)


@pytest.fixture()
def http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(_handler))


def _provider(http_client: httpx.AsyncClient, session_path: Path | None = None) -> FirebaseIdentityProvider:
    return FirebaseIdentityProvider("test-key", http_client=http_client, session_path=session_path)


@pytest.mark.parametrize(
    ("code", "kind"),
    [
        ("INVALID_EMAIL", AuthErrorKind.INVALID_EMAIL),
        ("USER_DISABLED", AuthErrorKind.USER_DISABLED),
        ("EMAIL_NOT_FOUND", AuthErrorKind.USER_NOT_FOUND),
        ("INVALID_PASSWORD", AuthErrorKind.WRONG_PASSWORD),
        ("EMAIL_EXISTS", AuthErrorKind.EMAIL_ALREADY_IN_USE),
        ("WEAK_PASSWORD : Password should be at least 6 characters", AuthErrorKind.WEAK_PASSWORD),
        ("TOO_MANY_ATTEMPTS_TRY_LATER", AuthErrorKind.UNKNOWN),
        (None, AuthErrorKind.UNKNOWN),
    ],
)
def test_error_codes_map_to_kinds(code: str | None, kind: AuthErrorKind) -> None:
    assert auth_error_kind_from_code(code) is kind


@pytest.mark.asyncio
async def test_observers_get_current_identity_then_changes(http_client: httpx.AsyncClient) -> None:
    provider = _provider(http_client)
    seen: list[Identity | None] = []
    provider.observe_identity(seen.append)

    identity = await provider.sign_in("alice@example.com", PASSWORD)
    await provider.sign_out()

    assert identity == Identity(uid="u1", email="alice@example.com")
    assert seen == [None, identity, None]


@pytest.mark.asyncio
async def test_rejections_raise_auth_errors(http_client: httpx.AsyncClient) -> None:
    provider = _provider(http_client)

    with pytest.raises(AuthError) as wrong:
        await provider.sign_in("alice@example.com", "nope-nope")
    with pytest.raises(AuthError) as disabled:
        await provider.sign_in("disabled@example.com", PASSWORD)
    with pytest.raises(AuthError) as taken:
        await provider.sign_up("alice@example.com", PASSWORD)

    assert wrong.value.kind is AuthErrorKind.WRONG_PASSWORD
    assert disabled.value.kind is AuthErrorKind.USER_DISABLED
    assert taken.value.kind is AuthErrorKind.EMAIL_ALREADY_IN_USE
    assert provider.identity is None


@pytest.mark.asyncio
async def test_transport_errors_are_unknown() -> None:
    def _boom(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    provider = _provider(httpx.AsyncClient(transport=httpx.MockTransport(_boom)))

    with pytest.raises(AuthError) as exc_info:
        await provider.sign_in("alice@example.com", PASSWORD)
    assert exc_info.value.kind is AuthErrorKind.UNKNOWN


@pytest.mark.asyncio
async def test_session_is_persisted_and_restored(http_client: httpx.AsyncClient, tmp_path: Path) -> None:
    session = tmp_path / "session.json"
    first = _provider(http_client, session)
    await first.sign_in("alice@example.com", PASSWORD)

    saved = json.loads(session.read_text("utf-8"))
    assert saved == {"uid": "u1", "email": "alice@example.com", "refresh_token": "rt-1"}
    assert "password" not in session.read_text("utf-8")
    assert stat.S_IMODE(session.stat().st_mode) == 0o600

    second = _provider(http_client, session)
    seen: list[Identity | None] = []
    second.observe_identity(seen.append)
    restored = await second.restore_session()

    assert restored == Identity(uid="u1", email="alice@example.com")
    assert seen == [None, restored]
    assert json.loads(session.read_text("utf-8"))["refresh_token"] == "rt-2"


@pytest.mark.asyncio
async def test_bad_session_stays_signed_out(http_client: httpx.AsyncClient, tmp_path: Path) -> None:
    session = tmp_path / "session.json"
    session.write_text(json.dumps({"uid": "u1", "refresh_token": "revoked"}), "utf-8")

    provider = _provider(http_client, session)

    assert await provider.restore_session() is None
    assert provider.identity is None


@pytest.mark.asyncio
async def test_sign_out_removes_session_file(http_client: httpx.AsyncClient, tmp_path: Path) -> None:
    session = tmp_path / "session.json"
    provider = _provider(http_client, session)
    await provider.sign_in("alice@example.com", PASSWORD)
    assert session.exists()

    await provider.sign_out()

    assert not session.exists()


def test_api_key_is_required() -> None:
    with pytest.raises(ValueError):
        FirebaseIdentityProvider("  ")
