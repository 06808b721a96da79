"""
tests/conftest.py -- Shared test fixtures for UserHub.

This module provides:
  - store / rbac: an in-memory UserStore with default roles seeded
  - service: an AuthService wired to the in-memory stores, a MagicMock mailer,
    and a TokenIssuer with throwaway keys
  - make_user: factory for users in any status
  - api_env: TestClient over the real FastAPI app with a patched lifespan

Design: unit fixtures use plain sqlite:///:memory: (single thread). The
TestClient fixture uses a named shared-memory URI because TestClient runs
sync route handlers in a thread pool; plain :memory: would give each worker
thread a blank schema.

DEBUG must be set before any app import so get_settings() auto-generates the
JWT secrets instead of raising.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

# CRITICAL: Set before any core/api import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import User, UserStatus
from auth.passwords import hash_password
from auth.rbac import RbacStore
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenIssuer
from core.config import SigningConfig

PASSWORD = "correct-horse-battery"

# bcrypt at the minimum cost keeps fixture setup fast; the verifier does not
# care about the cost factor stored in the hash.
_PASSWORD_HASH = hash_password(PASSWORD, rounds=4)


def make_signing_config(**overrides) -> SigningConfig:
    values = {
        "access_secret": "a" * 32 + "-access-test-key",
        "refresh_secret": "r" * 32 + "-refresh-test-key",
        "access_expires": timedelta(minutes=15),
        "refresh_expires": timedelta(days=7),
    }
    values.update(overrides)
    return SigningConfig(**values)


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def rbac(store: UserStore) -> RbacStore:
    r = RbacStore(store.engine)
    r.seed_defaults()
    return r


@pytest.fixture
def issuer() -> TokenIssuer:
    return TokenIssuer(make_signing_config())


@pytest.fixture
def mailer() -> MagicMock:
    m = MagicMock()
    m.send_email.return_value = True
    return m


@pytest.fixture
def service(store: UserStore, rbac: RbacStore, mailer: MagicMock, issuer: TokenIssuer) -> AuthService:
    return AuthService(
        users=store,
        permissions=rbac,
        mailer=mailer,
        issuer=issuer,
        app_url="https://app.example.test",
    )


@pytest.fixture
def make_user(store: UserStore, rbac: RbacStore):
    """Factory: make_user("ada", status=UserStatus.ACTIVE, verified=True, role="User")."""

    def _make(
        username: str = "ada",
        *,
        status: UserStatus = UserStatus.ACTIVE,
        verified: bool = True,
        role: str = "User",
        email: str | None = None,
    ) -> User:
        return store.create(
            User(
                username=username,
                email=email or f"{username}@example.test",
                name=username.title(),
                password_hash=_PASSWORD_HASH,
                role=store.find_role_by_name(role),
                status=status,
                email_verified_at=datetime.now(timezone.utc) if verified else None,
            )
        )

    return _make


# ---------------------------------------------------------------------------
# Integration fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: UserStore, rbac: RbacStore, mailer: MagicMock):
    """Return a lifespan that wires test collaborators into app.state."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.rbac = rbac
        app.state.auth_service = AuthService(
            users=user_store,
            permissions=rbac,
            mailer=mailer,
            issuer=TokenIssuer(make_signing_config()),
            app_url="https://app.example.test",
        )
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_env() -> Generator[tuple[TestClient, UserStore, MagicMock], None, None]:
    """Yield (client, user_store, mailer) for API integration tests.

    One TestClient per test module. Tests that depend on cookies should
    clear client.cookies first -- the jar is shared within the module.
    """
    suffix = os.urandom(4).hex()
    user_store = UserStore(f"sqlite:///file:test_auth_{suffix}?mode=memory&cache=shared&uri=true")
    rbac = RbacStore(user_store.engine)
    rbac.seed_defaults()
    mailer = MagicMock()
    mailer.send_email.return_value = True

    app.router.lifespan_context = _patch_lifespan(user_store, rbac, mailer)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, user_store, mailer

    user_store.close()


def create_active_user(user_store: UserStore, username: str, role: str = "User") -> User:
    """Insert an ACTIVE, verified user directly (bypassing registration)."""
    return user_store.create(
        User(
            username=username,
            email=f"{username}@example.test",
            name=username.title(),
            password_hash=_PASSWORD_HASH,
            role=user_store.find_role_by_name(role),
            status=UserStatus.ACTIVE,
            email_verified_at=datetime.now(timezone.utc),
        )
    )
