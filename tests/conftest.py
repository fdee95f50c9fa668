"""
tests/conftest.py -- Shared test fixtures for the Padrón API tests.

This module provides:
  - _make_test_engine(): a fresh named shared-memory SQLite database
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - ApiEnv: the TestClient plus the stores behind it and a few seed helpers
  - api: function-scoped ApiEnv with one ADMIN account already created

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process. A uuid
suffix keeps every test on its own database.

The DEBUG env var must be set before any auth module import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# CRITICAL: Set DEBUG before any auth/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from api.limiter import limiter
from api.main import app
from audit.store import AuditStore
from auth.bruteforce import LoginAttemptTracker
from auth.models import Role, User
from auth.store import UserStore
from auth.tokens import create_access_token, hash_password
from core.database import create_db_engine
from registry.models import Villa
from registry.store import RegistryStore

ADMIN_EMAIL = "admin@municipalidad.cl"
ADMIN_PASSWORD = "Admin1234"


def _make_test_engine(prefix: str) -> Engine:
    url = f"sqlite:///file:test_{prefix}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    return create_db_engine(url)


def _patch_lifespan(
    users: UserStore,
    registry: RegistryStore,
    audit: AuditStore,
    tracker: LoginAttemptTracker,
):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see
    the isolated test DB rather than the configured DATABASE_URL.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = users
        app.state.registry = registry
        app.state.audit = audit
        app.state.login_tracker = tracker
        yield

    return test_lifespan


@dataclass
class ApiEnv:
    client: TestClient
    users: UserStore
    registry: RegistryStore
    audit: AuditStore
    tracker: LoginAttemptTracker
    admin: User
    admin_token: str

    @staticmethod
    def headers(token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    @property
    def admin_headers(self) -> dict[str, str]:
        return self.headers(self.admin_token)

    def make_villa(self, nombre: str = "Villa Los Aromos", cupo: int = 0) -> int:
        return self.registry.create_villa(Villa(nombre=nombre, cupo_maximo=cupo))

    def make_dirigente(
        self,
        villa_id: int,
        email: str = "dirigente@municipalidad.cl",
        password: str = "clave123",
        nombre: str = "Dirigente Aromos",
    ) -> tuple[User, str]:
        """Create a DIRIGENTE of villa_id and return (user, token)."""
        user_id = self.users.create_user(
            User(
                nombre=nombre,
                email=email,
                rol=Role.DIRIGENTE.value,
                villa_id=villa_id,
                password_hash=hash_password(password),
            )
        )
        user = self.users.get_by_id(user_id)
        return user, create_access_token(user)

    def audit_count(self) -> int:
        return len(self.audit.list_entries(1000))


@pytest.fixture
def api() -> Generator[ApiEnv, None, None]:
    """Yield an ApiEnv backed by a fresh database with one ADMIN account.

    The TestClient uses the real FastAPI app with a patched lifespan, so tests
    hit the real route handlers, middleware and exception handlers.
    """
    engine = _make_test_engine("api")
    users = UserStore(engine)
    admin_id = users.create_user(
        User(
            nombre="Admin Municipal",
            email=ADMIN_EMAIL,
            rol=Role.ADMIN.value,
            password_hash=hash_password(ADMIN_PASSWORD),
        )
    )
    admin = users.get_by_id(admin_id)
    registry = RegistryStore(engine)
    audit = AuditStore(engine)
    tracker = LoginAttemptTracker(max_attempts=5, window_seconds=600)

    app.router.lifespan_context = _patch_lifespan(users, registry, audit, tracker)
    limiter.reset()

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiEnv(
            client=client,
            users=users,
            registry=registry,
            audit=audit,
            tracker=tracker,
            admin=admin,
            admin_token=create_access_token(admin),
        )

    engine.dispose()
