"""Unit tests for auth/dependencies.py -- the bearer-token guards.

A throwaway FastAPI app mounts one route per guard, with the same AppError
handler as the real API, so the guards are exercised in isolation.
"""

from __future__ import annotations

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from api.main import app_error_handler
from auth.dependencies import admin_only, auth_required, dirigente_only
from auth.models import Identity, User
from auth.tokens import create_access_token
from core.errors import AppError


@pytest.fixture(scope="module")
def client():
    mini = FastAPI()
    mini.add_exception_handler(AppError, app_error_handler)

    @mini.get("/any")
    def any_role(identity: Identity = Depends(auth_required)):
        return {"id": identity.id}

    @mini.get("/admin")
    def admin(identity: Identity = Depends(admin_only)):
        return {"id": identity.id}

    @mini.get("/dirigente")
    def dirigente(identity: Identity = Depends(dirigente_only)):
        return {"villa_id": identity.villa_id}

    with TestClient(mini) as c:
        yield c


def _headers(rol: str, villa_id: int | None = None) -> dict[str, str]:
    user = User(id=5, nombre="Prueba", email="prueba@municipalidad.cl", rol=rol, villa_id=villa_id)
    return {"Authorization": f"Bearer {create_access_token(user)}"}


def test_missing_token_is_401(client):
    resp = client.get("/any")
    assert resp.status_code == 401
    assert resp.json()["code"] == "unauthorized"


def test_non_bearer_scheme_is_401(client):
    resp = client.get("/any", headers={"Authorization": "Basic YWRtaW46YWRtaW4="})
    assert resp.status_code == 401


def test_invalid_token_code(client):
    resp = client.get("/any", headers={"Authorization": "Bearer garbage"})
    assert resp.status_code == 401
    assert resp.json()["code"] == "token_invalid"


def test_any_role_passes_auth_required(client):
    assert client.get("/any", headers=_headers("DIRIGENTE", 2)).json() == {"id": 5}


def test_admin_only(client):
    assert client.get("/admin", headers=_headers("ADMIN")).status_code == 200
    resp = client.get("/admin", headers=_headers("DIRIGENTE", 2))
    assert resp.status_code == 403
    assert resp.json()["code"] == "forbidden"


def test_dirigente_only(client):
    assert client.get("/dirigente", headers=_headers("DIRIGENTE", 2)).json() == {"villa_id": 2}
    assert client.get("/dirigente", headers=_headers("ADMIN")).status_code == 403


def test_unknown_role_is_forbidden_everywhere(client):
    headers = _headers("SUPERVISOR")
    assert client.get("/any", headers=headers).status_code == 200
    assert client.get("/admin", headers=headers).status_code == 403
    assert client.get("/dirigente", headers=headers).status_code == 403
