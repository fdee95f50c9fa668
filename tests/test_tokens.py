"""Unit tests for auth/tokens.py -- password hashing and session tokens.

Covers:
- bcrypt round trip and garbage hashes
- Claims survive encode/decode, unknown roles decode to role=None
- Expired tokens raise TokenExpiredError, tampered ones TokenInvalidError
- authenticate_user(): wrong password, unknown email, inactive account
"""

from __future__ import annotations

import os

os.environ.setdefault("DEBUG", "true")

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.models import Role, User
from auth.store import UserStore
from auth.tokens import (
    authenticate_user,
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)
from core.config import get_settings
from core.database import create_db_engine
from core.errors import AuthenticationError, AuthorizationError, TokenExpiredError, TokenInvalidError


def _user(**overrides) -> User:
    data = {
        "id": 7,
        "nombre": "Dirigente Aromos",
        "email": "dirigente@municipalidad.cl",
        "rol": "DIRIGENTE",
        "villa_id": 3,
    }
    data.update(overrides)
    return User(**data)


class TestPasswords:
    def test_round_trip(self):
        hashed = hash_password("clave123")
        assert hashed != "clave123"
        assert verify_password("clave123", hashed)
        assert not verify_password("otra", hashed)

    def test_garbage_hash_is_false(self):
        assert not verify_password("clave123", "not-a-bcrypt-hash")


class TestTokens:
    def test_claims_round_trip(self):
        identity = decode_access_token(create_access_token(_user()))
        assert identity.id == 7
        assert identity.email == "dirigente@municipalidad.cl"
        assert identity.role is Role.DIRIGENTE
        assert identity.villa_id == 3
        assert identity.is_dirigente and not identity.is_admin

    def test_admin_has_no_villa(self):
        identity = decode_access_token(create_access_token(_user(rol="ADMIN", villa_id=None)))
        assert identity.role is Role.ADMIN
        assert identity.villa_id is None

    def test_unknown_role_decodes_to_none(self):
        identity = decode_access_token(create_access_token(_user(rol="SUPERVISOR")))
        assert identity.role is None
        assert not identity.is_admin and not identity.is_dirigente

    def test_expired_token(self):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"sub": "7", "id": 7, "rol": "ADMIN", "iat": now - timedelta(hours=9), "exp": now - timedelta(hours=1)},
            get_settings().secret_key,
            algorithm="HS256",
        )
        with pytest.raises(TokenExpiredError):
            decode_access_token(token)

    def test_wrong_signature(self):
        token = jwt.encode({"id": 7, "rol": "ADMIN"}, "x" * 40, algorithm="HS256")
        with pytest.raises(TokenInvalidError):
            decode_access_token(token)

    def test_malformed(self):
        with pytest.raises(TokenInvalidError):
            decode_access_token("not.a.token")

    def test_missing_claims(self):
        token = jwt.encode({"sub": "7"}, get_settings().secret_key, algorithm="HS256")
        with pytest.raises(TokenInvalidError):
            decode_access_token(token)

    def test_token_errors_are_authentication_errors(self):
        assert issubclass(TokenExpiredError, AuthenticationError)
        assert issubclass(TokenInvalidError, AuthenticationError)


class TestAuthenticateUser:
    @pytest.fixture
    def store(self):
        engine = create_db_engine("sqlite:///:memory:")
        s = UserStore(engine)
        s.create_user(
            User(
                nombre="Ana Activa",
                email="ana@municipalidad.cl",
                rol="ADMIN",
                password_hash=hash_password("clave123"),
            )
        )
        s.create_user(
            User(
                nombre="Ines Inactiva",
                email="ines@municipalidad.cl",
                rol="ADMIN",
                password_hash=hash_password("clave123"),
                activo=False,
            )
        )
        yield s
        engine.dispose()

    def test_success(self, store):
        user = authenticate_user(store, "ana@municipalidad.cl", "clave123")
        assert user.nombre == "Ana Activa"

    def test_wrong_password(self, store):
        with pytest.raises(AuthenticationError, match="Credenciales inválidas"):
            authenticate_user(store, "ana@municipalidad.cl", "mala")

    def test_unknown_email(self, store):
        with pytest.raises(AuthenticationError, match="Credenciales inválidas"):
            authenticate_user(store, "nadie@municipalidad.cl", "clave123")

    def test_inactive_account(self, store):
        with pytest.raises(AuthorizationError, match="inactivo"):
            authenticate_user(store, "ines@municipalidad.cl", "clave123")
