"""
auth/tokens.py -- JWT and password hashing utilities.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       the identity claims the SPA needs (id, nombre, email, rol, villa_id)
       plus a fixed expiry (Settings.token_expire_seconds, 8 hours). There is
       no refresh mechanism. decode_access_token() raises TokenExpiredError
       or TokenInvalidError so the gate can tell the client which one.

  Passwords: bcrypt directly (no passlib wrapper). The _DUMMY_HASH constant
       enables timing equalization in authenticate_user() so response time
       does not reveal whether an email is registered.

Layer rule: no imports from api/, registry/ or audit/. Import from core/ is
allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from auth.models import Identity, Role
from core.config import get_settings
from core.errors import AuthenticationError, AuthorizationError, TokenExpiredError, TokenInvalidError

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("padron.auth")

_settings = get_settings()

_ALGORITHM = "HS256"

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash (cost factor from bcrypt.gensalt) of the plaintext password."""
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash.
        return False


# Computed once at module load so the first login is not measurably slower.
_DUMMY_HASH: str = hash_password("padron_timing_dummy")


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def create_access_token(user: User, expire_seconds: int = 0) -> str:
    """Encode a signed JWT with the user's identity claims.

    Args:
        user:           The authenticated user (must have an id).
        expire_seconds: Session duration override; 0 uses
                        Settings.token_expire_seconds.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user.id),
        "id": user.id,
        "nombre": user.nombre,
        "email": user.email,
        "rol": user.rol,
        "villa_id": user.villa_id,
        "iat": now,
        "exp": now + timedelta(seconds=duration),
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_access_token(token: str) -> Identity:
    """Verify a JWT and return the Identity it carries.

    Raises:
        TokenExpiredError: signature is valid but exp is in the past.
        TokenInvalidError: anything else (bad signature, malformed, missing claims).
    """
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise TokenExpiredError("La sesión ha expirado. Inicie sesión nuevamente.") from exc
    except JWTError as exc:
        raise TokenInvalidError("Token inválido. Inicie sesión nuevamente.") from exc

    if not isinstance(payload.get("id"), int) or "rol" not in payload:
        raise TokenInvalidError("Token inválido. Inicie sesión nuevamente.")

    villa_id = payload.get("villa_id")
    return Identity(
        id=payload["id"],
        nombre=payload.get("nombre") or "",
        email=payload.get("email") or "",
        role=Role.parse(payload["rol"]),
        villa_id=villa_id if isinstance(villa_id, int) else None,
    )


# ---------------------------------------------------------------------------
# Credential check (constant-time)
# ---------------------------------------------------------------------------


def authenticate_user(store: UserStore, email: str, password: str) -> User:
    """Verify email/password and return the User.

    Always runs bcrypt whether or not the email exists, so an attacker cannot
    enumerate accounts by response time.

    Raises:
        AuthenticationError: unknown email or wrong password.
        AuthorizationError:  the account is deactivated.
    """
    user = store.get_by_email(email)
    if user is None or not user.password_hash:
        verify_password(password, _DUMMY_HASH)
        raise AuthenticationError("Credenciales inválidas")
    if not user.activo:
        verify_password(password, _DUMMY_HASH)
        raise AuthorizationError("El usuario se encuentra inactivo")
    if not verify_password(password, user.password_hash):
        raise AuthenticationError("Credenciales inválidas")
    return user
