"""
auth/dependencies.py -- FastAPI Depends() helpers for the access-control gate.

auth_required() reads "Authorization: Bearer <token>", verifies it and
returns the Identity from its claims. Tokens are stateless: there is no
database lookup per request, so a deactivated user keeps access until the
token expires.

admin_only() / dirigente_only() wrap auth_required() and raise 403 when the
role does not match.

Layer rule: no imports from api/, registry/ or audit/. This module may import
from fastapi because it is part of the dependency injection system.
"""

from __future__ import annotations

from fastapi import Depends, Request

from auth.models import Identity, Role
from auth.tokens import decode_access_token
from core.errors import AuthenticationError, AuthorizationError


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    return auth_header[7:].strip() or None


def auth_required(request: Request) -> Identity:
    """Require a valid session token. Raises 401 when missing, expired or invalid.

    The identity is also stored on request.state.identity for middleware
    and logging.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(identity: Identity = Depends(auth_required)): ...
    """
    token = _bearer_token(request)
    if token is None:
        raise AuthenticationError("No se encontró token de autenticación. Inicie sesión nuevamente.")
    identity = decode_access_token(token)
    request.state.identity = identity
    return identity


def admin_only(identity: Identity = Depends(auth_required)) -> Identity:
    """Require role ADMIN. Raises 401 if unauthenticated, 403 otherwise."""
    if identity.role is not Role.ADMIN:
        raise AuthorizationError("No tiene permisos para acceder a este recurso.")
    return identity


def dirigente_only(identity: Identity = Depends(auth_required)) -> Identity:
    """Require role DIRIGENTE. Raises 401 if unauthenticated, 403 otherwise."""
    if identity.role is not Role.DIRIGENTE:
        raise AuthorizationError("Solo los dirigentes pueden realizar esta acción.")
    return identity
