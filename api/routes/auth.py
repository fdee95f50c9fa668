"""
api/routes/auth.py -- Session endpoints.

Routes:
  GET  /api/auth/health  -- public liveness probe for the auth service
  POST /api/auth/login   -- email/password login; returns a bearer token
  GET  /api/auth/me      -- identity carried by the caller's token

Security:
  Failed logins are counted per identifier by the LoginAttemptTracker on
  app.state; a blocked identifier gets 429 before the password is checked.
  authenticate_user() runs bcrypt on every path (timing equalization).
  Cache-Control: no-store on login responses.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import LoginRequest, LoginResponse, MeResponse, SessionUser
from api.routes.common import client_ip, user_store
from auth.bruteforce import LoginAttemptTracker
from auth.dependencies import auth_required
from auth.models import Identity
from auth.tokens import authenticate_user, create_access_token
from core.errors import AppError, ValidationError

logger = logging.getLogger("padron.auth")

# Auth policy:
# - GET  /api/auth/health: public
# - POST /api/auth/login:  public -- brute-force guarded
# - GET  /api/auth/me:     requires auth (auth_required)
router = APIRouter()


@router.get("/auth/health")
def auth_health() -> dict:
    return {"ok": True, "service": "auth"}


@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password and issue an 8 hour token.

    Every failure path (missing fields, unknown email, inactive account,
    wrong password) registers a failed attempt before the error is returned.
    Success clears the identifier's record completely.
    """
    tracker: LoginAttemptTracker = request.app.state.login_tracker
    identifier = tracker.resolve_identifier(body.email, body.username, client_ip(request))
    tracker.check(identifier)

    if not body.email or not body.password:
        tracker.register_failure(identifier)
        raise ValidationError("Email y contraseña son requeridos")

    try:
        user = authenticate_user(user_store(request), body.email, body.password)
    except AppError:
        tracker.register_failure(identifier)
        raise

    tracker.clear(identifier)
    token = create_access_token(user)
    logger.info("Login ok for user %s (%s)", user.id, user.rol)

    resp = JSONResponse(
        content=LoginResponse(
            token=token,
            user=SessionUser(
                id=user.id,
                nombre=user.nombre,
                email=user.email,
                rol=user.rol,
                villa_id=user.villa_id,
            ),
        ).model_dump()
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get("/auth/me", response_model=MeResponse)
def me(identity: Identity = Depends(auth_required)) -> MeResponse:
    return MeResponse(
        id=identity.id,
        nombre=identity.nombre,
        email=identity.email,
        rol=identity.role.value if identity.role is not None else None,
        villa_id=identity.villa_id,
        is_admin=identity.is_admin,
        is_dirigente=identity.is_dirigente,
    )
