"""
api/routes/users.py -- Account management (ADMIN only).

Routes:
  GET    /api/users       -- active accounts with their villa name
  POST   /api/users       -- create an account
  PUT    /api/users/{id}  -- edit profile fields; password optional
  DELETE /api/users/{id}  -- soft delete (activo = false)

A DIRIGENTE account must reference an existing villa. An ADMIN account
never carries one; any villa_id sent for it is dropped.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.models import MessageResponse, UserIn, UserResponse
from api.routes.common import RowId, audit_store, client_ip, registry_store, user_store
from audit import models as actions
from auth.dependencies import admin_only
from auth.models import Identity, Role, User
from auth.tokens import hash_password
from core.errors import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger("padron.auth")

_EMAIL_TAKEN = "Email ya está en uso"
_NOT_FOUND = "Usuario no encontrado"

router = APIRouter()


def _villa_for_role(request: Request, rol: Role, villa_id: Optional[int]) -> Optional[int]:
    if rol is not Role.DIRIGENTE:
        return None
    if villa_id is None:
        raise ValidationError(
            "Datos inválidos",
            errors=[{"campo": "villa_id", "mensaje": "La villa es requerida para un dirigente"}],
        )
    if registry_store(request).get_villa(villa_id) is None:
        raise ValidationError("La villa especificada no existe")
    return villa_id


@router.get("/users", response_model=list[UserResponse])
def list_users(request: Request, identity: Identity = Depends(admin_only)) -> list[UserResponse]:
    return [UserResponse.from_user(u) for u in user_store(request).list_active()]


@router.post("/users", response_model=UserResponse, status_code=201)
def create_user(request: Request, body: UserIn, identity: Identity = Depends(admin_only)) -> JSONResponse:
    if body.password is None:
        raise ValidationError(
            "Datos inválidos",
            errors=[{"campo": "password", "mensaje": "La contraseña es requerida"}],
        )
    villa_id = _villa_for_role(request, body.rol, body.villa_id)

    store = user_store(request)
    user = User(
        nombre=body.nombre,
        email=body.email,
        rol=body.rol.value,
        villa_id=villa_id,
        password_hash=hash_password(body.password),
    )
    try:
        user_id = store.create_user(user)
    except IntegrityError as exc:
        raise ConflictError(_EMAIL_TAKEN) from exc

    created = store.get_by_id(user_id)
    audit_store(request).record(
        identity.id,
        actions.CREATE_USER,
        actions.USER,
        user_id,
        None,
        created.snapshot(),
        client_ip(request),
    )
    logger.info("User %s (%s) created by admin %s", user_id, created.rol, identity.id)
    return JSONResponse(status_code=201, content=UserResponse.from_user(created).model_dump())


@router.put("/users/{user_id}", response_model=UserResponse)
def update_user(
    request: Request,
    user_id: RowId,
    body: UserIn,
    identity: Identity = Depends(admin_only),
) -> UserResponse:
    """Edit a user. An omitted or blank password keeps the current hash."""
    store = user_store(request)
    before = store.get_by_id(user_id)
    if before is None:
        raise NotFoundError(_NOT_FOUND)
    villa_id = _villa_for_role(request, body.rol, body.villa_id)

    try:
        updated = store.update_user(
            user_id,
            nombre=body.nombre,
            email=body.email,
            rol=body.rol.value,
            villa_id=villa_id,
            password_hash=hash_password(body.password) if body.password else None,
        )
    except IntegrityError as exc:
        raise ConflictError(_EMAIL_TAKEN) from exc
    if not updated:
        raise NotFoundError(_NOT_FOUND)

    after = store.get_by_id(user_id)
    audit_store(request).record(
        identity.id,
        actions.UPDATE_USER,
        actions.USER,
        user_id,
        before.snapshot(),
        after.snapshot(),
        client_ip(request),
    )
    return UserResponse.from_user(after)


@router.delete("/users/{user_id}", response_model=MessageResponse)
def deactivate_user(request: Request, user_id: RowId, identity: Identity = Depends(admin_only)) -> MessageResponse:
    """Soft delete. Deactivating an account that is already inactive is a 409."""
    if user_id == identity.id:
        raise ValidationError("No puede desactivar su propia cuenta")

    store = user_store(request)
    before = store.get_by_id(user_id)
    if before is None:
        raise NotFoundError(_NOT_FOUND)
    if not store.deactivate_user(user_id):
        raise ConflictError("El usuario ya se encuentra inactivo")

    after = before.snapshot()
    after["activo"] = False
    audit_store(request).record(
        identity.id,
        actions.DEACTIVATE_USER,
        actions.USER,
        user_id,
        before.snapshot(),
        after,
        client_ip(request),
    )
    logger.info("User %s deactivated by admin %s", user_id, identity.id)
    return MessageResponse(message="Usuario desactivado correctamente")
