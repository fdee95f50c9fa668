"""
api/routes/personas.py -- Resident registry endpoints.

Routes:
  GET    /api/personas       -- ADMIN: all personas; DIRIGENTE: own villa only
  POST   /api/personas       -- register a persona (quota-checked)
  PUT    /api/personas/{id}  -- edit a persona
  DELETE /api/personas/{id}  -- remove a persona

Ownership:
  A DIRIGENTE always works inside the villa carried by its token. Any
  villa_id in the body is ignored for them, and editing or deleting a
  persona of another villa is a 403 that leaves the row and the audit log
  untouched. ADMIN callers choose the villa; on update an omitted villa_id
  keeps the current one.

The list/create/update/delete helpers below are reused by the ADMIN aliases
in api/routes/admin.py.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.models import MessageResponse, PersonaIn, PersonaResponse
from api.routes.common import RowId, audit_store, client_ip, registry_store
from audit import models as actions
from auth.dependencies import auth_required
from auth.models import Identity, Role
from core.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from registry.models import Persona

logger = logging.getLogger("padron.registry")

_DUPLICATE_MESSAGE = "Ya existe una persona con ese RUT o correo"
_NOT_FOUND_MESSAGE = "Persona no encontrada"

router = APIRouter()


def _persona_from_body(body: PersonaIn, villa_id: int) -> Persona:
    return Persona(
        nombre=body.nombre,
        rut=body.rut,
        direccion=body.direccion,
        telefono=body.telefono,
        correo=body.correo,
        villa_id=villa_id,
    )


def _dirigente_villa(identity: Identity) -> int:
    if identity.villa_id is None:
        raise ValidationError("No se ha definido una villa asociada al dirigente. Contacte al administrador.")
    return identity.villa_id


def _check_owner(identity: Identity, persona: Persona, message: str) -> None:
    """Raise 403 unless the caller may touch this persona."""
    if identity.role is Role.ADMIN:
        return
    if identity.role is Role.DIRIGENTE and persona.villa_id == identity.villa_id:
        return
    raise AuthorizationError(message)


def list_personas_for(request: Request, identity: Identity, villa_id: Optional[int] = None) -> list[PersonaResponse]:
    registry = registry_store(request)
    if identity.role is Role.ADMIN:
        rows = registry.list_personas(villa_id)
    elif identity.role is Role.DIRIGENTE:
        rows = registry.list_personas(_dirigente_villa(identity))
    else:
        raise AuthorizationError("No tiene permisos para ver el listado de personas.")
    return [PersonaResponse.from_persona(p) for p in rows]


def create_persona_for(request: Request, identity: Identity, body: PersonaIn) -> PersonaResponse:
    if identity.role is Role.ADMIN:
        villa_id = body.villa_id
        if villa_id is None:
            raise ValidationError("Debe indicar la villa de la persona")
    elif identity.role is Role.DIRIGENTE:
        villa_id = _dirigente_villa(identity)
    else:
        raise AuthorizationError("No tiene permisos para registrar personas.")

    try:
        created = registry_store(request).create_persona(_persona_from_body(body, villa_id))
    except IntegrityError as exc:
        raise ConflictError(_DUPLICATE_MESSAGE) from exc

    audit_store(request).record(
        identity.id,
        actions.CREATE_PERSONA,
        actions.PERSONA,
        created.id,
        None,
        created.snapshot(),
        client_ip(request),
    )
    logger.info("Persona %s created in villa %s by user %s", created.id, villa_id, identity.id)
    return PersonaResponse.from_persona(created)


def update_persona_for(request: Request, identity: Identity, persona_id: int, body: PersonaIn) -> PersonaResponse:
    registry = registry_store(request)
    before = registry.get_persona(persona_id)
    if before is None:
        raise NotFoundError(_NOT_FOUND_MESSAGE)
    _check_owner(identity, before, "No tienes permiso para editar esta persona")

    if identity.role is Role.ADMIN and body.villa_id is not None:
        villa_id = body.villa_id
    else:
        villa_id = before.villa_id

    try:
        updated = registry.update_persona(persona_id, _persona_from_body(body, villa_id))
    except IntegrityError as exc:
        raise ConflictError(_DUPLICATE_MESSAGE) from exc
    if updated is None:
        raise NotFoundError(_NOT_FOUND_MESSAGE)

    audit_store(request).record(
        identity.id,
        actions.UPDATE_PERSONA,
        actions.PERSONA,
        persona_id,
        before.snapshot(),
        updated.snapshot(),
        client_ip(request),
    )
    return PersonaResponse.from_persona(updated)


def delete_persona_for(request: Request, identity: Identity, persona_id: int) -> MessageResponse:
    registry = registry_store(request)
    before = registry.get_persona(persona_id)
    if before is None:
        raise NotFoundError(_NOT_FOUND_MESSAGE)
    _check_owner(identity, before, "No tienes permiso para eliminar esta persona")

    if not registry.delete_persona(persona_id):
        raise NotFoundError(_NOT_FOUND_MESSAGE)

    audit_store(request).record(
        identity.id,
        actions.DELETE_PERSONA,
        actions.PERSONA,
        persona_id,
        before.snapshot(),
        None,
        client_ip(request),
    )
    logger.info("Persona %s deleted by user %s", persona_id, identity.id)
    return MessageResponse(message="Persona eliminada")


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.get("/personas", response_model=list[PersonaResponse])
def list_personas(request: Request, identity: Identity = Depends(auth_required)) -> list[PersonaResponse]:
    return list_personas_for(request, identity)


@router.post("/personas", response_model=PersonaResponse, status_code=201)
def create_persona(
    request: Request,
    body: PersonaIn,
    identity: Identity = Depends(auth_required),
) -> JSONResponse:
    created = create_persona_for(request, identity, body)
    return JSONResponse(status_code=201, content=created.model_dump())


@router.put("/personas/{persona_id}", response_model=PersonaResponse)
def update_persona(
    request: Request,
    persona_id: RowId,
    body: PersonaIn,
    identity: Identity = Depends(auth_required),
) -> PersonaResponse:
    return update_persona_for(request, identity, persona_id, body)


@router.delete("/personas/{persona_id}", response_model=MessageResponse)
def delete_persona(
    request: Request,
    persona_id: RowId,
    identity: Identity = Depends(auth_required),
) -> MessageResponse:
    return delete_persona_for(request, identity, persona_id)
