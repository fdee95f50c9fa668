"""
api/routes/villas.py -- Villa catalog.

Routes:
  GET    /api/villas       -- any authenticated user (feeds the SPA selectors)
  POST   /api/villas       -- ADMIN
  PUT    /api/villas/{id}  -- ADMIN
  DELETE /api/villas/{id}  -- ADMIN; 409 while users or personas reference it
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.models import MessageResponse, VillaIn, VillaResponse
from api.routes.common import RowId, audit_store, client_ip, registry_store, user_store
from audit import models as actions
from auth.dependencies import admin_only, auth_required
from auth.models import Identity
from core.errors import ConflictError, NotFoundError
from registry.models import Villa

logger = logging.getLogger("padron.registry")

_NOT_FOUND = "Villa no encontrada"
_IN_USE = "No se puede eliminar la villa porque tiene registros asociados (dirigentes o personas)."

router = APIRouter()


@router.get("/villas", response_model=list[VillaResponse])
def list_villas(request: Request, identity: Identity = Depends(auth_required)) -> list[VillaResponse]:
    return [VillaResponse.from_villa(v) for v in registry_store(request).list_villas()]


@router.post("/villas", response_model=VillaResponse, status_code=201)
def create_villa(request: Request, body: VillaIn, identity: Identity = Depends(admin_only)) -> JSONResponse:
    registry = registry_store(request)
    villa_id = registry.create_villa(Villa(nombre=body.nombre, cupo_maximo=body.cupo_maximo))
    created = registry.get_villa(villa_id)
    audit_store(request).record(
        identity.id,
        actions.CREATE_VILLA,
        actions.VILLA,
        villa_id,
        None,
        created.snapshot(),
        client_ip(request),
    )
    logger.info("Villa %s created (cupo %d)", villa_id, created.cupo_maximo)
    return JSONResponse(status_code=201, content=VillaResponse.from_villa(created).model_dump())


@router.put("/villas/{villa_id}", response_model=VillaResponse)
def update_villa(
    request: Request,
    villa_id: RowId,
    body: VillaIn,
    identity: Identity = Depends(admin_only),
) -> VillaResponse:
    """Rename a villa or change its quota.

    Lowering cupo_maximo below the current population is allowed; it only
    blocks further registrations.
    """
    registry = registry_store(request)
    before = registry.get_villa(villa_id)
    if before is None:
        raise NotFoundError(_NOT_FOUND)
    if not registry.update_villa(villa_id, body.nombre, body.cupo_maximo):
        raise NotFoundError(_NOT_FOUND)
    after = registry.get_villa(villa_id)
    audit_store(request).record(
        identity.id,
        actions.UPDATE_VILLA,
        actions.VILLA,
        villa_id,
        before.snapshot(),
        after.snapshot(),
        client_ip(request),
    )
    return VillaResponse.from_villa(after)


@router.delete("/villas/{villa_id}", response_model=MessageResponse)
def delete_villa(request: Request, villa_id: RowId, identity: Identity = Depends(admin_only)) -> MessageResponse:
    registry = registry_store(request)
    before = registry.get_villa(villa_id)
    if before is None:
        raise NotFoundError(_NOT_FOUND)
    if user_store(request).count_by_villa(villa_id) or registry.count_personas(villa_id):
        raise ConflictError(_IN_USE)

    try:
        deleted = registry.delete_villa(villa_id)
    except IntegrityError as exc:
        raise ConflictError(_IN_USE) from exc
    if not deleted:
        raise NotFoundError(_NOT_FOUND)

    audit_store(request).record(
        identity.id,
        actions.DELETE_VILLA,
        actions.VILLA,
        villa_id,
        before.snapshot(),
        None,
        client_ip(request),
    )
    logger.info("Villa %s deleted by admin %s", villa_id, identity.id)
    return MessageResponse(message="Villa eliminada correctamente")
