"""
api/routes/admin.py -- ADMIN-only endpoints.

Routes:
  GET    /api/admin/logs                -- raw audit entries, newest first
  GET    /api/admin/logs/humano         -- the same entries as Spanish sentences
  GET    /api/admin/personas            -- all personas, optional ?villa_id filter
  POST   /api/admin/personas            -- create in an explicit villa
  PUT    /api/admin/personas/{id}       -- edit, may move to another villa
  DELETE /api/admin/personas/{id}       -- remove

The persona routes share their logic with api/routes/personas.py; the only
difference is that villa_id is mandatory in the body.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from api.models import AdminPersonaIn, AuditLogResponse, AuditMessageResponse, MessageResponse, PersonaResponse
from api.routes.common import RowId, VillaFilter, audit_store
from api.routes.personas import create_persona_for, delete_persona_for, list_personas_for, update_persona_for
from audit.store import DEFAULT_LIMIT, describe_entry
from auth.dependencies import admin_only
from auth.models import Identity

router = APIRouter(prefix="/admin")


@router.get("/logs", response_model=list[AuditLogResponse])
def list_logs(
    request: Request,
    limit: int = Query(DEFAULT_LIMIT),
    identity: Identity = Depends(admin_only),
) -> list[AuditLogResponse]:
    return [AuditLogResponse.from_entry(e) for e in audit_store(request).list_entries(limit)]


@router.get("/logs/humano", response_model=list[AuditMessageResponse])
def list_logs_humano(
    request: Request,
    limit: int = Query(DEFAULT_LIMIT),
    identity: Identity = Depends(admin_only),
) -> list[AuditMessageResponse]:
    return [AuditMessageResponse(**describe_entry(e)) for e in audit_store(request).list_entries(limit)]


@router.get("/personas", response_model=list[PersonaResponse])
def admin_list_personas(
    request: Request,
    villa_id: VillaFilter = None,
    identity: Identity = Depends(admin_only),
) -> list[PersonaResponse]:
    return list_personas_for(request, identity, villa_id)


@router.post("/personas", response_model=PersonaResponse, status_code=201)
def admin_create_persona(
    request: Request,
    body: AdminPersonaIn,
    identity: Identity = Depends(admin_only),
) -> JSONResponse:
    created = create_persona_for(request, identity, body)
    return JSONResponse(status_code=201, content=created.model_dump())


@router.put("/personas/{persona_id}", response_model=PersonaResponse)
def admin_update_persona(
    request: Request,
    persona_id: RowId,
    body: AdminPersonaIn,
    identity: Identity = Depends(admin_only),
) -> PersonaResponse:
    return update_persona_for(request, identity, persona_id, body)


@router.delete("/personas/{persona_id}", response_model=MessageResponse)
def admin_delete_persona(
    request: Request,
    persona_id: RowId,
    identity: Identity = Depends(admin_only),
) -> MessageResponse:
    return delete_persona_for(request, identity, persona_id)
