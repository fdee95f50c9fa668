"""
api/routes/common.py -- Small helpers shared by the route modules.
"""

from __future__ import annotations

from typing import Annotated, Optional

from fastapi import Path, Query, Request

from audit.store import AuditStore
from auth.store import UserStore
from core.validators import MAX_DB_INT
from registry.store import RegistryStore

# {id} path parameters and ?villa_id filters: out-of-range values are a 400, never reach SQL.
RowId = Annotated[int, Path(ge=1, le=MAX_DB_INT)]
VillaFilter = Annotated[Optional[int], Query(ge=1, le=MAX_DB_INT)]


def client_ip(request: Request) -> str | None:
    """Origin IP recorded in the audit log. Behind a proxy run uvicorn with --proxy-headers."""
    return request.client.host if request.client else None


def user_store(request: Request) -> UserStore:
    return request.app.state.user_store


def registry_store(request: Request) -> RegistryStore:
    return request.app.state.registry


def audit_store(request: Request) -> AuditStore:
    return request.app.state.audit
