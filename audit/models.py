"""
audit/models.py -- Domain dataclass and vocabulary for the audit log.
"""

from dataclasses import dataclass
from typing import Optional

# Entity types
PERSONA = "PERSONA"
USER = "USER"
VILLA = "VILLA"

# Action codes
CREATE_PERSONA = "CREATE_PERSONA"
UPDATE_PERSONA = "UPDATE_PERSONA"
DELETE_PERSONA = "DELETE_PERSONA"
CREATE_USER = "CREATE_USER"
UPDATE_USER = "UPDATE_USER"
DEACTIVATE_USER = "DEACTIVATE_USER"
CREATE_VILLA = "CREATE_VILLA"
UPDATE_VILLA = "UPDATE_VILLA"
DELETE_VILLA = "DELETE_VILLA"


@dataclass
class AuditLogEntry:
    """Immutable record of one mutation.

    datos_antes is None on creation, datos_despues is None on deletion.
    usuario_nombre / usuario_rol / entidad_nombre are derived when listing
    and are not stored.
    """

    accion: str
    entidad: str
    id: Optional[int] = None
    usuario_id: Optional[int] = None
    entidad_id: Optional[int] = None
    datos_antes: Optional[dict] = None
    datos_despues: Optional[dict] = None
    ip: Optional[str] = None
    created_at: Optional[str] = None
    usuario_nombre: Optional[str] = None
    usuario_rol: Optional[str] = None
    entidad_nombre: Optional[str] = None
