"""
audit/store.py -- Append-only audit log of administrative actions.

Every successful create/update/delete of a Persona, User or Villa calls
AuditStore.record() once, after the mutation has been committed.

Best-effort by design: the audit insert is not part of the mutation's
transaction. If it fails the error is logged and swallowed, so the caller's
action still succeeds -- and is left without an audit row. The trade-off
keeps an outage of the log table from blocking registrations.

Rows are never updated or deleted by the application.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from audit import models as actions
from audit.models import AuditLogEntry
from core.database import logs, users

logger = logging.getLogger("padron.audit")

DEFAULT_LIMIT = 200
MAX_LIMIT = 1000

_MESSAGES: dict[str, str] = {
    actions.CREATE_PERSONA: 'El usuario "{actor}" agregó a la persona "{entity}".',
    actions.UPDATE_PERSONA: 'El usuario "{actor}" actualizó los datos de "{entity}".',
    actions.DELETE_PERSONA: 'El usuario "{actor}" eliminó a la persona "{entity}".',
    actions.CREATE_USER: 'El administrador "{actor}" creó al usuario "{entity}".',
    actions.UPDATE_USER: 'El administrador "{actor}" actualizó al usuario "{entity}".',
    actions.DEACTIVATE_USER: 'El administrador "{actor}" desactivó al usuario "{entity}".',
    actions.CREATE_VILLA: 'El administrador "{actor}" creó la villa "{entity}".',
    actions.UPDATE_VILLA: 'El administrador "{actor}" actualizó la villa "{entity}".',
    actions.DELETE_VILLA: 'El administrador "{actor}" eliminó la villa "{entity}".',
}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _dump(snapshot: Optional[dict]) -> Optional[str]:
    return json.dumps(snapshot, ensure_ascii=False, default=str) if snapshot else None


def _load(raw: Optional[str]) -> Optional[dict]:
    if not raw:
        return None
    try:
        value = json.loads(raw)
    except ValueError:
        return None
    return value if isinstance(value, dict) else None


def _entity_name(after: Optional[dict], before: Optional[dict]) -> Optional[str]:
    """The 'nombre' of the affected entity, preferring the state after the change."""
    for snapshot in (after, before):
        if snapshot and snapshot.get("nombre"):
            return str(snapshot["nombre"])
    return None


class AuditStore:
    """Writer and reader for the logs table.

    Usage:
        audit = AuditStore(engine)
        audit.record(actor_id, "CREATE_VILLA", "VILLA", villa.id, None, villa.snapshot(), ip)
        entries = audit.list_entries(limit=50)
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def record(
        self,
        actor_id: Optional[int],
        action: str,
        entity_type: str,
        entity_id: Optional[int],
        before: Optional[dict] = None,
        after: Optional[dict] = None,
        ip: Optional[str] = None,
    ) -> None:
        """Append one entry. Never raises on database errors."""
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    logs.insert().values(
                        usuario_id=actor_id,
                        accion=action,
                        entidad=entity_type,
                        entidad_id=entity_id,
                        datos_antes=_dump(before),
                        datos_despues=_dump(after),
                        ip=ip,
                        created_at=_now_iso(),
                    )
                )
                conn.commit()
        except SQLAlchemyError:
            logger.exception("Failed to write audit entry %s %s/%s", action, entity_type, entity_id)

    def list_entries(self, limit: int = DEFAULT_LIMIT) -> list[AuditLogEntry]:
        """Return the newest entries first, with the actor's name and role.

        limit is clamped to 1..MAX_LIMIT, so limit=0 (or a negative value)
        still returns the newest entry rather than an empty list.
        """
        limit = max(1, min(limit, MAX_LIMIT))
        stmt = (
            select(
                logs,
                users.c.nombre.label("usuario_nombre"),
                users.c.rol.label("usuario_rol"),
            )
            .select_from(logs.outerjoin(users, users.c.id == logs.c.usuario_id))
            .order_by(logs.c.created_at.desc(), logs.c.id.desc())
            .limit(limit)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [_row_to_entry(r) for r in rows]


def describe_entry(entry: AuditLogEntry) -> dict:
    """Render an entry as {fecha, mensaje} in plain Spanish."""
    actor = entry.usuario_nombre or ""
    entity = entry.entidad_nombre or ""
    template = _MESSAGES.get(entry.accion)
    if template is None:
        mensaje = f"{actor} realizó la acción {entry.accion}."
    else:
        mensaje = template.format(actor=actor, entity=entity)
    return {"fecha": entry.created_at, "mensaje": mensaje}


def _row_to_entry(row) -> AuditLogEntry:
    before = _load(row.datos_antes)
    after = _load(row.datos_despues)
    return AuditLogEntry(
        id=row.id,
        usuario_id=row.usuario_id,
        accion=row.accion,
        entidad=row.entidad,
        entidad_id=row.entidad_id,
        datos_antes=before,
        datos_despues=after,
        ip=row.ip,
        created_at=row.created_at,
        usuario_nombre=row.usuario_nombre,
        usuario_rol=row.usuario_rol,
        entidad_nombre=_entity_name(after, before),
    )
