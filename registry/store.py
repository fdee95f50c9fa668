"""
registry/store.py -- SQLAlchemy Core persistence for villas and personas.

Pattern: Repository + Data Mapper (same as auth/store.py). RegistryStore is
the repository; _row_to_villa / _row_to_persona are the mappers.

Capacity enforcement:
  create_persona() and a villa move in update_persona() run the capacity
  check and the write inside one transaction that first locks the target
  villa row (SELECT ... FOR UPDATE on PostgreSQL). A concurrent request for
  the same villa waits for the lock and then sees the new count, so a villa
  can never end up above cupo_maximo. SQLite ignores FOR UPDATE; there the
  engine opens every transaction with BEGIN IMMEDIATE (core/database.py), so
  the whole count-then-insert holds the database write lock and a second
  writer waits for the first to commit before counting.

Security: all queries use bound parameters. No f-strings in SQL.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.engine import Connection, Engine

from core.database import personas, villas
from core.errors import CapacityExceededError, ValidationError
from registry.models import Persona, Villa

logger = logging.getLogger("padron.registry")

_CAPACITY_MESSAGE = "Se alcanzó el cupo máximo de personas para esta villa. No se pueden agregar más registros."
_UNKNOWN_VILLA_MESSAGE = "La villa especificada no existe"


class RegistryStore:
    """Repository for Villa and Persona entities.

    Usage:
        store = RegistryStore(engine)
        villa_id = store.create_villa(Villa(nombre="Villa Los Aromos", cupo_maximo=120))
        persona = store.create_persona(Persona(nombre="Ana", rut="12345678-5", villa_id=villa_id))
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    # ------------------------------------------------------------------
    # Villas
    # ------------------------------------------------------------------

    def list_villas(self) -> list[Villa]:
        """Return all villas ordered by name."""
        with self.engine.connect() as conn:
            rows = conn.execute(villas.select().order_by(villas.c.nombre)).fetchall()
        return [_row_to_villa(r) for r in rows]

    def get_villa(self, villa_id: int) -> Optional[Villa]:
        with self.engine.connect() as conn:
            row = conn.execute(villas.select().where(villas.c.id == villa_id)).fetchone()
        return _row_to_villa(row) if row is not None else None

    def create_villa(self, villa: Villa) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(villas.insert().values(nombre=villa.nombre, cupo_maximo=villa.cupo_maximo))
            conn.commit()
            return result.inserted_primary_key[0]

    def update_villa(self, villa_id: int, nombre: str, cupo_maximo: int) -> bool:
        """Returns True if a row was updated.

        Lowering cupo_maximo below the current count is allowed; it only
        blocks further registrations.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                villas.update().where(villas.c.id == villa_id).values(nombre=nombre, cupo_maximo=cupo_maximo)
            )
            conn.commit()
        return result.rowcount > 0

    def delete_villa(self, villa_id: int) -> bool:
        """Delete a villa. Returns True if deleted, False if not found.

        Raises sqlalchemy.exc.IntegrityError if users or personas still
        reference it. Callers check references first to give a precise
        message; the foreign key is the backstop.
        """
        with self.engine.connect() as conn:
            result = conn.execute(villas.delete().where(villas.c.id == villa_id))
            conn.commit()
        return result.rowcount > 0

    def count_personas(self, villa_id: int) -> int:
        with self.engine.connect() as conn:
            return _count_personas(conn, villa_id)

    # ------------------------------------------------------------------
    # Personas
    # ------------------------------------------------------------------

    def list_personas(self, villa_id: Optional[int] = None) -> list[Persona]:
        """List personas with their villa name.

        villa_id=None returns every persona ordered by villa name, then
        persona name. With a villa_id only that villa's rows are returned,
        ordered by name.
        """
        stmt = select(personas, villas.c.nombre.label("villa_nombre")).select_from(
            personas.join(villas, villas.c.id == personas.c.villa_id)
        )
        if villa_id is None:
            stmt = stmt.order_by(villas.c.nombre, personas.c.nombre)
        else:
            stmt = stmt.where(personas.c.villa_id == villa_id).order_by(personas.c.nombre)
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [_row_to_persona(r) for r in rows]

    def get_persona(self, persona_id: int) -> Optional[Persona]:
        with self.engine.connect() as conn:
            row = conn.execute(personas.select().where(personas.c.id == persona_id)).fetchone()
        return _row_to_persona(row) if row is not None else None

    def create_persona(self, persona: Persona) -> Persona:
        """Insert a persona if its villa has room. Returns the stored row.

        Raises:
            ValidationError:       villa_id does not reference a villa.
            CapacityExceededError: the villa already holds cupo_maximo personas.
            sqlalchemy.exc.IntegrityError: duplicate rut or correo.
        """
        with self.engine.begin() as conn:
            _check_capacity(conn, persona.villa_id)
            result = conn.execute(
                personas.insert().values(
                    nombre=persona.nombre,
                    rut=persona.rut,
                    direccion=persona.direccion,
                    telefono=persona.telefono,
                    correo=persona.correo,
                    villa_id=persona.villa_id,
                )
            )
            new_id = result.inserted_primary_key[0]
            row = conn.execute(personas.select().where(personas.c.id == new_id)).fetchone()
        return _row_to_persona(row)

    def update_persona(self, persona_id: int, persona: Persona) -> Optional[Persona]:
        """Replace a persona's fields. Returns the stored row, or None if absent.

        When persona.villa_id differs from the stored villa, the capacity of
        the new villa is checked in the same transaction.

        Raises the same errors as create_persona().
        """
        with self.engine.begin() as conn:
            current = conn.execute(
                select(personas.c.villa_id).where(personas.c.id == persona_id).with_for_update()
            ).fetchone()
            if current is None:
                return None
            if current.villa_id != persona.villa_id:
                _check_capacity(conn, persona.villa_id)
            conn.execute(
                personas.update()
                .where(personas.c.id == persona_id)
                .values(
                    nombre=persona.nombre,
                    rut=persona.rut,
                    direccion=persona.direccion,
                    telefono=persona.telefono,
                    correo=persona.correo,
                    villa_id=persona.villa_id,
                )
            )
            row = conn.execute(personas.select().where(personas.c.id == persona_id)).fetchone()
        return _row_to_persona(row)

    def delete_persona(self, persona_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(personas.delete().where(personas.c.id == persona_id))
            conn.commit()
        return result.rowcount > 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _count_personas(conn: Connection, villa_id: int) -> int:
    stmt = select(func.count()).select_from(personas).where(personas.c.villa_id == villa_id)
    return conn.execute(stmt).scalar() or 0


def _check_capacity(conn: Connection, villa_id: int) -> None:
    """Lock the villa row and raise if it has no room left. Must run inside a transaction."""
    row = conn.execute(select(villas.c.cupo_maximo).where(villas.c.id == villa_id).with_for_update()).fetchone()
    if row is None:
        raise ValidationError(_UNKNOWN_VILLA_MESSAGE)
    cupo = row.cupo_maximo or 0
    if cupo <= 0:
        return
    total = _count_personas(conn, villa_id)
    if total >= cupo:
        logger.info("Villa %s is full (%d/%d)", villa_id, total, cupo)
        raise CapacityExceededError(_CAPACITY_MESSAGE)


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_villa(row) -> Villa:
    return Villa(id=row.id, nombre=row.nombre, cupo_maximo=row.cupo_maximo or 0)


def _row_to_persona(row) -> Persona:
    return Persona(
        id=row.id,
        nombre=row.nombre,
        rut=row.rut,
        direccion=row.direccion,
        telefono=row.telefono,
        correo=row.correo,
        villa_id=row.villa_id,
        villa_nombre=getattr(row, "villa_nombre", None),
    )
