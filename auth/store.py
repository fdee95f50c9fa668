"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Route and dependency code never touches SQL directly.

The users table is declared in core/database.py alongside villas, because
users.villa_id is a foreign key into villas. The Engine is shared with the
other stores and owned by the application lifespan.

Security:
  All queries use bound parameters. No f-strings in SQL.
  Accounts are never deleted. deactivate_user() is the soft delete.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.engine import Engine

from auth.models import User
from core.database import users, villas


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore(engine)
        uid = store.create_user(User(nombre="Ana", email="ana@muni.cl", rol="ADMIN", password_hash=h))
        user = store.get_by_email("ana@muni.cl")
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_by_email(self, email: str) -> Optional[User]:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> Optional[User]:
        with self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_active(self) -> list[User]:
        """Return active users ordered by id, with the name of their villa."""
        stmt = (
            select(users, villas.c.nombre.label("villa_nombre"))
            .select_from(users.outerjoin(villas, villas.c.id == users.c.villa_id))
            .where(users.c.activo.is_(True))
            .order_by(users.c.id)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [_row_to_user(r) for r in rows]

    def count_by_villa(self, villa_id: int) -> int:
        """Number of users (active or not) whose villa_id references villa_id."""
        stmt = select(func.count()).select_from(users).where(users.c.villa_id == villa_id)
        with self.engine.connect() as conn:
            return conn.execute(stmt).scalar() or 0

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its id.

        Raises sqlalchemy.exc.IntegrityError if the email already exists or
        villa_id does not reference a villa.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                users.insert().values(
                    nombre=user.nombre,
                    email=user.email,
                    password_hash=user.password_hash,
                    rol=user.rol,
                    villa_id=user.villa_id,
                    activo=user.activo,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def update_user(
        self,
        user_id: int,
        *,
        nombre: str,
        email: str,
        rol: str,
        villa_id: Optional[int],
        password_hash: Optional[str] = None,
    ) -> bool:
        """Replace the profile fields of a user.

        password_hash=None leaves the stored hash untouched (COALESCE
        semantics). Returns True if a row was updated.
        """
        values: dict = {"nombre": nombre, "email": email, "rol": rol, "villa_id": villa_id}
        if password_hash is not None:
            values["password_hash"] = password_hash
        with self.engine.connect() as conn:
            result = conn.execute(users.update().where(users.c.id == user_id).values(**values))
            conn.commit()
        return result.rowcount > 0

    def deactivate_user(self, user_id: int) -> bool:
        """Set activo=False. Returns False if the user was already inactive (or missing).

        The activo condition is part of the UPDATE so two concurrent
        deactivations cannot both report success.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                users.update().where((users.c.id == user_id) & (users.c.activo.is_(True))).values(activo=False)
            )
            conn.commit()
        return result.rowcount > 0


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        nombre=row.nombre,
        email=row.email,
        password_hash=row.password_hash,
        rol=row.rol,
        villa_id=row.villa_id,
        activo=bool(row.activo),
        created_at=row.created_at,
        villa_nombre=getattr(row, "villa_nombre", None),
    )
