"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic beyond convenience
properties). Stores and routes do the work.

Layer rule: no imports from api/, registry/ or audit/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Role(str, Enum):
    """The closed set of roles. Every authorization point branches on these two."""

    ADMIN = "ADMIN"
    DIRIGENTE = "DIRIGENTE"

    @classmethod
    def parse(cls, value: object) -> Optional["Role"]:
        """Upper-case and map a raw role string. Unknown values return None."""
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


@dataclass
class User:
    """A persisted account.

    villa_id is required for DIRIGENTE and always None for ADMIN. Accounts
    are never hard-deleted: deactivation sets activo=False.
    """

    nombre: str
    email: str
    rol: str  # "ADMIN" | "DIRIGENTE"
    id: Optional[int] = None
    password_hash: Optional[str] = None
    villa_id: Optional[int] = None
    activo: bool = True
    created_at: Optional[str] = None
    villa_nombre: Optional[str] = None  # filled by joined listings only

    def snapshot(self) -> dict:
        """Audit-log representation. Never includes the password hash."""
        return {
            "id": self.id,
            "nombre": self.nombre,
            "email": self.email,
            "rol": self.rol,
            "villa_id": self.villa_id,
            "activo": self.activo,
        }


@dataclass(frozen=True)
class Identity:
    """Claims carried by a verified session token, attached to each request.

    role is None when the token carries a role outside the Role enum; every
    authorization check treats that as forbidden.
    """

    id: int
    nombre: str
    email: str
    role: Optional[Role]
    villa_id: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    @property
    def is_dirigente(self) -> bool:
        return self.role is Role.DIRIGENTE
