"""
registry/models.py -- Domain dataclasses for villas and their residents.

These are pure data containers. Capacity enforcement and ownership rules
live in registry/store.py and the persona routes.
"""

from dataclasses import asdict, dataclass
from typing import Optional


@dataclass
class Villa:
    """A neighborhood association (JJVV).

    cupo_maximo is the maximum number of personas the villa may hold;
    0 means unlimited.
    """

    nombre: str
    cupo_maximo: int = 0
    id: Optional[int] = None

    def snapshot(self) -> dict:
        return asdict(self)


@dataclass
class Persona:
    """A registered resident. Belongs to exactly one villa.

    rut is stored in canonical "NNNNNNNN-D" form. villa_nombre is only
    filled by the joined listings and is not part of the audit snapshot.
    """

    nombre: str
    rut: str
    villa_id: int
    id: Optional[int] = None
    direccion: Optional[str] = None
    telefono: Optional[str] = None
    correo: Optional[str] = None
    villa_nombre: Optional[str] = None

    def snapshot(self) -> dict:
        return {
            "id": self.id,
            "nombre": self.nombre,
            "rut": self.rut,
            "direccion": self.direccion,
            "telefono": self.telefono,
            "correo": self.correo,
            "villa_id": self.villa_id,
        }
