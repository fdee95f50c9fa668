"""
API request and response models for the Padrón REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py,
registry/models.py and audit/models.py, which own the internal domain
representation. Route handlers map between the two.

Field names are the Spanish column names the SPA already uses (nombre, rut,
villa_id, cupo_maximo, ...). Validators raise ValueError with the
user-facing Spanish message; api/main.py turns those into a 400 response
with one {campo, mensaje} item per failing field.
"""

from __future__ import annotations

from typing import Any, Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import Role, User
from audit.models import AuditLogEntry
from core.validators import MAX_DB_INT, coerce_capacity, format_rut, is_valid_phone, is_valid_rut
from registry.models import Persona, Villa

# ---------------------------------------------------------------------------
# Shared field checks
# ---------------------------------------------------------------------------


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _check_name(value: Any, missing: str, too_short: str) -> str:
    value = str(value).strip() if value is not None else ""
    if not value:
        raise ValueError(missing)
    if len(value) < 3:
        raise ValueError(too_short)
    return value


def _check_email(value: str, message: str) -> str:
    """Syntax-only check (no DNS lookup); returns the lower-cased address."""
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValueError(message) from exc
    return value.strip().lower()


def _check_villa_id(value: Optional[int]) -> Optional[int]:
    if value is not None and not 1 <= value <= MAX_DB_INT:
        raise ValueError("villa_id debe ser un entero válido")
    return value


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Body for POST /api/auth/login.

    Fields are optional at the schema level so a missing email or password
    is answered by the route (and counted as a failed attempt) instead of
    being rejected before the brute-force guard sees it.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    email: Optional[str] = None
    password: Optional[str] = None
    username: Optional[str] = None


class SessionUser(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    nombre: str
    email: str
    rol: str
    villa_id: Optional[int] = None


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: str
    user: SessionUser


class MeResponse(BaseModel):
    """Identity carried by the caller's token."""

    model_config = ConfigDict(frozen=True)

    id: int
    nombre: str
    email: str
    rol: Optional[str]
    villa_id: Optional[int] = None
    is_admin: bool
    is_dirigente: bool


# ---------------------------------------------------------------------------
# Personas
# ---------------------------------------------------------------------------


class PersonaIn(BaseModel):
    """Body for POST/PUT /api/personas.

    villa_id is ignored for DIRIGENTE callers (their own villa is used) and
    required for ADMIN callers; the route enforces both.
    """

    model_config = ConfigDict(validate_default=True)

    nombre: Optional[str] = None
    rut: Optional[str] = None
    direccion: Optional[str] = None
    telefono: Optional[str] = None
    correo: Optional[str] = None
    villa_id: Optional[int] = None

    @field_validator("nombre", mode="before")
    @classmethod
    def validate_nombre(cls, value: Any) -> str:
        return _check_name(value, "El nombre es obligatorio", "El nombre debe tener al menos 3 caracteres")

    @field_validator("rut", mode="before")
    @classmethod
    def validate_rut(cls, value: Any) -> str:
        value = str(value).strip() if value is not None else ""
        if not value:
            raise ValueError("El RUT es obligatorio")
        if not is_valid_rut(value):
            raise ValueError("RUT inválido")
        return format_rut(value)

    @field_validator("correo", mode="before")
    @classmethod
    def validate_correo(cls, value: Any) -> Optional[str]:
        value = _blank_to_none(value)
        if value is None:
            return None
        return _check_email(str(value), "Correo electrónico inválido")

    @field_validator("telefono", mode="before")
    @classmethod
    def validate_telefono(cls, value: Any) -> Optional[str]:
        value = _blank_to_none(value)
        if value is None:
            return None
        value = str(value).strip()
        if not is_valid_phone(value):
            raise ValueError("Teléfono inválido")
        return value

    @field_validator("direccion", mode="before")
    @classmethod
    def validate_direccion(cls, value: Any) -> Optional[str]:
        value = _blank_to_none(value)
        if value is None:
            return None
        value = str(value).strip()
        if len(value) > 255:
            raise ValueError("Dirección demasiado larga")
        return value

    @field_validator("villa_id")
    @classmethod
    def validate_villa_id(cls, value: Optional[int]) -> Optional[int]:
        return _check_villa_id(value)


class AdminPersonaIn(PersonaIn):
    """Body for /api/admin/personas: the villa is always explicit."""

    villa_id: int = Field(..., description="Target villa. Required on the admin routes.")


class PersonaResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    nombre: str
    rut: str
    direccion: Optional[str] = None
    telefono: Optional[str] = None
    correo: Optional[str] = None
    villa_id: int
    villa_nombre: Optional[str] = None

    @classmethod
    def from_persona(cls, persona: Persona) -> "PersonaResponse":
        return cls(
            id=persona.id,
            nombre=persona.nombre,
            rut=persona.rut,
            direccion=persona.direccion,
            telefono=persona.telefono,
            correo=persona.correo,
            villa_id=persona.villa_id,
            villa_nombre=persona.villa_nombre,
        )


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserIn(BaseModel):
    """Body for POST/PUT /api/users. password is required on create only (route-enforced)."""

    model_config = ConfigDict(validate_default=True)

    nombre: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    rol: Optional[Role] = None
    villa_id: Optional[int] = None

    @field_validator("nombre", mode="before")
    @classmethod
    def validate_nombre(cls, value: Any) -> str:
        return _check_name(value, "El nombre es requerido", "El nombre debe tener al menos 3 caracteres")

    @field_validator("email", mode="before")
    @classmethod
    def validate_email_field(cls, value: Any) -> str:
        value = _blank_to_none(value)
        if value is None:
            raise ValueError("El email es requerido")
        return _check_email(str(value), "Email inválido")

    @field_validator("password", mode="before")
    @classmethod
    def validate_password(cls, value: Any) -> Optional[str]:
        value = _blank_to_none(value)
        if value is None:
            return None
        if len(str(value)) < 6:
            raise ValueError("La contraseña debe tener al menos 6 caracteres")
        return str(value)

    @field_validator("rol", mode="before")
    @classmethod
    def validate_rol(cls, value: Any) -> Role:
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValueError("El rol es requerido")
        role = Role.parse(value)
        if role is None:
            raise ValueError("Rol inválido")
        return role

    @field_validator("villa_id")
    @classmethod
    def validate_villa_id(cls, value: Optional[int]) -> Optional[int]:
        return _check_villa_id(value)


class UserResponse(BaseModel):
    """A user as listed by the admin screens. The password hash is never exposed."""

    model_config = ConfigDict(frozen=True)

    id: int
    nombre: str
    email: str
    rol: str
    villa_id: Optional[int] = None
    activo: bool
    villa_nombre: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            nombre=user.nombre,
            email=user.email,
            rol=user.rol,
            villa_id=user.villa_id,
            activo=user.activo,
            villa_nombre=user.villa_nombre,
        )


# ---------------------------------------------------------------------------
# Villas
# ---------------------------------------------------------------------------


class VillaIn(BaseModel):
    """Body for POST/PUT /api/villas. cupo_maximo accepts anything numeric; junk means 0."""

    model_config = ConfigDict(validate_default=True)

    nombre: Optional[str] = None
    cupo_maximo: Any = None

    @field_validator("nombre", mode="before")
    @classmethod
    def validate_nombre(cls, value: Any) -> str:
        value = str(value).strip() if value is not None else ""
        if not value:
            raise ValueError("El nombre es requerido")
        return value

    @field_validator("cupo_maximo", mode="before")
    @classmethod
    def validate_cupo(cls, value: Any) -> int:
        return coerce_capacity(value)


class VillaResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    nombre: str
    cupo_maximo: int

    @classmethod
    def from_villa(cls, villa: Villa) -> "VillaResponse":
        return cls(id=villa.id, nombre=villa.nombre, cupo_maximo=villa.cupo_maximo)


# ---------------------------------------------------------------------------
# Audit log
# ---------------------------------------------------------------------------


class AuditLogResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    usuario_id: Optional[int] = None
    usuario_nombre: Optional[str] = None
    usuario_rol: Optional[str] = None
    accion: str
    entidad: str
    entidad_id: Optional[int] = None
    entidad_nombre: Optional[str] = None
    datos_antes: Optional[dict] = None
    datos_despues: Optional[dict] = None
    ip: Optional[str] = None
    created_at: str

    @classmethod
    def from_entry(cls, entry: AuditLogEntry) -> "AuditLogResponse":
        return cls(
            id=entry.id,
            usuario_id=entry.usuario_id,
            usuario_nombre=entry.usuario_nombre,
            usuario_rol=entry.usuario_rol,
            accion=entry.accion,
            entidad=entry.entidad,
            entidad_id=entry.entidad_id,
            entidad_nombre=entry.entidad_nombre,
            datos_antes=entry.datos_antes,
            datos_despues=entry.datos_despues,
            ip=entry.ip,
            created_at=entry.created_at or "",
        )


class AuditMessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    fecha: Optional[str]
    mensaje: str


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class FieldError(BaseModel):
    model_config = ConfigDict(frozen=True)

    campo: str
    mensaje: str


class ErrorResponse(BaseModel):
    """Envelope returned on every 4xx/5xx response."""

    model_config = ConfigDict(frozen=True)

    message: str
    code: str
    errors: Optional[list[FieldError]] = None


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    ok: bool = True
    message: str = "API funcionando"
