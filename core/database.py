"""
core/database.py -- Shared SQLAlchemy Core schema and engine factory.

Users, villas, personas and the audit log live in one relational database
because they reference each other (users.villa_id and personas.villa_id are
foreign keys to villas; the audit listing joins users). Every store receives
the same Engine, built once by create_db_engine() in the application
lifespan.

Uses SQLAlchemy Core (not ORM): the dataclasses in auth/models.py,
registry/models.py and audit/models.py remain the domain representation, and
each store maps rows into them. Swapping SQLite for PostgreSQL is a
connection string change.

Security: all queries in the stores use bound parameters. No f-strings in SQL.
"""

from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
)
from sqlalchemy.engine import Engine

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

villas = Table(
    "villas",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("nombre", String(255), nullable=False),
    Column("cupo_maximo", Integer, nullable=False, server_default="0"),  # 0 = unlimited
)

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("nombre", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("rol", String(20), nullable=False),  # "ADMIN" | "DIRIGENTE"
    Column("villa_id", Integer, ForeignKey("villas.id")),  # NULL for ADMIN
    Column("activo", Boolean, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
)

personas = Table(
    "personas",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("nombre", String(255), nullable=False),
    Column("rut", String(12), nullable=False, unique=True),  # canonical "NNNNNNNN-D"
    Column("direccion", String(255)),
    Column("telefono", String(20)),
    Column("correo", String(255), unique=True),
    Column("villa_id", Integer, ForeignKey("villas.id"), nullable=False),
)

# Append-only. Rows are never updated or deleted by the application.
logs = Table(
    "logs",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("usuario_id", Integer),
    Column("accion", String(50), nullable=False),
    Column("entidad", String(20), nullable=False),  # "PERSONA" | "USER" | "VILLA"
    Column("entidad_id", Integer),
    Column("datos_antes", Text),  # JSON snapshot or NULL
    Column("datos_despues", Text),  # JSON snapshot or NULL
    Column("ip", String(64)),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL and foreign key enforcement on every new SQLite connection.

    SQLite PRAGMAs are per-connection and not inherited from the pool.
    foreign_keys is OFF by default in SQLite, which would let a villa be
    deleted while personas still reference it.
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _begin_immediate(conn) -> None:
    """Open every SQLite transaction with BEGIN IMMEDIATE.

    pysqlite would otherwise defer BEGIN until the first INSERT/UPDATE, so the
    reads of a read-then-write (the persona capacity check) would run outside
    the transaction. BEGIN IMMEDIATE takes the database write lock before the
    first read; a second writer waits up to the driver's busy timeout.
    """
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_db_engine(db_url: str) -> Engine:
    """Build an Engine for db_url and make sure the schema exists."""
    connect_args: dict = {}
    is_sqlite = db_url.startswith("sqlite")
    if is_sqlite:
        connect_args["check_same_thread"] = False
        # Disable pysqlite's own transaction handling; _begin_immediate emits BEGIN.
        connect_args["isolation_level"] = None
    engine = create_engine(db_url, connect_args=connect_args)
    if is_sqlite:
        event.listen(engine, "connect", _set_sqlite_pragmas)
        event.listen(engine, "begin", _begin_immediate)
    init_schema(engine)
    return engine


def init_schema(engine: Engine) -> None:
    """Create any missing tables. Idempotent -- safe on every startup."""
    metadata.create_all(engine)
