#!/usr/bin/env python3
"""
Padrón JJVV -- municipal resident registry by villa.

Usage:
  python main.py create-admin
  python main.py create-admin --email jefa@municipalidad.cl --password Secreta99 --nombre "Jefa de Registro"
  python main.py serve
  python main.py serve --port 8080 --reload

Environment variables (or .env):
  DATABASE_URL  SQLAlchemy URL of the registry database (default: sqlite file padron.db)
  SECRET_KEY    Token signing key, at least 32 characters. Required unless DEBUG=true.
  PORT          Default port for `serve` (3000)
"""

import argparse
import sys

from auth.models import Role, User
from auth.store import UserStore
from auth.tokens import hash_password
from core.config import get_settings
from core.database import create_db_engine

DEFAULT_ADMIN_EMAIL = "admin@municipalidad.cl"
DEFAULT_ADMIN_PASSWORD = "Admin1234"
DEFAULT_ADMIN_NOMBRE = "Admin Municipal"


def create_admin(store: UserStore, email: str, password: str, nombre: str) -> bool:
    """Insert an ADMIN account without a villa. Returns False if the email is taken."""
    email = email.strip().lower()
    if store.get_by_email(email) is not None:
        return False
    store.create_user(
        User(
            nombre=nombre.strip(),
            email=email,
            rol=Role.ADMIN.value,
            password_hash=hash_password(password),
        )
    )
    return True


def _cmd_create_admin(args: argparse.Namespace) -> int:
    if len(args.password) < 6:
        print("  [!] La contraseña debe tener al menos 6 caracteres.")
        return 1
    engine = create_db_engine(args.database_url or get_settings().database_url)
    try:
        created = create_admin(UserStore(engine), args.email, args.password, args.nombre)
    finally:
        engine.dispose()
    if created:
        print(f"Usuario administrador creado: {args.email}")
    else:
        print(f"Ya existe un usuario con el email {args.email}; no se hicieron cambios.")
    return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("api.main:app", host=args.host, port=args.port or get_settings().port, reload=args.reload)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="padron",
        description="Registro municipal de residentes por villa.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py create-admin
  python main.py create-admin --email jefa@municipalidad.cl --password Secreta99
  python main.py serve --port 8080
        """,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    admin = sub.add_parser("create-admin", help="Create the initial ADMIN account if it does not exist")
    admin.add_argument("--email", default=DEFAULT_ADMIN_EMAIL, help=f"Login email (default: {DEFAULT_ADMIN_EMAIL})")
    admin.add_argument(
        "--password",
        default=DEFAULT_ADMIN_PASSWORD,
        help="Initial password. Change it after the first login.",
    )
    admin.add_argument("--nombre", default=DEFAULT_ADMIN_NOMBRE, help=f"Display name (default: {DEFAULT_ADMIN_NOMBRE})")
    admin.add_argument("--database-url", metavar="URL", help="Override DATABASE_URL")
    admin.set_defaults(func=_cmd_create_admin)

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=None, help="Bind port (default: PORT setting, 3000)")
    serve.add_argument("--reload", action="store_true", help="Restart on code changes (development)")
    serve.set_defaults(func=_cmd_serve)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
