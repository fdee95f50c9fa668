"""Tests for main.py -- the create-admin command."""

from __future__ import annotations

from auth.store import UserStore
from auth.tokens import verify_password
from core.database import create_db_engine
from main import DEFAULT_ADMIN_EMAIL, create_admin, main


def test_create_admin_defaults(tmp_path, capsys):
    url = f"sqlite:///{tmp_path / 'padron.db'}"
    assert main(["create-admin", "--database-url", url]) == 0
    assert DEFAULT_ADMIN_EMAIL in capsys.readouterr().out

    engine = create_db_engine(url)
    user = UserStore(engine).get_by_email(DEFAULT_ADMIN_EMAIL)
    engine.dispose()
    assert user.rol == "ADMIN"
    assert user.villa_id is None
    assert user.nombre == "Admin Municipal"
    assert verify_password("Admin1234", user.password_hash)


def test_create_admin_is_idempotent(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'padron.db'}")
    store = UserStore(engine)
    assert create_admin(store, "Jefa@Municipalidad.cl", "Secreta99", "Jefa de Registro")
    assert not create_admin(store, "jefa@municipalidad.cl", "Otra1234", "Otra")
    assert len(store.list_active()) == 1
    assert verify_password("Secreta99", store.get_by_email("jefa@municipalidad.cl").password_hash)
    engine.dispose()


def test_short_password_is_rejected(tmp_path, capsys):
    url = f"sqlite:///{tmp_path / 'padron.db'}"
    assert main(["create-admin", "--database-url", url, "--password", "123"]) == 1
    assert "6 caracteres" in capsys.readouterr().out
