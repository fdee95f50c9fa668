"""
tests/test_villas_routes.py -- Integration tests for /api/villas.

Covers:
  - Any authenticated role can list; only ADMIN can mutate
  - cupo_maximo coercion: junk -> 0, negative -> 400
  - Delete is refused (409) while users or personas reference the villa
  - Mutations are audited with before/after snapshots
"""

from __future__ import annotations


class TestList:
    def test_dirigente_can_list(self, api):
        villa_id = api.make_villa("Villa Los Aromos", cupo=50)
        _, token = api.make_dirigente(villa_id)
        resp = api.client.get("/api/villas", headers=api.headers(token))
        assert resp.status_code == 200
        assert resp.json() == [{"id": villa_id, "nombre": "Villa Los Aromos", "cupo_maximo": 50}]

    def test_requires_auth(self, api):
        assert api.client.get("/api/villas").status_code == 401


class TestCreate:
    def test_create(self, api):
        resp = api.client.post("/api/villas", json={"nombre": "Villa Nueva", "cupo_maximo": 80}, headers=api.admin_headers)
        assert resp.status_code == 201
        assert resp.json()["cupo_maximo"] == 80
        entry = api.audit.list_entries()[0]
        assert entry.accion == "CREATE_VILLA"
        assert entry.entidad_nombre == "Villa Nueva"

    def test_junk_cupo_becomes_unlimited(self, api):
        resp = api.client.post("/api/villas", json={"nombre": "Villa Nueva", "cupo_maximo": "mucho"}, headers=api.admin_headers)
        assert resp.status_code == 201
        assert resp.json()["cupo_maximo"] == 0

    def test_missing_cupo_is_zero(self, api):
        resp = api.client.post("/api/villas", json={"nombre": "Villa Nueva"}, headers=api.admin_headers)
        assert resp.json()["cupo_maximo"] == 0

    def test_negative_cupo(self, api):
        resp = api.client.post("/api/villas", json={"nombre": "Villa Nueva", "cupo_maximo": -3}, headers=api.admin_headers)
        assert resp.status_code == 400
        assert resp.json()["errors"] == [{"campo": "cupo_maximo", "mensaje": "El cupo máximo no puede ser negativo"}]

    def test_cupo_too_large(self, api):
        resp = api.client.post("/api/villas", json={"nombre": "Grande", "cupo_maximo": "1e30"}, headers=api.admin_headers)
        assert resp.status_code == 400
        assert resp.json()["errors"] == [{"campo": "cupo_maximo", "mensaje": "El cupo máximo es demasiado grande"}]
        assert api.registry.list_villas() == []

    def test_nombre_required(self, api):
        resp = api.client.post("/api/villas", json={"nombre": "  "}, headers=api.admin_headers)
        assert resp.status_code == 400

    def test_dirigente_forbidden(self, api):
        villa_id = api.make_villa()
        _, token = api.make_dirigente(villa_id)
        resp = api.client.post("/api/villas", json={"nombre": "Villa Nueva"}, headers=api.headers(token))
        assert resp.status_code == 403


class TestUpdate:
    def test_update(self, api):
        villa_id = api.make_villa("Villa Vieja", cupo=10)
        resp = api.client.put(
            f"/api/villas/{villa_id}", json={"nombre": "Villa Renovada", "cupo_maximo": 20}, headers=api.admin_headers
        )
        assert resp.status_code == 200
        assert resp.json() == {"id": villa_id, "nombre": "Villa Renovada", "cupo_maximo": 20}
        entry = api.audit.list_entries()[0]
        assert entry.datos_antes == {"id": villa_id, "nombre": "Villa Vieja", "cupo_maximo": 10}
        assert entry.datos_despues["cupo_maximo"] == 20

    def test_missing(self, api):
        resp = api.client.put("/api/villas/999", json={"nombre": "Villa X"}, headers=api.admin_headers)
        assert resp.status_code == 404


class TestDelete:
    def test_delete_empty_villa(self, api):
        villa_id = api.make_villa()
        resp = api.client.delete(f"/api/villas/{villa_id}", headers=api.admin_headers)
        assert resp.status_code == 200
        assert api.registry.get_villa(villa_id) is None
        entry = api.audit.list_entries()[0]
        assert entry.accion == "DELETE_VILLA"
        assert entry.datos_despues is None

    def test_referenced_by_dirigente(self, api):
        villa_id = api.make_villa()
        api.make_dirigente(villa_id)
        resp = api.client.delete(f"/api/villas/{villa_id}", headers=api.admin_headers)
        assert resp.status_code == 409
        assert api.registry.get_villa(villa_id) is not None
        assert api.audit_count() == 0

    def test_referenced_by_persona(self, api):
        villa_id = api.make_villa()
        api.client.post(
            "/api/admin/personas",
            json={"nombre": "Juan Pérez", "rut": "12345678-5", "villa_id": villa_id},
            headers=api.admin_headers,
        )
        resp = api.client.delete(f"/api/villas/{villa_id}", headers=api.admin_headers)
        assert resp.status_code == 409

    def test_missing(self, api):
        assert api.client.delete("/api/villas/999", headers=api.admin_headers).status_code == 404
