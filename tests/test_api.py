import pytest
from fastapi.testclient import TestClient

from agenda.api.deps import get_store
from agenda.core.rate_limit import limiter
from agenda.core.security import create_access_token
from agenda.main import app
from agenda.models.common import HISTORIAL, REQUISICIONES

from conftest import VALID_INPUT, requisicion


@pytest.fixture
def client(store):
    # sin "with": no corre el startup que conecta a Mongo
    limiter.enabled = False
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()
    limiter.enabled = True


def _auth(user_id):
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


def test_health(client):
    assert client.get("/health").json() == {"ok": True}


def test_missing_or_bad_token(client):
    assert client.get("/requisiciones").status_code in (401, 403)
    r = client.get("/requisiciones", headers={"Authorization": "Bearer basura"})
    assert r.status_code == 401


def test_token_of_deleted_user_is_rejected(client):
    r = client.get("/requisiciones", headers=_auth("u-que-no-existe"))
    assert r.status_code == 401


def test_signup_login_and_me(client):
    r = client.post("/auth/signup", json={"email": "nuevo@planta.mx", "password": "secreto1"})
    assert r.status_code == 201
    assert r.json()["profile"]["rol"] == "pendiente"

    r = client.post("/auth/login", json={"email": "nuevo@planta.mx", "password": "secreto1"})
    assert r.status_code == 200
    token = r.json()["access_token"]

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"}).json()
    assert me["rol_label"] == "Pendiente"
    assert me["capabilities"]["can_create"] is False

    r = client.post("/auth/login", json={"email": "nuevo@planta.mx", "password": "otra-cosa"})
    assert r.status_code == 401


def test_pending_user_gets_403_on_data(client):
    r = client.get("/requisiciones", headers=_auth("u-pend"))
    assert r.status_code == 403
    assert r.json()["detail"]["kind"] == "permission"


def test_create_validation_maps_to_422(client):
    r = client.post("/requisiciones", json={**VALID_INPUT, "cantidad_solicitada": 0}, headers=_auth("u-admin"))
    assert r.status_code == 422
    assert r.json()["detail"]["fields"] == [
        {"field": "cantidad_solicitada", "message": "Debe ser mayor a 0"},
    ]


def test_create_and_list(client, store):
    r = client.post("/requisiciones", json=VALID_INPUT, headers=_auth("u-coord"))
    assert r.status_code == 201
    created = r.json()

    rows = client.get("/requisiciones", headers=_auth("u-lab")).json()
    assert [row["id"] for row in rows] == [created["id"]]
    assert rows[0]["proveedor"]["nombre"] == "Químicos del Norte"


def test_update_returns_changes(client, store):
    store.seed(REQUISICIONES, requisicion())
    r = client.patch("/requisiciones/req-1", json={"numero_oc": "OC-2"}, headers=_auth("u-admin"))
    assert r.status_code == 200
    body = r.json()
    assert body["requisicion"]["numero_oc"] == "OC-2"
    assert body["cambios"] == [{"campo": "Número O.C.", "anterior": "OC-1", "nuevo": "OC-2"}]
    assert body["audit_pending"] is False
    assert len(store.rows(HISTORIAL)) == 1


def test_update_by_view_only_is_403(client, store):
    store.seed(REQUISICIONES, requisicion())
    r = client.patch("/requisiciones/req-1", json={"numero_oc": "OC-2"}, headers=_auth("u-cedis"))
    assert r.status_code == 403
    assert store.tables[REQUISICIONES]["req-1"]["numero_oc"] == "OC-1"


def test_delete_missing_is_404(client):
    r = client.delete("/requisiciones/nope", headers=_auth("u-admin"))
    assert r.status_code == 404


def test_catalog_delete_in_use_is_502_with_guidance(client, store):
    store.seed(REQUISICIONES, requisicion())
    r = client.delete("/catalogos/proveedores/prov-1", headers=_auth("u-admin"))
    assert r.status_code == 502
    assert "desactivarlo" in r.json()["detail"]["message"]


def test_approve_pending_user(client, store):
    r = client.post("/usuarios/u-pend/aprobar", json={"rol": "cedis"}, headers=_auth("u-coord"))
    assert r.status_code == 200
    assert r.json()["rol"] == "cedis"

    r = client.post("/usuarios/u-lab/rechazar", headers=_auth("u-admin"))
    assert r.status_code == 422


def test_history_is_hidden_from_laboratory(client):
    assert client.get("/historial", headers=_auth("u-lab")).status_code == 403
    assert client.get("/historial", headers=_auth("u-coord")).status_code == 200
