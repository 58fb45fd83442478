"""Role default endpoints."""
import json

from tests.conftest import ALICE_UUID

HEADERS = {"Authorization": "Bearer test"}


def test_list_roles(client):
    response = client.get("/api/roles", headers=HEADERS)
    assert response.status_code == 200
    assert response.get_json() == {
        "roles": [
            {"id": 1, "name": "Staff", "description": ""},
            {"id": 2, "name": "Library", "description": ""},
        ]
    }


def test_get_role_attributes(client):
    response = client.get("/api/roles/2/attributes", headers=HEADERS)
    assert response.get_json() == {"attributes": {"office": "B12"}}


def test_unknown_role_404(client):
    assert client.get("/api/roles/99/attributes", headers=HEADERS).status_code == 404
    assert client.get("/api/roles/staff/attributes", headers=HEADERS).status_code == 404


def test_update_role_default_changes_resolution(client):
    response = client.patch("/api/roles/1/attributes", json={"attributes": {"office": "202"}}, headers=HEADERS)
    assert response.status_code == 204

    resolved = client.get(f"/api/user/{ALICE_UUID}/attributes", headers=HEADERS).get_json()["resolved"]
    assert resolved["office"] == "202"


def test_update_role_rejects_invalid_value(client):
    response = client.patch(
        "/api/roles/1/attributes",
        json={"attributes": {"languages": ["en", "xx"]}},
        headers=HEADERS,
    )
    assert response.status_code == 400
    assert response.get_json()["violations"][0]["property"] == "languages"

    assert client.get("/api/roles/1/attributes", headers=HEADERS).get_json() == {"attributes": {"office": "201"}}


def test_update_role_is_audited_with_client(client, flask_app):
    client.patch("/api/roles/2/attributes", json={"attributes": {"office": "B14"}}, headers=HEADERS)

    audit = flask_app.extensions["idp"].audit
    event = json.loads(audit.log_file.read_text().splitlines()[-1])
    assert event["event_type"] == "role_attributes_update"
    assert event["subject"] == "Library"
    assert event["operator"] == "test-client"
