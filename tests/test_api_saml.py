"""Claim preview endpoint."""
import json

from idp.core.claims import ClaimTypes
from tests.conftest import ALICE_UUID, SP1, SP2

HEADERS = {"Authorization": "Bearer test"}


def test_claims_for_full_user(client):
    response = client.get(f"/api/saml/claims?username=alice&entityId={SP1}", headers=HEADERS)
    assert response.status_code == 200

    payload = response.get_json()
    assert payload["entity_id"] == SP1
    claims = payload["claims"]
    assert claims[0] == {"name": ClaimTypes.COMMON_NAME, "value": "alice"}
    assert claims[1] == {"name": ClaimTypes.ID, "value": ALICE_UUID}
    assert claims[-2:] == [
        {"name": "ext:office", "value": "305"},
        {"name": "urn:languages", "value": ["en", "de"]},
    ]

    services = next(c["value"] for c in claims if c["name"] == ClaimTypes.SERVICES)
    assert [json.loads(s)["name"] for s in services] == ["Learning Platform", "Library"]


def test_claims_without_allow_listed_values(client):
    claims = client.get(f"/api/saml/claims?username=bob&entityId={SP2}", headers=HEADERS).get_json()["claims"]

    assert len(claims) == 10
    assert {"name": ClaimTypes.GRADE, "value": "10a"} in claims
    assert {"name": ClaimTypes.EDU_PERSON_AFFILIATION, "value": ["student"]} in claims


def test_claims_for_unknown_principal(client):
    response = client.get(f"/api/saml/claims?username=guest&entityId={SP1}", headers=HEADERS)

    assert response.get_json()["claims"] == [{"name": ClaimTypes.COMMON_NAME, "value": "guest"}]


def test_claims_for_unknown_service_provider(client):
    claims = client.get(
        "/api/saml/claims?username=alice&entityId=https://unknown.example.org",
        headers=HEADERS,
    ).get_json()["claims"]

    assert len(claims) == 10


def test_claims_require_parameters(client):
    response = client.get("/api/saml/claims?username=alice", headers=HEADERS)
    assert response.status_code == 400
    assert "entityId" in response.get_json()["message"]
