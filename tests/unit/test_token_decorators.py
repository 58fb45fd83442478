from types import SimpleNamespace

import pytest
from flask import Flask, jsonify
from jwt.exceptions import ExpiredSignatureError, InvalidAudienceError

from idp.api import decorators


@pytest.fixture
def app_ctx():
    app = Flask(__name__)
    app.config["TESTING"] = False
    app.config["APP_CONFIG"] = SimpleNamespace(
        idp_issuer="https://issuer/realms/demo",
        jwks_url="https://issuer/realms/demo/protocol/openid-connect/certs",
        api_audience="",
    )
    with app.app_context():
        yield app


@pytest.fixture
def protected_app(app_ctx):
    @app_ctx.route("/protected")
    @decorators.require_oauth_token(scopes=[decorators.SCOPE_ATTRIBUTES_WRITE])
    def protected():
        return jsonify({"client": decorators.get_oauth_client_id()})

    return app_ctx


class DummySigningKey:
    key = "secret"


class DummyJWKS:
    def get_signing_key_from_jwt(self, token):
        return DummySigningKey()


@pytest.fixture
def jwks(monkeypatch):
    monkeypatch.setattr(decorators, "_jwks_client", None)
    monkeypatch.setattr(decorators, "get_jwks_client", lambda: DummyJWKS())


def test_validate_jwt_token_expired_raises_token_validation_error(monkeypatch, app_ctx, jwks):
    def raise_expired(*args, **kwargs):
        raise ExpiredSignatureError("expired")

    monkeypatch.setattr(decorators.jwt, "decode", raise_expired)

    with pytest.raises(decorators.TokenValidationError) as exc:
        decorators.validate_jwt_token("header.payload.signature")

    assert "Token expired" in str(exc.value)


def test_validate_jwt_token_wrong_audience(monkeypatch, app_ctx, jwks):
    def raise_audience(*args, **kwargs):
        raise InvalidAudienceError("aud")

    monkeypatch.setattr(decorators.jwt, "decode", raise_audience)

    with pytest.raises(decorators.TokenValidationError, match="Invalid audience"):
        decorators.validate_jwt_token("header.payload.signature")


def test_validate_jwt_token_unexpected_exception_wrapped(monkeypatch, app_ctx, jwks):
    def raise_generic(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(decorators.jwt, "decode", raise_generic)

    with pytest.raises(decorators.TokenValidationError) as exc:
        decorators.validate_jwt_token("header.payload.signature")

    assert "Token validation failed" in str(exc.value)


def test_validate_jwt_token_success(monkeypatch, app_ctx, jwks):
    captured = {}

    def decode_success(*args, **kwargs):
        captured.update(kwargs)
        return {"sub": "svc", "scope": "attributes:read", "client_id": "sp-sync"}

    monkeypatch.setattr(decorators.jwt, "decode", decode_success)

    claims = decorators.validate_jwt_token("header.payload.signature")

    assert claims["client_id"] == "sp-sync"
    assert captured["issuer"] == "https://issuer/realms/demo"
    assert captured["algorithms"] == ["RS256"]
    assert captured["options"]["verify_aud"] is False


def test_missing_header_returns_401(protected_app):
    response = protected_app.test_client().get("/protected")

    assert response.status_code == 401
    assert response.get_json()["error"] == "Unauthorized"


def test_non_bearer_header_returns_401(protected_app):
    response = protected_app.test_client().get("/protected", headers={"Authorization": "Basic abc"})

    assert response.status_code == 401
    assert "Expected 'Bearer <token>'" in response.get_json()["message"]


def test_insufficient_scope_returns_403(monkeypatch, protected_app):
    monkeypatch.setattr(decorators, "validate_jwt_token", lambda token: {"scope": "attributes:read"})

    response = protected_app.test_client().get("/protected", headers={"Authorization": "Bearer abc"})

    assert response.status_code == 403
    assert response.get_json()["message"] == "Insufficient scope. Required: attributes:write"


def test_valid_token_exposes_client_id(monkeypatch, protected_app):
    monkeypatch.setattr(
        decorators,
        "validate_jwt_token",
        lambda token: {"scope": "attributes:write", "azp": "admin-console"},
    )

    response = protected_app.test_client().get("/protected", headers={"Authorization": "Bearer abc"})

    assert response.status_code == 200
    assert response.get_json() == {"client": "admin-console"}


def test_oauth_bypass_only_when_testing(app_ctx):
    app_ctx.config.update(TESTING=True, SKIP_OAUTH_FOR_TESTS=True)

    claims = decorators.validate_jwt_token("anything")

    assert claims["client_id"] == "test-client"
    assert decorators.SCOPE_USERS_WRITE in claims["scope"].split()
