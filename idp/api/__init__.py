"""JSON API blueprints exposing the attribute core."""
from flask import abort, current_app, request


def get_services():
    """The IdentityServices wired by create_app()."""
    return current_app.extensions["idp"]


def json_body() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        abort(400, description="Request body must be a JSON object")
    return payload
