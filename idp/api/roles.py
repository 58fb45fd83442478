"""User role endpoints: role default attribute values."""
from flask import Blueprint, jsonify

from idp.api import get_services, json_body
from idp.api.decorators import (
    SCOPE_ATTRIBUTES_READ,
    SCOPE_ATTRIBUTES_WRITE,
    get_oauth_client_id,
    require_oauth_token,
)

bp = Blueprint("roles", __name__)


@bp.route("", methods=["GET"])
@require_oauth_token(scopes=[SCOPE_ATTRIBUTES_READ])
def list_roles():
    roles = get_services().directory.roles.find_all()
    return jsonify({
        "roles": [{"id": role.id, "name": role.name, "description": role.description} for role in roles]
    })


@bp.route("/<role_id>/attributes", methods=["GET"])
@require_oauth_token(scopes=[SCOPE_ATTRIBUTES_READ])
def get_role_attributes(role_id):
    return jsonify({"attributes": get_services().users.role_attributes(role_id)})


@bp.route("/<role_id>/attributes", methods=["PATCH"])
@require_oauth_token(scopes=[SCOPE_ATTRIBUTES_WRITE])
def update_role_attributes(role_id):
    payload = json_body()
    attributes = payload.get("attributes")
    if not isinstance(attributes, dict):
        return jsonify({"violations": [{"property": "attributes", "message": "This value should be an object."}]}), 400

    get_services().users.update_role_attributes(role_id, attributes, operator=get_oauth_client_id())
    return "", 204
