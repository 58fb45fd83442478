"""User endpoints.

    GET    /api/user                          list user uuids (offset, limit)
    GET    /api/user/<uuidOrExternalId>       single user
    POST   /api/user/add                      create user
    PATCH  /api/user/<uuidOrExternalId>       update user (username is kept)
    DELETE /api/user/<uuidOrExternalId>       remove user and its attribute values
    GET    /api/user/<uuidOrExternalId>/attributes   resolved values + overrides
    PATCH  /api/user/<uuidOrExternalId>/attributes   update given attributes only
"""
from __future__ import annotations
import logging

from flask import Blueprint, jsonify, request

from idp.api import get_services, json_body
from idp.api.decorators import (
    SCOPE_ATTRIBUTES_READ,
    SCOPE_ATTRIBUTES_WRITE,
    SCOPE_USERS_WRITE,
    get_oauth_client_id,
    require_oauth_token,
)

bp = Blueprint("users", __name__)

logger = logging.getLogger(__name__)


@bp.route("", methods=["GET"])
@require_oauth_token(scopes=[SCOPE_ATTRIBUTES_READ])
def list_users():
    uuids = get_services().users.list_uuids(request.args.get("offset"), request.args.get("limit"))
    return jsonify({"users": uuids})


@bp.route("/<uuid_or_external_id>", methods=["GET"])
@require_oauth_token(scopes=[SCOPE_ATTRIBUTES_READ])
def get_user(uuid_or_external_id):
    user = get_services().users.get_user(uuid_or_external_id)
    return jsonify(user.to_dict())


@bp.route("/add", methods=["POST"])
@require_oauth_token(scopes=[SCOPE_USERS_WRITE])
def add_user():
    user = get_services().users.add_user(json_body(), operator=get_oauth_client_id())
    return jsonify({"uuid": user.uuid}), 201


@bp.route("/<uuid_or_external_id>", methods=["PATCH"])
@require_oauth_token(scopes=[SCOPE_USERS_WRITE])
def update_user(uuid_or_external_id):
    get_services().users.update_user(uuid_or_external_id, json_body(), operator=get_oauth_client_id())
    return "", 204


@bp.route("/<uuid_or_external_id>", methods=["DELETE"])
@require_oauth_token(scopes=[SCOPE_USERS_WRITE])
def remove_user(uuid_or_external_id):
    get_services().users.remove_user(uuid_or_external_id, operator=get_oauth_client_id())
    return "", 204


@bp.route("/<uuid_or_external_id>/attributes", methods=["GET"])
@require_oauth_token(scopes=[SCOPE_ATTRIBUTES_READ])
def get_attributes(uuid_or_external_id):
    entity_id = request.args.get("entityId") or None
    return jsonify(get_services().users.user_attributes(uuid_or_external_id, entity_id))


@bp.route("/<uuid_or_external_id>/attributes", methods=["PATCH"])
@require_oauth_token(scopes=[SCOPE_ATTRIBUTES_WRITE])
def update_attributes(uuid_or_external_id):
    """Body: {"attributes": {name: value}, "entity_id": optional SP entity id,
    "only_user_editable": optional bool}.

    A null or empty value clears the override. Self-service frontends set
    ``only_user_editable`` so attributes not marked user editable are refused.
    """
    payload = json_body()
    attributes = payload.get("attributes")
    if not isinstance(attributes, dict):
        return jsonify({"violations": [{"property": "attributes", "message": "This value should be an object."}]}), 400

    get_services().users.update_attributes(
        uuid_or_external_id,
        attributes,
        payload.get("entity_id"),
        operator=get_oauth_client_id(),
        only_user_editable=payload.get("only_user_editable") is True,
    )
    logger.info("Attributes of %s updated by %s", uuid_or_external_id, get_oauth_client_id())
    return "", 204
