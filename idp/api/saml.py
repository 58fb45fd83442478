"""Claim preview for the SAML assertion builder.

    GET /api/saml/claims?username=<username>&entityId=<sp entity id>

Returns the claims the IdP would release, in release order. Unknown
usernames are treated as a bare authenticated principal (CommonName only).
"""
from flask import Blueprint, abort, jsonify, request

from idp.api import get_services
from idp.api.decorators import SCOPE_ATTRIBUTES_READ, require_oauth_token
from idp.core.models import Principal

bp = Blueprint("saml", __name__)


@bp.route("/claims", methods=["GET"])
@require_oauth_token(scopes=[SCOPE_ATTRIBUTES_READ])
def claims():
    username = (request.args.get("username") or "").strip()
    entity_id = (request.args.get("entityId") or "").strip()
    if not username or not entity_id:
        abort(400, description="Query parameters 'username' and 'entityId' are required")

    services = get_services()
    principal = services.directory.users.find_one_by_username(username) or Principal(username=username)

    released = services.claims.get_values_for_user(principal, entity_id)
    return jsonify({
        "entity_id": entity_id,
        "claims": [{"name": claim.name, "value": claim.value} for claim in released],
    })
