import http
import logging
from flask import Blueprint, request, jsonify, g

from zera_oracle.models.db_utils import get_session_scope
from zera_oracle.services.store_service import store_service
from zera_oracle.services.write_pipeline import write_pipeline
from zera_oracle.systems.auth_system import require_admin
from zera_oracle.validation import ConfigPatchSchema, parse_body

logger = logging.getLogger(__name__)

config_bp = Blueprint("config", __name__)


@config_bp.route("/config", methods=["GET"])
def get_config():
    with get_session_scope() as session:
        cfg = store_service.get_config(session).to_dict()
    return jsonify(cfg), http.HTTPStatus.OK


@config_bp.route("/config", methods=["PATCH"])
@require_admin
def patch_config():
    body = parse_body(ConfigPatchSchema, request.get_json(silent=True))
    result = write_pipeline.patch_config(g.principal, body.as_fields())
    return jsonify(result.after), http.HTTPStatus.OK
