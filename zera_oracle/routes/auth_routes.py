import http
import logging
from flask import Blueprint, request, jsonify

from zera_oracle.systems.auth_system import login

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__)


@auth_bp.route("/admin/login", methods=["POST"])
def admin_login():
    """Exchanges the shared admin secret for a bearer token."""
    body = request.get_json(silent=True)
    token = login(body)
    return jsonify({"token": token}), http.HTTPStatus.OK
