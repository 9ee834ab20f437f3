import http
import logging
from flask import Blueprint, request, jsonify

from zera_oracle.errors import ValidationError
from zera_oracle.models.db_utils import get_session_scope
from zera_oracle.services.audit_service import audit_service, parse_cursor

logger = logging.getLogger(__name__)

audit_bp = Blueprint("audit", __name__)


def _parse_limit(raw):
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError("limit must be an integer")


@audit_bp.route("/audit", methods=["GET"])
def list_audit():
    """Most recent entries first. Pass the returned next_cursor to page backwards."""
    limit = _parse_limit(request.args.get("limit"))
    cursor = parse_cursor(request.args.get("cursor"))
    with get_session_scope() as session:
        entries, next_cursor = audit_service.list_entries(session, limit=limit, cursor=cursor)
    return jsonify({"entries": entries, "next_cursor": next_cursor}), http.HTTPStatus.OK
