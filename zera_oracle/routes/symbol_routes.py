import http
import logging
from flask import Blueprint, request, jsonify, g

from zera_oracle.models.db_utils import get_session_scope
from zera_oracle.services.store_service import store_service
from zera_oracle.services.write_pipeline import write_pipeline
from zera_oracle.systems.auth_system import require_admin
from zera_oracle.validation import SymbolUpsertSchema, parse_body

logger = logging.getLogger(__name__)

symbol_bp = Blueprint("symbols", __name__)


@symbol_bp.route("/symbols", methods=["GET"])
def list_symbols():
    with get_session_scope() as session:
        symbols = [alias.to_dict() for alias in store_service.list_symbols(session)]
    return jsonify(symbols), http.HTTPStatus.OK


@symbol_bp.route("/symbols", methods=["POST"])
@require_admin
def upsert_symbol():
    """Points a ticker at a mint. The mint doesn't need a price yet."""
    body = parse_body(SymbolUpsertSchema, request.get_json(silent=True))
    result = write_pipeline.upsert_symbol(g.principal, body.symbol, body.mint)
    return jsonify(result.after), http.HTTPStatus.CREATED


@symbol_bp.route("/symbols/<string:symbol>", methods=["DELETE"])
@require_admin
def delete_symbol(symbol):
    write_pipeline.delete_symbol(g.principal, symbol)
    return "", http.HTTPStatus.NO_CONTENT
