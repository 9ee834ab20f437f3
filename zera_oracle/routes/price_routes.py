import http
import logging
from flask import Blueprint, request, jsonify, g

from zera_oracle.models.db_utils import get_session_scope
from zera_oracle.services.store_service import store_service
from zera_oracle.services.write_pipeline import write_pipeline
from zera_oracle.systems.auth_system import require_admin
from zera_oracle.validation import PricePatchSchema, PriceUpsertSchema, parse_body

logger = logging.getLogger(__name__)

price_bp = Blueprint("prices", __name__)

EXAMPLE_PRICES = [
    {"mint": "GkN1...", "symbol": "USDC", "usd_mantissa": "100", "usd_scale": 2, "decimals": 6},
    {"mint": "3ZaR...", "symbol": "ZERA", "usd_mantissa": "10", "usd_scale": 2, "decimals": 6},
]


def _is_true(value) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes")


@price_bp.route("/prices", methods=["GET"])
def list_prices():
    with get_session_scope() as session:
        prices = [record.to_dict() for record in store_service.list_prices(session)]
    return jsonify(prices), http.HTTPStatus.OK


@price_bp.route("/prices/_examples", methods=["GET"])
def price_examples():
    """Sample write bodies for operators wiring up a new mint."""
    return jsonify({"examples": EXAMPLE_PRICES}), http.HTTPStatus.OK


@price_bp.route("/prices/<string:mint>", methods=["GET"])
def get_price(mint):
    with get_session_scope() as session:
        price = store_service.get_price(session, mint).to_dict()
    return jsonify(price), http.HTTPStatus.OK


@price_bp.route("/prices", methods=["POST"])
@require_admin
def upsert_price():
    """
    Creates or fully replaces a price record.
    With ?strict=true an existing record is a conflict instead.
    """
    body = parse_body(PriceUpsertSchema, request.get_json(silent=True))
    result = write_pipeline.upsert_price(
        g.principal, body.mint, body.as_fields(), strict=_is_true(request.args.get("strict"))
    )
    return jsonify(result.after), http.HTTPStatus.CREATED


@price_bp.route("/prices/<string:mint>", methods=["PATCH"])
@require_admin
def patch_price(mint):
    body = parse_body(PricePatchSchema, request.get_json(silent=True))
    result = write_pipeline.patch_price(g.principal, mint, body.as_fields())
    return jsonify(result.after), http.HTTPStatus.OK


@price_bp.route("/prices/<string:mint>", methods=["DELETE"])
@require_admin
def delete_price(mint):
    write_pipeline.delete_price(g.principal, mint)
    return "", http.HTTPStatus.NO_CONTENT
