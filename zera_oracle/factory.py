import atexit
import http
import logging
import sys
from typing import Any, Mapping, Optional

import click
from flask import Flask, jsonify
from sqlalchemy.exc import SQLAlchemyError

from zera_oracle.config import Config
from zera_oracle.errors import ConflictError, OracleError, RateLimited
from zera_oracle.extensions import cors, db, migrate
from zera_oracle.models.db_utils import get_session_scope
from zera_oracle.models import PriceRecord
from zera_oracle.routes import register_routes
from zera_oracle.services.store_service import now_iso, store_service
from zera_oracle.services.write_pipeline import write_pipeline
from zera_oracle.systems.auth_system import SEED_PRINCIPAL, get_auth_status, issue_token
from zera_oracle.systems.broadcaster import broadcaster, get_broadcaster_status
from zera_oracle.systems.pegger import get_pegger_status, pegger
from zera_oracle.systems.rate_limiter import get_rate_limiter_status, rate_limiter

logger = logging.getLogger(__name__)

REQUIRED_SECRETS = ("JWT_SECRET", "ADMIN_UI_PASSWORD")

# (config key, symbol, mantissa) for the devnet fixtures.
SEED_FIXTURES = (
    ("USDC_DEVNET_MINT", "USDC", "100"),
    ("ZERA_DEVNET_MINT", "ZERA", "10"),
)


def setup_logging(app: Flask) -> None:
    log_level = app.config.get("LOG_LEVEL", "INFO").upper()

    # Clear existing handlers
    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)

    formatter = logging.Formatter(app.config.get("LOG_FORMAT"), datefmt="%Y-%m-%d %H:%M:%S")
    ch = logging.StreamHandler(sys.stdout)
    ch.setFormatter(formatter)

    logging.basicConfig(level=log_level, handlers=[ch])
    logging.getLogger("werkzeug").setLevel(logging.INFO if not app.debug else logging.DEBUG)


def create_app(config_overrides: Optional[Mapping[str, Any]] = None) -> Flask:
    """Creates and configures the Flask application."""
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    setup_logging(app)

    missing = [key for key in REQUIRED_SECRETS if not app.config.get(key)]
    if missing:
        logger.critical(f"🚨 Refusing to start; missing required setting(s): {', '.join(missing)}")
        raise RuntimeError(f"Missing required configuration: {', '.join(missing)}")

    # Initialize Flask extensions
    db.init_app(app)
    migrate.init_app(app, db, directory=app.config.get("MIGRATIONS_DIR", "alembic"))
    cors.init_app(app, resources={r"/api/*": {"origins": app.config.get("CORS_ORIGINS", "*")}})
    logger.info("✅ Core Flask extensions initialized.")

    # Initialize custom systems
    rate_limiter.init_app(app)
    broadcaster.init_app(app)
    write_pipeline.init_app(app, rate_limiter=rate_limiter, broadcaster=broadcaster)
    pegger.init_app(app, pipeline=write_pipeline)
    logger.info("✅ All custom systems initialized.")

    register_error_handlers(app)
    register_routes(app)
    register_cli_commands(app)

    if app.config.get("ORACLE_BOOTSTRAP", True):
        with app.app_context():
            bootstrap_database(app)

    @app.route("/health", methods=["GET"])
    def health():
        return jsonify(
            status="ok",
            ts=now_iso(),
            systems={
                "auth": get_auth_status(),
                "rate_limiter": get_rate_limiter_status(),
                "broadcaster": get_broadcaster_status(),
                "pegger": get_pegger_status(),
            },
        ), http.HTTPStatus.OK

    if app.config.get("START_BACKGROUND_SYSTEMS", True):
        rate_limiter.start()
        broadcaster.start()
        pegger.start()
        logger.info("✅ All custom system background threads started.")
        atexit.register(shutdown_systems)

    logger.info("🚀 Flask app created successfully!")
    return app


def bootstrap_database(app: Flask) -> None:
    """Creates tables, the config row and the devnet fixtures when missing."""
    db.create_all()
    with get_session_scope() as session:
        if store_service.ensure_config(session, app.config):
            logger.info("🗄️ Oracle config row created from defaults.")
    seed_fixtures(app)


def seed_fixtures(app: Flask) -> int:
    """Seeds devnet prices for configured mints that don't have one yet."""
    seeded = 0
    for config_key, symbol, mantissa in SEED_FIXTURES:
        mint = app.config.get(config_key)
        if not mint:
            continue
        with get_session_scope() as session:
            exists = session.get(PriceRecord, mint) is not None
        if exists:
            continue
        fields = {"symbol": symbol, "usd_mantissa": mantissa, "usd_scale": 2, "decimals": 6}
        try:
            write_pipeline.upsert_price(SEED_PRINCIPAL, mint, fields, strict=True)
            seeded += 1
        except ConflictError:
            pass
        except OracleError as e:
            logger.warning(f"⚠️ Skipping seed for {config_key}: {e.message}")
    if seeded:
        logger.info(f"🌱 Seeded {seeded} devnet price(s).")
    return seeded


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(OracleError)
    def handle_oracle_error(err: OracleError):
        response = jsonify(err.to_dict())
        response.status_code = int(err.status_code)
        if isinstance(err, RateLimited):
            response.headers["Retry-After"] = str(err.retry_after)
        return response

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(err: SQLAlchemyError):
        logger.exception(f"💥 Database error while handling request: {err}")
        return jsonify({"error": "internal error", "code": 500}), http.HTTPStatus.INTERNAL_SERVER_ERROR


def shutdown_systems(*args, **kwargs) -> None:
    logger.info("Initiating graceful shutdown of background systems...")
    for name, system in (("pegger", pegger), ("broadcaster", broadcaster), ("rate_limiter", rate_limiter)):
        try:
            system.stop()
        except Exception as e:
            logger.error(f"Error stopping {name}: {e}", exc_info=True)
    logger.info("✅ All background systems shut down.")


def register_cli_commands(app: Flask) -> None:
    @app.cli.command("init-db")
    @click.option("--drop", is_flag=True, help="Drop all oracle tables before recreating them.")
    def init_db_command(drop: bool) -> None:
        """Creates tables, the config row and devnet fixtures."""
        if drop:
            click.confirm("This deletes every price, alias and audit entry. Continue?", abort=True)
            db.drop_all()
            click.echo("Dropped all tables.")
        bootstrap_database(app)
        click.echo("Database ready.")

    @app.cli.command("peg-once")
    def peg_once_command() -> None:
        """Runs a single pegger cycle against the configured sources."""
        if not pegger.sources:
            click.echo("No PEG_SOURCES configured.")
            return
        ok, failed = pegger.run_cycle()
        click.echo(f"Peg cycle: {ok} ok, {failed} failed.")

    @app.cli.command("issue-token")
    @click.argument("subject", default="ops")
    def issue_token_command(subject: str) -> None:
        """Prints an admin token for SUBJECT, for scripting against the API."""
        click.echo(issue_token(subject))
