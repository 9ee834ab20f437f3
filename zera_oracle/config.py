import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str) -> list:
    raw = os.environ.get(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


class Config:
    """
    Unified configuration class for the oracle.
    Reads settings primarily from environment variables, with sensible defaults.
    """

    # --- Security ---
    JWT_SECRET = os.environ.get("JWT_SECRET")
    ADMIN_UI_PASSWORD = os.environ.get("ADMIN_UI_PASSWORD")
    ADMIN_TOKEN_TTL_SECS = int(os.environ.get("ADMIN_TOKEN_TTL_SECS", 3600))

    # --- Logging ---
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
    LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    # --- Database Configuration ---
    # ORACLE_DB_PATH points at a SQLite file; DATABASE_URL wins when both are set.
    ORACLE_DB_PATH = os.environ.get("ORACLE_DB_PATH", "./oracle.sqlite")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL") or f"sqlite:///{os.path.abspath(ORACLE_DB_PATH)}"
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # --- Write admission ---
    WRITE_RATE_LIMIT_PER_MINUTE = int(os.environ.get("WRITE_RATE_LIMIT_PER_MINUTE", 60))
    WRITE_RATE_LIMIT_WINDOW_SECS = 60

    # --- Pegger ---
    PEG_SOURCES = os.environ.get("PEG_SOURCES", "")
    PEG_INTERVAL_SECS = float(os.environ.get("PEG_INTERVAL_SECS", 15))
    PEG_HTTP_TIMEOUT_SECS = float(os.environ.get("PEG_HTTP_TIMEOUT_SECS", 5))
    PEG_ENABLED = _env_bool("PEG_ENABLED", True)

    # --- Live updates (SSE) ---
    SSE_QUEUE_SIZE = int(os.environ.get("SSE_QUEUE_SIZE", 256))
    SSE_MAX_DROPS = int(os.environ.get("SSE_MAX_DROPS", 1024))
    SSE_HEARTBEAT_SECS = float(os.environ.get("SSE_HEARTBEAT_SECS", 15))
    SSE_IDLE_TIMEOUT_SECS = float(os.environ.get("SSE_IDLE_TIMEOUT_SECS", 120))
    SSE_REAP_INTERVAL_SECS = float(os.environ.get("SSE_REAP_INTERVAL_SECS", 30))

    # --- Oracle defaults (used when the config row is first created) ---
    ORACLE_NETWORK = os.environ.get("ORACLE_NETWORK", "devnet")
    ORACLE_VERSION = "v0.1"
    DEFAULT_FEE_BPS = int(os.environ.get("DEFAULT_FEE_BPS", 100))
    ZERA_MINT = os.environ.get("ZERA_MINT", "")
    SUPPORTED_MINTS = _env_list("SUPPORTED_MINTS")

    # --- Seed fixtures ---
    USDC_DEVNET_MINT = os.environ.get("USDC_DEVNET_MINT")
    ZERA_DEVNET_MINT = os.environ.get("ZERA_DEVNET_MINT")

    # --- CORS Origins ---
    CORS_ORIGINS = _env_list("CORS_ORIGINS") or "*"

    # Background threads are off under test; tests drive them explicitly.
    START_BACKGROUND_SYSTEMS = _env_bool("START_BACKGROUND_SYSTEMS", True)

    # Create tables, config row and seed fixtures at startup. Migration
    # tooling turns this off so Alembic owns the schema.
    ORACLE_BOOTSTRAP = _env_bool("ORACLE_BOOTSTRAP", True)
    MIGRATIONS_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "alembic")
