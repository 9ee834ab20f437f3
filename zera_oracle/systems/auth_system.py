# zera_oracle/systems/auth_system.py
import hmac
import logging
import time
from dataclasses import dataclass
from functools import wraps
from typing import Any, Optional

from flask import current_app, g, request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from zera_oracle.errors import Unauthenticated

logger = logging.getLogger(__name__)

TOKEN_SALT = "admin-login"
ADMIN_ROLE = "admin"
DEFAULT_SUBJECT = "ops"


@dataclass(frozen=True)
class Principal:
    """The identity behind a write."""

    subject: str
    is_system: bool = False

    @property
    def updated_by(self) -> str:
        """Tag written into PriceRecord.updated_by."""
        return self.subject if self.is_system else f"admin:{self.subject}"


# Automated writers. They skip the human quota but share the write path.
PEGGER_PRINCIPAL = Principal("pegger", is_system=True)
SEED_PRINCIPAL = Principal("seed", is_system=True)


# ===========================
# Token Serializer Utilities
# ===========================
def get_serializer(secret_key: Optional[str] = None) -> URLSafeTimedSerializer:
    """Creates a timed serializer for generating and verifying admin tokens."""
    secret_key = secret_key or current_app.config.get("JWT_SECRET")
    if not secret_key:
        raise ValueError("JWT_SECRET is not configured.")
    return URLSafeTimedSerializer(secret_key)


def issue_token(subject: str) -> str:
    """Mints a signed admin token carrying the subject and its expiry."""
    ttl = int(current_app.config.get("ADMIN_TOKEN_TTL_SECS", 3600))
    payload = {"sub": subject, "role": ADMIN_ROLE, "exp": int(time.time()) + ttl}
    return get_serializer().dumps(payload, salt=TOKEN_SALT)


def authenticate(token: Optional[str]) -> Principal:
    """Verifies a token's signature and expiry and returns its principal."""
    if not token:
        raise Unauthenticated()
    ttl = int(current_app.config.get("ADMIN_TOKEN_TTL_SECS", 3600))
    try:
        payload = get_serializer().loads(token, salt=TOKEN_SALT, max_age=ttl)
    except (SignatureExpired, BadSignature):
        logger.warning("Invalid or expired admin token received.")
        raise Unauthenticated()

    if not isinstance(payload, dict):
        raise Unauthenticated()
    subject = payload.get("sub")
    exp = payload.get("exp")
    if not isinstance(subject, str) or not subject or payload.get("role") != ADMIN_ROLE:
        raise Unauthenticated()
    if not isinstance(exp, int) or exp <= time.time():
        raise Unauthenticated()
    return Principal(subject)


# ===========================
# Login
# ===========================
def login(body: Any) -> str:
    """
    Exchanges the shared admin secret for a token.

    Wrong secret, missing secret and malformed body all fail the same way.
    """
    expected = current_app.config.get("ADMIN_UI_PASSWORD") or ""
    provided = body.get("password") if isinstance(body, dict) else None
    if not isinstance(provided, str):
        provided = ""

    # Compare even on malformed input so timing doesn't reveal which check failed.
    matches = hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))
    if not matches or not expected:
        logger.warning("Rejected admin login attempt.")
        raise Unauthenticated()

    subject = body.get("user") if isinstance(body.get("user"), str) and body.get("user") else DEFAULT_SUBJECT
    logger.info(f"Admin login accepted for '{subject}'.")
    return issue_token(subject)


def bearer_token() -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        return header[len("Bearer "):].strip() or None
    return None


def require_admin(f):
    """Route decorator: authenticates the bearer token and sets g.principal."""
    @wraps(f)
    def wrapper(*args, **kwargs):
        g.principal = authenticate(bearer_token())
        return f(*args, **kwargs)
    return wrapper


# --- Function for status page ---
def get_auth_status():
    """Returns the current operational status of the authentication system."""
    configured = bool(current_app.config.get("JWT_SECRET")) and bool(current_app.config.get("ADMIN_UI_PASSWORD"))
    return {"active": True, "healthy": configured, "info": "Authentication system operational"}
