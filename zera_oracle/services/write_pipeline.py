import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from flask import Flask
from sqlalchemy.orm import Session

from zera_oracle.models.db_utils import get_session_scope
from zera_oracle.services.audit_service import audit_service
from zera_oracle.services.store_service import Transition, store_service
from zera_oracle.systems.auth_system import Principal
from zera_oracle.systems.broadcaster import Broadcaster, ChangeEvent
from zera_oracle.systems.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

# Audit actions
UPSERT_PRICE = "UPSERT_PRICE"
CREATE_PRICE = "CREATE_PRICE"
PATCH_PRICE = "PATCH_PRICE"
DELETE_PRICE = "DELETE_PRICE"
UPSERT_SYMBOL = "UPSERT_SYMBOL"
DELETE_SYMBOL = "DELETE_SYMBOL"
PATCH_CONFIG = "PATCH_CONFIG"

# Live event types, keyed by audit action
EVENT_TYPES = {
    UPSERT_PRICE: "price_upsert",
    CREATE_PRICE: "price_upsert",
    PATCH_PRICE: "price_patch",
    DELETE_PRICE: "price_delete",
    UPSERT_SYMBOL: "symbol_upsert",
    DELETE_SYMBOL: "symbol_delete",
    PATCH_CONFIG: "config_patch",
}

Mutation = Callable[[Session], Transition]


@dataclass(frozen=True)
class WriteResult:
    kind: str
    key: str
    action: str
    before: Optional[Dict[str, Any]]
    after: Optional[Dict[str, Any]]
    seq: int

    def to_event(self) -> ChangeEvent:
        return ChangeEvent(type=EVENT_TYPES[self.action], kind=self.kind, key=self.key, data=self.after)


@dataclass(frozen=True)
class UnitOfWork:
    """
    One mutation as a transactional function object.

    Calling it inside a session runs the store change and appends the audit
    entry in that same session, so both commit or neither does.
    """

    kind: str
    key: str
    action: str
    mutate: Mutation

    def __call__(self, session: Session, principal: Principal) -> WriteResult:
        before, after = self.mutate(session)
        seq = audit_service.append(
            session,
            kind=self.kind,
            key=self.key,
            action=self.action,
            before=before,
            after=after,
            actor=principal.subject,
        )
        return WriteResult(kind=self.kind, key=self.key, action=self.action, before=before, after=after, seq=seq)


class WritePipelineError(Exception):
    """Raised when the pipeline is used before init_app."""


class WritePipeline:
    """
    The single path every mutation takes: admit, mutate, audit, commit, publish.

    The global lock covers mutation through commit, so audit order matches
    commit order and no reader sees a change without its audit entry.
    Publishing happens after the lock is released.
    """

    OPERATIONS = ("upsert_price", "patch_price", "delete_price", "upsert_symbol", "delete_symbol", "patch_config")

    def __init__(self):
        self._lock = threading.Lock()
        self.rate_limiter: Optional[RateLimiter] = None
        self.broadcaster: Optional[Broadcaster] = None
        self._initialized = False

    def init_app(self, app: Flask, rate_limiter: RateLimiter, broadcaster: Broadcaster):
        self.rate_limiter = rate_limiter
        self.broadcaster = broadcaster
        self._initialized = True
        logger.info("✍️ WritePipeline initialized.")

    def execute(self, principal: Principal, operation: str, *args, **kwargs) -> WriteResult:
        """Runs one of the named write operations on behalf of `principal`."""
        if operation not in self.OPERATIONS:
            raise ValueError(f"Unknown write operation: {operation}")
        return getattr(self, operation)(principal, *args, **kwargs)

    def _execute(self, principal: Principal, work: UnitOfWork) -> WriteResult:
        if not self._initialized:
            raise WritePipelineError("WritePipeline used before init_app().")

        # Admission counts the attempt, not the outcome.
        self.rate_limiter.authorize_write(principal)

        with self._lock:
            with get_session_scope() as session:
                result = work(session, principal)
        logger.info(f"✍️ {result.action} {result.kind}:{result.key} by {principal.subject} (seq={result.seq})")

        self.broadcaster.publish(result.to_event())
        return result

    # ------------------------------------------------------------------
    # Prices
    # ------------------------------------------------------------------
    def upsert_price(self, principal: Principal, mint: str, fields: Mapping[str, Any], strict: bool = False) -> WriteResult:
        if strict:
            return self._execute(principal, UnitOfWork(
                "price", mint, CREATE_PRICE,
                lambda s: store_service.create_price(s, mint, fields, principal.updated_by),
            ))
        return self._execute(principal, UnitOfWork(
            "price", mint, UPSERT_PRICE,
            lambda s: store_service.upsert_price(s, mint, fields, principal.updated_by),
        ))

    def patch_price(self, principal: Principal, mint: str, partial: Mapping[str, Any]) -> WriteResult:
        return self._execute(principal, UnitOfWork(
            "price", mint, PATCH_PRICE,
            lambda s: store_service.patch_price(s, mint, partial, principal.updated_by),
        ))

    def delete_price(self, principal: Principal, mint: str) -> WriteResult:
        return self._execute(principal, UnitOfWork(
            "price", mint, DELETE_PRICE,
            lambda s: store_service.delete_price(s, mint, principal.updated_by),
        ))

    # ------------------------------------------------------------------
    # Symbols
    # ------------------------------------------------------------------
    def upsert_symbol(self, principal: Principal, symbol: str, mint: str) -> WriteResult:
        return self._execute(principal, UnitOfWork(
            "symbol", symbol, UPSERT_SYMBOL,
            lambda s: store_service.upsert_symbol(s, symbol, mint, principal.updated_by),
        ))

    def delete_symbol(self, principal: Principal, symbol: str) -> WriteResult:
        return self._execute(principal, UnitOfWork(
            "symbol", symbol, DELETE_SYMBOL,
            lambda s: store_service.delete_symbol(s, symbol, principal.updated_by),
        ))

    # ------------------------------------------------------------------
    # Config
    # ------------------------------------------------------------------
    def patch_config(self, principal: Principal, partial: Mapping[str, Any]) -> WriteResult:
        return self._execute(principal, UnitOfWork(
            "config", "config", PATCH_CONFIG,
            lambda s: store_service.patch_config(s, partial, principal.updated_by),
        ))


write_pipeline = WritePipeline()
