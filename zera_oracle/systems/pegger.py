# zera_oracle/systems/pegger.py

import logging
import math
import threading
from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from typing import Any, List, Optional, Tuple

import requests
from flask import Flask

from zera_oracle.errors import NotFoundError, OracleError, TransientSourceError
from zera_oracle.models.db_utils import get_session_scope
from zera_oracle.services.store_service import store_service
from zera_oracle.services.write_pipeline import WritePipeline
from zera_oracle.systems.auth_system import PEGGER_PRINCIPAL
from zera_oracle.validation import MAX_MANTISSA, MAX_SCALE, check_mint

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PegSource:
    mint: str
    url: str
    path: str
    scale: int


def parse_peg_sources(raw: Optional[str]) -> List[PegSource]:
    """
    Parses `mint|url|json.path|scale` tuples separated by `;`.
    Malformed tuples are logged and skipped.
    """
    sources: List[PegSource] = []
    for chunk in (raw or "").split(";"):
        chunk = chunk.strip()
        if not chunk:
            continue
        parts = [p.strip() for p in chunk.split("|")]
        if len(parts) != 4:
            logger.warning(f"⚠️ Skipping malformed peg source (expected 4 fields): {chunk!r}")
            continue
        mint, url, path, scale = parts
        try:
            check_mint(mint)
            scale_value = int(scale)
        except (OracleError, ValueError):
            logger.warning(f"⚠️ Skipping peg source with bad mint or scale: {chunk!r}")
            continue
        if not url or not path or not 0 <= scale_value <= MAX_SCALE:
            logger.warning(f"⚠️ Skipping incomplete peg source: {chunk!r}")
            continue
        sources.append(PegSource(mint=mint, url=url, path=path, scale=scale_value))
    return sources


def extract_path(doc: Any, path: str) -> Any:
    """Walks a dot-separated path; numeric segments index into lists."""
    current = doc
    for segment in path.split("."):
        if isinstance(current, dict) and segment in current:
            current = current[segment]
        elif isinstance(current, list) and segment.isdigit() and int(segment) < len(current):
            current = current[int(segment)]
        else:
            raise TransientSourceError(f"path '{path}' not found at '{segment}'")
    return current


def to_mantissa(value: Any, scale: int) -> str:
    """Converts a JSON number (or numeric string) into a mantissa at `scale`."""
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise TransientSourceError(f"non-numeric price value: {value!r}")
    if isinstance(value, float) and not math.isfinite(value):
        raise TransientSourceError(f"non-finite price value: {value!r}")
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        raise TransientSourceError(f"non-numeric price value: {value!r}")
    if not number.is_finite() or number < 0:
        raise TransientSourceError(f"price value out of range: {value!r}")

    # 2**128 has 39 digits; anything with a larger exponent is out of range.
    if number and number.adjusted() + scale > 39:
        raise TransientSourceError(f"price value too large at scale {scale}: {value!r}")
    try:
        mantissa = int(number.scaleb(scale).to_integral_value(rounding=ROUND_HALF_EVEN))
    except ArithmeticError as e:
        raise TransientSourceError(f"price value out of range: {value!r}") from e
    if mantissa >= MAX_MANTISSA:
        raise TransientSourceError(f"price value too large at scale {scale}: {value!r}")
    return str(mantissa)


class Pegger:
    """Periodically pulls prices from external JSON sources and writes them as the pegger principal."""

    def __init__(self):
        self.app: Optional[Flask] = None
        self.pipeline: Optional[WritePipeline] = None
        self.sources: List[PegSource] = []
        self.interval_secs = 15.0
        self.timeout_secs = 5.0
        self.enabled = False
        self.http_session = requests.Session()
        self.last_cycle: Optional[Tuple[int, int]] = None
        self._loop_thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._initialized = False

    def init_app(self, app: Flask, pipeline: WritePipeline):
        self.app = app
        self.pipeline = pipeline
        self.sources = parse_peg_sources(app.config.get("PEG_SOURCES"))
        self.interval_secs = float(app.config.get("PEG_INTERVAL_SECS", 15))
        self.timeout_secs = float(app.config.get("PEG_HTTP_TIMEOUT_SECS", 5))
        self.enabled = bool(app.config.get("PEG_ENABLED", True)) and bool(self.sources)
        self.last_cycle = None
        self._initialized = True
        logger.info(f"🔗 Pegger configured with {len(self.sources)} source(s); enabled={self.enabled}.")

    def start(self):
        """Starts the peg loop. Does nothing when no sources are configured."""
        if not self._initialized:
            raise RuntimeError("Cannot start: Pegger not initialized.")
        if not self.enabled or self.is_running():
            return
        logger.info("▶️ Starting Pegger loop...")
        self._stop_event.clear()
        self._loop_thread = threading.Thread(target=self._run_loop, daemon=True, name="PeggerLoop")
        self._loop_thread.start()

    def stop(self):
        if self.is_running():
            logger.info("🛑 Sending stop signal to Pegger loop...")
            self._stop_event.set()
            self._loop_thread.join(timeout=self.timeout_secs + 5)
            logger.info("✅ Pegger loop stopped.")

    def is_running(self) -> bool:
        return bool(self._loop_thread and self._loop_thread.is_alive())

    def _run_loop(self):
        while not self._stop_event.is_set():
            try:
                self.run_cycle()
            except Exception as e:
                logger.error(f"💥 Unexpected error in Pegger loop: {e}", exc_info=True)
            self._stop_event.wait(self.interval_secs)

    def fetch(self, source: PegSource) -> str:
        """Fetches one source and returns the mantissa it implies."""
        try:
            response = self.http_session.get(source.url, timeout=self.timeout_secs)
            response.raise_for_status()
            doc = response.json()
        except requests.RequestException as e:
            raise TransientSourceError(f"fetch failed for {source.url}: {e}") from e
        except ValueError as e:
            raise TransientSourceError(f"invalid JSON from {source.url}") from e
        return to_mantissa(extract_path(doc, source.path), source.scale)

    def _existing_metadata(self, mint: str) -> dict:
        with get_session_scope() as session:
            try:
                record = store_service.get_price(session, mint)
            except NotFoundError:
                return {"symbol": None, "decimals": None}
            return {"symbol": record.symbol, "decimals": record.decimals}

    def peg_one(self, source: PegSource):
        mantissa = self.fetch(source)
        fields = self._existing_metadata(source.mint)
        fields.update(usd_mantissa=mantissa, usd_scale=source.scale)
        self.pipeline.execute(PEGGER_PRINCIPAL, "upsert_price", source.mint, fields)

    def run_cycle(self) -> Tuple[int, int]:
        """Runs every source once. Returns (ok, failed)."""
        ok = failed = 0
        with self.app.app_context():
            for source in self.sources:
                try:
                    self.peg_one(source)
                    ok += 1
                except OracleError as e:
                    failed += 1
                    logger.warning(f"⚠️ Peg source for {source.mint} skipped this cycle: {e.message}")
                except Exception as e:
                    failed += 1
                    logger.error(f"💥 Peg source for {source.mint} failed unexpectedly: {e}", exc_info=True)
        self.last_cycle = (ok, failed)
        if self.sources:
            logger.info(f"🔗 Peg cycle finished: {ok} ok, {failed} failed.")
        return ok, failed


# Singleton instance
pegger = Pegger()


def get_pegger_status():
    """Health check for the Pegger."""
    if not pegger._initialized:
        return {"active": False, "healthy": False, "info": "Pegger not initialized"}
    info = {"active": pegger.is_running(), "healthy": True, "sources": len(pegger.sources)}
    if pegger.last_cycle is not None:
        info["last_cycle"] = {"ok": pegger.last_cycle[0], "failed": pegger.last_cycle[1]}
    return info
