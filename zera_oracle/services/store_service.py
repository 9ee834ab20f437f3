import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy.orm import Session

from zera_oracle.errors import ConflictError, NotFoundError, ValidationError
from zera_oracle.models import CONFIG_ROW_ID, OracleConfig, PriceRecord, SymbolAlias
from zera_oracle.validation import (
    MAX_DECIMALS,
    MAX_FEE_BPS,
    MAX_SCALE,
    check_bounded_int,
    check_mantissa,
    check_mint,
    check_symbol,
)

logger = logging.getLogger(__name__)

Snapshot = Optional[Dict[str, Any]]
Transition = Tuple[Snapshot, Snapshot]

PRICE_FIELDS = ("symbol", "usd_mantissa", "usd_scale", "decimals")
CONFIG_FIELDS = ("network", "version", "fee_bps_default", "zera_mint", "supported_mints")


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def _normalize_price_fields(fields: Mapping[str, Any], partial: bool) -> Dict[str, Any]:
    unknown = set(fields) - set(PRICE_FIELDS)
    if unknown:
        raise ValidationError(f"unknown price field(s): {', '.join(sorted(unknown))}")
    if not partial:
        for required in ("usd_mantissa", "usd_scale"):
            if fields.get(required) is None:
                raise ValidationError(f"{required} is required")

    clean: Dict[str, Any] = {}
    for name, value in fields.items():
        if name == "usd_mantissa":
            clean[name] = check_mantissa(value)
        elif name == "usd_scale":
            clean[name] = check_bounded_int(name, value, MAX_SCALE)
        elif value is None:
            # symbol and decimals are nullable.
            clean[name] = None
        elif name == "symbol":
            clean[name] = check_symbol(value)
        else:
            clean[name] = check_bounded_int(name, value, MAX_DECIMALS)
    return clean


class StoreService:
    """
    Durable state for prices, symbol aliases and the singleton config.

    Every mutator runs inside the caller's session and returns the
    (before, after) snapshot pair; committing is the caller's job.
    """

    # ------------------------------------------------------------------
    # Prices
    # ------------------------------------------------------------------
    def get_price(self, session: Session, mint: str) -> PriceRecord:
        record = session.get(PriceRecord, mint)
        if record is None:
            raise NotFoundError(f"no price for mint '{mint}'")
        return record

    def list_prices(self, session: Session) -> List[PriceRecord]:
        return session.query(PriceRecord).order_by(PriceRecord.mint.asc()).all()

    def upsert_price(self, session: Session, mint: str, fields: Mapping[str, Any], actor: str) -> Transition:
        """Creates the record if absent, otherwise replaces every field."""
        check_mint(mint)
        clean = _normalize_price_fields(fields, partial=False)

        record = session.get(PriceRecord, mint)
        before = record.to_dict() if record is not None else None
        if record is None:
            record = PriceRecord(mint=mint)
            session.add(record)

        record.symbol = clean.get("symbol")
        record.usd_mantissa = clean["usd_mantissa"]
        record.usd_scale = clean["usd_scale"]
        record.decimals = clean.get("decimals")
        self._touch(record, actor)
        session.flush()
        return before, record.to_dict()

    def create_price(self, session: Session, mint: str, fields: Mapping[str, Any], actor: str) -> Transition:
        """Strict variant of upsert: refuses to overwrite an existing record."""
        check_mint(mint)
        if session.get(PriceRecord, mint) is not None:
            raise ConflictError(f"price for mint '{mint}' already exists")
        return self.upsert_price(session, mint, fields, actor)

    def patch_price(self, session: Session, mint: str, partial: Mapping[str, Any], actor: str) -> Transition:
        clean = _normalize_price_fields(partial, partial=True)
        record = self.get_price(session, mint)
        before = record.to_dict()

        for name, value in clean.items():
            setattr(record, name, value)
        self._touch(record, actor)
        session.flush()
        return before, record.to_dict()

    def delete_price(self, session: Session, mint: str, actor: str) -> Transition:
        record = self.get_price(session, mint)
        before = record.to_dict()
        session.delete(record)
        session.flush()
        logger.debug(f"Price {mint} deleted by {actor}")
        return before, None

    @staticmethod
    def _touch(record: PriceRecord, actor: str):
        record.updated_at = now_iso()
        record.updated_by = actor

    # ------------------------------------------------------------------
    # Symbol aliases
    # ------------------------------------------------------------------
    def list_symbols(self, session: Session) -> List[SymbolAlias]:
        return session.query(SymbolAlias).order_by(SymbolAlias.symbol.asc()).all()

    def get_symbol(self, session: Session, symbol: str) -> SymbolAlias:
        alias = session.get(SymbolAlias, symbol)
        if alias is None:
            raise NotFoundError(f"no alias for symbol '{symbol}'")
        return alias

    def upsert_symbol(self, session: Session, symbol: str, mint: str, actor: str) -> Transition:
        """Points `symbol` at `mint`, replacing any previous target."""
        check_symbol(symbol)
        check_mint(mint)
        alias = session.get(SymbolAlias, symbol)
        before = alias.to_dict() if alias is not None else None
        if alias is None:
            alias = SymbolAlias(symbol=symbol)
            session.add(alias)
        alias.mint = mint
        session.flush()
        return before, alias.to_dict()

    def delete_symbol(self, session: Session, symbol: str, actor: str) -> Transition:
        alias = self.get_symbol(session, symbol)
        before = alias.to_dict()
        session.delete(alias)
        session.flush()
        logger.debug(f"Symbol {symbol} deleted by {actor}")
        return before, None

    # ------------------------------------------------------------------
    # Config
    # ------------------------------------------------------------------
    def get_config(self, session: Session) -> OracleConfig:
        cfg = session.get(OracleConfig, CONFIG_ROW_ID)
        if cfg is None:
            raise NotFoundError("oracle config has not been initialized")
        return cfg

    def ensure_config(self, session: Session, defaults: Mapping[str, Any]) -> bool:
        """Creates the config row from app defaults when missing. Returns True if created."""
        if session.get(OracleConfig, CONFIG_ROW_ID) is not None:
            return False
        session.add(OracleConfig(
            id=CONFIG_ROW_ID,
            network=defaults.get("ORACLE_NETWORK", "devnet"),
            version=defaults.get("ORACLE_VERSION", "v0.1"),
            fee_bps_default=check_bounded_int("DEFAULT_FEE_BPS", defaults.get("DEFAULT_FEE_BPS", 100), MAX_FEE_BPS),
            zera_mint=defaults.get("ZERA_MINT", "") or "",
            supported_mints=list(defaults.get("SUPPORTED_MINTS") or []),
        ))
        session.flush()
        return True

    def patch_config(self, session: Session, partial: Mapping[str, Any], actor: str) -> Transition:
        unknown = set(partial) - set(CONFIG_FIELDS)
        if unknown:
            raise ValidationError(f"unknown config field(s): {', '.join(sorted(unknown))}")
        cfg = self.get_config(session)
        before = cfg.to_dict()

        if "fee_bps_default" in partial:
            cfg.fee_bps_default = check_bounded_int("fee_bps_default", partial["fee_bps_default"], MAX_FEE_BPS)
        if "supported_mints" in partial:
            mints = partial["supported_mints"]
            if not isinstance(mints, (list, tuple)):
                raise ValidationError("supported_mints must be a list")
            cfg.supported_mints = [check_mint(m) for m in mints]
        for name in ("network", "version", "zera_mint"):
            if name in partial:
                value = partial[name]
                if not isinstance(value, str):
                    raise ValidationError(f"{name} must be a string")
                setattr(cfg, name, value)
        session.flush()
        logger.debug(f"Config patched by {actor}: {sorted(partial)}")
        return before, cfg.to_dict()


store_service = StoreService()
