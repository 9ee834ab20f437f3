# zera_oracle/models/__init__.py

from .price_record import PriceRecord
from .symbol_alias import SymbolAlias
from .oracle_config import OracleConfig, CONFIG_ROW_ID
from .audit_entry import AuditEntry

__all__ = [
    "PriceRecord",
    "SymbolAlias",
    "OracleConfig",
    "CONFIG_ROW_ID",
    "AuditEntry",
]
