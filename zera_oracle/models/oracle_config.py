# zera_oracle/models/oracle_config.py

from sqlalchemy import Column, String, Integer, CheckConstraint

from zera_oracle.db_types import JSONType
from zera_oracle.extensions import db

CONFIG_ROW_ID = 1


class OracleConfig(db.Model):
    __tablename__ = "oracle_config"
    __table_args__ = (
        CheckConstraint("id = 1", name="ck_oracle_config_singleton"),
        CheckConstraint("fee_bps_default >= 0 AND fee_bps_default <= 10000", name="ck_oracle_config_fee_bps"),
    )

    # Single-row table: the config is a singleton and is never deleted.
    id = Column(Integer, primary_key=True, default=CONFIG_ROW_ID)
    network = Column(String(64), nullable=False)
    version = Column(String(32), nullable=False)
    fee_bps_default = Column(Integer, nullable=False)
    zera_mint = Column(String(128), nullable=False, default="")
    supported_mints = Column(JSONType, nullable=False, default=list)

    def to_dict(self):
        """Serializes the OracleConfig object to a dictionary."""
        return {
            "network": self.network,
            "version": self.version,
            "fee_bps_default": self.fee_bps_default,
            "zera_mint": self.zera_mint,
            "supported_mints": list(self.supported_mints or []),
        }
