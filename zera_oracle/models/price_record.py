# zera_oracle/models/price_record.py

from decimal import Decimal

from sqlalchemy import Column, String, Integer

from zera_oracle.extensions import db


class PriceRecord(db.Model):
    __tablename__ = "prices"

    mint = Column(String(128), primary_key=True)
    symbol = Column(String(32), nullable=True)
    # Decimal digits of an unsigned 128-bit integer; never stored as a float.
    usd_mantissa = Column(String(40), nullable=False)
    usd_scale = Column(Integer, nullable=False)
    decimals = Column(Integer, nullable=True)
    updated_at = Column(String(40), nullable=False)
    updated_by = Column(String(160), nullable=False)

    def price_decimal(self) -> Decimal:
        """True price as an exact Decimal: mantissa x 10^-scale."""
        return Decimal(self.usd_mantissa).scaleb(-self.usd_scale)

    def to_dict(self):
        """Serializes the PriceRecord object to a dictionary, omitting unset optionals."""
        data = {
            "mint": self.mint,
            "usd_mantissa": self.usd_mantissa,
            "usd_scale": self.usd_scale,
            "updated_at": self.updated_at,
            "updated_by": self.updated_by,
        }
        if self.symbol is not None:
            data["symbol"] = self.symbol
        if self.decimals is not None:
            data["decimals"] = self.decimals
        return data
