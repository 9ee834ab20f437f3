# zera_oracle/models/symbol_alias.py

from sqlalchemy import Column, String

from zera_oracle.extensions import db


class SymbolAlias(db.Model):
    __tablename__ = "symbols"

    symbol = Column(String(32), primary_key=True)
    mint = Column(String(128), nullable=False)

    def to_dict(self):
        return {"symbol": self.symbol, "mint": self.mint}
