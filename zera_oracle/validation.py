"""
validation.py
Request schemas and field rules for oracle writes.

The same rules back both the HTTP schemas and the store, so pegger and
seed writes are held to exactly what an admin request would be.
"""
import logging
import re
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from zera_oracle.errors import ValidationError

logger = logging.getLogger(__name__)

MAX_MANTISSA = 2 ** 128
MAX_SCALE = 255
MAX_DECIMALS = 255
MAX_FEE_BPS = 10_000

_MINT_RE = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")
_SYMBOL_RE = re.compile(r"^[A-Za-z0-9._$-]{1,32}$")
_DIGITS_RE = re.compile(r"^[0-9]+$")

SchemaT = TypeVar("SchemaT", bound=BaseModel)


# ==============================================================================
# 1. Field rules
# ==============================================================================

def check_mint(value: Any) -> str:
    if not isinstance(value, str) or not _MINT_RE.match(value):
        raise ValidationError("mint must be 1-128 characters of [A-Za-z0-9._:-]")
    return value


def check_symbol(value: Any) -> str:
    if not isinstance(value, str) or not _SYMBOL_RE.match(value):
        raise ValidationError("symbol must be 1-32 characters of [A-Za-z0-9._$-]")
    return value


def check_mantissa(value: Any) -> str:
    """Mantissa is a decimal-digit string for an integer in [0, 2**128)."""
    if not isinstance(value, str) or not _DIGITS_RE.match(value):
        raise ValidationError("usd_mantissa must be a string of decimal digits")
    number = int(value)
    if number >= MAX_MANTISSA:
        raise ValidationError("usd_mantissa exceeds the 128-bit range")
    # Canonical form: no leading zeros.
    return str(number)


def check_bounded_int(name: str, value: Any, upper: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer")
    if value < 0 or value > upper:
        raise ValidationError(f"{name} must be between 0 and {upper}")
    return value


def _wrap(check, *args):
    """Adapts a field rule into a pydantic validator (which wants ValueError)."""
    try:
        return check(*args)
    except ValidationError as e:
        raise ValueError(e.message) from e


# ==============================================================================
# 2. Request schemas
# ==============================================================================

class PriceUpsertSchema(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True)

    mint: str
    symbol: Optional[str] = None
    usd_mantissa: str
    usd_scale: int
    decimals: Optional[int] = None

    @field_validator("mint")
    @classmethod
    def validate_mint(cls, v):
        return _wrap(check_mint, v)

    @field_validator("symbol")
    @classmethod
    def validate_symbol(cls, v):
        return v if v is None else _wrap(check_symbol, v)

    @field_validator("usd_mantissa")
    @classmethod
    def validate_mantissa(cls, v):
        return _wrap(check_mantissa, v)

    @field_validator("usd_scale")
    @classmethod
    def validate_scale(cls, v):
        return _wrap(check_bounded_int, "usd_scale", v, MAX_SCALE)

    @field_validator("decimals")
    @classmethod
    def validate_decimals(cls, v):
        return v if v is None else _wrap(check_bounded_int, "decimals", v, MAX_DECIMALS)

    def as_fields(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"mint"})


class PricePatchSchema(BaseModel):
    """Every field optional; only the ones present in the body are applied.

    An explicit null clears symbol or decimals; mantissa and scale can't be cleared.
    """

    model_config = ConfigDict(extra="forbid", strict=True)

    symbol: Optional[str] = None
    usd_mantissa: Optional[str] = None
    usd_scale: Optional[int] = None
    decimals: Optional[int] = None

    @field_validator("symbol")
    @classmethod
    def validate_symbol(cls, v):
        return v if v is None else _wrap(check_symbol, v)

    @field_validator("usd_mantissa")
    @classmethod
    def validate_mantissa(cls, v):
        if v is None:
            raise ValueError("usd_mantissa cannot be null")
        return _wrap(check_mantissa, v)

    @field_validator("usd_scale")
    @classmethod
    def validate_scale(cls, v):
        if v is None:
            raise ValueError("usd_scale cannot be null")
        return _wrap(check_bounded_int, "usd_scale", v, MAX_SCALE)

    @field_validator("decimals")
    @classmethod
    def validate_decimals(cls, v):
        return v if v is None else _wrap(check_bounded_int, "decimals", v, MAX_DECIMALS)

    def as_fields(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class SymbolUpsertSchema(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True)

    symbol: str
    mint: str

    @field_validator("symbol")
    @classmethod
    def validate_symbol(cls, v):
        return _wrap(check_symbol, v)

    @field_validator("mint")
    @classmethod
    def validate_mint(cls, v):
        return _wrap(check_mint, v)


class ConfigPatchSchema(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True)

    network: Optional[str] = Field(default=None, min_length=1, max_length=64)
    version: Optional[str] = Field(default=None, min_length=1, max_length=32)
    fee_bps_default: Optional[int] = None
    zera_mint: Optional[str] = Field(default=None, max_length=128)
    supported_mints: Optional[List[str]] = None

    @field_validator("fee_bps_default")
    @classmethod
    def validate_fee(cls, v):
        return v if v is None else _wrap(check_bounded_int, "fee_bps_default", v, MAX_FEE_BPS)

    @field_validator("zera_mint")
    @classmethod
    def validate_zera_mint(cls, v):
        # Empty string means "not configured yet".
        return v if not v else _wrap(check_mint, v)

    @field_validator("supported_mints")
    @classmethod
    def validate_supported(cls, v):
        if v is None:
            return v
        return [_wrap(check_mint, m) for m in v]

    def as_fields(self) -> Dict[str, Any]:
        # The config row has no nullable columns; a null in the patch is ignored.
        return {k: v for k, v in self.model_dump(exclude_unset=True).items() if v is not None}


# ==============================================================================
# 3. Parsing helper
# ==============================================================================

def parse_body(schema: Type[SchemaT], data: Any) -> SchemaT:
    """Validates a decoded JSON body, translating failures into ValidationError."""
    if not isinstance(data, dict):
        raise ValidationError("request body must be a JSON object")
    try:
        return schema.model_validate(data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ())) or "body"
        message = f"{location}: {first.get('msg', 'invalid value')}"
        logger.debug(f"Validation failed for {schema.__name__}: {e.errors()}")
        raise ValidationError(message) from e
