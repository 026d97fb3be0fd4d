import math
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, Field


class Size(str, Enum):
    S = "S"
    M = "M"
    L = "L"
    XL = "XL"


SIZE_KEYS = tuple(size.value for size in Size)

StockRecord = Dict[str, int]


def is_valid_size(size: Any) -> bool:
    if isinstance(size, Size):
        return True
    return isinstance(size, str) and size in SIZE_KEYS


def _floor_number(value: Any) -> Optional[int]:
    """Floor ``value`` to an int, or None when it is not a finite number."""
    if isinstance(value, bool):
        return int(value)
    try:
        if isinstance(value, str):
            value = value.strip()
            number = int(value) if value.lstrip("+-").isdigit() else float(value)
        else:
            number = value
        if isinstance(number, float):
            if not math.isfinite(number):
                return None
            number = math.floor(number)
        return int(number)
    except (TypeError, ValueError, OverflowError):
        return None


def normalize_quantity(value: Any, fallback: int = 0) -> int:
    """
    Convert a raw quantity to a non-negative integer.
    Missing values use ``fallback``; anything that cannot be read as a
    number, or that is negative, becomes 0. Fractions are floored.
    """
    if value is None:
        return fallback
    number = _floor_number(value)
    return max(0, number) if number is not None else 0


def normalize_delta(value: Any) -> int:
    """Signed counterpart of ``normalize_quantity`` for stock adjustments."""
    if value is None:
        return 0
    number = _floor_number(value)
    return number if number is not None else 0


def empty_record() -> StockRecord:
    return {size: 0 for size in SIZE_KEYS}


def normalize_record(raw: Optional[Mapping[str, Any]], base: Optional[Mapping[str, int]] = None) -> StockRecord:
    """Build a full four-size record; absent sizes fall back to ``base`` (or 0)."""
    raw = raw or {}
    base = base or {}
    return {size: normalize_quantity(raw.get(size), fallback=int(base.get(size, 0))) for size in SIZE_KEYS}


class StockAction(str, Enum):
    READ_ALL = "READ_ALL"
    GET = "GET"
    SET = "SET"
    DELETE = "DELETE"


class StockOperationRequest(BaseModel):
    action: StockAction = Field(..., description="Operation to perform on stock records.")
    product_id: Optional[str] = Field(None, description="Target product id, required for GET, SET, DELETE.")
    payload: Optional[Dict[str, Any]] = Field(None, description="Size quantities for SET.")


class StockResponse(BaseModel):
    product_id: str
    sizes: Dict[str, int]
    total_available: int

    @classmethod
    def of(cls, product_id: str, record: Mapping[str, int]) -> "StockResponse":
        sizes = {size: int(record.get(size, 0)) for size in SIZE_KEYS}
        return cls(product_id=product_id, sizes=sizes, total_available=sum(sizes.values()))
