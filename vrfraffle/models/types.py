"""Column types shared by the raffle models."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import String
from sqlalchemy.types import TypeDecorator

UINT256_MAX = (1 << 256) - 1


class Uint256(TypeDecorator):
    """Unsigned 256-bit integer stored as a decimal string.

    Wei amounts, VRF request ids and random words routinely exceed the 64-bit
    range that SQLite and ``BIGINT`` can hold.
    """

    impl = String(78)
    cache_ok = True

    def process_bind_param(self, value: Optional[int], dialect) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"Uint256 columns accept int values, got {type(value).__name__}")
        if value < 0 or value > UINT256_MAX:
            raise ValueError(f"value {value} is outside the uint256 range")
        return str(value)

    def process_result_value(self, value: Optional[str], dialect) -> Optional[int]:
        if value is None:
            return None
        return int(value)
