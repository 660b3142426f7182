"""Domain models used by the location components."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Optional

# Decimal places kept on every coordinate that leaves the provider (~111m at the equator).
COORDINATE_PRECISION = 3


def now_ms() -> int:
    return int(time.time() * 1000)


def round_half_up(value: float, precision: int) -> float:
    """Round like a human would (0.5 goes up), unlike the builtin banker's rounding."""
    quantum = Decimal(1).scaleb(-precision)
    return float(Decimal(repr(float(value))).quantize(quantum, rounding=ROUND_HALF_UP))


class PermissionState(str, Enum):
    PENDING = "pending"
    GRANTED = "granted"
    DENIED = "denied"


@dataclass(frozen=True, slots=True)
class Coordinate:
    """A single position reading."""

    latitude: float
    longitude: float
    accuracy: Optional[float] = None
    captured_at_ms: int = field(default_factory=now_ms)

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"longitude out of range: {self.longitude}")

    def rounded(self, precision: int = COORDINATE_PRECISION) -> "Coordinate":
        return Coordinate(
            latitude=round_half_up(self.latitude, precision),
            longitude=round_half_up(self.longitude, precision),
            accuracy=self.accuracy,
            captured_at_ms=self.captured_at_ms,
        )

    def age_ms(self, at_ms: Optional[int] = None) -> int:
        return (now_ms() if at_ms is None else at_ms) - self.captured_at_ms
