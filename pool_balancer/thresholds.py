# thresholds.py

"""Operating bounds derived from critical thresholds."""

from dataclasses import dataclass
from typing import Optional

from .config import (
    DEFAULT_CRITICAL_THRESHOLD_CPU, DEFAULT_CRITICAL_THRESHOLD_MEMORY_FREE,
    HIGH_THRESHOLD_FACTOR, LOW_THRESHOLD_FACTOR,
    HIGH_THRESHOLD_MEMORY_FREE_FACTOR, LOW_THRESHOLD_MEMORY_FREE_FACTOR
)

@dataclass(frozen=True)
class Threshold:
    critical: float
    high: float
    low: float

@dataclass(frozen=True)
class Thresholds:
    """
    CPU thresholds are percentages, free memory thresholds are bytes.

    The free memory bounds go the other way round: "high" is above critical
    because pressure means little free memory left.
    """
    cpu: Threshold
    memory_free: Threshold

def compute_thresholds(
    cpu: Optional[float] = None,
    memory_free: Optional[float] = None
) -> Thresholds:
    """Build the thresholds of a plan, falling back to the defaults."""
    cpu = cpu or DEFAULT_CRITICAL_THRESHOLD_CPU
    memory_free = memory_free or DEFAULT_CRITICAL_THRESHOLD_MEMORY_FREE

    return Thresholds(
        cpu=Threshold(
            critical=cpu,
            high=cpu * HIGH_THRESHOLD_FACTOR,
            low=cpu * LOW_THRESHOLD_FACTOR,
        ),
        memory_free=Threshold(
            critical=memory_free,
            high=memory_free * HIGH_THRESHOLD_MEMORY_FREE_FACTOR,
            low=memory_free * LOW_THRESHOLD_MEMORY_FREE_FACTOR,
        ),
    )
