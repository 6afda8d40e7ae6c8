# models.py

"""Data models for the pool VM balancer."""

import math
from dataclasses import dataclass
from typing import Dict, List, NamedTuple, Optional, Sequence

RUNNING = "Running"

# One sample per minute, oldest first. None or 0 means no data.
Series = Sequence[Optional[float]]

class Host(NamedTuple):
    """A compute host of a pool."""
    id: str
    name: str
    pool_id: str
    cpus: int

class VM(NamedTuple):
    """A virtual machine and the host it runs on."""
    id: str
    name: str
    host_id: str
    cpus: int
    power_state: str = RUNNING

    @property
    def running(self) -> bool:
        return self.power_state == RUNNING

class ResourceStats(NamedTuple):
    """Raw time series of a host or a VM, one CPU series per core."""
    cpus: List[Series]
    memory: Series
    memory_free: Series

@dataclass
class ResourceAverages:
    """Averages of an entity for the current cycle.

    Mutable: the placement search updates them while it simulates migrations.
    """
    cpu: float
    memory_free: float
    memory: float

    def has_data(self, *names: str) -> bool:
        return not any(math.isnan(getattr(self, name)) for name in names)

Averages = Dict[str, ResourceAverages]

class Migration(NamedTuple):
    """A proposed relocation of a VM."""
    vm: VM
    source: Host
    destination: Host

class PlanSpec(NamedTuple):
    """Configuration of a plan."""
    name: str
    mode: str
    pool_ids: List[str]
    thresholds: Optional[Dict[str, float]] = None
