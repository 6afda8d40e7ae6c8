# averages.py

"""Reduction of raw resource samples to smoothed averages."""

import math
from typing import Dict, Iterable, Optional

from .config import IMMEDIATE_AVERAGE_RATIO
from .models import Averages, ResourceAverages, ResourceStats, Series

def _is_missing(value: Optional[float]) -> bool:
    return not value or math.isnan(value)

def compute_average(values: Series, n_points: Optional[int] = None) -> float:
    """
    Average the last n_points samples of a series.

    Missing samples (None, 0 or NaN) are left out of the count, so a gap is
    read as "no data" rather than as zero usage. Returns NaN when the window
    holds no sample at all.
    """
    if n_points is None:
        n_points = len(values)

    total = 0.0
    count = 0
    for value in values[max(len(values) - n_points, 0):]:
        if _is_missing(value):
            continue
        total += value
        count += 1

    if count == 0:
        return math.nan
    return total / count

def blend(short: float, long: float, ratio: float = IMMEDIATE_AVERAGE_RATIO) -> float:
    """Weight a short-term average against a long-term one."""
    return short * ratio + long * (1 - ratio)

def compute_resources_average(
    objects: Iterable,
    objects_stats: Dict[str, ResourceStats],
    n_points: int
) -> Averages:
    """Compute cpu, memory_free and memory averages of each object with stats."""
    averages = {}
    for obj in objects:
        stats = objects_stats.get(obj.id)
        if stats is None:
            continue

        averages[obj.id] = ResourceAverages(
            # Average of the per-core averages
            cpu=compute_average([compute_average(cpu, n_points) for cpu in stats.cpus]),
            memory_free=compute_average(stats.memory_free, n_points),
            memory=compute_average(stats.memory, n_points),
        )
    return averages

def compute_resources_average_with_weight(
    averages1: Averages,
    averages2: Averages,
    ratio: float = IMMEDIATE_AVERAGE_RATIO
) -> Averages:
    """Blend two averages maps metric by metric."""
    averages = {}
    for object_id, first in averages1.items():
        second = averages2.get(object_id)
        if second is None:
            continue

        averages[object_id] = ResourceAverages(
            cpu=blend(first.cpu, second.cpu, ratio),
            memory_free=blend(first.memory_free, second.memory_free, ratio),
            memory=blend(first.memory, second.memory, ratio),
        )
    return averages

def set_real_cpu_average_of_vms(vms: Iterable, vms_averages: Averages) -> None:
    """Convert VM CPU usage from virtual cores to host-comparable usage."""
    for vm in vms:
        averages = vms_averages.get(vm.id)
        if averages is not None:
            averages.cpu /= vm.cpus or 1
