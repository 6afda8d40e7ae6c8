# plans.py

"""Plans: a balancing policy applied to a disjoint set of pools."""

import asyncio
import logging
from typing import Dict, Iterable, List, NamedTuple, Optional, Tuple

from .averages import (
    compute_resources_average, compute_resources_average_with_weight,
    set_real_cpu_average_of_vms
)
from .config import (
    EXECUTION_DELAY, HOST_REQUIRED_AVERAGES, IMMEDIATE_AVERAGE_RATIO,
    MINUTES_OF_HISTORICAL_DATA, STATS_GRANULARITY, VM_REQUIRED_AVERAGES
)
from .exceptions import MigrationError
from .models import Averages, Host, Migration, ResourceStats, VM
from .thresholds import Thresholds, compute_thresholds

logger = logging.getLogger(__name__)

class Detection(NamedTuple):
    """Result of the two-phase search of hosts to optimize."""
    to_optimize: List[Host]
    averages: Averages
    hosts: List[Host]

class Plan:
    """
    A named policy bound to a set of pools.

    The plan owns what every policy shares: its scope, its thresholds, the
    two-phase detection of hosts to optimize and the dispatch of migrations.
    What to do with the detected hosts is left to the policy.
    """

    def __init__(self, backend, name: str, pool_ids: Iterable[str], policy,
                 thresholds: Optional[Thresholds] = None):
        self.backend = backend
        self.name = name
        self.pool_ids = list(pool_ids)
        self.policy = policy
        self.thresholds = thresholds or compute_thresholds()

    def __repr__(self) -> str:
        return f"Plan({self.name!r}, mode={self.policy.mode!r}, pools={self.pool_ids!r})"

    async def execute(self) -> List[Migration]:
        """Run one evaluation cycle of the plan."""
        return await self.policy.execute(self)

    def check_thresholds(self, objects: Iterable[Host], averages: Averages) -> List[Host]:
        return self.policy.check_thresholds(objects, averages, self.thresholds)

    # Hosts to optimize

    async def find_hosts_to_optimize(self) -> Optional[Detection]:
        """
        Find the hosts breaking the thresholds of the policy.

        A host must break them on the last sample and again once that sample
        is blended with the trailing history, so single-sample spikes are
        ignored. Returns None when nothing breaks them on the last sample.
        """
        hosts = await self.backend.list_hosts(self.pool_ids)
        hosts_stats = await self._get_stats(hosts)

        # 1. Check if a resource's utilization exceeds threshold.
        avg_now = compute_resources_average(hosts, hosts_stats, EXECUTION_DELAY)
        hosts = self._with_data(hosts, avg_now, HOST_REQUIRED_AVERAGES)
        to_optimize = self.check_thresholds(hosts, avg_now)

        if not to_optimize:
            logger.debug(f"Plan {self.name}: no resource utilization problem")
            return None

        # 2. Check in the trailing interval with ratio.
        avg_before = compute_resources_average(hosts, hosts_stats, MINUTES_OF_HISTORICAL_DATA)
        averages = compute_resources_average_with_weight(avg_now, avg_before, IMMEDIATE_AVERAGE_RATIO)

        return Detection(
            to_optimize=self.check_thresholds(to_optimize, averages),
            averages=averages,
            hosts=hosts,
        )

    async def get_hosts_averages(self) -> Tuple[List[Host], Averages]:
        """Return the in-scope hosts with data and their blended averages."""
        hosts = await self.backend.list_hosts(self.pool_ids)
        hosts_stats = await self._get_stats(hosts)
        averages = compute_resources_average_with_weight(
            compute_resources_average(hosts, hosts_stats, EXECUTION_DELAY),
            compute_resources_average(hosts, hosts_stats, MINUTES_OF_HISTORICAL_DATA),
            IMMEDIATE_AVERAGE_RATIO
        )
        return self._with_data(hosts, averages, HOST_REQUIRED_AVERAGES), averages

    async def get_vms_averages(self, vms: List[VM]) -> Averages:
        """Blended averages of VMs, CPU expressed in host cores."""
        vms_stats = await self._get_stats(vms)
        averages = compute_resources_average_with_weight(
            compute_resources_average(vms, vms_stats, EXECUTION_DELAY),
            compute_resources_average(vms, vms_stats, MINUTES_OF_HISTORICAL_DATA),
            IMMEDIATE_AVERAGE_RATIO
        )

        # Compute real CPU usage. Virtual cpus to real cpus.
        set_real_cpu_average_of_vms(vms, averages)

        return {
            vm.id: averages[vm.id]
            for vm in self._with_data(vms, averages, VM_REQUIRED_AVERAGES)
        }

    def _with_data(self, objects, averages: Averages, required) -> list:
        kept = []
        for obj in objects:
            object_averages = averages.get(obj.id)
            if object_averages is None or not object_averages.has_data(*required):
                logger.warning(f"Plan {self.name}: no usable stats for {obj.id}, skipped this cycle")
                continue
            kept.append(obj)
        return kept

    # Stats

    async def _get_stats(self, objects) -> Dict[str, ResourceStats]:
        results = await asyncio.gather(
            *(self.backend.get_stats(obj, STATS_GRANULARITY) for obj in objects),
            return_exceptions=True
        )

        objects_stats = {}
        for obj, result in zip(objects, results):
            if isinstance(result, Exception):
                logger.warning(f"Plan {self.name}: unable to get stats of {obj.id}: {result}")
                continue
            if isinstance(result, BaseException):
                raise result
            objects_stats[obj.id] = result
        return objects_stats

    # Migrations

    def start_migration(self, migration: Migration) -> asyncio.Future:
        """Hand a migration to the backend without waiting for it."""
        logger.info(
            f"Migrate VM ({migration.vm.id}) to Host ({migration.destination.id}) "
            f"from Host ({migration.source.id})"
        )
        return asyncio.ensure_future(
            self.backend.migrate(migration.vm, migration.destination)
        )

    async def wait_migrations(self, migrations: List[Migration], pending: List[asyncio.Future]) -> None:
        """
        Wait until every started migration settled.

        Failures are logged one by one and then raised as a single
        MigrationError; they are not retried.
        """
        if not pending:
            return

        results = await asyncio.gather(*pending, return_exceptions=True)

        failures = 0
        for migration, result in zip(migrations, results):
            if isinstance(result, Exception):
                failures += 1
                logger.error(
                    f"Plan {self.name}: migration of VM ({migration.vm.id}) to "
                    f"Host ({migration.destination.id}) failed: {result}"
                )
            elif isinstance(result, BaseException):
                raise result
            else:
                logger.info(f"Plan {self.name}: VM ({migration.vm.id}) migrated to Host ({migration.destination.id})")

        if failures:
            raise MigrationError(f"{failures} of {len(migrations)} migration(s) failed in plan {self.name}")
