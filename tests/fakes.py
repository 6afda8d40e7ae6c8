# fakes.py

"""In-memory backend for tests."""

import asyncio

from pool_balancer.backends import Backend
from pool_balancer.exceptions import MigrationError, StatsError
from pool_balancer.models import ResourceStats

MIB = 1024 * 1024

def flat_stats(cpu, memory_free=0.0, memory=0.0, points=30, cpus=1):
    """Stats whose every sample holds the same values."""
    return ResourceStats(
        cpus=[[cpu] * points for _ in range(cpus)],
        memory=[memory] * points,
        memory_free=[memory_free] * points,
    )

class FakeBackend(Backend):
    def __init__(self, hosts=(), vms=(), stats=None, failing=(), broken_pools=(), aliases=None):
        self.hosts = list(hosts)
        self.vms = list(vms)
        self.stats = dict(stats or {})
        self.failing = set(failing)
        self.broken_pools = set(broken_pools)
        self.aliases = dict(aliases or {})
        self.migrations = []
        self.gate = None

    async def list_hosts(self, pool_ids):
        if self.gate is not None:
            await self.gate.wait()
        if self.broken_pools.intersection(pool_ids):
            raise RuntimeError("inventory unavailable")
        return [host for host in self.hosts if host.pool_id in pool_ids]

    async def resolve_pools(self, pool_ids):
        return [self.aliases.get(pool_id, pool_id) for pool_id in pool_ids]

    async def list_running_vms(self, host):
        return [vm for vm in self.vms if vm.host_id == host.id and vm.running]

    async def get_stats(self, entity, granularity):
        await asyncio.sleep(0)
        if entity.id not in self.stats:
            raise StatsError(f"{entity.id} is gone")
        return self.stats[entity.id]

    async def migrate(self, vm, destination):
        self.migrations.append((vm.id, destination.id))
        if vm.id in self.failing:
            raise MigrationError(f"cannot migrate {vm.id}")
