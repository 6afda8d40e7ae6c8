# backends.py

"""Access to the inventory, statistics and migrations of the cloud."""

import abc
import asyncio
import functools
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import requests
from openstack.exceptions import SDKException

from .config import (
    EXECUTION_DELAY, GRANULARITY_SECONDS, HOST_METRICS, MAX_CONCURRENT_MIGRATIONS,
    MIGRATION_POLL_INTERVAL, MIGRATION_TIMEOUT, MINUTES_OF_HISTORICAL_DATA,
    VM_METRICS
)
from .exceptions import ConfigurationError, MigrationError, OpenStackError, StatsError
from .models import RUNNING, Host, ResourceStats, VM

logger = logging.getLogger(__name__)

class Backend(abc.ABC):
    """What the balancer needs from the surrounding platform."""

    @abc.abstractmethod
    async def list_hosts(self, pool_ids: List[str]) -> List[Host]:
        """Hosts currently member of one of the pools."""

    @abc.abstractmethod
    async def list_running_vms(self, host: Host) -> List[VM]:
        """Running VMs of a host."""

    @abc.abstractmethod
    async def get_stats(self, entity, granularity: str) -> ResourceStats:
        """Time series of a host or a VM, oldest sample first."""

    @abc.abstractmethod
    async def migrate(self, vm: VM, destination: Host) -> None:
        """Live-migrate a VM, raising MigrationError on failure."""

    async def resolve_pools(self, pool_ids: List[str]) -> List[str]:
        """Canonical ids of the pools, so that two references to a pool compare equal."""
        return list(pool_ids)

    def close(self) -> None:
        """Release the resources of the backend."""

class OpenStackBackend(Backend):
    """
    Backend for an OpenStack cloud.

    Pools are host aggregates, referenced by id or name and resolved to ids.
    Statistics come from the metric service (Gnocchi) and migrations are
    Nova live migrations.
    """

    def __init__(self, conn, metric_url: Optional[str] = None, timeout: float = 10):
        self.conn = conn
        self.metric_url = metric_url
        self.timeout = timeout
        self.session = requests.Session()
        self.flavor_cache: Dict[str, int] = {}

        # Migrations block a thread until settled, at most MAX_CONCURRENT_MIGRATIONS at once
        self.migration_executor = ThreadPoolExecutor(
            max_workers=MAX_CONCURRENT_MIGRATIONS,
            thread_name_prefix="migration"
        )
        self._closing = threading.Event()

    async def _call(self, fn, *args, executor=None):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(executor, functools.partial(fn, *args))

    def close(self) -> None:
        """Abort pending migration polls and release the executor."""
        self._closing.set()
        self.migration_executor.shutdown(wait=False)
        self.session.close()

    async def resolve_pools(self, pool_ids: List[str]) -> List[str]:
        return await self._call(self._resolve_pools, pool_ids)

    async def list_hosts(self, pool_ids: List[str]) -> List[Host]:
        return await self._call(self._list_hosts, pool_ids)

    async def list_running_vms(self, host: Host) -> List[VM]:
        return await self._call(self._list_running_vms, host)

    async def get_stats(self, entity, granularity: str) -> ResourceStats:
        return await self._call(self._get_stats, entity, granularity)

    async def migrate(self, vm: VM, destination: Host) -> None:
        await self._call(self._migrate, vm, destination, executor=self.migration_executor)

    # Inventory

    def _resolve_pools(self, pool_ids: List[str]) -> List[str]:
        try:
            aggregates = list(self.conn.compute.aggregates())
        except SDKException as e:
            raise OpenStackError(f"Failed to list host aggregates: {e}")

        ids = {}
        for aggregate in aggregates:
            ids[aggregate.name] = str(aggregate.id)
        for aggregate in aggregates:
            ids[str(aggregate.id)] = str(aggregate.id)

        unknown = [pool_id for pool_id in pool_ids if pool_id not in ids]
        if unknown:
            raise ConfigurationError(f"Unknown pool(s): {', '.join(unknown)}")
        return [ids[pool_id] for pool_id in pool_ids]

    def _list_hosts(self, pool_ids: List[str]) -> List[Host]:
        wanted = set(pool_ids)
        host_pools = {}

        try:
            for aggregate in self.conn.compute.aggregates():
                pool_id = next(
                    (key for key in (str(aggregate.id), aggregate.name) if key in wanted),
                    None
                )
                if pool_id is None:
                    continue
                for hostname in aggregate.hosts or []:
                    host_pools.setdefault(hostname, pool_id)

            hosts = []
            for hypervisor in self.conn.compute.hypervisors(details=True):
                service = hypervisor.service_details or {}
                hostname = service.get('host') or hypervisor.name
                pool_id = host_pools.get(hostname)
                if pool_id is None:
                    continue
                if hypervisor.state != 'up' or hypervisor.status != 'enabled':
                    logger.debug(f"Host {hostname} is {hypervisor.state}/{hypervisor.status}, ignored")
                    continue

                hosts.append(Host(
                    id=str(hypervisor.id),
                    name=hostname,
                    pool_id=pool_id,
                    cpus=hypervisor.vcpus or 0,
                ))
            return hosts

        except SDKException as e:
            raise OpenStackError(f"Failed to list hosts of pools {sorted(wanted)}: {e}")

    def _list_running_vms(self, host: Host) -> List[VM]:
        try:
            return [
                VM(
                    id=server.id,
                    name=server.name,
                    host_id=host.id,
                    cpus=self._get_vcpus(server),
                    power_state=RUNNING,
                )
                for server in self.conn.compute.servers(all_projects=True, host=host.name)
                if (server.status or '').upper() == 'ACTIVE'
            ]
        except SDKException as e:
            raise OpenStackError(f"Failed to list VMs of host {host.name}: {e}")

    def _get_vcpus(self, server) -> int:
        flavor = server.flavor
        vcpus = getattr(flavor, 'vcpus', None)
        if vcpus:
            return vcpus

        flavor_id = getattr(flavor, 'id', None)
        if not flavor_id:
            return 1
        if flavor_id not in self.flavor_cache:
            self.flavor_cache[flavor_id] = self.conn.compute.get_flavor(flavor_id).vcpus
        return self.flavor_cache[flavor_id]

    # Stats

    def _metric_endpoint(self) -> str:
        if not self.metric_url:
            self.metric_url = self.conn.endpoint_for('metric')
        return self.metric_url.rstrip('/')

    def _get_stats(self, entity, granularity: str) -> ResourceStats:
        seconds = GRANULARITY_SECONDS.get(granularity)
        if seconds is None:
            raise StatsError(f"Unsupported granularity: {granularity}")

        if isinstance(entity, Host):
            metrics, resource_id = HOST_METRICS, entity.name
        else:
            metrics, resource_id = VM_METRICS, entity.id

        start = datetime.now(timezone.utc) - timedelta(
            seconds=seconds * (MINUTES_OF_HISTORICAL_DATA + EXECUTION_DELAY)
        )
        series = {
            field: self._get_measures(resource_id, metric, scale, seconds, start)
            for field, (metric, scale) in metrics.items()
        }
        return ResourceStats(
            cpus=[series['cpus']],
            memory=series['memory'],
            memory_free=series['memory_free'],
        )

    def _get_measures(self, resource_id: str, metric: Optional[str], scale: float,
                      granularity: int, start: datetime) -> List[Optional[float]]:
        if metric is None:
            return []

        url = f"{self._metric_endpoint()}/v1/resource/generic/{resource_id}/metric/{metric}/measures"
        try:
            response = self.session.get(
                url,
                params={'granularity': granularity, 'start': start.isoformat()},
                headers={"X-Auth-Token": self.conn.auth_token},
                timeout=self.timeout
            )
            if response.status_code == 404:
                raise StatsError(f"No {metric} measures for {resource_id}")
            response.raise_for_status()
        except requests.RequestException as e:
            raise StatsError(f"Failed to get {metric} of {resource_id}: {e}")

        # Measures are [timestamp, granularity, value] triples
        return [
            value * scale if value is not None else None
            for _, _, value in response.json()
        ]

    # Migrations

    def _migrate(self, vm: VM, destination: Host) -> None:
        try:
            server = self.conn.compute.get_server(vm.id)
            self.conn.compute.live_migrate_server(
                server, host=destination.name, block_migration='auto'
            )

            deadline = time.monotonic() + MIGRATION_TIMEOUT
            while time.monotonic() < deadline:
                if self._closing.wait(MIGRATION_POLL_INTERVAL):
                    raise MigrationError(f"Migration of VM {vm.name} to {destination.name} interrupted")
                server = self.conn.compute.get_server(vm.id)
                status = (server.status or '').upper()
                if status == 'ERROR':
                    raise MigrationError(f"VM {vm.name} is in error after migration to {destination.name}")
                if status == 'ACTIVE' and server.compute_host == destination.name:
                    return

        except SDKException as e:
            raise MigrationError(f"Failed to migrate VM {vm.name} to {destination.name}: {e}")

        raise MigrationError(f"Migration of VM {vm.name} to {destination.name} timed out")

class DryRunBackend(Backend):
    """Read through another backend, only log migrations."""

    def __init__(self, backend: Backend):
        self.backend = backend

    async def list_hosts(self, pool_ids: List[str]) -> List[Host]:
        return await self.backend.list_hosts(pool_ids)

    async def list_running_vms(self, host: Host) -> List[VM]:
        return await self.backend.list_running_vms(host)

    async def get_stats(self, entity, granularity: str) -> ResourceStats:
        return await self.backend.get_stats(entity, granularity)

    async def resolve_pools(self, pool_ids: List[str]) -> List[str]:
        return await self.backend.resolve_pools(pool_ids)

    def close(self) -> None:
        self.backend.close()

    async def migrate(self, vm: VM, destination: Host) -> None:
        logger.info(f"[DRY RUN] Would migrate VM {vm.name} ({vm.id}) to {destination.name}")
