# engine.py

"""Registry of the configured plans and their periodic execution."""

import asyncio
import logging
from typing import Dict, Iterable, List, Set, Tuple

from .config import EXECUTION_DELAY
from .exceptions import ConfigurationError
from .models import Migration, PlanSpec
from .plans import Plan
from .policies import make_policy
from .scheduler import Job
from .thresholds import compute_thresholds

logger = logging.getLogger(__name__)

class LoadBalancer:
    """Owns the plans and runs all of them on every tick."""

    def __init__(self, backend, interval: float = EXECUTION_DELAY * 60):
        self.backend = backend
        self.plans: List[Plan] = []
        self.pool_ids: Set[str] = set()
        self.job = Job(interval, self.execute_plans)

    async def configure(self, plans: Iterable[PlanSpec]) -> None:
        """
        Replace the active plans.

        Pool references are resolved to canonical ids and the new plans are
        validated first; on error the previous ones stay active. Otherwise
        the timer is stopped and the run in progress, if any, is awaited
        before the swap.
        """
        specs = [
            spec._replace(pool_ids=await self.backend.resolve_pools(spec.pool_ids))
            for spec in plans
        ]
        new_plans, pool_ids = self._make_plans(specs)

        job = self.job
        enabled = job.enabled
        if enabled:
            job.stop()

        # Wait until all old plans stopped running.
        await job.wait_idle()

        self.plans = new_plans
        self.pool_ids = pool_ids
        logger.info(f"Configured {len(new_plans)} plan(s): {', '.join(p.name for p in new_plans)}")

        if enabled:
            job.start()

    def load(self) -> None:
        """Enable the periodic execution."""
        self.job.start()

    def unload(self) -> None:
        """Disable the periodic execution, keeping the plans."""
        self.job.stop()

    async def execute_plans(self) -> Dict[str, List[Migration]]:
        """
        Run every plan concurrently.

        A failing plan is logged and left out of the result; the other plans
        are not affected.
        """
        plans = list(self.plans)
        results = await asyncio.gather(
            *(plan.execute() for plan in plans),
            return_exceptions=True
        )

        migrations = {}
        for plan, result in zip(plans, results):
            if isinstance(result, Exception):
                logger.error(f"[WARN] Plan {plan.name} failed: {result}", exc_info=result)
                continue
            if isinstance(result, BaseException):
                raise result
            migrations[plan.name] = result
        return migrations

    def _make_plans(self, specs: Iterable[PlanSpec]) -> Tuple[List[Plan], Set[str]]:
        plans = []
        used_pool_ids = set()

        for spec in specs:
            pool_ids = list(dict.fromkeys(spec.pool_ids))

            # Check already used pools.
            overlap = used_pool_ids.intersection(pool_ids)
            if overlap:
                raise ConfigurationError(
                    f"Pool(s) already included in an other plan: {', '.join(sorted(overlap))}"
                )
            used_pool_ids.update(pool_ids)

            thresholds = spec.thresholds or {}
            plans.append(Plan(
                self.backend,
                spec.name,
                pool_ids,
                make_policy(spec.mode),
                compute_thresholds(
                    cpu=thresholds.get("cpu"),
                    memory_free=thresholds.get("memory_free")
                )
            ))

        return plans, used_pool_ids
