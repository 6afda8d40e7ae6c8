# cli.py

"""Command-line interface for the pool VM balancer."""

import argparse
import asyncio
import logging
import sys

from .backends import DryRunBackend, OpenStackBackend
from .config import EXECUTION_DELAY
from .engine import LoadBalancer
from .exceptions import BalancerError
from .utils import get_openstack_connection, load_configuration, print_hosts_averages, setup_logging

logger = logging.getLogger(__name__)

def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Balance VM load across the hosts of a pool"
    )
    parser.add_argument(
        "--config", "-c",
        required=True,
        help="JSON file describing the plans"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Plan migrations without performing them"
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single evaluation cycle and exit"
    )
    parser.add_argument(
        "--show-hosts",
        action="store_true",
        help="Show the averages of the hosts of each plan and exit"
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=EXECUTION_DELAY * 60,
        help=f"Seconds between evaluation cycles (default: {EXECUTION_DELAY * 60})"
    )
    parser.add_argument(
        "--metric-url",
        help="Metric service endpoint (default: from the service catalog)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )
    return parser.parse_args(argv)

async def run(balancer: LoadBalancer, plans, args) -> int:
    await balancer.configure(plans)

    if args.show_hosts:
        for plan in balancer.plans:
            hosts, averages = await plan.get_hosts_averages()
            print_hosts_averages(plan.name, hosts, averages)
        return 0

    if args.once:
        migrations = await balancer.execute_plans()
        failed = len(balancer.plans) - len(migrations)
        logger.info(f"Cycle done: {sum(len(m) for m in migrations.values())} migration(s)")
        return 1 if failed else 0

    balancer.load()
    logger.info(f"Balancer enabled, evaluating every {args.interval:g}s")
    try:
        await asyncio.Event().wait()
    finally:
        balancer.unload()
    return 0

def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        plans = load_configuration(args.config)
        backend = OpenStackBackend(get_openstack_connection(), metric_url=args.metric_url)
        if args.dry_run:
            backend = DryRunBackend(backend)

        balancer = LoadBalancer(backend, interval=args.interval)
        try:
            return asyncio.run(run(balancer, plans, args))
        finally:
            backend.close()

    except BalancerError as e:
        logger.error(f"Balancer error: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 0
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 1

if __name__ == "__main__":
    sys.exit(main())
