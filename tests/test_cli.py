# test_cli.py

import asyncio
import logging
from types import SimpleNamespace

from pool_balancer import cli
from pool_balancer.config import PERFORMANCE_MODE
from pool_balancer.engine import LoadBalancer
from pool_balancer.models import Host, PlanSpec, VM
from tests.fakes import MIB, FakeBackend, flat_stats

def make_args(once=False, show_hosts=False):
    return SimpleNamespace(once=once, show_hosts=show_hosts, interval=60)

def make_backend(**kwargs):
    return FakeBackend(
        hosts=[Host("h1", "host-1", "p1", 4), Host("h2", "host-2", "p2", 4)],
        vms=[VM("vm1", "vm-1", "h1", 1)],
        stats={
            "h1": flat_stats(30, memory_free=500 * MIB),
            "h2": flat_stats(20, memory_free=500 * MIB),
            "vm1": flat_stats(30, memory=40 * MIB),
        },
        **kwargs
    )

def test_missing_configuration_exits_with_error(tmp_path):
    assert cli.main(["--config", str(tmp_path / "missing.json")]) == 1

def test_parse_args_defaults():
    args = cli.parse_args(["--config", "plans.json"])

    assert args.config == "plans.json"
    assert args.interval == 60
    assert not args.dry_run
    assert not args.once

def test_single_cycle_succeeds():
    balancer = LoadBalancer(make_backend())
    plans = [PlanSpec("web", PERFORMANCE_MODE, ["p1"]), PlanSpec("batch", PERFORMANCE_MODE, ["p2"])]

    assert asyncio.run(cli.run(balancer, plans, make_args(once=True))) == 0
    assert not balancer.job.enabled

def test_single_cycle_with_failing_plan():
    backend = make_backend(broken_pools={"bad"})
    balancer = LoadBalancer(backend)
    plans = [PlanSpec("web", PERFORMANCE_MODE, ["p1"]), PlanSpec("broken", PERFORMANCE_MODE, ["bad"])]

    assert asyncio.run(cli.run(balancer, plans, make_args(once=True))) == 1

def test_show_hosts_logs_each_plan(caplog):
    caplog.set_level(logging.INFO)
    backend = make_backend()
    balancer = LoadBalancer(backend)
    plans = [PlanSpec("web", PERFORMANCE_MODE, ["p1"]), PlanSpec("batch", PERFORMANCE_MODE, ["p2"])]

    assert asyncio.run(cli.run(balancer, plans, make_args(show_hosts=True))) == 0

    assert "Plan web:" in caplog.text
    assert "host-1 (h1) pool=p1" in caplog.text
    assert "Plan batch:" in caplog.text
    assert "host-2 (h2) pool=p2" in caplog.text
    assert "CPU: 30.0%" in caplog.text
    assert backend.migrations == []
