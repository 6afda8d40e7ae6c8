# test_plans.py

import asyncio

from pool_balancer.models import Host, ResourceStats, VM
from pool_balancer.plans import Plan
from pool_balancer.policies import PerformancePolicy
from tests.fakes import MIB, FakeBackend, flat_stats

H1 = Host("h1", "host-1", "pool-1", 8)
H2 = Host("h2", "host-2", "pool-1", 8)
H3 = Host("h3", "host-3", "pool-1", 8)
OTHER = Host("x1", "other", "pool-2", 8)

def make_plan(backend):
    return Plan(backend, "plan", ["pool-1"], PerformancePolicy())

def detect(plan):
    return asyncio.run(plan.find_hosts_to_optimize())

def test_nothing_to_do_when_last_sample_is_fine():
    backend = FakeBackend(
        hosts=[H1, H2],
        stats={"h1": flat_stats(50, memory_free=500 * MIB), "h2": flat_stats(20, memory_free=500 * MIB)},
    )
    assert detect(make_plan(backend)) is None

def test_single_sample_spike_is_damped():
    spike = ResourceStats(
        cpus=[[10.0] * 29 + [95.0]],
        memory=[1.0] * 30,
        memory_free=[500.0 * MIB] * 30,
    )
    backend = FakeBackend(hosts=[H1, H2], stats={"h1": spike, "h2": flat_stats(20, memory_free=500 * MIB)})

    detection = detect(make_plan(backend))

    # 0.75 * 95 + 0.25 * (29 * 10 + 95) / 30 is below 76.5
    assert detection is not None
    assert detection.to_optimize == []
    assert detection.averages["h1"].cpu < 76.5

def test_sustained_load_is_reported():
    backend = FakeBackend(
        hosts=[H1, H2],
        stats={"h1": flat_stats(90, memory_free=500 * MIB), "h2": flat_stats(20, memory_free=500 * MIB)},
    )

    detection = detect(make_plan(backend))

    assert detection.to_optimize == [H1]
    assert detection.hosts == [H1, H2]
    assert detection.averages["h1"].cpu == 90

def test_low_free_memory_is_reported():
    backend = FakeBackend(
        hosts=[H1, H2],
        stats={"h1": flat_stats(10, memory_free=60 * MIB), "h2": flat_stats(20, memory_free=500 * MIB)},
    )

    assert detect(make_plan(backend)).to_optimize == [H1]

def test_scope_is_limited_to_plan_pools():
    backend = FakeBackend(
        hosts=[H1, OTHER],
        stats={"h1": flat_stats(20, memory_free=500 * MIB), "x1": flat_stats(99, memory_free=1 * MIB)},
    )
    assert detect(make_plan(backend)) is None

def test_hosts_without_stats_are_excluded():
    backend = FakeBackend(
        hosts=[H1, H2, H3],
        stats={
            "h1": flat_stats(95, memory_free=50 * MIB),
            # h2 vanished before its stats could be read
            "h3": flat_stats(0, memory_free=500 * MIB),
        },
    )

    detection = detect(make_plan(backend))

    # h3 only has zero CPU samples, which carry no data
    assert detection.hosts == [H1]
    assert detection.to_optimize == [H1]

def test_host_without_data_is_never_a_destination():
    vm = VM("vm1", "vm-1", "h1", 1)
    backend = FakeBackend(
        hosts=[H1, H2, H3],
        vms=[vm],
        stats={
            "h1": flat_stats(95, memory_free=50 * MIB),
            "h2": flat_stats(0, memory_free=0),
            "h3": flat_stats(30, memory_free=30 * MIB),
            "vm1": flat_stats(20, memory=40 * MIB),
        },
    )

    migrations = asyncio.run(make_plan(backend).execute())

    assert [m.destination for m in migrations] == [H3]

def test_vms_without_stats_are_left_in_place():
    known = VM("vm1", "vm-1", "h1", 1)
    unknown = VM("vm2", "vm-2", "h1", 1)
    backend = FakeBackend(
        hosts=[H1, H2],
        vms=[unknown, known],
        stats={
            "h1": flat_stats(95, memory_free=50 * MIB),
            "h2": flat_stats(10, memory_free=30 * MIB),
            "vm1": flat_stats(20, memory=40 * MIB),
        },
    )

    migrations = asyncio.run(make_plan(backend).execute())

    assert [m.vm for m in migrations] == [known]

def test_vm_averages_are_blended_and_normalized():
    vm = VM("vm1", "vm-1", "h1", 2)
    stats = ResourceStats(cpus=[[20.0] * 29 + [100.0]], memory=[40.0 * MIB] * 30, memory_free=[])
    backend = FakeBackend(stats={"vm1": stats})

    averages = asyncio.run(make_plan(backend).get_vms_averages([vm]))

    # (0.75 * 100 + 0.25 * (29 * 20 + 100) / 30) / 2
    expected = (0.75 * 100 + 0.25 * (29 * 20 + 100) / 30) / 2
    assert abs(averages["vm1"].cpu - expected) < 1e-9
    assert averages["vm1"].memory == 40 * MIB

def test_hosts_averages():
    backend = FakeBackend(
        hosts=[H1, H2],
        stats={"h1": flat_stats(40, memory_free=100 * MIB, memory=200 * MIB)},
    )

    hosts, averages = asyncio.run(make_plan(backend).get_hosts_averages())

    assert hosts == [H1]
    assert averages["h1"].cpu == 40
    assert averages["h1"].memory == 200 * MIB
