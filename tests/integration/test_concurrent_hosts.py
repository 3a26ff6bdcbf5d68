"""Two host adapters driving one coordinator from separate threads."""

import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from pertestcov.factory import build_coordinator
from pertestcov.models.identity import TestId, identify
from pertestcov.testing.factories import CoordinatorConfigFactory
from pertestcov.testing.jacoco.server import FakeJaCoCoAgent

TESTS_PER_HOST = 6


def host_tests(host: str) -> list[TestId]:
    return [
        TestId(container=f"pkg.{host}.Suite", case=f"test_{index}")
        for index in range(TESTS_PER_HOST)
    ]


def test_hosts_share_one_coordinator(tmp_path: Path) -> None:
    """Interleaved events from two threads keep one record per test."""
    hosts = ["first", "second"]
    barrier = threading.Barrier(len(hosts))

    with FakeJaCoCoAgent(delay=0.01) as fake_agent:
        coordinator = build_coordinator(
            CoordinatorConfigFactory.build(
                base_dir=tmp_path,
                agent="jacoco",
                agent_config={"address": "127.0.0.1", "port": fake_agent.port},
                timeout=5.0,
            )
        )

        def drive(host: str) -> None:
            barrier.wait()
            for index, test_id in enumerate(host_tests(host)):
                coordinator.test_started(test_id)
                if index % 2:
                    coordinator.test_failed(test_id, "AssertionError")
                coordinator.test_finished(test_id)

        coordinator.run_started()
        with ThreadPoolExecutor(max_workers=len(hosts)) as pool:
            for future in [pool.submit(drive, host) for host in hosts]:
                future.result()
        summary = coordinator.run_finished()

    total = TESTS_PER_HOST * len(hosts)
    assert fake_agent.dumps == total
    assert fake_agent.max_concurrent_dumps == 1

    identities = [
        identify(test_id.container, test_id.case)
        for host in hosts
        for test_id in host_tests(host)
    ]
    snapshots = sorted(path.name for path in (tmp_path / "coverage" / "raw").iterdir())
    assert snapshots == sorted(
        identity.snapshot_name(0, "exec") for identity in identities
    )
    map_lines = (tmp_path / "0" / "HashToTest.r0").read_text().splitlines()
    assert sorted(map_lines) == sorted(
        f"{identity.fingerprint}\t{identity.qualified_name}" for identity in identities
    )

    assert summary.tests == total
    assert summary.outcomes["PASS"] == total // 2
    assert summary.outcomes["FAIL"] == total // 2
    assert summary.coverage_unavailable == 0
    assert summary.events == {
        "STRT": total,
        "IGNR": 0,
        "FAIL": total // 2,
        "AFAIL": 0,
        "FNSH": total,
    }
