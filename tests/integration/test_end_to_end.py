"""End-to-end runs against a fake JaCoCo agent."""

import logging
from collections.abc import Generator
from pathlib import Path

import pytest

from pertestcov.config import CoordinatorConfig
from pertestcov.coordinator import TestCoordinator
from pertestcov.factory import build_coordinator
from pertestcov.models.identity import TestId, identify
from pertestcov.testing.factories import CoordinatorConfigFactory
from pertestcov.testing.jacoco.payloads import (
    agent_response,
    dump,
    execution_data,
    session_info,
)
from pertestcov.testing.jacoco.server import FakeJaCoCoAgent


def blocks_for(index: int) -> tuple[bytes, bytes]:
    return (
        session_info(session_id=f"session-{index}"),
        execution_data(class_id=index, name=f"com/example/Class{index}"),
    )


@pytest.fixture
def fake_agent() -> Generator[FakeJaCoCoAgent, None, None]:
    with FakeJaCoCoAgent(lambda index: agent_response(*blocks_for(index))) as agent:
        yield agent


def config_for(base_dir: Path, port: int, **overrides: object) -> CoordinatorConfig:
    return CoordinatorConfigFactory.build(
        base_dir=base_dir,
        agent="jacoco",
        agent_config={"address": "127.0.0.1", "port": port},
        **overrides,
    )


@pytest.fixture
def coordinator(tmp_path: Path, fake_agent: FakeJaCoCoAgent) -> TestCoordinator:
    return build_coordinator(config_for(tmp_path, fake_agent.port))


def raw_dir(base_dir: Path) -> Path:
    return base_dir / "coverage" / "raw"


def results(base_dir: Path, run_id: str = "0") -> str:
    return (base_dir / run_id / f"TestResults.r{run_id}").read_text()


def test_passing_test(tmp_path: Path, coordinator: TestCoordinator) -> None:
    """A passing test yields a PASS line and a snapshot named by fingerprint."""
    test_id = TestId(container="pkg.Foo", case="bar")
    identity = identify("pkg.Foo", "bar")

    coordinator.run_started()
    coordinator.test_started(test_id)
    coordinator.test_finished(test_id)
    coordinator.run_finished()

    assert results(tmp_path) == "PASS: pkg.Foo.bar\n"
    snapshot = raw_dir(tmp_path) / f"{identity.fingerprint}.exec"
    assert snapshot.read_bytes() == dump(*blocks_for(0))
    assert (tmp_path / "0" / "HashToTest.r0").read_text() == (
        f"{identity.fingerprint}\tpkg.Foo.bar\n"
    )


def test_failing_test(tmp_path: Path, coordinator: TestCoordinator) -> None:
    """A failing test yields a FAIL line and still has its coverage."""
    test_id = TestId(container="pkg.Foo", case="baz")

    coordinator.test_started(test_id)
    coordinator.test_failed(test_id, "AssertionError")
    coordinator.test_finished(test_id)
    coordinator.run_finished()

    assert results(tmp_path) == "FAIL: pkg.Foo.baz\n"
    fingerprint = identify("pkg.Foo", "baz").fingerprint
    assert (raw_dir(tmp_path) / f"{fingerprint}.exec").exists()


def test_agent_unreachable(
    tmp_path: Path, unused_tcp_port: int, caplog: pytest.LogCaptureFixture
) -> None:
    """Without an agent, results are written and the loss is counted."""
    coordinator = build_coordinator(config_for(tmp_path, unused_tcp_port))
    test_id = TestId(container="pkg.Foo", case="bar")
    identity = identify("pkg.Foo", "bar")

    with caplog.at_level(logging.WARNING):
        coordinator.test_started(test_id)
        coordinator.test_finished(test_id)
        summary = coordinator.run_finished()

    assert results(tmp_path) == "PASS: pkg.Foo.bar\n"
    assert not (raw_dir(tmp_path) / f"{identity.fingerprint}.exec").exists()
    assert summary.coverage_unavailable == 1
    loss = (tmp_path / "0" / "CoverageLoss.r0").read_text()
    assert loss.startswith(f"{identity.fingerprint}\tpkg.Foo.bar\tagent unreachable")
    assert "Cannot dump and reset coverage for pkg.Foo.bar" in caplog.text


def test_agent_too_slow(tmp_path: Path) -> None:
    """A capture that exceeds the timeout loses coverage, not the result."""
    with FakeJaCoCoAgent(delay=1.0) as slow_agent:
        coordinator = build_coordinator(
            config_for(tmp_path, slow_agent.port, timeout=0.1)
        )
        test_id = TestId(container="pkg.Foo", case="slow")

        coordinator.test_started(test_id)
        coordinator.test_finished(test_id)
        summary = coordinator.run_finished()

    assert summary.coverage_unavailable == 1
    assert results(tmp_path) == "PASS: pkg.Foo.slow\n"
    assert not raw_dir(tmp_path).exists()


def test_reruns_keep_separate_snapshots(
    tmp_path: Path, coordinator: TestCoordinator
) -> None:
    """Two runs of the same test produce two distinct snapshot files."""
    test_id = TestId(container="pkg.Foo", case="bar[1]")
    identity = identify("pkg.Foo", "bar[1]")

    for _ in range(2):
        coordinator.test_started(test_id)
        coordinator.test_finished(test_id)
    coordinator.run_finished()

    assert results(tmp_path) == "PASS: pkg.Foo.bar-1-\nPASS: pkg.Foo.bar-1-\n"
    first = raw_dir(tmp_path) / f"{identity.fingerprint}.exec"
    second = raw_dir(tmp_path) / f"{identity.fingerprint}.1.exec"
    assert first.read_bytes() == dump(*blocks_for(0))
    assert second.read_bytes() == dump(*blocks_for(1))


def test_capture_completes_before_next_test(
    tmp_path: Path, coordinator: TestCoordinator, fake_agent: FakeJaCoCoAgent
) -> None:
    """Each test's dump is written before the host may start the next test."""
    test_ids = [TestId(container="pkg.Foo", case=f"test_{i}") for i in range(5)]

    for finished, test_id in enumerate(test_ids):
        assert fake_agent.dumps == finished
        coordinator.test_started(test_id)
        coordinator.test_finished(test_id)

        assert fake_agent.dumps == finished + 1
        snapshot = raw_dir(tmp_path) / identify("pkg.Foo", test_id.case).snapshot_name(
            0, "exec"
        )
        assert snapshot.read_bytes() == dump(*blocks_for(finished))

    assert all(command[-3:] == b"\x40\x01\x01" for command in fake_agent.commands)
