"""Test configuration and fixtures for ledgerctl unit tests."""

import os
from datetime import datetime, timedelta, timezone
from typing import Any, Generator, Set
from unittest.mock import patch

import pytest

from ledgerctl.core.types import LeaseConfig, PersistenceConfig
from ledgerctl.lease.holder import LeaseHolderIdentity
from ledgerctl.registry.registry import ClusterMetadata, ComponentRegistry
from ledgerctl.storage.memory import InMemoryDocumentStore


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class FakeLiveness:
    """Liveness probe where every PID is alive unless marked dead."""

    def __init__(self) -> None:
        self.dead: Set[int] = set()

    def __call__(self, pid: int) -> bool:
        return pid not in self.dead

    def kill(self, pid: int) -> None:
        self.dead.add(pid)


@pytest.fixture
def clock() -> FakeClock:
    """Provide a fixed clock that only moves when advanced."""
    return FakeClock(datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def liveness() -> Generator[FakeLiveness, None, None]:
    """Replace the OS process probe used by lease holders."""
    probe = FakeLiveness()
    with patch("ledgerctl.lease.holder.is_process_alive", side_effect=probe):
        yield probe


@pytest.fixture
def memory_store() -> InMemoryDocumentStore:
    """Provide an empty in-memory document store."""
    return InMemoryDocumentStore()


@pytest.fixture
def holder_a() -> LeaseHolderIdentity:
    """Operator alice on host-a."""
    return LeaseHolderIdentity("alice", "host-a", 1001)


@pytest.fixture
def holder_a_restarted() -> LeaseHolderIdentity:
    """A later process of alice on the same host."""
    return LeaseHolderIdentity("alice", "host-a", 1002)


@pytest.fixture
def holder_b() -> LeaseHolderIdentity:
    """Operator bob on another host."""
    return LeaseHolderIdentity("bob", "host-b", 2001)


@pytest.fixture
def lease_config() -> LeaseConfig:
    """Lease policy without background renewal and with short backoff."""
    return LeaseConfig(
        duration_seconds=20,
        auto_renew=False,
        acquire_attempts=3,
        retry_initial_delay=0.01,
        retry_max_delay=0.05,
        acquire_timeout=30.0,
    )


@pytest.fixture
def persistence_config() -> PersistenceConfig:
    """Store retry policy with tiny delays."""
    return PersistenceConfig(attempts=3, initial_delay=0.01, max_delay=0.02)


@pytest.fixture
def cluster() -> ClusterMetadata:
    return ClusterMetadata(name="cluster-1", namespace="ns1", deployment="dep1")


@pytest.fixture
def registry(cluster: ClusterMetadata) -> ComponentRegistry:
    """Provide an empty registry with one cluster."""
    registry = ComponentRegistry.empty("ns1", "dep1", cli_version="1.0.0")
    registry.add_cluster(cluster.name, cluster)
    return registry


@pytest.fixture
def clean_environment() -> Generator[Any, None, None]:
    """Run with no LEDGERCTL_* variables set."""
    cleaned = {k: v for k, v in os.environ.items() if not k.startswith("LEDGERCTL_")}
    with patch.dict(os.environ, cleaned, clear=True):
        yield
