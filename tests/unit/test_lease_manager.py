"""Tests for lease acquisition policy."""

from unittest.mock import Mock

import pytest

from ledgerctl.core.errors import LeaseConflictError, PersistenceError
from ledgerctl.core.types import LeaseConfig
from ledgerctl.lease.lease import Lease
from ledgerctl.lease.manager import LeaseManager
from ledgerctl.lease.renewal import IntervalLeaseRenewalService
from ledgerctl.storage.memory import InMemoryDocumentStore


class FlakyStore(InMemoryDocumentStore):
    """Store whose first reads fail with an I/O error."""

    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures

    def get_document(self, key):
        if self.failures > 0:
            self.failures -= 1
            raise PersistenceError("store unreachable")
        return super().get_document(key)


@pytest.fixture
def sleep() -> Mock:
    return Mock()


@pytest.fixture
def make_manager(memory_store, lease_config, persistence_config, clock, sleep):
    """Build managers sharing the store, clock and sleep."""

    def _make(holder, store=None, monotonic=None, config=None):
        kwargs = {"monotonic": monotonic} if monotonic is not None else {}
        return LeaseManager(
            store if store is not None else memory_store,
            holder,
            config=config or lease_config,
            persistence=persistence_config,
            clock=clock,
            sleep=sleep,
            **kwargs,
        )

    return _make


@pytest.mark.usefixtures("liveness")
class TestLeaseManagerAcquire:
    """Test LeaseManager.acquire."""

    def test_acquire_free(self, make_manager, holder_a, sleep) -> None:
        """Test acquiring without contention."""
        lease = make_manager(holder_a).acquire("ns1")

        assert isinstance(lease, Lease)
        assert lease.is_acquired()
        sleep.assert_not_called()

    def test_gives_up_after_attempts(self, make_manager, holder_a, holder_b, sleep) -> None:
        """Test the conflict is re-raised after the configured attempts."""
        make_manager(holder_b).acquire("ns1")

        with pytest.raises(LeaseConflictError) as exc_info:
            make_manager(holder_a).acquire("ns1")

        assert exc_info.value.holder == holder_b
        assert sleep.call_count == 2
        assert all(0 < c.args[0] <= 0.05 * 1.25 for c in sleep.call_args_list)

    def test_succeeds_once_released(self, make_manager, holder_a, holder_b, sleep) -> None:
        """Test a retry picks up a lease released in the meantime."""
        other = make_manager(holder_b).acquire("ns1")
        sleep.side_effect = lambda _delay: other.release()

        lease = make_manager(holder_a).acquire("ns1")

        assert lease.is_acquired()
        assert sleep.call_count == 1

    def test_timeout(self, make_manager, holder_a, holder_b, sleep) -> None:
        """Test acquisition stops when the deadline has passed."""
        make_manager(holder_b).acquire("ns1")
        monotonic = Mock(side_effect=[0.0, 31.0])

        with pytest.raises(LeaseConflictError):
            make_manager(holder_a, monotonic=monotonic).acquire("ns1")

        sleep.assert_not_called()

    def test_wait_capped_by_deadline(self, make_manager, holder_a, holder_b, sleep) -> None:
        """Test the last wait never overshoots the deadline."""
        make_manager(holder_b).acquire("ns1")
        monotonic = Mock(side_effect=[0.0, 29.995, 40.0])

        with pytest.raises(LeaseConflictError):
            make_manager(holder_a, monotonic=monotonic).acquire("ns1")

        assert sleep.call_count == 1
        assert sleep.call_args.args[0] == pytest.approx(0.005)

    def test_transient_store_errors_are_retried(self, make_manager, holder_a, sleep) -> None:
        """Test I/O failures are retried with the persistence policy."""
        store = FlakyStore(failures=2)

        lease = make_manager(holder_a, store=store).acquire("ns1")

        assert lease.is_acquired()
        assert sleep.call_count == 2

    def test_persistent_store_errors_propagate(self, make_manager, holder_a) -> None:
        """Test I/O failures surface once the persistence policy is exhausted."""
        store = FlakyStore(failures=10)

        with pytest.raises(PersistenceError):
            make_manager(holder_a, store=store).acquire("ns1")


@pytest.mark.usefixtures("liveness")
class TestLeaseManagerHold:
    """Test LeaseManager.hold."""

    def test_released_after_block(self, make_manager, holder_a, memory_store) -> None:
        """Test the lease is held inside and released after the block."""
        manager = make_manager(holder_a)
        with manager.hold("ns1") as lease:
            assert lease.is_acquired()

        assert memory_store.get_document("leases/ns1") is None

    @pytest.mark.parametrize("error_cls", [ValueError, KeyboardInterrupt])
    def test_released_on_error(self, make_manager, holder_a, memory_store, error_cls) -> None:
        """Test failures and interrupts still release the lease."""
        with pytest.raises(error_cls):
            with make_manager(holder_a).hold("ns1"):
                raise error_cls()

        assert memory_store.get_document("leases/ns1") is None

    def test_release_error_does_not_mask_failure(self, make_manager, holder_a, holder_b) -> None:
        """Test the block's own error wins over a failing release."""
        manager = make_manager(holder_a)
        other = make_manager(holder_b)

        with pytest.raises(ValueError, match="step failed"):
            with manager.hold("ns1"):
                manager.force_release("ns1")
                other.acquire("ns1")
                raise ValueError("step failed")

        assert other.status("ns1").holder == holder_b


@pytest.mark.usefixtures("liveness")
class TestLeaseManagerAdministration:
    """Test status, listing and forced release."""

    def test_status_and_list(self, make_manager, holder_a, holder_b) -> None:
        """Test inspecting held leases."""
        manager = make_manager(holder_a)
        assert manager.status("ns1") is None
        assert manager.list_scopes() == []

        manager.acquire("ns2")
        make_manager(holder_b).acquire("ns1")

        assert manager.status("ns1").holder == holder_b
        assert manager.list_scopes() == ["ns1", "ns2"]

    def test_force_release(self, make_manager, holder_a, holder_b) -> None:
        """Test forced release removes a foreign lease."""
        make_manager(holder_b).acquire("ns1")
        manager = make_manager(holder_a)

        assert manager.force_release("ns1") is True
        assert manager.force_release("ns1") is False
        assert manager.acquire("ns1").is_acquired()

    def test_auto_renew(self, make_manager, holder_a) -> None:
        """Test automatic renewal is wired and stopped on shutdown."""
        manager = make_manager(holder_a, config=LeaseConfig(auto_renew=True, duration_seconds=60))
        assert isinstance(manager.renewal_service, IntervalLeaseRenewalService)

        lease = manager.acquire("ns1")
        assert manager.renewal_service.is_scheduled(lease)

        manager.shutdown()
        assert not manager.renewal_service.is_scheduled(lease)

    def test_no_auto_renew(self, make_manager, holder_a) -> None:
        """Test renewal is off when disabled."""
        assert make_manager(holder_a).renewal_service is None
