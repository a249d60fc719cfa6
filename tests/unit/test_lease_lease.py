"""Tests for the distributed lease."""

from unittest.mock import Mock, patch

import pytest

from ledgerctl.core.errors import (
    LeaseAcquisitionError,
    LeaseConflictError,
    LeaseError,
    LeaseRelinquishmentError,
    VersionConflictError,
)
from ledgerctl.lease.lease import STALE_LEASE_RECLAIMED, Lease, LeaseRecord
from ledgerctl.storage.memory import InMemoryDocumentStore


class InterleavingStore(InMemoryDocumentStore):
    """Store that runs a competing action right before the next write."""

    def __init__(self) -> None:
        super().__init__()
        self.before_next_put = None

    def put_document(self, key, data, expected_revision=None):
        hook, self.before_next_put = self.before_next_put, None
        if hook is not None:
            hook()
        return super().put_document(key, data, expected_revision)


@pytest.fixture
def make_lease(memory_store, clock):
    """Build leases on the shared store and clock."""

    def _make(holder, scope="ns1", **kwargs):
        return Lease(memory_store, scope, holder, duration_seconds=20, clock=clock, **kwargs)

    return _make


@pytest.mark.usefixtures("liveness")
class TestLeaseAcquire:
    """Test acquisition and mutual exclusion."""

    def test_acquire_free_lease(self, make_lease, holder_a, clock) -> None:
        """Test acquiring a lease nobody holds."""
        lease = make_lease(holder_a)
        lease.acquire()

        record = lease.read_record()
        assert record.holder == holder_a
        assert record.acquired_at == clock.now
        assert record.duration_seconds == 20
        assert lease.is_acquired()

    def test_live_holder_excludes_others(self, make_lease, holder_a, holder_b, clock) -> None:
        """Test a second holder gets a conflict naming the owner."""
        make_lease(holder_a).acquire()
        clock.advance(5)

        with pytest.raises(LeaseConflictError) as exc_info:
            make_lease(holder_b).acquire()

        error = exc_info.value
        assert error.holder == holder_a
        assert error.scope == "ns1"
        assert error.age_seconds == 5
        assert "alice" in error.message and "host-a" in error.message and "1001" in error.message

    def test_reacquire_by_same_holder_renews(self, make_lease, holder_a, clock) -> None:
        """Test acquiring twice only extends the lease."""
        lease = make_lease(holder_a)
        lease.acquire()
        acquired_at = clock.now
        clock.advance(10)

        lease.acquire()

        record = lease.read_record()
        assert record.acquired_at == acquired_at
        assert record.renewed_at == clock.now

    def test_scopes_are_independent(self, make_lease, holder_a, holder_b) -> None:
        """Test leases on different scopes never conflict."""
        make_lease(holder_a, scope="ns1").acquire()
        make_lease(holder_b, scope="ns2").acquire()

    def test_expired_lease_is_reclaimed(self, make_lease, holder_a, holder_b, clock) -> None:
        """Test an unrenewed lease can be taken once its duration has passed."""
        make_lease(holder_a).acquire()
        clock.advance(19)
        with pytest.raises(LeaseConflictError):
            make_lease(holder_b).acquire()

        clock.advance(2)
        with patch("ledgerctl.lease.lease.log_lease_event") as mock_event:
            make_lease(holder_b).acquire()

        assert make_lease(holder_b).read_record().holder == holder_b
        assert mock_event.call_args.args[1] == STALE_LEASE_RECLAIMED
        assert mock_event.call_args.kwargs["previous_holder"] == str(holder_a)

    def test_dead_process_on_same_machine_is_reclaimed(
        self, make_lease, holder_a, holder_a_restarted, liveness
    ) -> None:
        """Test a restarted process takes over from its crashed predecessor."""
        make_lease(holder_a).acquire()
        liveness.kill(holder_a.process_id)

        with patch("ledgerctl.lease.lease.log_lease_event") as mock_event:
            make_lease(holder_a_restarted).acquire()

        assert make_lease(holder_a_restarted).read_record().holder == holder_a_restarted
        assert mock_event.call_args.args[1] == STALE_LEASE_RECLAIMED

    def test_live_process_on_same_machine_conflicts(
        self, make_lease, holder_a, holder_a_restarted
    ) -> None:
        """Test a second live process of the same user is excluded."""
        make_lease(holder_a).acquire()
        with pytest.raises(LeaseConflictError):
            make_lease(holder_a_restarted).acquire()

    def test_dead_pid_on_other_machine_is_not_reclaimed(
        self, make_lease, holder_a, holder_b, liveness
    ) -> None:
        """Test PIDs of other hosts are never probed locally."""
        make_lease(holder_b).acquire()
        liveness.kill(holder_b.process_id)

        with pytest.raises(LeaseConflictError):
            make_lease(holder_a).acquire()

    def test_try_acquire(self, make_lease, holder_a, holder_b) -> None:
        """Test try_acquire reports instead of raising."""
        assert make_lease(holder_a).try_acquire() is True
        assert make_lease(holder_b).try_acquire() is False

    def test_racing_writer_wins(self, holder_a, holder_b, clock) -> None:
        """Test a lost create race is re-evaluated into a conflict."""
        store = InterleavingStore()
        loser = Lease(store, "ns1", holder_a, clock=clock)
        winner = Lease(store, "ns1", holder_b, clock=clock)
        store.before_next_put = winner.acquire

        with pytest.raises(LeaseConflictError) as exc_info:
            loser.acquire()

        assert exc_info.value.holder == holder_b
        assert winner.is_acquired()

    def test_racing_reclaim_only_one_wins(self, holder_a, holder_b, holder_a_restarted, clock) -> None:
        """Test two reclaimers of an expired lease never both succeed."""
        store = InterleavingStore()
        Lease(store, "ns1", holder_a, clock=clock).acquire()
        clock.advance(25)
        first = Lease(store, "ns1", holder_b, clock=clock)
        second = Lease(store, "ns1", holder_a_restarted, clock=clock)
        store.before_next_put = second.acquire

        with pytest.raises(LeaseConflictError):
            first.acquire()

        assert second.is_acquired()
        assert not first.is_acquired()

    def test_endless_races_give_up(self, holder_a, clock) -> None:
        """Test a store that never accepts the fenced write."""
        store = Mock()
        store.get_document.return_value = None
        store.put_document.side_effect = VersionConflictError("raced", key="leases/ns1")

        with pytest.raises(LeaseAcquisitionError, match="concurrently"):
            Lease(store, "ns1", holder_a, clock=clock).acquire()

        assert store.put_document.call_count == 4


@pytest.mark.usefixtures("liveness")
class TestLeaseRenew:
    """Test renewal."""

    def test_renew_extends_expiry(self, make_lease, holder_a, holder_b, clock) -> None:
        """Test renewed leases outlive their original duration."""
        lease = make_lease(holder_a)
        lease.acquire()
        clock.advance(15)
        lease.renew()
        clock.advance(15)

        assert not lease.is_expired()
        with pytest.raises(LeaseConflictError):
            make_lease(holder_b).acquire()

    def test_renew_after_takeover_fails(self, make_lease, holder_a, holder_b, clock) -> None:
        """Test a holder that lost its lease cannot renew it back."""
        lease = make_lease(holder_a)
        lease.acquire()
        clock.advance(21)
        make_lease(holder_b).acquire()

        with pytest.raises(LeaseConflictError):
            lease.renew()
        assert lease.try_renew() is False
        assert make_lease(holder_b).read_record().holder == holder_b

    def test_renew_does_not_reclaim_expired_record(self, make_lease, holder_a, holder_b, clock) -> None:
        """Test renewing over another holder's expired record fails; acquire reclaims it."""
        make_lease(holder_b).acquire()
        clock.advance(21)
        lease = make_lease(holder_a)

        with pytest.raises(LeaseConflictError):
            lease.renew()
        assert lease.read_record().holder == holder_b

        lease.acquire()
        assert lease.read_record().holder == holder_a

    def test_renew_does_not_reclaim_dead_process(
        self, make_lease, holder_a, holder_a_restarted, liveness
    ) -> None:
        """Test a restarted process cannot renew its dead predecessor's lease."""
        previous = make_lease(holder_a)
        previous.acquire()
        liveness.kill(holder_a.process_id)
        lease = make_lease(holder_a_restarted)

        assert lease.is_stale(previous.read_record())
        assert lease.try_renew() is False
        assert lease.read_record().holder == holder_a

    def test_renew_recreates_missing_record(self, make_lease, holder_a) -> None:
        lease = make_lease(holder_a)
        lease.renew()
        assert lease.is_acquired()


@pytest.mark.usefixtures("liveness")
class TestLeaseRelease:
    """Test release."""

    def test_release_own_lease(self, make_lease, holder_a, memory_store) -> None:
        """Test releasing deletes the record."""
        lease = make_lease(holder_a)
        lease.acquire()
        lease.release()

        assert lease.read_record() is None
        assert memory_store.list_keys() == []

    def test_release_absent_is_noop(self, make_lease, holder_a) -> None:
        """Test releasing twice is harmless."""
        lease = make_lease(holder_a)
        lease.release()
        assert lease.try_release() is True

    def test_release_never_removes_live_other_holder(self, make_lease, holder_a, holder_b) -> None:
        """Test another holder's live lease survives a release attempt."""
        make_lease(holder_a).acquire()

        with pytest.raises(LeaseRelinquishmentError):
            make_lease(holder_b).release()

        assert make_lease(holder_b).try_release() is False
        assert make_lease(holder_a).is_acquired()

    def test_release_ignores_stale_other_holder(self, make_lease, holder_a, holder_b, clock) -> None:
        """Test a stale foreign record is left for reclaim rather than raising."""
        make_lease(holder_a).acquire()
        clock.advance(30)

        make_lease(holder_b).release()

        assert make_lease(holder_b).read_record().holder == holder_a

    def test_renewal_service_lifecycle(self, make_lease, holder_a) -> None:
        """Test acquisition schedules and release cancels renewal."""
        service = Mock()
        lease = make_lease(holder_a, renewal_service=service)

        lease.acquire()
        service.schedule.assert_called_once_with(lease)

        lease.release()
        service.cancel.assert_called_once_with(lease)


@pytest.mark.usefixtures("liveness")
class TestLeaseInspection:
    """Test read-only queries and validation."""

    def test_free_lease(self, make_lease, holder_a) -> None:
        """Test queries on a free lease."""
        lease = make_lease(holder_a)
        assert lease.read_record() is None
        assert lease.is_expired()
        assert not lease.is_acquired()
        assert lease.age() is None

    def test_age_and_expiry(self, make_lease, holder_a, clock) -> None:
        """Test age counts from first acquisition."""
        lease = make_lease(holder_a)
        lease.acquire()
        clock.advance(21)

        assert lease.age() == 21
        assert lease.is_expired()
        assert not lease.is_acquired()

    @pytest.mark.parametrize("payload", [b"not json", b'{"scope": "ns1"}'])
    def test_corrupt_record(self, make_lease, holder_a, memory_store, payload) -> None:
        """Test an unreadable record blocks acquire and release with a clear error."""
        memory_store.put_document("leases/ns1", payload)
        lease = make_lease(holder_a)

        with pytest.raises(LeaseAcquisitionError, match="force-release"):
            lease.acquire()
        with pytest.raises(LeaseRelinquishmentError):
            lease.release()

    @pytest.mark.parametrize("scope,duration", [("", 20), ("  ", 20), ("ns1", 0)])
    def test_invalid_arguments(self, memory_store, holder_a, scope, duration) -> None:
        """Test empty scopes and non-positive durations."""
        with pytest.raises(LeaseError):
            Lease(memory_store, scope, holder_a, duration_seconds=duration)

    def test_record_bytes(self, make_lease, holder_a, memory_store) -> None:
        """Test stored records decode back to the same record."""
        make_lease(holder_a).acquire()
        data = memory_store.get_document("leases/ns1").data

        record = LeaseRecord.from_bytes(data)

        assert record.holder == holder_a
        assert record.to_bytes() == data
