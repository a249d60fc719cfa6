"""Background renewal of held leases."""

import logging
import threading
from dataclasses import dataclass
from typing import Dict, TYPE_CHECKING

from ..core.errors import LeaseError, PersistenceError
from ..core.log import get_logger, log_lease_event

if TYPE_CHECKING:
    from .lease import Lease

logger = get_logger(__name__)

DEFAULT_RENEWAL_FRACTION = 0.5


@dataclass
class _RenewalJob:
    thread: threading.Thread
    stop_event: threading.Event


class IntervalLeaseRenewalService:
    """Renews each scheduled lease on a fixed interval from a daemon thread.

    The interval is ``duration_seconds * renewal_fraction``, so a lease is
    refreshed well before it expires. A renewal that loses the lease to
    another holder stops that lease's job; transient store failures are
    logged and retried on the next tick.
    """

    def __init__(self, renewal_fraction: float = DEFAULT_RENEWAL_FRACTION) -> None:
        if not 0.0 < renewal_fraction < 1.0:
            raise ValueError("renewal_fraction must be between 0 and 1")
        self._renewal_fraction = renewal_fraction
        self._jobs: Dict["Lease", _RenewalJob] = {}
        self._lock = threading.Lock()

    def calculate_renewal_delay(self, lease: "Lease") -> float:
        return lease.duration_seconds * self._renewal_fraction

    def is_scheduled(self, lease: "Lease") -> bool:
        with self._lock:
            job = self._jobs.get(lease)
            return job is not None and not job.stop_event.is_set()

    def schedule(self, lease: "Lease") -> None:
        """Start renewing the lease. Scheduling an already scheduled lease is a no-op."""
        with self._lock:
            existing = self._jobs.get(lease)
            if existing is not None and not existing.stop_event.is_set():
                return

            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._renewal_loop,
                args=(lease, stop_event, self.calculate_renewal_delay(lease)),
                name=f"LeaseRenewal-{lease.scope}",
                daemon=True,
            )
            self._jobs[lease] = _RenewalJob(thread, stop_event)
            thread.start()
        logger.debug("Scheduled renewal of lease %s", lease.scope)

    def cancel(self, lease: "Lease", timeout: float = 5.0) -> bool:
        """Stop renewing the lease. Returns False when it was not scheduled."""
        with self._lock:
            job = self._jobs.pop(lease, None)
        if job is None:
            return False

        job.stop_event.set()
        if job.thread is not threading.current_thread():
            job.thread.join(timeout=timeout)
        logger.debug("Cancelled renewal of lease %s", lease.scope)
        return True

    def cancel_all(self) -> None:
        with self._lock:
            leases = list(self._jobs)
        for lease in leases:
            self.cancel(lease)

    def _renewal_loop(
        self, lease: "Lease", stop_event: threading.Event, delay: float
    ) -> None:
        while not stop_event.is_set():
            if stop_event.wait(delay):
                break
            try:
                lease.renew()
            except LeaseError as e:
                log_lease_event(
                    logger,
                    "renewal_lost",
                    lease.scope,
                    lease.holder,
                    level=logging.WARNING,
                    error=str(e),
                )
                stop_event.set()
                break
            except PersistenceError as e:
                logger.warning("Renewal of lease %s failed, will retry: %s", lease.scope, e)

        with self._lock:
            job = self._jobs.get(lease)
            if job is not None and job.stop_event is stop_event:
                del self._jobs[lease]
