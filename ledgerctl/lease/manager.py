"""Lease factory with bounded retry, backoff and timeout policy."""

import logging
import time
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional

from ..core.errors import LedgerCtlError, LeaseConflictError, PersistenceError, VersionConflictError
from ..core.log import get_logger, log_lease_event
from ..core.retry import RetryPolicy, call_with_retry
from ..core.types import LeaseConfig, PersistenceConfig
from ..storage.document_store import DocumentStore, lease_key
from .holder import LeaseHolderIdentity
from .lease import Clock, Lease, LeaseRecord, utc_now
from .renewal import IntervalLeaseRenewalService

logger = get_logger(__name__)

_LEASE_PREFIX = "leases/"


class LeaseManager:
    """Creates leases for the current holder and acquires them with retries."""

    def __init__(
        self,
        store: DocumentStore,
        holder: LeaseHolderIdentity,
        config: Optional[LeaseConfig] = None,
        persistence: Optional[PersistenceConfig] = None,
        renewal_service: Optional[IntervalLeaseRenewalService] = None,
        clock: Clock = utc_now,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._holder = holder
        self._config = config or LeaseConfig()
        persistence = persistence or PersistenceConfig()
        self._io_policy = RetryPolicy(
            attempts=persistence.attempts,
            initial_delay=persistence.initial_delay,
            max_delay=persistence.max_delay,
        )
        if renewal_service is None and self._config.auto_renew:
            renewal_service = IntervalLeaseRenewalService(self._config.renewal_fraction)
        self._renewal_service = renewal_service
        self._clock = clock
        self._sleep = sleep
        self._monotonic = monotonic

    @property
    def holder(self) -> LeaseHolderIdentity:
        return self._holder

    @property
    def renewal_service(self) -> Optional[IntervalLeaseRenewalService]:
        return self._renewal_service

    def create(self, scope: str) -> Lease:
        """Build an unacquired lease handle for scope."""
        return Lease(
            self._store,
            scope,
            self._holder,
            duration_seconds=self._config.duration_seconds,
            renewal_service=self._renewal_service,
            clock=self._clock,
        )

    def acquire(self, scope: str) -> Lease:
        """Acquire the lease for scope, retrying conflicts with exponential backoff.

        Gives up after ``acquire_attempts`` attempts or ``acquire_timeout``
        seconds, whichever comes first, and re-raises the last
        LeaseConflictError so the caller sees who holds the lease.
        """
        lease = self.create(scope)
        policy = RetryPolicy(
            attempts=self._config.acquire_attempts,
            initial_delay=self._config.retry_initial_delay,
            max_delay=self._config.retry_max_delay,
        )
        deadline = self._monotonic() + self._config.acquire_timeout

        attempt = 0
        while True:
            try:
                call_with_retry(
                    lease.acquire,
                    self._io_policy,
                    retry_on=(PersistenceError,),
                    no_retry=(VersionConflictError,),
                    sleep=self._sleep,
                    description=f"acquire lease {scope}",
                )
                return lease
            except LeaseConflictError as e:
                attempt += 1
                remaining = deadline - self._monotonic()
                if not policy.should_retry(attempt) or remaining <= 0:
                    log_lease_event(
                        logger,
                        "acquire_failed",
                        scope,
                        self._holder,
                        level=logging.WARNING,
                        attempts=attempt,
                        competing_holder=str(e.holder),
                    )
                    raise
                delay = min(policy.calculate_delay(attempt - 1), remaining)
                logger.info(
                    "Lease %s held by %s, retrying in %.1fs (attempt %s/%s)",
                    scope,
                    e.holder,
                    delay,
                    attempt,
                    policy.attempts,
                )
                self._sleep(delay)

    @contextmanager
    def hold(self, scope: str) -> Iterator[Lease]:
        """Acquire the lease for the duration of the block and always release it.

        Release failures are logged and never replace the block's own outcome.
        """
        lease = self.acquire(scope)
        try:
            yield lease
        finally:
            try:
                lease.release()
            except LedgerCtlError as e:
                logger.error("Failed to release lease %s: %s", scope, e)

    def status(self, scope: str) -> Optional[LeaseRecord]:
        """Current lease record for scope, or None when the lease is free."""
        return self.create(scope).read_record()

    def list_scopes(self) -> List[str]:
        return [key[len(_LEASE_PREFIX):] for key in self._store.list_keys(_LEASE_PREFIX)]

    def force_release(self, scope: str) -> bool:
        """Delete the lease record for scope whoever holds it."""
        deleted = self._store.delete_document(lease_key(scope))
        if deleted:
            log_lease_event(
                logger, "force_released", scope, self._holder, level=logging.WARNING
            )
        return deleted

    def shutdown(self) -> None:
        """Stop all background renewals."""
        if self._renewal_service is not None:
            self._renewal_service.cancel_all()
