"""Distributed lease: an exclusive-lock record kept in the shared document store."""

from datetime import datetime, timezone
from typing import Any, Callable, Optional, TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, ValidationError, field_serializer, field_validator

from ..core.errors import (
    DeserializationError,
    LedgerCtlError,
    LeaseAcquisitionError,
    LeaseConflictError,
    LeaseError,
    LeaseRelinquishmentError,
    VersionConflictError,
)
from ..core.log import get_logger, log_lease_event
from ..storage.document_store import NO_DOCUMENT, DocumentStore, StoredDocument, lease_key
from ..utils.codec import from_json_bytes, to_json_bytes
from .holder import LeaseHolderIdentity

if TYPE_CHECKING:
    from .renewal import IntervalLeaseRenewalService

logger = get_logger(__name__)

DEFAULT_LEASE_DURATION = 20
STALE_LEASE_RECLAIMED = "stale_lease_reclaimed"

# How often a fenced write may lose a race before acquisition gives up
MAX_FENCE_RETRIES = 3

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LeaseRecord(BaseModel):
    """Persisted lease document stored under ``leases/<scope>``."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    scope: str
    holder: LeaseHolderIdentity
    acquired_at: datetime
    renewed_at: datetime
    duration_seconds: int = DEFAULT_LEASE_DURATION

    @field_validator("holder", mode="before")
    @classmethod
    def _parse_holder(cls, value: Any) -> Any:
        if isinstance(value, dict):
            try:
                return LeaseHolderIdentity.from_dict(value)
            except LedgerCtlError as e:
                raise ValueError(e.message) from e
        return value

    @field_serializer("holder")
    def _dump_holder(self, holder: LeaseHolderIdentity) -> dict:
        return holder.to_dict()

    def age_seconds(self, now: datetime) -> float:
        return (now - self.acquired_at).total_seconds()

    def expires_at(self) -> float:
        return self.renewed_at.timestamp() + self.duration_seconds

    def is_expired(self, now: datetime) -> bool:
        return now.timestamp() > self.expires_at()

    def to_bytes(self) -> bytes:
        return to_json_bytes(self.model_dump(mode="json"))

    @classmethod
    def from_bytes(cls, data: bytes) -> "LeaseRecord":
        try:
            return cls.model_validate(from_json_bytes(data, expect_object=True))
        except ValidationError as e:
            raise DeserializationError(f"Invalid lease record: {e}") from e


class Lease:
    """Handle on one lease scope for one holder.

    Acquisition is a compare-and-swap against the store revision that was
    read: a record is created create-only, renewed or reclaimed with a fence
    on the revision observed, so two processes racing for the same scope can
    never both win.
    """

    def __init__(
        self,
        store: DocumentStore,
        scope: str,
        holder: LeaseHolderIdentity,
        duration_seconds: int = DEFAULT_LEASE_DURATION,
        renewal_service: Optional["IntervalLeaseRenewalService"] = None,
        clock: Clock = utc_now,
    ) -> None:
        if not scope or not scope.strip():
            raise LeaseError("Lease scope must not be empty")
        if duration_seconds <= 0:
            raise LeaseError("Lease duration must be positive", scope=scope)
        self._store = store
        self._scope = scope
        self._holder = holder
        self._duration_seconds = duration_seconds
        self._renewal_service = renewal_service
        self._clock = clock

    @property
    def scope(self) -> str:
        return self._scope

    @property
    def holder(self) -> LeaseHolderIdentity:
        return self._holder

    @property
    def duration_seconds(self) -> int:
        return self._duration_seconds

    @property
    def key(self) -> str:
        return lease_key(self._scope)

    def acquire(self) -> None:
        """Acquire the lease, renewing it if this holder already owns it.

        Raises LeaseConflictError when a live, different holder owns it.
        """
        self._claim(renewing=False)
        if self._renewal_service is not None:
            self._renewal_service.schedule(self)

    def try_acquire(self) -> bool:
        try:
            self.acquire()
        except LeaseError:
            return False
        return True

    def renew(self) -> None:
        """Push the expiry forward, or recreate the record if it vanished.

        Raises LeaseConflictError when any other holder owns the record, even
        a stale one: only acquire reclaims.
        """
        self._claim(renewing=True)

    def try_renew(self) -> bool:
        try:
            self.renew()
        except LeaseError:
            return False
        return True

    def release(self) -> None:
        """Delete the record if this holder owns it.

        Releasing a lease that is absent, or that was already reclaimed after
        going stale, is a no-op. A live different holder is never removed.
        """
        if self._renewal_service is not None:
            self._renewal_service.cancel(self)

        for _ in range(MAX_FENCE_RETRIES + 1):
            current = self._store.get_document(self.key)
            if current is None:
                return
            record = self._parse(current, LeaseRelinquishmentError)

            if record.holder != self._holder:
                if self.is_stale(record):
                    logger.debug(
                        "Lease %s is held by stale holder %s; leaving it for reclaim",
                        self._scope,
                        record.holder,
                    )
                    return
                raise LeaseRelinquishmentError(
                    f"Cannot release lease '{self._scope}': held by {record.holder}",
                    scope=self._scope,
                    details={"holder": record.holder.to_dict()},
                )

            try:
                self._store.delete_document(self.key, expected_revision=current.revision)
            except VersionConflictError:
                continue
            log_lease_event(logger, "released", self._scope, self._holder)
            return

        raise LeaseRelinquishmentError(
            f"Lease '{self._scope}' changed concurrently while releasing",
            scope=self._scope,
        )

    def try_release(self) -> bool:
        try:
            self.release()
        except LeaseError:
            return False
        return True

    def read_record(self) -> Optional[LeaseRecord]:
        """Current record for this scope, or None when nobody holds it."""
        current = self._store.get_document(self.key)
        if current is None:
            return None
        return self._parse(current, LeaseAcquisitionError)

    def is_acquired(self) -> bool:
        """True when this holder owns an unexpired record."""
        record = self.read_record()
        if record is None:
            return False
        return record.holder == self._holder and not record.is_expired(self._clock())

    def is_expired(self) -> bool:
        """True when there is no record or its expiry has passed."""
        record = self.read_record()
        return record is None or record.is_expired(self._clock())

    def age(self) -> Optional[float]:
        """Seconds since the current record was first acquired."""
        record = self.read_record()
        return None if record is None else record.age_seconds(self._clock())

    def _claim(self, renewing: bool) -> None:
        for _ in range(MAX_FENCE_RETRIES + 1):
            now = self._clock()
            current = self._store.get_document(self.key)

            if current is None:
                if self._write(self._new_record(now), NO_DOCUMENT):
                    log_lease_event(logger, "acquired", self._scope, self._holder)
                    return
                continue

            record = self._parse(current, LeaseAcquisitionError)

            if record.holder == self._holder:
                renewed = record.model_copy(
                    update={"renewed_at": now, "duration_seconds": self._duration_seconds}
                )
                if self._write(renewed, current.revision):
                    log_lease_event(
                        logger,
                        "renewed" if renewing else "reacquired",
                        self._scope,
                        self._holder,
                    )
                    return
                continue

            if not renewing and self.is_stale(record, now):
                if self._write(self._new_record(now), current.revision):
                    log_lease_event(
                        logger,
                        STALE_LEASE_RECLAIMED,
                        self._scope,
                        self._holder,
                        previous_holder=str(record.holder),
                        previous_age_seconds=record.age_seconds(now),
                    )
                    return
                continue

            age = record.age_seconds(now)
            raise LeaseConflictError(
                f"Lease '{self._scope}' is held by {record.holder} "
                f"(user {record.holder.username}, host {record.holder.hostname}, "
                f"pid {record.holder.process_id}) for {age:.0f}s",
                scope=self._scope,
                holder=record.holder,
                age_seconds=age,
                details={"holder": record.holder.to_dict(), "age_seconds": age},
            )

        raise LeaseAcquisitionError(
            f"Lease '{self._scope}' kept changing concurrently; gave up after "
            f"{MAX_FENCE_RETRIES + 1} attempts",
            scope=self._scope,
        )

    def is_stale(self, record: LeaseRecord, now: Optional[datetime] = None) -> bool:
        """Expired, or left behind by a dead process of the same user on this host."""
        if record.is_expired(now or self._clock()):
            return True
        return (
            self._holder.is_same_machine_identity(record.holder)
            and not record.holder.is_process_alive()
        )

    def _new_record(self, now: datetime) -> LeaseRecord:
        return LeaseRecord(
            scope=self._scope,
            holder=self._holder,
            acquired_at=now,
            renewed_at=now,
            duration_seconds=self._duration_seconds,
        )

    def _write(self, record: LeaseRecord, expected_revision: int) -> bool:
        """Fenced write; False when another writer got there first."""
        try:
            self._store.put_document(
                self.key, record.to_bytes(), expected_revision=expected_revision
            )
        except VersionConflictError:
            logger.debug("Lost write race on %s, re-evaluating", self.key)
            return False
        return True

    def _parse(self, document: StoredDocument, error_cls: type) -> LeaseRecord:
        try:
            return LeaseRecord.from_bytes(document.data)
        except DeserializationError as e:
            raise error_cls(
                f"Lease record for '{self._scope}' is unreadable; "
                f"force-release it to recover: {e}",
                scope=self._scope,
            ) from e

    def __repr__(self) -> str:
        return f"Lease(scope={self._scope!r}, holder={self._holder})"
