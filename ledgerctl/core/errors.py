"""Error hierarchy and exception system for the ledgerctl coordination layer."""

from typing import Optional, Dict, Any


class LedgerCtlError(Exception):
    """Base exception for all ledgerctl errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


# Configuration and Setup Errors
class ConfigurationError(LedgerCtlError):
    """Error in ledgerctl configuration."""


class MissingArgumentError(LedgerCtlError):
    """A required argument was empty or missing."""


# Lease Errors
class LeaseError(LedgerCtlError):
    """Base class for lease-related errors."""

    def __init__(self, message: str, scope: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, details)
        self.scope = scope


class LeaseConflictError(LeaseError):
    """Lease is held by a live, different holder."""

    def __init__(self, message: str, scope: str, holder: Any = None,
                 age_seconds: Optional[float] = None,
                 details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, scope, details)
        self.holder = holder
        self.age_seconds = age_seconds


# Short name used by command handlers
ConflictError = LeaseConflictError


class LeaseAcquisitionError(LeaseError):
    """Lease could not be acquired for a reason other than a conflict."""


class LeaseRelinquishmentError(LeaseError):
    """Lease could not be released."""


class LeaseNotHeldError(LeaseError):
    """A guarded operation was attempted without holding the lease."""


# Lookup Errors
class NotFoundError(LedgerCtlError):
    """Requested entity does not exist."""


class ComponentNotFoundError(NotFoundError):
    """Component is not present in the registry."""

    def __init__(self, message: str, component_type: Any = None,
                 component_id: Optional[int] = None,
                 details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, details)
        self.component_type = component_type
        self.component_id = component_id


class RegistryNotFoundError(NotFoundError):
    """No registry document exists for the scope."""


# Registry Errors
class RegistryError(LedgerCtlError):
    """Base class for component registry errors."""


class ComponentExistsError(RegistryError):
    """Component with the same type and id is already registered."""


class RegistryValidationError(RegistryError):
    """Registry document violates one of its invariants."""


class MigrationError(RegistryError):
    """Registry document could not be migrated to the current schema."""


class InvalidStateError(LedgerCtlError):
    """Component is not in a state that allows the requested operation."""

    def __init__(self, message: str, component_id: Any = None, current_state: Any = None,
                 accepted_states: Optional[list] = None,
                 excluded_states: Optional[list] = None,
                 details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, details)
        self.component_id = component_id
        self.current_state = current_state
        self.accepted_states = accepted_states
        self.excluded_states = excluded_states


# Persistence Errors
class PersistenceError(LedgerCtlError):
    """I/O failure on the shared document store."""


class VersionConflictError(PersistenceError):
    """Fenced write rejected because the stored revision changed."""

    def __init__(self, message: str, key: str, expected_revision: Optional[int] = None,
                 actual_revision: Optional[int] = None,
                 details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, details)
        self.key = key
        self.expected_revision = expected_revision
        self.actual_revision = actual_revision


# Data and Codec Errors
class CodecError(LedgerCtlError):
    """Data encoding/decoding error."""


class SerializationError(CodecError):
    """Data serialization error."""


class DeserializationError(CodecError):
    """Data deserialization error."""


# Filesystem and IO Errors
class FilesystemError(LedgerCtlError):
    """Filesystem operation error."""


class PathError(FilesystemError):
    """Path resolution or validation error."""


class AtomicWriteError(FilesystemError):
    """Atomic write operation failed."""
