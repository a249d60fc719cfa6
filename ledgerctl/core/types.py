"""Core configuration types for ledgerctl."""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from .enums import StoreBackend


class LeaseConfig(BaseModel):
    """Lease duration, renewal and acquisition policy."""

    # Lease lifetime without renewal
    duration_seconds: int = 20
    renewal_fraction: float = 0.5
    auto_renew: bool = True

    # Acquisition retry policy
    acquire_attempts: int = 10
    retry_initial_delay: float = 1.0
    retry_max_delay: float = 10.0
    acquire_timeout: float = 120.0

    # Overrides the OS user recorded in the holder identity
    username: Optional[str] = None


class PersistenceConfig(BaseModel):
    """Retry policy for shared document store I/O."""

    attempts: int = 3
    initial_delay: float = 0.5
    max_delay: float = 5.0


class StoreConfig(BaseModel):
    """Shared document store selection."""

    backend: StoreBackend = StoreBackend.FILE
    root_dir: Path = Path("/tmp/ledgerctl/store")


class RegistryConfig(BaseModel):
    """Component registry settings."""

    command_history_limit: int = 50


class LedgerCtlConfig(BaseModel):
    """Main ledgerctl configuration."""

    lease: LeaseConfig = Field(default_factory=LeaseConfig)
    persistence: PersistenceConfig = Field(default_factory=PersistenceConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    registry: RegistryConfig = Field(default_factory=RegistryConfig)

    log_level: str = "INFO"
    log_file: Optional[Path] = None

    @model_validator(mode="after")
    def validate_config(self) -> "LedgerCtlConfig":
        """Validate configuration - NO SIDE EFFECTS.

        Only checks that the configuration is internally consistent; the
        store directory is created by the store itself on first use.
        """
        from .errors import ConfigurationError

        if self.lease.duration_seconds <= 0:  # pylint: disable=no-member
            raise ConfigurationError("Lease duration must be positive")
        if not 0.0 < self.lease.renewal_fraction < 1.0:  # pylint: disable=no-member
            raise ConfigurationError("Lease renewal fraction must be between 0 and 1")
        if self.lease.acquire_attempts < 1:  # pylint: disable=no-member
            raise ConfigurationError("Lease acquisition needs at least 1 attempt")
        if self.lease.acquire_timeout <= 0:  # pylint: disable=no-member
            raise ConfigurationError("Lease acquisition timeout must be positive")
        if self.persistence.attempts < 1:  # pylint: disable=no-member
            raise ConfigurationError("Persistence needs at least 1 attempt")
        if self.registry.command_history_limit < 1:  # pylint: disable=no-member
            raise ConfigurationError("Command history limit must be positive")

        return self
