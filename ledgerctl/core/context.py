"""Application context for explicit dependency management.

ApplicationContext is the single immutable container for the services one
CLI invocation needs. Nothing below it reaches for a global: the store, the
holder identity and the lease manager are all passed in explicitly.

Usage:
    config = load_config(config_file=Path("ledgerctl.yaml"))
    app_context = ApplicationContext.create(config)
    with app_context.lease_manager.hold("prod") as lease:
        registry_manager = app_context.registry_manager("prod", lease)

    # For testing
    test_context = ApplicationContext.for_testing()
"""

from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

from .log import Logger
from .types import LedgerCtlConfig

if TYPE_CHECKING:
    from ..lease.holder import LeaseHolderIdentity
    from ..lease.lease import Lease
    from ..lease.manager import LeaseManager
    from ..registry.transaction import RegistryTransactionManager
    from ..storage.document_store import DocumentStore


@dataclass(frozen=True)
class ApplicationContext:
    """Immutable application-wide context containing all dependencies.

    Attributes:
        config: ledgerctl configuration
        logger: Logging instance
        store: Shared document store holding leases and registries
        holder: Identity recorded in every lease this process takes
        lease_manager: Lease factory bound to store and holder
    """

    config: LedgerCtlConfig
    logger: Logger
    store: "DocumentStore"
    holder: "LeaseHolderIdentity"
    lease_manager: "LeaseManager"

    @classmethod
    def create(
        cls,
        config: LedgerCtlConfig,
        *,
        logger: Optional[Logger] = None,
        store: Optional["DocumentStore"] = None,
        holder: Optional["LeaseHolderIdentity"] = None,
        lease_manager: Optional["LeaseManager"] = None,
    ) -> "ApplicationContext":
        """Create application context with default implementations.

        Any dependency not given is built from the configuration.
        """
        # Import here to avoid circular dependencies at module level
        from .log import configure_logging, get_logger
        from ..lease.holder import LeaseHolderIdentity
        from ..lease.manager import LeaseManager
        from ..storage import create_store

        if logger is None:
            configure_logging(
                level=config.log_level,
                log_file=config.log_file,
                enable_console=True,
                enable_json=config.log_file is not None,
            )
            logger = get_logger("ledgerctl")

        if store is None:
            store = create_store(config.store)

        if holder is None:
            holder = LeaseHolderIdentity.default(config.lease.username)

        if lease_manager is None:
            lease_manager = LeaseManager(
                store,
                holder,
                config=config.lease,
                persistence=config.persistence,
            )

        return cls(
            config=config,
            logger=logger,
            store=store,
            holder=holder,
            lease_manager=lease_manager,
        )

    @classmethod
    def for_testing(
        cls,
        config: Optional[LedgerCtlConfig] = None,
        **overrides,
    ) -> "ApplicationContext":
        """Create a context backed by an in-memory store without background renewal."""
        from .enums import StoreBackend
        from .log import get_logger
        from .types import LeaseConfig, StoreConfig
        from ..storage import InMemoryDocumentStore

        if config is None:
            config = LedgerCtlConfig(
                lease=LeaseConfig(auto_renew=False, acquire_attempts=1),
                store=StoreConfig(backend=StoreBackend.MEMORY),
            )
        overrides.setdefault("logger", get_logger("ledgerctl.test"))
        overrides.setdefault("store", InMemoryDocumentStore())
        return cls.create(config, **overrides)

    def registry_manager(
        self, scope: str, lease: Optional["Lease"] = None
    ) -> "RegistryTransactionManager":
        """Transaction manager for the registry of scope, guarded by lease if given."""
        from ..registry.transaction import RegistryTransactionManager

        return RegistryTransactionManager(
            self.store,
            scope,
            lease=lease,
            config=self.config.registry,
            persistence=self.config.persistence,
        )
