"""Load, mutate, validate and persist cycles for the registry document."""

import time
from datetime import datetime
from typing import Any, Callable, Iterable, Optional

from pydantic import ValidationError

from ..core.enums import ComponentType, DeploymentState
from ..core.errors import (
    LeaseNotHeldError,
    PersistenceError,
    RegistryError,
    RegistryNotFoundError,
    RegistryValidationError,
    VersionConflictError,
)
from ..core.log import get_logger, log_registry_event
from ..core.retry import RetryPolicy, call_with_retry
from ..core.types import PersistenceConfig, RegistryConfig
from ..lease.lease import Clock, Lease, utc_now
from ..storage.document_store import NO_DOCUMENT, DocumentStore, StoredDocument, registry_key
from .registry import ClusterMetadata, ComponentRegistry
from .validator import State, check_transition

logger = get_logger(__name__)

Mutator = Callable[[ComponentRegistry], Any]


class RegistryTransactionManager:
    """Applies changes to the registry document of one scope.

    Every change goes through ``modify``: the stored document is read, a deep
    copy is handed to the mutator, and the result is validated and written
    back fenced on the revision that was read. A mutator that raises leaves
    the stored document untouched. When constructed with a lease, writes are
    refused unless that lease is currently held.
    """

    def __init__(
        self,
        store: DocumentStore,
        scope: str,
        lease: Optional[Lease] = None,
        config: Optional[RegistryConfig] = None,
        persistence: Optional[PersistenceConfig] = None,
        actor: Optional[str] = None,
        cli_version: Optional[str] = None,
        clock: Clock = utc_now,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if cli_version is None:
            from .. import __version__ as cli_version
        self._store = store
        self._scope = scope
        self._lease = lease
        self._config = config or RegistryConfig()
        persistence = persistence or PersistenceConfig()
        self._io_policy = RetryPolicy(
            attempts=persistence.attempts,
            initial_delay=persistence.initial_delay,
            max_delay=persistence.max_delay,
        )
        self._actor = actor or (str(lease.holder) if lease is not None else None)
        self._cli_version = cli_version
        self._clock = clock
        self._sleep = sleep
        self._loaded = False

    @property
    def scope(self) -> str:
        return self._scope

    @property
    def key(self) -> str:
        return registry_key(self._scope)

    def is_loaded(self) -> bool:
        """True once this manager has read or written the document."""
        return self._loaded

    def read(self) -> Optional[ComponentRegistry]:
        """Current document, or None when the scope has no registry. Needs no lease."""
        current = self._get()
        if current is None:
            return None
        registry = ComponentRegistry.from_bytes(current.data)
        self._loaded = True
        return registry

    def load(self) -> ComponentRegistry:
        registry = self.read()
        if registry is None:
            raise RegistryNotFoundError(f"No registry exists for '{self._scope}'")
        return registry

    def create(
        self,
        namespace: str,
        deployment: str,
        clusters: Iterable[ClusterMetadata],
        command: Optional[str] = None,
    ) -> ComponentRegistry:
        """Write the initial document for the scope. Fails if one already exists."""
        self._require_lease()
        registry = ComponentRegistry.empty(namespace, deployment, self._cli_version)
        for cluster in clusters:
            registry.add_cluster(cluster.name, cluster)
        registry = self._finalize(registry, previous_version=0, command=command)

        try:
            self._put(registry, NO_DOCUMENT)
        except VersionConflictError as e:
            raise RegistryError(
                f"A registry already exists for '{self._scope}'", details={"key": self.key}
            ) from e
        log_registry_event(logger, "created", self._scope, registry.version)
        return registry

    def modify(self, mutator: Mutator, command: Optional[str] = None) -> ComponentRegistry:
        """Run mutator on a copy of the document and persist the result.

        Returns the document as written. The first call on a scope without a
        registry starts from an empty document.
        """
        self._require_lease()
        current = self._get()
        if current is None:
            base = ComponentRegistry.empty(self._scope, self._scope, self._cli_version)
            expected_revision = NO_DOCUMENT
        else:
            base = ComponentRegistry.from_bytes(current.data)
            expected_revision = current.revision

        working = base.model_copy(deep=True)
        mutator(working)

        updated = self._finalize(working, previous_version=base.version, command=command)
        self._put(updated, expected_revision)
        log_registry_event(
            logger, "modified", self._scope, updated.version, command=command
        )
        return updated

    def change_state(
        self,
        component_id: int,
        new_state: State,
        component_type: ComponentType = ComponentType.CONSENSUS_NODE,
        force: bool = False,
        command: Optional[str] = None,
    ) -> ComponentRegistry:
        """Move one component to a new lifecycle state inside a transaction."""

        def apply(registry: ComponentRegistry) -> None:
            component = registry.get_component(component_type, component_id)
            if not force:
                check_transition(component, new_state)
            registry.edit(component_id, component.model_copy(update={"state": new_state}))

        return self.modify(apply, command=command)

    def set_deployment_state(
        self, state: DeploymentState, command: Optional[str] = None
    ) -> ComponentRegistry:
        def apply(registry: ComponentRegistry) -> None:
            registry.metadata.state = state

        return self.modify(apply, command=command)

    def delete_components(self, command: Optional[str] = None) -> ComponentRegistry:
        """Clear the component inventory, keeping clusters and metadata."""

        def apply(registry: ComponentRegistry) -> None:
            registry.components.clear()

        return self.modify(apply, command=command)

    def delete(self) -> bool:
        """Delete the whole document (full teardown)."""
        self._require_lease()
        deleted = call_with_retry(
            lambda: self._store.delete_document(self.key),
            self._io_policy,
            retry_on=(PersistenceError,),
            no_retry=(VersionConflictError,),
            sleep=self._sleep,
            description=f"delete {self.key}",
        )
        self._loaded = False
        if deleted:
            log_registry_event(logger, "deleted", self._scope)
        return deleted

    def _require_lease(self) -> None:
        if self._lease is not None and not self._lease.is_acquired():
            raise LeaseNotHeldError(
                f"Lease '{self._lease.scope}' must be held to change the registry "
                f"of '{self._scope}'",
                scope=self._lease.scope,
            )

    def _finalize(
        self, registry: ComponentRegistry, previous_version: int, command: Optional[str]
    ) -> ComponentRegistry:
        """Stamp version, metadata and history, then revalidate the whole document."""
        now: datetime = self._clock()
        registry.version = previous_version + 1
        registry.metadata.last_updated_at = now
        registry.metadata.last_updated_by = self._actor
        registry.metadata.cli_version = self._cli_version
        if command:
            registry.record_command(command, self._config.command_history_limit)

        try:
            return ComponentRegistry.model_validate(registry.model_dump(mode="json"))
        except ValidationError as e:
            raise RegistryValidationError(f"Registry document is invalid: {e}") from e

    def _get(self) -> Optional[StoredDocument]:
        return call_with_retry(
            lambda: self._store.get_document(self.key),
            self._io_policy,
            retry_on=(PersistenceError,),
            sleep=self._sleep,
            description=f"read {self.key}",
        )

    def _put(self, registry: ComponentRegistry, expected_revision: int) -> None:
        data = registry.to_bytes()
        call_with_retry(
            lambda: self._store.put_document(self.key, data, expected_revision=expected_revision),
            self._io_policy,
            retry_on=(PersistenceError,),
            no_retry=(VersionConflictError,),
            sleep=self._sleep,
            description=f"write {self.key}",
        )
        self._loaded = True
