"""Versioned inventory of deployed components for one deployment scope."""

from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional

from pydantic import BaseModel, Field, ValidationError, model_validator

from ..core.enums import ComponentType, DeploymentState
from ..core.errors import (
    ComponentExistsError,
    ComponentNotFoundError,
    DeserializationError,
    RegistryValidationError,
)
from ..utils.codec import from_json_bytes, to_json_bytes
from .components import Component
from .migration import CURRENT_SCHEMA_VERSION, migrate_document

# Id assigned to the first component of every type
BASE_COMPONENT_ID = 0


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ClusterMetadata(BaseModel):
    """A cluster the deployment spans, referenced by components."""

    name: str
    namespace: str
    deployment: str
    dns_base_domain: str = "cluster.local"
    dns_consensus_node_pattern: str = "network-{nodeAlias}-svc.{namespace}.svc"


class RegistryMetadata(BaseModel):
    namespace: str
    deployment: str
    state: DeploymentState = DeploymentState.PRE_GENESIS
    created_at: datetime = Field(default_factory=_utc_now)
    last_updated_at: Optional[datetime] = None
    last_updated_by: Optional[str] = None
    cli_version: Optional[str] = None


class ComponentRegistry(BaseModel):
    """The registry document: clusters plus components by type and id.

    The document is read whole, changed in memory and written whole, so it
    is only ever mutated through RegistryTransactionManager.modify.
    """

    schema_version: int = CURRENT_SCHEMA_VERSION
    version: int = Field(default=0, ge=0)
    metadata: RegistryMetadata
    clusters: Dict[str, ClusterMetadata] = Field(default_factory=dict)
    components: Dict[ComponentType, Dict[int, Component]] = Field(default_factory=dict)
    command_history: List[str] = Field(default_factory=list)
    last_executed_command: Optional[str] = None

    @model_validator(mode="after")
    def _validate_invariants(self) -> "ComponentRegistry":
        self.check_invariants()
        return self

    @classmethod
    def empty(
        cls, namespace: str, deployment: str, cli_version: Optional[str] = None
    ) -> "ComponentRegistry":
        return cls(
            metadata=RegistryMetadata(
                namespace=namespace, deployment=deployment, cli_version=cli_version
            )
        )

    def check_invariants(self) -> None:
        """Raise RegistryValidationError if ids, types or cluster references disagree."""
        for component_type, by_id in self.components.items():
            for component_id, component in by_id.items():
                if component.type != component_type:
                    raise RegistryValidationError(
                        f"Component {component.name} of type {component.type.value} "
                        f"is filed under {component_type.value}"
                    )
                if component.id != component_id:
                    raise RegistryValidationError(
                        f"Component {component.name} has id {component.id} "
                        f"but is stored under id {component_id}"
                    )
                if component.cluster_reference not in self.clusters:
                    raise RegistryValidationError(
                        f"Component {component.name} references unknown cluster "
                        f"'{component.cluster_reference}'",
                        details={"known_clusters": sorted(self.clusters)},
                    )

    def add_cluster(self, reference: str, cluster: ClusterMetadata) -> None:
        self.clusters[reference] = cluster

    def add(self, component: Component) -> None:
        """Register a new component; its (type, id) must be unused."""
        if component.cluster_reference not in self.clusters:
            raise RegistryValidationError(
                f"Cannot add {component.name}: unknown cluster '{component.cluster_reference}'"
            )
        by_id = self.components.setdefault(component.type, {})
        if component.id in by_id:
            raise ComponentExistsError(
                f"{component.type.value} with id {component.id} already exists",
                details={"name": by_id[component.id].name},
            )
        by_id[component.id] = component

    def remove(self, component_id: int, component_type: ComponentType) -> Component:
        """Remove and return a component."""
        self.get_component(component_type, component_id)
        by_id = self.components[component_type]
        removed = by_id.pop(component_id)
        if not by_id:
            del self.components[component_type]
        return removed

    def edit(self, component_id: int, updated: Component) -> None:
        """Replace an existing component with an updated record of the same id."""
        self.get_component(updated.type, component_id)
        if updated.id != component_id:
            raise RegistryValidationError(
                f"Cannot change id of {updated.type.value} {component_id} to {updated.id}"
            )
        if updated.cluster_reference not in self.clusters:
            raise RegistryValidationError(
                f"Cannot edit {updated.name}: unknown cluster '{updated.cluster_reference}'"
            )
        self.components[updated.type][component_id] = updated

    def find_component(
        self, component_type: ComponentType, component_id: int
    ) -> Optional[Component]:
        return self.components.get(component_type, {}).get(component_id)

    def get_component(self, component_type: ComponentType, component_id: int) -> Component:
        component = self.find_component(component_type, component_id)
        if component is None:
            raise ComponentNotFoundError(
                f"{component_type.value} with id {component_id} not found",
                component_type=component_type,
                component_id=component_id,
            )
        return component

    def find_by_name(self, component_type: ComponentType, name: str) -> Optional[Component]:
        for component in self.components.get(component_type, {}).values():
            if component.name == name:
                return component
        return None

    def get_new_component_id(self, component_type: ComponentType) -> int:
        """Next unused id for the type. Does not reserve it."""
        existing = self.components.get(component_type)
        if not existing:
            return BASE_COMPONENT_ID
        return max(existing) + 1

    def components_of(self, component_type: ComponentType) -> List[Component]:
        return [c for _, c in sorted(self.components.get(component_type, {}).items())]

    def all_components(self) -> Iterator[Component]:
        for component_type in ComponentType:
            yield from self.components_of(component_type)

    def count(self) -> int:
        return sum(len(by_id) for by_id in self.components.values())

    def record_command(self, command: str, limit: int) -> None:
        """Append to the bounded command history."""
        self.command_history.append(command)
        if len(self.command_history) > limit:
            del self.command_history[: len(self.command_history) - limit]
        self.last_executed_command = command

    def to_bytes(self) -> bytes:
        return to_json_bytes(self.model_dump(mode="json"))

    @classmethod
    def from_bytes(cls, data: bytes) -> "ComponentRegistry":
        """Parse a stored document, migrating older schemas first."""
        document = migrate_document(from_json_bytes(data))
        try:
            return cls.model_validate(document)
        except ValidationError as e:
            raise DeserializationError(f"Invalid registry document: {e}") from e
