"""Component registry: inventory and lifecycle state of a deployment."""

from .components import (
    BaseComponent,
    BlockNodeComponent,
    Component,
    ConsensusNodeComponent,
    EnvoyProxyComponent,
    HaProxyComponent,
    MirrorNodeComponent,
    MirrorNodeExplorerComponent,
    RelayComponent,
)
from .factory import ComponentFactory
from .registry import ClusterMetadata, ComponentRegistry, RegistryMetadata
from .transaction import RegistryTransactionManager
from .validator import LifecycleStateValidator, WorkloadProbe, validate_workloads

__all__ = [
    "BaseComponent",
    "BlockNodeComponent",
    "Component",
    "ConsensusNodeComponent",
    "EnvoyProxyComponent",
    "HaProxyComponent",
    "MirrorNodeComponent",
    "MirrorNodeExplorerComponent",
    "RelayComponent",
    "ComponentFactory",
    "ClusterMetadata",
    "ComponentRegistry",
    "RegistryMetadata",
    "RegistryTransactionManager",
    "LifecycleStateValidator",
    "WorkloadProbe",
    "validate_workloads",
]
