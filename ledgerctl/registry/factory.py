"""Construction of new component records with registry-assigned ids."""

from typing import Iterable, Optional, Tuple

from ..core.enums import ComponentType, ConsensusNodeState
from .components import (
    BlockNodeComponent,
    ConsensusNodeComponent,
    EnvoyProxyComponent,
    HaProxyComponent,
    MirrorNodeComponent,
    MirrorNodeExplorerComponent,
    RelayComponent,
)
from .names import node_alias, node_id_from_alias, render_component_name
from .registry import ComponentRegistry


class ComponentFactory:
    """Builds records for a registry without adding them.

    Ids come from ``registry.get_new_component_id`` and are only consumed
    once the caller adds the record. Consensus nodes start REQUESTED,
    everything else starts ACTIVE.
    """

    def __init__(self, registry: ComponentRegistry) -> None:
        self._registry = registry

    def create_new_consensus_node(
        self,
        cluster_reference: str,
        namespace: str,
        alias: Optional[str] = None,
    ) -> ConsensusNodeComponent:
        """New consensus node; the id follows the alias when one is given."""
        if alias is not None:
            node_id = node_id_from_alias(alias)
        else:
            node_id = self._registry.get_new_component_id(ComponentType.CONSENSUS_NODE)
        return ConsensusNodeComponent(
            id=node_id,
            name=render_component_name(ComponentType.CONSENSUS_NODE, node_id),
            cluster_reference=cluster_reference,
            namespace=namespace,
            state=ConsensusNodeState.REQUESTED,
        )

    def create_new_mirror_node(self, cluster_reference: str, namespace: str) -> MirrorNodeComponent:
        component_id = self._registry.get_new_component_id(ComponentType.MIRROR_NODE)
        return MirrorNodeComponent(
            id=component_id,
            name=render_component_name(ComponentType.MIRROR_NODE, component_id),
            cluster_reference=cluster_reference,
            namespace=namespace,
        )

    def create_new_explorer(
        self, cluster_reference: str, namespace: str
    ) -> MirrorNodeExplorerComponent:
        component_id = self._registry.get_new_component_id(ComponentType.MIRROR_NODE_EXPLORER)
        return MirrorNodeExplorerComponent(
            id=component_id,
            name=render_component_name(ComponentType.MIRROR_NODE_EXPLORER, component_id),
            cluster_reference=cluster_reference,
            namespace=namespace,
        )

    def create_new_block_node(self, cluster_reference: str, namespace: str) -> BlockNodeComponent:
        component_id = self._registry.get_new_component_id(ComponentType.BLOCK_NODE)
        return BlockNodeComponent(
            id=component_id,
            name=render_component_name(ComponentType.BLOCK_NODE, component_id),
            cluster_reference=cluster_reference,
            namespace=namespace,
        )

    def create_new_relay(
        self,
        cluster_reference: str,
        namespace: str,
        consensus_node_ids: Iterable[int],
    ) -> RelayComponent:
        component_id = self._registry.get_new_component_id(ComponentType.RELAY)
        return RelayComponent(
            id=component_id,
            name=render_component_name(ComponentType.RELAY, component_id),
            cluster_reference=cluster_reference,
            namespace=namespace,
            consensus_node_ids=sorted(set(consensus_node_ids)),
        )

    def create_new_haproxy(
        self, cluster_reference: str, namespace: str, consensus_node_id: int
    ) -> HaProxyComponent:
        component_id = self._registry.get_new_component_id(ComponentType.HA_PROXY)
        alias = node_alias(consensus_node_id)
        return HaProxyComponent(
            id=component_id,
            name=render_component_name(ComponentType.HA_PROXY, component_id, alias),
            cluster_reference=cluster_reference,
            namespace=namespace,
            consensus_node_id=consensus_node_id,
            node_alias=alias,
        )

    def create_new_envoy_proxy(
        self, cluster_reference: str, namespace: str, consensus_node_id: int
    ) -> EnvoyProxyComponent:
        component_id = self._registry.get_new_component_id(ComponentType.ENVOY_PROXY)
        alias = node_alias(consensus_node_id)
        return EnvoyProxyComponent(
            id=component_id,
            name=render_component_name(ComponentType.ENVOY_PROXY, component_id, alias),
            cluster_reference=cluster_reference,
            namespace=namespace,
            consensus_node_id=consensus_node_id,
            node_alias=alias,
        )

    def create_proxies_for_node(
        self, node: ConsensusNodeComponent
    ) -> Tuple[HaProxyComponent, EnvoyProxyComponent]:
        """HAProxy and Envoy records fronting a consensus node, in its cluster."""
        return (
            self.create_new_haproxy(node.cluster_reference, node.namespace, node.id),
            self.create_new_envoy_proxy(node.cluster_reference, node.namespace, node.id),
        )
