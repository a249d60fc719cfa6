"""Deterministic component names derived from type, index and node alias."""

from typing import Optional

from ..core.enums import ComponentType

NODE_ALIAS_PREFIX = "node"

_NAME_TEMPLATES = {
    ComponentType.MIRROR_NODE: "mirror-node-{id}",
    ComponentType.MIRROR_NODE_EXPLORER: "mirror-node-explorer-{id}",
    ComponentType.RELAY: "relay-{id}",
    ComponentType.BLOCK_NODE: "block-node-{id}",
    ComponentType.HA_PROXY: "haproxy-{alias}-{id}",
    ComponentType.ENVOY_PROXY: "envoy-proxy-{alias}-{id}",
}


def node_alias(node_id: int) -> str:
    """Alias of the consensus node with the given id (``node1`` for id 0)."""
    if node_id < 0:
        raise ValueError(f"Consensus node id must not be negative: {node_id}")
    return f"{NODE_ALIAS_PREFIX}{node_id + 1}"


def node_id_from_alias(alias: str) -> int:
    """Inverse of node_alias."""
    suffix = alias[len(NODE_ALIAS_PREFIX):]
    if not alias.startswith(NODE_ALIAS_PREFIX) or not suffix.isdigit() or int(suffix) < 1:
        raise ValueError(f"Invalid node alias: '{alias}'")
    return int(suffix) - 1


def render_component_name(
    component_type: ComponentType, component_id: int, alias: Optional[str] = None
) -> str:
    """Render the name of a component.

    Proxy names embed the alias of the consensus node they front, so the
    alias is required for HA_PROXY and ENVOY_PROXY.
    """
    if component_type == ComponentType.CONSENSUS_NODE:
        return node_alias(component_id)

    template = _NAME_TEMPLATES[component_type]
    if "{alias}" in template and not alias:
        raise ValueError(f"A node alias is required to name a {component_type.value}")
    return template.format(id=component_id, alias=alias)


def parse_component_index(name: str) -> int:
    """Index encoded in a component name.

    Reads the segment after the last ``-``: either a plain number
    (``relay-3`` -> 3) or a node alias (``node2`` or ``haproxy-node2`` -> 1).
    """
    tail = name.rsplit("-", 1)[-1]
    if tail.isdigit():
        return int(tail)
    return node_id_from_alias(tail)
