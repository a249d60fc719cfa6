"""Core enumerations for ledgerctl.

Separated from types.py to break circular dependencies. This module contains
only enum definitions with no dependencies on other core modules.
"""

from enum import Enum


class ComponentType(Enum):
    """Kind of deployed network component tracked by the registry."""

    CONSENSUS_NODE = "consensus_node"
    MIRROR_NODE = "mirror_node"
    MIRROR_NODE_EXPLORER = "mirror_node_explorer"
    RELAY = "relay"
    HA_PROXY = "ha_proxy"
    ENVOY_PROXY = "envoy_proxy"
    BLOCK_NODE = "block_node"


class ConsensusNodeState(Enum):
    """Lifecycle phase of a consensus node."""

    REQUESTED = "requested"
    NON_DEPLOYED = "non_deployed"
    INITIALIZED = "initialized"
    SETUP = "setup"
    STARTED = "started"
    FROZEN = "frozen"
    STOPPED = "stopped"


class ComponentState(Enum):
    """Single lifecycle marker used by auxiliary components."""

    ACTIVE = "active"


class DeploymentState(Enum):
    """Overall state of a deployment."""

    PRE_GENESIS = "pre_genesis"
    DEPLOYED = "deployed"
    TORN_DOWN = "torn_down"


class StoreBackend(Enum):
    """Shared document store implementation."""

    FILE = "file"
    MEMORY = "memory"
