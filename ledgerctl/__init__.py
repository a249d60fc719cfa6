"""
ledgerctl: coordination layer of a distributed-ledger deployment CLI

Serializes mutating operations per deployment through lease records kept
in a shared document store, and keeps the component registry (inventory and
lifecycle state of consensus nodes, mirror nodes, relays, explorers, proxies
and block nodes) consistent across concurrent invocations and crashes.
"""

__version__ = "1.0.0"

# Core exports
from .core.enums import ComponentType, ConsensusNodeState, ComponentState, DeploymentState
from .core.types import LeaseConfig, LedgerCtlConfig

__all__ = [
    "__version__",
    "ComponentType",
    "ConsensusNodeState",
    "ComponentState",
    "DeploymentState",
    "LeaseConfig",
    "LedgerCtlConfig",
]
