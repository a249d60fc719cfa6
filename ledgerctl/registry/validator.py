"""Pre-flight checks of component lifecycle state."""

from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Union

from ..core.enums import ComponentState, ComponentType, ConsensusNodeState
from ..core.errors import InvalidStateError, RegistryValidationError
from ..core.log import get_logger
from .components import Component
from .registry import ComponentRegistry

logger = get_logger(__name__)

State = Union[ConsensusNodeState, ComponentState]

# Legal next states of a consensus node; staying in the same state is always legal
CONSENSUS_NODE_TRANSITIONS: Dict[ConsensusNodeState, frozenset] = {
    ConsensusNodeState.REQUESTED: frozenset(
        {ConsensusNodeState.NON_DEPLOYED, ConsensusNodeState.INITIALIZED, ConsensusNodeState.STARTED}
    ),
    ConsensusNodeState.NON_DEPLOYED: frozenset(
        {ConsensusNodeState.INITIALIZED, ConsensusNodeState.REQUESTED}
    ),
    ConsensusNodeState.INITIALIZED: frozenset(
        {ConsensusNodeState.SETUP, ConsensusNodeState.STARTED, ConsensusNodeState.NON_DEPLOYED}
    ),
    ConsensusNodeState.SETUP: frozenset(
        {ConsensusNodeState.STARTED, ConsensusNodeState.INITIALIZED}
    ),
    ConsensusNodeState.STARTED: frozenset(
        {ConsensusNodeState.FROZEN, ConsensusNodeState.STOPPED, ConsensusNodeState.INITIALIZED}
    ),
    ConsensusNodeState.FROZEN: frozenset(
        {ConsensusNodeState.STARTED, ConsensusNodeState.STOPPED, ConsensusNodeState.INITIALIZED}
    ),
    ConsensusNodeState.STOPPED: frozenset(
        {ConsensusNodeState.STARTED, ConsensusNodeState.INITIALIZED, ConsensusNodeState.NON_DEPLOYED}
    ),
}

# Consensus nodes in these states have no workload yet
UNDEPLOYED_NODE_STATES = frozenset({ConsensusNodeState.REQUESTED, ConsensusNodeState.NON_DEPLOYED})


def is_transition_allowed(current: State, target: State) -> bool:
    if current == target:
        return True
    if isinstance(current, ConsensusNodeState) and isinstance(target, ConsensusNodeState):
        return target in CONSENSUS_NODE_TRANSITIONS[current]
    return False


def check_transition(component: Component, target: State) -> None:
    """Raise InvalidStateError unless component may move to target."""
    expected_enum = (
        ConsensusNodeState if component.type == ComponentType.CONSENSUS_NODE else ComponentState
    )
    if not isinstance(target, expected_enum):
        raise InvalidStateError(
            f"{target!r} is not a valid state for {component.type.value} {component.name}",
            component_id=component.id,
            current_state=component.state,
        )
    if not is_transition_allowed(component.state, target):
        allowed = sorted(
            s.value for s in CONSENSUS_NODE_TRANSITIONS.get(component.state, frozenset())
        )
        raise InvalidStateError(
            f"{component.name} cannot move from {component.state.value} to {target.value}; "
            f"allowed: {', '.join(allowed) or 'none'}",
            component_id=component.id,
            current_state=component.state,
            accepted_states=allowed,
        )


class LifecycleStateValidator:
    """Guards multi-step operations against components in the wrong state."""

    def __init__(self, registry: ComponentRegistry) -> None:
        self._registry = registry

    def validate(
        self,
        component_id: int,
        accepted_states: Optional[Sequence[State]] = None,
        excluded_states: Optional[Sequence[State]] = None,
        component_type: ComponentType = ComponentType.CONSENSUS_NODE,
    ) -> State:
        """Return the component's state, or raise InvalidStateError.

        The state must be in ``accepted_states`` when that is non-empty and
        must not be in ``excluded_states``. No constraints always passes.
        A missing component raises ComponentNotFoundError.
        """
        component = self._registry.get_component(component_type, component_id)
        state = component.state

        if accepted_states and state not in accepted_states:
            raise InvalidStateError(
                f"{component.name} is {state.value}, expected one of "
                f"{_state_names(accepted_states)}",
                component_id=component_id,
                current_state=state,
                accepted_states=list(accepted_states),
            )
        if excluded_states and state in excluded_states:
            raise InvalidStateError(
                f"{component.name} is {state.value}, which is not allowed here "
                f"(excluded: {_state_names(excluded_states)})",
                component_id=component_id,
                current_state=state,
                excluded_states=list(excluded_states),
            )
        return state

    def validate_all(
        self,
        component_ids: Iterable[int],
        accepted_states: Optional[Sequence[State]] = None,
        excluded_states: Optional[Sequence[State]] = None,
        component_type: ComponentType = ComponentType.CONSENSUS_NODE,
    ) -> Dict[int, State]:
        """Validate several components; the first violation is raised."""
        return {
            component_id: self.validate(
                component_id, accepted_states, excluded_states, component_type
            )
            for component_id in component_ids
        }


class WorkloadProbe(Protocol):
    """Answers whether a component's workload is running in its cluster."""

    def is_running(self, component: Component) -> bool:
        """True when the workload backing the component exists and runs."""


def validate_workloads(registry: ComponentRegistry, probe: WorkloadProbe) -> None:
    """Check every recorded component has a running workload.

    Consensus nodes that were never deployed are skipped.
    """
    missing: List[str] = []
    for component in registry.all_components():
        if (
            component.type == ComponentType.CONSENSUS_NODE
            and component.state in UNDEPLOYED_NODE_STATES
        ):
            continue
        if not probe.is_running(component):
            missing.append(component.name)

    if missing:
        raise RegistryValidationError(
            f"Components without a running workload: {', '.join(missing)}",
            details={"missing": missing},
        )
    logger.debug("All %s recorded workloads are running", registry.count())


def _state_names(states: Iterable[State]) -> str:
    return ", ".join(s.value for s in states)
