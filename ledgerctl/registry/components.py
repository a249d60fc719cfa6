"""Component records: a tagged union keyed by component type."""

from typing import Annotated, Any, ClassVar, List, Union

from pydantic import BaseModel, Discriminator, Field, Tag, field_validator, model_validator

from ..core.enums import ComponentState, ComponentType, ConsensusNodeState
from .names import node_alias as alias_for_node


class BaseComponent(BaseModel):
    """Shape shared by every record: id, name, type, cluster, namespace, state."""

    component_type: ClassVar[ComponentType]

    id: int = Field(ge=0)
    name: str
    type: ComponentType
    cluster_reference: str
    namespace: str
    state: Union[ConsensusNodeState, ComponentState]

    @model_validator(mode="before")
    @classmethod
    def _default_type(cls, data: Any) -> Any:
        if isinstance(data, dict) and "type" not in data:
            data = {**data, "type": cls.component_type}
        return data

    @field_validator("type")
    @classmethod
    def _check_type(cls, value: ComponentType) -> ComponentType:
        if value != cls.component_type:
            raise ValueError(
                f"{cls.__name__} requires type {cls.component_type.value}, got {value.value}"
            )
        return value


class ConsensusNodeComponent(BaseComponent):
    component_type: ClassVar[ComponentType] = ComponentType.CONSENSUS_NODE

    state: ConsensusNodeState = ConsensusNodeState.REQUESTED
    node_alias: str = ""

    @model_validator(mode="after")
    def _derive_alias(self) -> "ConsensusNodeComponent":
        expected = alias_for_node(self.id)
        if not self.node_alias:
            self.node_alias = expected
        elif self.node_alias != expected:
            raise ValueError(
                f"Consensus node {self.id} must have alias {expected}, got {self.node_alias}"
            )
        return self


class AuxiliaryComponent(BaseComponent):
    """Components with a single ACTIVE lifecycle marker."""

    state: ComponentState = ComponentState.ACTIVE


class MirrorNodeComponent(AuxiliaryComponent):
    component_type: ClassVar[ComponentType] = ComponentType.MIRROR_NODE


class MirrorNodeExplorerComponent(AuxiliaryComponent):
    component_type: ClassVar[ComponentType] = ComponentType.MIRROR_NODE_EXPLORER


class BlockNodeComponent(AuxiliaryComponent):
    component_type: ClassVar[ComponentType] = ComponentType.BLOCK_NODE


class RelayComponent(AuxiliaryComponent):
    component_type: ClassVar[ComponentType] = ComponentType.RELAY

    # Consensus nodes this relay serves
    consensus_node_ids: List[int] = Field(default_factory=list)


class HaProxyComponent(AuxiliaryComponent):
    component_type: ClassVar[ComponentType] = ComponentType.HA_PROXY

    consensus_node_id: int = Field(ge=0)
    node_alias: str


class EnvoyProxyComponent(AuxiliaryComponent):
    component_type: ClassVar[ComponentType] = ComponentType.ENVOY_PROXY

    consensus_node_id: int = Field(ge=0)
    node_alias: str


COMPONENT_CLASSES = {
    cls.component_type: cls
    for cls in (
        ConsensusNodeComponent,
        MirrorNodeComponent,
        MirrorNodeExplorerComponent,
        RelayComponent,
        HaProxyComponent,
        EnvoyProxyComponent,
        BlockNodeComponent,
    )
}


def _component_tag(value: Any) -> Any:
    raw = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    return raw.value if isinstance(raw, ComponentType) else raw


Component = Annotated[
    Union[
        Annotated[ConsensusNodeComponent, Tag(ComponentType.CONSENSUS_NODE.value)],
        Annotated[MirrorNodeComponent, Tag(ComponentType.MIRROR_NODE.value)],
        Annotated[MirrorNodeExplorerComponent, Tag(ComponentType.MIRROR_NODE_EXPLORER.value)],
        Annotated[RelayComponent, Tag(ComponentType.RELAY.value)],
        Annotated[HaProxyComponent, Tag(ComponentType.HA_PROXY.value)],
        Annotated[EnvoyProxyComponent, Tag(ComponentType.ENVOY_PROXY.value)],
        Annotated[BlockNodeComponent, Tag(ComponentType.BLOCK_NODE.value)],
    ],
    Discriminator(_component_tag),
]
