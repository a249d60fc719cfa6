"""Upgrade stored registry documents to the current schema.

Schema 1 kept components keyed by name with a ``cluster`` field and no
numeric id; schema 2 keys them by id and calls the field
``cluster_reference``. Ids are recovered from the index encoded in each
legacy name.
"""

from typing import Any, Dict

from ..core.enums import ComponentState, ComponentType, ConsensusNodeState
from ..core.errors import MigrationError
from ..core.log import get_logger
from .names import NODE_ALIAS_PREFIX, node_id_from_alias, parse_component_index

logger = get_logger(__name__)

CURRENT_SCHEMA_VERSION = 2
LEGACY_SCHEMA_VERSION = 1


def migrate_document(data: Dict[str, Any]) -> Dict[str, Any]:
    """Return the document upgraded to CURRENT_SCHEMA_VERSION."""
    if not isinstance(data, dict):
        raise MigrationError("Registry document must be a JSON object")

    schema_version = data.get("schema_version", LEGACY_SCHEMA_VERSION)
    if not isinstance(schema_version, int) or schema_version < LEGACY_SCHEMA_VERSION:
        raise MigrationError(f"Invalid registry schema version: {schema_version!r}")
    if schema_version > CURRENT_SCHEMA_VERSION:
        raise MigrationError(
            f"Registry schema {schema_version} is newer than supported "
            f"schema {CURRENT_SCHEMA_VERSION}; upgrade ledgerctl",
            details={"schema_version": schema_version},
        )

    if schema_version == LEGACY_SCHEMA_VERSION:
        data = _migrate_v1_to_v2(data)
        logger.info("Migrated registry document from schema 1 to schema 2")
    return data


def _migrate_v1_to_v2(data: Dict[str, Any]) -> Dict[str, Any]:
    migrated = dict(data)
    migrated["schema_version"] = 2
    migrated.setdefault("version", 0)

    metadata = dict(migrated.get("metadata") or {})
    if "deployment_name" in metadata:
        metadata.setdefault("deployment", metadata.pop("deployment_name"))
    migrated["metadata"] = metadata

    components: Dict[str, Dict[str, Any]] = {}
    for type_name, by_name in (data.get("components") or {}).items():
        try:
            component_type = ComponentType(type_name)
        except ValueError as e:
            raise MigrationError(f"Unknown component type in legacy registry: {type_name}") from e

        converted: Dict[str, Any] = {}
        for name, record in (by_name or {}).items():
            new_record = _migrate_record(component_type, name, record)
            key = str(new_record["id"])
            if key in converted:
                raise MigrationError(
                    f"Legacy components {converted[key]['name']} and {name} "
                    f"map to the same {type_name} id {key}"
                )
            converted[key] = new_record
        components[type_name] = converted

    migrated["components"] = components
    return migrated


def _migrate_record(
    component_type: ComponentType, name: str, record: Dict[str, Any]
) -> Dict[str, Any]:
    if not isinstance(record, dict):
        raise MigrationError(f"Legacy component {name} is not an object")

    new_record = dict(record)
    new_record.setdefault("name", name)
    new_record["type"] = component_type.value

    if "cluster_reference" not in new_record:
        if "cluster" not in new_record:
            raise MigrationError(f"Legacy component {name} has no cluster")
        new_record["cluster_reference"] = new_record.pop("cluster")
    else:
        new_record.pop("cluster", None)

    try:
        if "id" not in new_record:
            new_record["id"] = parse_component_index(new_record["name"])

        if component_type in (ComponentType.HA_PROXY, ComponentType.ENVOY_PROXY):
            alias = new_record.get("node_alias") or _alias_in_name(new_record["name"])
            new_record["node_alias"] = alias
            new_record.setdefault("consensus_node_id", node_id_from_alias(alias))

        if component_type == ComponentType.RELAY and "consensus_node_aliases" in new_record:
            aliases = new_record.pop("consensus_node_aliases") or []
            new_record["consensus_node_ids"] = [node_id_from_alias(a) for a in aliases]
    except ValueError as e:
        raise MigrationError(f"Cannot derive id for legacy component {name}: {e}") from e

    if "state" not in new_record:
        new_record["state"] = (
            ConsensusNodeState.REQUESTED.value
            if component_type == ComponentType.CONSENSUS_NODE
            else ComponentState.ACTIVE.value
        )
    return new_record


def _alias_in_name(name: str) -> str:
    """Last ``node<N>`` segment of a proxy name such as ``haproxy-node2``."""
    for segment in reversed(name.split("-")):
        if segment.startswith(NODE_ALIAS_PREFIX):
            return segment
    raise ValueError(f"No node alias in '{name}'")
