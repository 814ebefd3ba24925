"""Normalizes YAML documents and CLI flags into a TopologySpecification."""
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml
from jsonschema import ValidationError as SchemaValidationError
from jsonschema import validate

from labctl.planning.defaults import PlannerDefaults
from labctl.planning.models import (
    CloudProvider,
    ClusterKind,
    ClusterSpecification,
    CniType,
    ManagementSpecification,
    ModuleInfo,
    NodeDescriptor,
    NodeRole,
    SizeProfile,
    Tool,
    TopologySpecification,
)

logger = logging.getLogger(__name__)

NODES_FLAG_PATTERN = re.compile(r"^\s*(?:(\d+)m)?\s*,?\s*(?:(\d+)w)?\s*$")

# Types only: missing fields are reported by the validator pipeline, not here
NODE_SCHEMA = {
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "role": {"type": "string", "enum": [role.value for role in NodeRole]},
        "address": {"type": "string"},
        "size_profile": {"type": "string"},
        "cpus": {"type": "integer", "minimum": 1},
        "memory_mb": {"type": "integer", "minimum": 1},
    },
    "required": ["name", "role", "address"],
}

CLUSTER_SCHEMA = {
    "type": "object",
    "properties": {
        "name": {"type": ["string", "null"]},
        "kind": {"type": ["string", "null"]},
        "start_address": {"type": ["string", "null"]},
        "masters": {"type": "integer"},
        "workers": {"type": "integer"},
        "size_profile": {"type": "string"},
        "cni": {"type": ["string", "null"]},
        "pod_network": {"type": ["string", "null"]},
        "service_network": {"type": ["string", "null"]},
        "cpus": {"type": "integer", "minimum": 1},
        "memory_mb": {"type": "integer", "minimum": 1},
        "tools": {"type": "array", "items": {"type": "string"}},
        "nodes": {"type": "array", "items": NODE_SCHEMA},
    },
}

TOPOLOGY_SCHEMA = {
    "type": "object",
    "properties": {
        "module": {
            "type": "object",
            "properties": {
                "num": {"type": "string"},
                "type": {"type": "string"},
            },
        },
        "management": {
            "type": "object",
            "properties": {
                "name": {"type": "string"},
                "providers": {"type": "array", "items": {"type": "string"}},
                "aggregate_kubeconfigs": {"type": "boolean"},
                "tools": {"type": "array", "items": {"type": "string"}},
                "start_address": {"type": "string"},
                "size_profile": {"type": "string"},
            },
        },
        "clusters": {"type": "array", "items": CLUSTER_SCHEMA},
    },
}


class SpecificationLoadError(Exception):
    """The input could not be turned into a specification at all."""
    pass


def load_yaml(path: Union[str, Path], defaults: Optional[PlannerDefaults] = None) -> TopologySpecification:
    """Read a topology YAML file."""
    path = Path(path)
    try:
        with open(path) as f:
            document = yaml.safe_load(f)
    except OSError as e:
        raise SpecificationLoadError(f"Cannot read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise SpecificationLoadError(f"Invalid YAML in {path}: {e}") from e
    logger.debug(f"Loaded topology document from {path}")
    return from_document(document or {}, defaults)


def from_document(document: Dict[str, Any], defaults: Optional[PlannerDefaults] = None) -> TopologySpecification:
    """Build a specification from a parsed YAML/JSON document."""
    defaults = defaults or PlannerDefaults()
    try:
        validate(instance=document, schema=TOPOLOGY_SCHEMA)
    except SchemaValidationError as ve:
        location = ".".join(str(part) for part in ve.absolute_path) or "document"
        raise SpecificationLoadError(f"{location}: {ve.message}") from ve

    try:
        module_doc = document.get("module") or {}
        module = ModuleInfo(num=module_doc.get("num", ""), type=module_doc.get("type", ""))
        clusters = tuple(_cluster_from_document(item, defaults) for item in document.get("clusters") or [])
        management = None
        if document.get("management") is not None:
            management = _management_from_document(document["management"], defaults)
    except ValueError as e:
        raise SpecificationLoadError(str(e)) from e

    return TopologySpecification(module=module, clusters=clusters, management=management)


def _size(value: Optional[str], defaults: PlannerDefaults) -> SizeProfile:
    return SizeProfile.parse(value) if value else defaults.size_profile


def _cluster_from_document(item: Dict[str, Any], defaults: PlannerDefaults) -> ClusterSpecification:
    builder = (
        ClusterSpecification.builder()
        .name(item.get("name"))
        .kind(item.get("kind"))
        .start_address(item.get("start_address"))
        .nodes(item.get("masters", 0), item.get("workers", 0))
        .size_profile(_size(item.get("size_profile"), defaults))
        .cni(item.get("cni"))
        .pod_network(item.get("pod_network"))
        .service_network(item.get("service_network"))
        .resources(item.get("cpus"), item.get("memory_mb"))
    )
    for tool in item.get("tools") or []:
        builder.tool(tool)
    for node in item.get("nodes") or []:
        builder.node(NodeDescriptor(
            name=node["name"],
            role=NodeRole(node["role"]),
            address=node["address"],
            size_profile=_size(node.get("size_profile") or item.get("size_profile"), defaults),
            cpu_override=node.get("cpus"),
            memory_mb_override=node.get("memory_mb"),
        ))
    return builder.build()


def _management_from_document(item: Dict[str, Any], defaults: PlannerDefaults) -> ManagementSpecification:
    return ManagementSpecification(
        name=item.get("name", "mgmt"),
        providers=frozenset(CloudProvider.parse(p) for p in item.get("providers") or []),
        aggregate_kubeconfigs=bool(item.get("aggregate_kubeconfigs", False)),
        tools=tuple(Tool.parse(t) for t in item.get("tools") or []),
        start_address=item.get("start_address"),
        size_profile=_size(item.get("size_profile"), defaults),
    )


def parse_nodes_flag(value: Optional[str]) -> Tuple[int, int]:
    """Parse the ``--nodes`` shorthand, e.g. '1m,2w' -> (1, 2)."""
    if not value:
        return 0, 0
    match = NODES_FLAG_PATTERN.match(value)
    if not match or not any(match.groups()):
        raise SpecificationLoadError(f"Invalid --nodes value '{value}'. Expected e.g. 1m,2w")
    masters, workers = match.groups()
    return int(masters or 0), int(workers or 0)


def from_flags(module: str,
               module_type: str,
               cluster_type: str,
               name: Optional[str] = None,
               nodes: Optional[str] = None,
               first_ip: Optional[str] = None,
               cni: Optional[str] = None,
               size: Optional[str] = None,
               pod_network: Optional[str] = None,
               service_network: Optional[str] = None,
               management: Optional[str] = None,
               providers: Optional[List[str]] = None,
               tools: Optional[List[str]] = None,
               defaults: Optional[PlannerDefaults] = None) -> TopologySpecification:
    """Build a single-cluster specification from command-line flags.

    ``cluster_type`` 'mgmt' is accepted as an alias for 'none'.
    """
    defaults = defaults or PlannerDefaults()
    module_info = ModuleInfo(num=module, type=module_type)
    try:
        kind = ClusterKind.parse("none" if cluster_type.strip().lower() == "mgmt" else cluster_type)
        masters, workers = parse_nodes_flag(nodes)
        cluster = (
            ClusterSpecification.builder()
            .name(name or module_info.cluster_name(kind))
            .kind(kind)
            .start_address(first_ip)
            .nodes(masters, workers)
            .size_profile(_size(size, defaults))
            .cni(cni)
            .pod_network(pod_network)
            .service_network(service_network)
            .build()
        )
        management_spec = None
        if management:
            management_spec = ManagementSpecification(
                name=management,
                providers=frozenset(CloudProvider.parse(p) for p in providers or []),
                aggregate_kubeconfigs=True,
                tools=tuple(Tool.parse(t) for t in tools or []),
                size_profile=_size(size, defaults),
            )
    except ValueError as e:
        raise SpecificationLoadError(str(e)) from e

    return TopologySpecification(module=module_info, clusters=(cluster,), management=management_spec)
