"""
Three-layer validation of a topology specification.

    Structural - required fields, patterns, numeric sanity
    Semantic   - cross-field business rules (addresses, networks, names)
    Policy     - compatibility and tooling constraints, topology limits

Each layer walks the whole specification and reports every violation it
finds. CompositeValidator runs all three unconditionally, so semantic and
policy rules still run on best-effort data after structural failures.
"""
import ipaddress
import logging
from collections import Counter
from typing import Iterable, List, Optional, Tuple

from .allocator import DEFAULT_RESERVED_OFFSETS, MANAGEMENT_RESERVED_OFFSETS, fit_count
from .defaults import PlannerDefaults
from .generator import predict_node_names
from .models import (
    CLUSTER_NAME_PATTERN,
    MODULE_NUM_PATTERN,
    MODULE_TYPE_PATTERN,
    ClusterKind,
    ClusterSpecification,
    NodeRole,
    TopologySpecification,
    ValidationError,
    ValidationLevel,
    parse_ipv4,
    parse_network,
)

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 63
MAX_REASONABLE_WORKERS = 100
SPECIAL_FIRST_OCTETS = (0, 127, 255)


def cluster_path(index: int, cluster: ClusterSpecification) -> str:
    """Field path for a cluster, by name when it has one."""
    if cluster.name:
        return f"clusters[name='{cluster.name}']"
    return f"clusters[{index}]"


def _indexed(topology: TopologySpecification) -> Iterable[Tuple[int, ClusterSpecification]]:
    return enumerate(topology.clusters)


class StructuralValidator:
    """Malformed or missing required input."""

    level = ValidationLevel.STRUCTURAL

    def validate(self, topology: TopologySpecification) -> List[ValidationError]:
        errors: List[ValidationError] = []
        self._validate_module(topology, errors)
        if not topology.clusters and topology.management is None:
            errors.append(self._error(
                "clusters",
                "At least one cluster or a management VM is required",
                "Declare a cluster, e.g. --cluster-type kind"
            ))
        for index, cluster in _indexed(topology):
            self._validate_cluster(index, cluster, errors)
        if topology.management is not None:
            self._validate_name("management.name", topology.management.name, errors)
        return errors

    def _error(self, field: str, message: str, suggestion: Optional[str] = None) -> ValidationError:
        return ValidationError(field, self.level, message, suggestion)

    def _validate_module(self, topology: TopologySpecification, errors: List[ValidationError]):
        module = topology.module
        if module is None:
            errors.append(self._error("module", "Module information is required", "Pass --module mN --type TYPE"))
            return
        if not module.num or not MODULE_NUM_PATTERN.match(module.num):
            errors.append(self._error(
                "module.num",
                f"Invalid module number: '{module.num}'",
                "Use the pattern mN (e.g., m1, m7)"
            ))
        if not module.type or not MODULE_TYPE_PATTERN.match(module.type):
            errors.append(self._error(
                "module.type",
                f"Invalid module type: '{module.type}'",
                "Use the pattern [a-z][a-z0-9-]* (e.g., pt, hw, exam-prep)"
            ))

    def _validate_name(self, field: str, name: Optional[str], errors: List[ValidationError]):
        if name is None or not str(name).strip():
            errors.append(self._error(field, "Name is required", "Provide a lowercase name such as 'dev'"))
        elif not CLUSTER_NAME_PATTERN.match(name):
            errors.append(self._error(
                field,
                f"Invalid name: '{name}'",
                "Name must match pattern [a-z][a-z0-9-]* (e.g., 'dev', 'staging', 'prod-1')"
            ))

    def _validate_cluster(self, index: int, cluster: ClusterSpecification, errors: List[ValidationError]):
        path = cluster_path(index, cluster)
        self._validate_name(f"{path}.name", cluster.name, errors)

        if cluster.kind is None:
            errors.append(self._error(
                f"{path}.kind",
                "Cluster kind is required",
                "Use one of: " + ", ".join(kind.value for kind in ClusterKind)
            ))

        if cluster.masters < 0:
            errors.append(self._error(
                f"{path}.masters",
                f"Master count cannot be negative: {cluster.masters}",
                "Set masters to 0 or more"
            ))
        if cluster.workers < 0:
            errors.append(self._error(
                f"{path}.workers",
                f"Worker count cannot be negative: {cluster.workers}",
                "Set workers to 0 or more"
            ))

        if cluster.kind is ClusterKind.KUBEADM:
            if 0 <= cluster.masters < 1:
                errors.append(self._error(
                    f"{path}.masters",
                    "Kubeadm clusters require at least 1 master node",
                    "Set masters: 1 (or more for HA)"
                ))
            if cluster.cni is None:
                errors.append(self._error(
                    f"{path}.cni",
                    "Kubeadm clusters require a CNI selection",
                    "Supported CNI types: calico, flannel, weave, cilium, antrea. Example: --cni calico"
                ))
            if cluster.has_explicit_nodes:
                self._validate_node_counts(path, cluster, errors)

    def _validate_node_counts(self, path: str, cluster: ClusterSpecification, errors: List[ValidationError]):
        roles = Counter(node.role for node in cluster.nodes)
        for role, declared in ((NodeRole.MASTER, cluster.masters), (NodeRole.WORKER, cluster.workers)):
            if roles[role] != declared:
                errors.append(self._error(
                    f"{path}.nodes",
                    f"Node list contains {roles[role]} {role.value}(s) but {role.value}s={declared} declared",
                    f"Ensure the node list has exactly {declared} node(s) with role '{role.value}'"
                ))


class SemanticValidator:
    """Internally inconsistent business data."""

    level = ValidationLevel.SEMANTIC

    def __init__(self, defaults: Optional[PlannerDefaults] = None):
        self.defaults = defaults or PlannerDefaults()

    def validate(self, topology: TopologySpecification) -> List[ValidationError]:
        errors: List[ValidationError] = []
        for index, cluster in _indexed(topology):
            path = cluster_path(index, cluster)
            self._validate_name_length(path, cluster, errors)
            self._validate_kind_counts(path, cluster, errors)
            self._validate_explicit_nodes(path, cluster, errors)
            self._validate_start_address(f"{path}.start_address", cluster.start_address, errors)
            self._validate_boundary(path, cluster, errors)
            self._validate_networks(path, cluster, errors)
            if topology.is_multi_cluster and not cluster.start_address and not cluster.has_explicit_nodes:
                errors.append(self._error(
                    f"{path}.start_address",
                    "Multi-cluster configuration requires an explicit start address for each cluster",
                    "Add: start_address: 192.168.56.X (non-overlapping with other clusters)"
                ))
        if topology.management is not None:
            self._validate_start_address("management.start_address", topology.management.start_address, errors)
        return errors

    def _error(self, field: str, message: str, suggestion: Optional[str] = None) -> ValidationError:
        return ValidationError(field, self.level, message, suggestion)

    def _validate_name_length(self, path: str, cluster: ClusterSpecification, errors: List[ValidationError]):
        if cluster.name and len(cluster.name) > MAX_NAME_LENGTH:
            errors.append(self._error(
                f"{path}.name",
                f"Cluster name too long: {len(cluster.name)} characters",
                f"Keep cluster names to {MAX_NAME_LENGTH} characters or less (Kubernetes label limit)"
            ))

    def _validate_kind_counts(self, path: str, cluster: ClusterSpecification, errors: List[ValidationError]):
        if cluster.kind is None:
            return
        if not cluster.kind.is_multi_node:
            role = cluster.kind.single_role.value
            for field, count in (("masters", cluster.masters), ("workers", cluster.workers)):
                if count > 0:
                    errors.append(self._error(
                        f"{path}.{field}",
                        f"{cluster.kind.value} clusters do not use {field} (they use the '{role}' role)",
                        f"Set {field}: 0 (not {count})"
                    ))
        elif cluster.workers > MAX_REASONABLE_WORKERS:
            errors.append(self._error(
                f"{path}.workers",
                f"Unusually high worker count: {cluster.workers}",
                "Consider reducing worker count for local labs (typically 1-10)"
            ))

    def _validate_explicit_nodes(self, path: str, cluster: ClusterSpecification, errors: List[ValidationError]):
        seen_names = set()
        seen_addresses = set()
        allowed_roles = self._allowed_roles(cluster.kind)
        for i, node in enumerate(cluster.nodes):
            node_path = f"{path}.nodes[{i}]"
            if node.name in seen_names:
                errors.append(self._error(
                    f"{node_path}.name",
                    f"Duplicate node name: '{node.name}'",
                    "Ensure all node names within a cluster are unique"
                ))
            seen_names.add(node.name)

            parsed = parse_ipv4(node.address)
            if parsed is None:
                errors.append(self._error(
                    f"{node_path}.address",
                    f"Invalid IPv4 address format: '{node.address}'",
                    "Use format: xxx.xxx.xxx.xxx (e.g., '192.168.56.10')"
                ))
            else:
                self._validate_address_range(f"{node_path}.address", parsed, errors)
                if node.address in seen_addresses:
                    errors.append(self._error(
                        f"{node_path}.address",
                        f"Duplicate node address: '{node.address}'",
                        "Give every node its own address"
                    ))
            seen_addresses.add(node.address)

            if allowed_roles and node.role not in allowed_roles:
                errors.append(self._error(
                    f"{node_path}.role",
                    f"Role '{node.role.value}' is not valid for {cluster.kind.value} clusters",
                    "Use role(s): " + ", ".join(sorted(role.value for role in allowed_roles))
                ))

    @staticmethod
    def _allowed_roles(kind: Optional[ClusterKind]):
        if kind is None:
            return None
        if kind.is_multi_node:
            return {NodeRole.MASTER, NodeRole.WORKER}
        return {kind.single_role}

    def _validate_start_address(self, field: str, address: Optional[str], errors: List[ValidationError]):
        if not address:
            return
        parsed = parse_ipv4(address)
        if parsed is None:
            errors.append(self._error(
                field,
                f"Invalid IPv4 address format: '{address}'",
                "Use format: xxx.xxx.xxx.xxx (e.g., '192.168.56.10')"
            ))
            return
        self._validate_address_range(field, parsed, errors)

    def _validate_address_range(self, field: str, parsed: ipaddress.IPv4Address, errors: List[ValidationError]):
        if parsed.packed[0] in SPECIAL_FIRST_OCTETS:
            errors.append(self._error(
                field,
                f"Invalid IP address range: '{parsed}'",
                "Use private network ranges: 192.168.x.x, 172.16-31.x.x, or 10.x.x.x"
            ))
        if parsed.packed[3] in (0, 255):
            errors.append(self._error(
                field,
                f"Address is a network or broadcast address: '{parsed}'",
                "Use a host address between .3 and .254"
            ))

    def _validate_boundary(self, path: str, cluster: ClusterSpecification, errors: List[ValidationError]):
        if cluster.has_explicit_nodes or cluster.kind is None:
            return
        needed = cluster.expected_node_count()
        if needed < 1:
            return
        if cluster.kind is ClusterKind.NONE:
            start = parse_ipv4(cluster.start_address or self.defaults.management_address)
            reserved = MANAGEMENT_RESERVED_OFFSETS
        else:
            start = parse_ipv4(cluster.start_address or self.defaults.first_address)
            reserved = DEFAULT_RESERVED_OFFSETS
        if start is None:
            return
        fit = fit_count(start, reserved, self.defaults.subnet_ceiling_offset)
        if fit < needed:
            errors.append(self._error(
                f"{path}.start_address",
                f"Cluster needs {needed} address(es) but only {fit} fit between {start} "
                f"and the subnet boundary (.{self.defaults.subnet_ceiling_offset})",
                "Choose a lower start address or reduce the node count"
            ))

    def _validate_networks(self, path: str, cluster: ClusterSpecification, errors: List[ValidationError]):
        parsed = {}
        for field, value in (("pod_network", cluster.pod_network), ("service_network", cluster.service_network)):
            if value is None:
                continue
            network = parse_network(value)
            if network is None:
                errors.append(self._error(
                    f"{path}.{field}",
                    f"Invalid CIDR: '{value}'",
                    "Use CIDR notation with a prefix length (e.g., 10.244.0.0/16)"
                ))
            else:
                parsed[field] = network
        if len(parsed) == 2 and parsed['pod_network'].overlaps(parsed['service_network']):
            errors.append(self._error(
                f"{path}.service_network",
                f"Pod network {parsed['pod_network']} overlaps service network {parsed['service_network']}",
                "Use disjoint ranges (e.g., pod 10.244.0.0/16, service 10.96.0.0/12)"
            ))


class PolicyValidator:
    """Valid data that violates a compatibility rule or topology limit."""

    level = ValidationLevel.POLICY

    def __init__(self, defaults: Optional[PlannerDefaults] = None):
        self.defaults = defaults or PlannerDefaults()

    def validate(self, topology: TopologySpecification) -> List[ValidationError]:
        errors: List[ValidationError] = []
        for index, cluster in _indexed(topology):
            path = cluster_path(index, cluster)
            self._validate_cni(path, cluster, errors)
            self._validate_tools(path, cluster, errors)
        self._validate_management(topology, errors)
        self._validate_unique_cluster_names(topology, errors)
        self._validate_vm_limits(topology, errors)
        self._validate_node_name_conflicts(topology, errors)
        return errors

    def _error(self, field: str, message: str, suggestion: Optional[str] = None) -> ValidationError:
        return ValidationError(field, self.level, message, suggestion)

    def _validate_cni(self, path: str, cluster: ClusterSpecification, errors: List[ValidationError]):
        if cluster.cni is None or cluster.kind is None or cluster.kind.is_multi_node:
            return
        if cluster.kind is ClusterKind.NONE:
            message = "Management-only clusters cannot have a CNI (no Kubernetes cluster)"
        else:
            message = f"{cluster.kind.value} clusters bundle their own CNI"
        errors.append(self._error(f"{path}.cni", message, f"Remove the CNI selection for cluster '{cluster.name}'"))

    def _validate_tools(self, path: str, cluster: ClusterSpecification, errors: List[ValidationError]):
        if cluster.kind is None:
            return
        tools = cluster.effective_tools()
        engines = sorted({tool.value for tool in tools if tool.is_local_cluster_engine})

        if cluster.kind is ClusterKind.NONE and engines:
            errors.append(self._error(
                f"{path}.tools",
                f"Local cluster engine(s) {', '.join(engines)} cannot run on a management-only node",
                "Declare a kind or minikube cluster instead of installing the engine on the management VM"
            ))
        elif len(engines) > 1:
            errors.append(self._error(
                f"{path}.tools",
                f"Conflicting cluster engines on one node: {', '.join(engines)}",
                "Keep a single local cluster engine per node"
            ))

        if cluster.tools:
            missing = [tool.value for tool in cluster.kind.required_tools if tool not in cluster.tools]
            if missing:
                errors.append(self._error(
                    f"{path}.tools",
                    f"Tool override drops tools required by {cluster.kind.value}: {', '.join(missing)}",
                    "Include every required tool or remove the override"
                ))

    def _validate_management(self, topology: TopologySpecification, errors: List[ValidationError]):
        management = topology.management
        if management is None:
            return
        engines = sorted({tool.value for tool in management.tools if tool.is_local_cluster_engine})
        if engines:
            errors.append(self._error(
                "management.tools",
                f"Local cluster engine(s) {', '.join(engines)} cannot run on the management VM",
                "Remove the engine from the management tools and declare a cluster for it"
            ))
        for tool in management.tools:
            provider = tool.required_provider
            if provider is not None and provider not in management.providers:
                errors.append(self._error(
                    "management.tools",
                    f"Tool '{tool.value}' requires cloud provider '{provider.value}'",
                    f"Add '{provider.value}' to management.providers or drop '{tool.value}'"
                ))

    def _validate_unique_cluster_names(self, topology: TopologySpecification, errors: List[ValidationError]):
        names = [cluster.name for cluster in topology.clusters if cluster.name]
        if topology.management is not None and topology.management.name:
            names.append(topology.management.name)
        for name, count in Counter(names).items():
            if count > 1:
                errors.append(self._error(
                    "clusters[].name",
                    f"Duplicate cluster name: '{name}'",
                    "Ensure all cluster and management names are unique across the topology"
                ))

    def _validate_vm_limits(self, topology: TopologySpecification, errors: List[ValidationError]):
        total = sum(cluster.expected_node_count() for cluster in topology.clusters)
        if topology.management is not None:
            total += 1
        if total > self.defaults.max_total_vms:
            errors.append(self._error(
                "topology",
                f"Total VM count exceeds limit: {total} VMs (limit: {self.defaults.max_total_vms})",
                f"Reduce cluster or node counts (current: {len(topology.clusters)} clusters)"
            ))
        for index, cluster in _indexed(topology):
            count = cluster.expected_node_count()
            if count > self.defaults.max_vms_per_cluster:
                errors.append(self._error(
                    cluster_path(index, cluster),
                    f"Cluster exceeds VM limit: {count} VMs (limit: {self.defaults.max_vms_per_cluster})",
                    "Split into smaller clusters or reduce node counts"
                ))

    def _validate_node_name_conflicts(self, topology: TopologySpecification, errors: List[ValidationError]):
        names: List[str] = []
        if topology.management is not None and topology.management.name:
            names.append(topology.management.name)
        for cluster in topology.clusters:
            names.extend(predict_node_names(cluster))
        for name, count in Counter(names).items():
            if count > 1:
                errors.append(self._error(
                    "topology.node_names",
                    f"Node name conflict: '{name}' is used more than once",
                    "Use cluster-specific node names (e.g., '{cluster}-master-1')"
                ))


class CompositeValidator:
    """Runs every layer and concatenates the findings, grouped by layer."""

    def __init__(self, structural: Optional[StructuralValidator] = None,
                 semantic: Optional[SemanticValidator] = None,
                 policy: Optional[PolicyValidator] = None,
                 defaults: Optional[PlannerDefaults] = None):
        defaults = defaults or PlannerDefaults()
        self.layers = (
            structural or StructuralValidator(),
            semantic or SemanticValidator(defaults),
            policy or PolicyValidator(defaults),
        )

    def validate(self, topology: TopologySpecification) -> List[ValidationError]:
        errors: List[ValidationError] = []
        for layer in self.layers:
            found = layer.validate(topology)
            logger.debug(f"{type(layer).__name__}: {len(found)} finding(s)")
            errors.extend(found)
        return errors


def validate(topology: TopologySpecification, defaults: Optional[PlannerDefaults] = None) -> List[ValidationError]:
    """Validate a topology with the default three-layer pipeline."""
    return CompositeValidator(defaults=defaults).validate(topology)
