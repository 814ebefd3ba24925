"""
Data models for lab topology planning.

Everything here is an immutable value object. Collections handed in by
callers are copied into tuples, frozensets or read-only mappings at
construction time so later mutation of the caller's lists cannot leak into
a specification or a plan.
"""
import ipaddress
import re
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple, Union

CLUSTER_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9-]*$")
MODULE_NUM_PATTERN = re.compile(r"^m\d+$")
MODULE_TYPE_PATTERN = re.compile(r"^[a-z][a-z0-9-]*$")

DEFAULT_POD_NETWORK = "10.244.0.0/16"
DEFAULT_SERVICE_NETWORK = "10.96.0.0/12"


class TopologyClass(str, Enum):
    """How many VMs a cluster kind spans and how they are named."""
    MANAGEMENT_ONLY = 'management-only'
    SINGLE_NODE = 'single-node'
    MULTI_NODE = 'multi-node-kubeadm'


class NodeRole(str, Enum):
    """Role of a VM inside the lab."""
    MANAGEMENT = 'management'
    MASTER = 'master'
    WORKER = 'worker'
    CLUSTER_SINGLE = 'cluster-single'


class Tool(str, Enum):
    """Tools that can be installed on a lab VM."""
    KUBECTL = 'kubectl'
    HELM = 'helm'
    DOCKER = 'docker'
    CONTAINERD = 'containerd'
    KUBE_BINARIES = 'kube_binaries'
    KIND = 'kind'
    MINIKUBE = 'minikube'
    K3S = 'k3s'
    AZURE_CLI = 'azure_cli'
    AWS_CLI = 'aws_cli'
    GCLOUD = 'gcloud'

    @property
    def is_local_cluster_engine(self) -> bool:
        return self in (Tool.KIND, Tool.MINIKUBE, Tool.K3S)

    @property
    def required_provider(self) -> Optional['CloudProvider']:
        """Cloud provider a CLI tool depends on, if any."""
        return _TOOL_PROVIDERS.get(self)

    @classmethod
    def parse(cls, value: str) -> 'Tool':
        return _parse_enum(cls, value, "tool")


class CloudProvider(str, Enum):
    """External cloud integrations a management VM can be prepared for."""
    AZURE = 'azure'
    AWS = 'aws'
    GCP = 'gcp'

    @classmethod
    def parse(cls, value: str) -> 'CloudProvider':
        return _parse_enum(cls, value, "cloud provider")


_TOOL_PROVIDERS = {
    Tool.AZURE_CLI: CloudProvider.AZURE,
    Tool.AWS_CLI: CloudProvider.AWS,
    Tool.GCLOUD: CloudProvider.GCP,
}


class ClusterKind(str, Enum):
    """Closed set of cluster engines.

    All per-kind rules live on this enum so the allocator, generator and
    validators dispatch from a single place.
    """
    NONE = 'none'
    KIND = 'kind'
    MINIKUBE = 'minikube'
    KUBEADM = 'kubeadm'

    @property
    def topology(self) -> TopologyClass:
        return _KIND_TOPOLOGY[self]

    @property
    def is_multi_node(self) -> bool:
        return self.topology is TopologyClass.MULTI_NODE

    @property
    def single_role(self) -> Optional[NodeRole]:
        """Role of the sole VM for single-VM kinds, None for kubeadm."""
        if self.topology is TopologyClass.MANAGEMENT_ONLY:
            return NodeRole.MANAGEMENT
        if self.topology is TopologyClass.SINGLE_NODE:
            return NodeRole.CLUSTER_SINGLE
        return None

    @property
    def required_tools(self) -> Tuple[Tool, ...]:
        return _KIND_TOOLS[self]

    @property
    def display_name(self) -> str:
        return _KIND_DISPLAY[self]

    @classmethod
    def parse(cls, value: str) -> 'ClusterKind':
        return _parse_enum(cls, value, "cluster kind")


_KIND_TOPOLOGY = {
    ClusterKind.NONE: TopologyClass.MANAGEMENT_ONLY,
    ClusterKind.KIND: TopologyClass.SINGLE_NODE,
    ClusterKind.MINIKUBE: TopologyClass.SINGLE_NODE,
    ClusterKind.KUBEADM: TopologyClass.MULTI_NODE,
}

_KIND_TOOLS = {
    ClusterKind.NONE: (Tool.KUBECTL,),
    ClusterKind.KIND: (Tool.KUBECTL, Tool.DOCKER, Tool.KIND),
    ClusterKind.MINIKUBE: (Tool.KUBECTL, Tool.DOCKER, Tool.MINIKUBE),
    ClusterKind.KUBEADM: (Tool.KUBECTL, Tool.CONTAINERD, Tool.KUBE_BINARIES),
}

_KIND_DISPLAY = {
    ClusterKind.NONE: "Management machine (no cluster)",
    ClusterKind.KIND: "KIND (Kubernetes IN Docker)",
    ClusterKind.MINIKUBE: "Minikube",
    ClusterKind.KUBEADM: "Kubeadm",
}


class CniType(str, Enum):
    """CNI plugins supported for kubeadm clusters."""
    CALICO = 'calico'
    FLANNEL = 'flannel'
    WEAVE = 'weave'
    CILIUM = 'cilium'
    ANTREA = 'antrea'

    @classmethod
    def parse(cls, value: str) -> 'CniType':
        return _parse_enum(cls, value, "CNI")


class SizeProfile(str, Enum):
    """VM sizing presets."""
    SMALL = 'small'
    MEDIUM = 'medium'
    LARGE = 'large'

    @property
    def cpus(self) -> int:
        return _SIZE_RESOURCES[self][0]

    @property
    def memory_mb(self) -> int:
        return _SIZE_RESOURCES[self][1]

    @classmethod
    def parse(cls, value: str) -> 'SizeProfile':
        return _parse_enum(cls, value, "size profile")


_SIZE_RESOURCES = {
    SizeProfile.SMALL: (2, 4096),
    SizeProfile.MEDIUM: (4, 8192),
    SizeProfile.LARGE: (6, 12288),
}


class ValidationLevel(str, Enum):
    """Validator layer that produced an error. Declaration order is display order."""
    STRUCTURAL = 'structural'
    SEMANTIC = 'semantic'
    POLICY = 'policy'


def _parse_enum(enum_cls, value, label: str):
    if isinstance(value, enum_cls):
        return value
    if value is None:
        raise ValueError(f"{label} value cannot be None")
    normalized = str(value).strip().lower()
    try:
        return enum_cls(normalized)
    except ValueError:
        valid = ", ".join(member.value for member in enum_cls)
        raise ValueError(f"Invalid {label}: '{value}'. Valid values: {valid}") from None


def _frozen_tuple(items: Optional[Iterable[Any]]) -> Tuple[Any, ...]:
    return tuple(items) if items else ()


def _frozen_mapping(items: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    return MappingProxyType(dict(items or {}))


@dataclass(frozen=True)
class ValidationError:
    """One rule violation reported by a validator layer."""
    field: str
    level: ValidationLevel
    message: str
    suggestion: Optional[str] = None

    def format(self) -> str:
        text = f"[{self.level.value.upper()}] {self.field}: {self.message}"
        if self.suggestion:
            text += f"\n  Suggestion: {self.suggestion}"
        return text

    def to_dict(self) -> Dict[str, Any]:
        return {
            'field': self.field,
            'level': self.level.value,
            'message': self.message,
            'suggestion': self.suggestion,
        }


@dataclass(frozen=True)
class ModuleInfo:
    """Course module the lab belongs to, e.g. num='m7', type='hw'."""
    num: str
    type: str

    @property
    def default_namespace(self) -> str:
        return f"ns-{self.num}-{self.type}"

    @property
    def default_output_dir(self) -> str:
        return f"{self.type}-{self.num}"

    def cluster_name(self, kind: ClusterKind) -> str:
        return f"clu-{self.num}-{self.type}-{kind.value}"


@dataclass(frozen=True)
class NodeDescriptor:
    """One virtual machine in the plan."""
    name: str
    role: NodeRole
    address: str
    size_profile: SizeProfile = SizeProfile.MEDIUM
    cpu_override: Optional[int] = None
    memory_mb_override: Optional[int] = None

    def __post_init__(self):
        # Canonical dotted-quad when parseable; anything else is left for validation
        parsed = parse_ipv4(self.address)
        if parsed is not None:
            object.__setattr__(self, 'address', str(parsed))

    @property
    def cpus(self) -> int:
        if self.cpu_override is not None:
            return self.cpu_override
        return self.size_profile.cpus

    @property
    def memory_mb(self) -> int:
        if self.memory_mb_override is not None:
            return self.memory_mb_override
        return self.size_profile.memory_mb

    @property
    def is_master(self) -> bool:
        return self.role is NodeRole.MASTER

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'role': self.role.value,
            'address': self.address,
            'size_profile': self.size_profile.value,
            'cpus': self.cpus,
            'memory_mb': self.memory_mb,
        }


@dataclass(frozen=True)
class ClusterSpecification:
    """One requested cluster.

    Construction never validates business rules; a specification may carry
    a missing name or negative counts and still be built so the validator
    pipeline can report every problem at once.
    """
    name: Optional[str]
    kind: Optional[ClusterKind]
    start_address: Optional[str] = None
    masters: int = 0
    workers: int = 0
    size_profile: SizeProfile = SizeProfile.MEDIUM
    cni: Optional[CniType] = None
    nodes: Tuple[NodeDescriptor, ...] = ()
    pod_network: Optional[str] = None
    service_network: Optional[str] = None
    cpu_override: Optional[int] = None
    memory_mb_override: Optional[int] = None
    tools: Tuple[Tool, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'nodes', _frozen_tuple(self.nodes))
        object.__setattr__(self, 'tools', _frozen_tuple(self.tools))

    @classmethod
    def builder(cls) -> 'ClusterSpecificationBuilder':
        return ClusterSpecificationBuilder()

    @property
    def has_explicit_nodes(self) -> bool:
        return bool(self.nodes)

    @property
    def is_high_availability(self) -> bool:
        return self.masters > 1

    def expected_node_count(self) -> int:
        """VMs this cluster needs, from explicit nodes or from its kind."""
        if self.has_explicit_nodes:
            return len(self.nodes)
        if self.kind is None:
            return 0
        if self.kind.is_multi_node:
            return max(self.masters, 0) + max(self.workers, 0)
        return 1

    def effective_tools(self) -> Tuple[Tool, ...]:
        """Tool override list when given, otherwise the kind's required set."""
        if self.tools:
            return self.tools
        return self.kind.required_tools if self.kind else ()


class ClusterSpecificationBuilder:
    """Staged construction for ClusterSpecification.

    String inputs are converted to their enum types; no combination rules
    are checked here.
    """

    def __init__(self):
        self._values: Dict[str, Any] = {}
        self._nodes: List[NodeDescriptor] = []
        self._tools: List[Tool] = []

    def name(self, name: Optional[str]) -> 'ClusterSpecificationBuilder':
        self._values['name'] = name
        return self

    def kind(self, kind: Union[ClusterKind, str, None]) -> 'ClusterSpecificationBuilder':
        self._values['kind'] = ClusterKind.parse(kind) if kind is not None else None
        return self

    def start_address(self, address: Optional[str]) -> 'ClusterSpecificationBuilder':
        self._values['start_address'] = address.strip() if address and address.strip() else None
        return self

    def nodes(self, masters: int, workers: int) -> 'ClusterSpecificationBuilder':
        self._values['masters'] = masters
        self._values['workers'] = workers
        return self

    def masters(self, count: int) -> 'ClusterSpecificationBuilder':
        self._values['masters'] = count
        return self

    def workers(self, count: int) -> 'ClusterSpecificationBuilder':
        self._values['workers'] = count
        return self

    def size_profile(self, profile: Union[SizeProfile, str]) -> 'ClusterSpecificationBuilder':
        self._values['size_profile'] = SizeProfile.parse(profile)
        return self

    def cni(self, cni: Union[CniType, str, None]) -> 'ClusterSpecificationBuilder':
        self._values['cni'] = CniType.parse(cni) if cni else None
        return self

    def pod_network(self, cidr: Optional[str]) -> 'ClusterSpecificationBuilder':
        self._values['pod_network'] = cidr or None
        return self

    def service_network(self, cidr: Optional[str]) -> 'ClusterSpecificationBuilder':
        self._values['service_network'] = cidr or None
        return self

    def resources(self, cpus: Optional[int] = None, memory_mb: Optional[int] = None) -> 'ClusterSpecificationBuilder':
        self._values['cpu_override'] = cpus
        self._values['memory_mb_override'] = memory_mb
        return self

    def node(self, node: NodeDescriptor) -> 'ClusterSpecificationBuilder':
        self._nodes.append(node)
        return self

    def tool(self, tool: Union[Tool, str]) -> 'ClusterSpecificationBuilder':
        self._tools.append(Tool.parse(tool))
        return self

    def build(self) -> ClusterSpecification:
        values = dict(self._values)
        values.setdefault('name', None)
        values.setdefault('kind', None)
        return ClusterSpecification(nodes=tuple(self._nodes), tools=tuple(self._tools), **values)


@dataclass(frozen=True)
class ManagementSpecification:
    """Optional management VM coordinating the lab's clusters."""
    name: str
    providers: FrozenSet[CloudProvider] = frozenset()
    aggregate_kubeconfigs: bool = False
    tools: Tuple[Tool, ...] = ()
    start_address: Optional[str] = None
    size_profile: SizeProfile = SizeProfile.MEDIUM

    def __post_init__(self):
        object.__setattr__(self, 'providers', frozenset(self.providers or ()))
        object.__setattr__(self, 'tools', _frozen_tuple(self.tools))

    def as_cluster(self, default_address: Optional[str] = None) -> ClusterSpecification:
        """The management VM planned as a management-only cluster."""
        return ClusterSpecification(
            name=self.name,
            kind=ClusterKind.NONE,
            start_address=self.start_address or default_address,
            size_profile=self.size_profile,
            tools=self.tools,
        )


@dataclass(frozen=True)
class TopologySpecification:
    """The complete request: module, ordered clusters and optional management VM."""
    module: ModuleInfo
    clusters: Tuple[ClusterSpecification, ...] = ()
    management: Optional[ManagementSpecification] = None

    def __post_init__(self):
        object.__setattr__(self, 'clusters', _frozen_tuple(self.clusters))

    @property
    def is_multi_cluster(self) -> bool:
        return len(self.clusters) > 1


@dataclass(frozen=True)
class Plan:
    """Fully resolved, address-assigned output of the planner."""
    module: ModuleInfo
    nodes: Tuple[NodeDescriptor, ...]
    env: Mapping[str, str] = field(default_factory=dict)
    node_env: Mapping[str, Mapping[str, str]] = field(default_factory=dict)
    providers: FrozenSet[CloudProvider] = frozenset()

    def __post_init__(self):
        nodes = _frozen_tuple(self.nodes)
        if not nodes:
            raise ValueError("a plan needs at least one node")
        addresses = [node.address for node in nodes]
        if len(addresses) != len(set(addresses)):
            raise ValueError("plan contains duplicate node addresses")
        object.__setattr__(self, 'nodes', nodes)
        object.__setattr__(self, 'env', _frozen_mapping(self.env))
        object.__setattr__(self, 'node_env', MappingProxyType({
            name: _frozen_mapping(values) for name, values in (self.node_env or {}).items()
        }))
        object.__setattr__(self, 'providers', frozenset(self.providers or ()))

    def nodes_with_role(self, role: NodeRole) -> Tuple[NodeDescriptor, ...]:
        return tuple(node for node in self.nodes if node.role is role)

    @property
    def has_management_vm(self) -> bool:
        return bool(self.nodes_with_role(NodeRole.MANAGEMENT))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'module': {'num': self.module.num, 'type': self.module.type},
            'nodes': [node.to_dict() for node in self.nodes],
            'env': dict(self.env),
            'node_env': {name: dict(values) for name, values in self.node_env.items()},
            'providers': sorted(provider.value for provider in self.providers),
        }


def parse_ipv4(value: Optional[str]) -> Optional[ipaddress.IPv4Address]:
    """Strict dotted-quad parse; returns None for anything else."""
    if not value or not isinstance(value, str):
        return None
    try:
        address = ipaddress.ip_address(value.strip())
    except ValueError:
        return None
    if not isinstance(address, ipaddress.IPv4Address):
        return None
    return address


def parse_network(value: Optional[str]) -> Optional[ipaddress.IPv4Network]:
    """Parse a CIDR with an explicit prefix length, normalizing host bits."""
    if not value or '/' not in value:
        return None
    try:
        network = ipaddress.ip_network(value.strip(), strict=False)
    except ValueError:
        return None
    if not isinstance(network, ipaddress.IPv4Network):
        return None
    return network
