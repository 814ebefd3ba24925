import pytest

from labctl.planning import (
    ClusterSpecification,
    CloudProvider,
    CompositeValidator,
    ManagementSpecification,
    ModuleInfo,
    NodeDescriptor,
    NodeRole,
    PlannerDefaults,
    PolicyValidator,
    SemanticValidator,
    StructuralValidator,
    Tool,
    ValidationLevel,
    validate,
)


def _fields(errors, level=None):
    return [error.field for error in errors if level is None or error.level is level]


def test_valid_single_cluster(topology):
    cluster = ClusterSpecification.builder().name("dev").kind("kind").build()
    assert validate(topology(cluster)) == []


def test_missing_name_and_cni_reported_together(topology):
    cluster = ClusterSpecification.builder().kind("kubeadm").nodes(1, 2).build()
    errors = validate(topology(cluster))
    assert len(errors) >= 2
    assert "clusters[0].name" in _fields(errors)
    assert "clusters[0].cni" in _fields(errors)


def test_invalid_module(topology):
    cluster = ClusterSpecification.builder().name("dev").kind("kind").build()
    errors = StructuralValidator().validate(topology(cluster, module=ModuleInfo(num="7", type="HW")))
    assert _fields(errors) == ["module.num", "module.type"]


def test_empty_topology(topology):
    assert "clusters" in _fields(StructuralValidator().validate(topology()))


def test_kubeadm_requires_a_master(kubeadm_cluster, topology):
    errors = StructuralValidator().validate(topology(kubeadm_cluster("prod", masters=0)))
    assert "clusters[name='prod'].masters" in _fields(errors)


def test_negative_counts(topology):
    cluster = ClusterSpecification.builder().name("dev").kind("kubeadm").nodes(1, -1).cni("calico").build()
    errors = StructuralValidator().validate(topology(cluster))
    assert _fields(errors) == ["clusters[name='dev'].workers"]


def test_explicit_node_counts_must_match_declared(topology):
    cluster = (
        ClusterSpecification.builder()
        .name("prod").kind("kubeadm").nodes(1, 2).cni("calico")
        .node(NodeDescriptor("prod-cp", NodeRole.MASTER, "192.168.56.20"))
        .node(NodeDescriptor("prod-w", NodeRole.WORKER, "192.168.56.21"))
        .build()
    )
    errors = StructuralValidator().validate(topology(cluster))
    assert _fields(errors) == ["clusters[name='prod'].nodes"]


def test_single_node_kind_rejects_node_counts(topology):
    cluster = ClusterSpecification.builder().name("dev").kind("minikube").nodes(1, 0).build()
    errors = SemanticValidator().validate(topology(cluster))
    assert _fields(errors) == ["clusters[name='dev'].masters"]


def test_name_too_long(topology):
    cluster = ClusterSpecification.builder().name("a" * 64).kind("kind").build()
    errors = SemanticValidator().validate(topology(cluster))
    assert errors[0].message.startswith("Cluster name too long")


def test_reserved_address_ranges(topology):
    for address in ("127.0.0.10", "0.1.2.3", "192.168.56.255"):
        cluster = ClusterSpecification.builder().name("dev").kind("kind").start_address(address).build()
        errors = SemanticValidator().validate(topology(cluster))
        assert "clusters[name='dev'].start_address" in _fields(errors), address


def test_malformed_start_address(topology):
    cluster = ClusterSpecification.builder().name("dev").kind("kind").start_address("192.168.1").build()
    errors = SemanticValidator().validate(topology(cluster))
    assert "Invalid IPv4 address format" in errors[0].message


def test_subnet_boundary_is_caught_before_planning(kubeadm_cluster, topology):
    cluster = kubeadm_cluster("prod", start_address="192.168.56.252", masters=1, workers=4)
    errors = SemanticValidator().validate(topology(cluster))
    assert _fields(errors) == ["clusters[name='prod'].start_address"]
    assert "only 3 fit" in errors[0].message


def test_networks(topology):
    cluster = (
        ClusterSpecification.builder()
        .name("prod").kind("kubeadm").nodes(1, 1).cni("calico")
        .pod_network("10.96.0.0/16").service_network("10.96.0.0/12")
        .build()
    )
    errors = SemanticValidator().validate(topology(cluster))
    assert _fields(errors) == ["clusters[name='prod'].service_network"]

    bad = ClusterSpecification.builder().name("prod").kind("kubeadm").nodes(1, 1).pod_network("10.244.0.0").build()
    errors = SemanticValidator().validate(topology(bad))
    assert _fields(errors) == ["clusters[name='prod'].pod_network"]


def test_multi_cluster_requires_start_addresses(kubeadm_cluster, topology):
    errors = SemanticValidator().validate(topology(
        kubeadm_cluster("a", start_address="192.168.56.20"),
        kubeadm_cluster("b"),
    ))
    assert _fields(errors) == ["clusters[name='b'].start_address"]


def test_explicit_node_problems(topology):
    cluster = (
        ClusterSpecification.builder()
        .name("dev").kind("kind")
        .node(NodeDescriptor("dev", NodeRole.WORKER, "192.168.56.10"))
        .node(NodeDescriptor("dev", NodeRole.CLUSTER_SINGLE, "192.168.56.10"))
        .build()
    )
    errors = SemanticValidator().validate(topology(cluster))
    assert set(_fields(errors)) == {
        "clusters[name='dev'].nodes[0].role",
        "clusters[name='dev'].nodes[1].name",
        "clusters[name='dev'].nodes[1].address",
    }


@pytest.mark.parametrize("address,message", [
    ("127.0.0.1", "Invalid IP address range"),
    ("0.1.2.3", "Invalid IP address range"),
    ("255.1.2.3", "Invalid IP address range"),
    ("192.168.56.0", "network or broadcast"),
    ("192.168.56.255", "network or broadcast"),
])
def test_explicit_node_address_ranges(topology, address, message):
    cluster = (
        ClusterSpecification.builder()
        .name("dev").kind("kind")
        .node(NodeDescriptor("dev", NodeRole.CLUSTER_SINGLE, address))
        .build()
    )
    errors = SemanticValidator().validate(topology(cluster))
    assert _fields(errors) == ["clusters[name='dev'].nodes[0].address"]
    assert message in errors[0].message


def test_cni_only_for_kubeadm(topology):
    cluster = ClusterSpecification.builder().name("dev").kind("kind").cni("calico").build()
    errors = PolicyValidator().validate(topology(cluster))
    assert _fields(errors) == ["clusters[name='dev'].cni"]


def test_tool_override_must_keep_required_tools(topology):
    cluster = ClusterSpecification.builder().name("dev").kind("kind").tool("kubectl").build()
    errors = PolicyValidator().validate(topology(cluster))
    assert "docker, kind" in errors[0].message


def test_conflicting_engines(topology):
    cluster = ClusterSpecification.builder().name("dev").kind("kind")
    for tool in ("kubectl", "docker", "kind", "minikube"):
        cluster.tool(tool)
    errors = PolicyValidator().validate(topology(cluster.build()))
    assert "Conflicting cluster engines" in errors[0].message


def test_management_tool_rules(topology):
    management = ManagementSpecification(name="mgmt", tools=(Tool.AZURE_CLI, Tool.KIND))
    errors = PolicyValidator().validate(topology(management=management))
    assert _fields(errors) == ["management.tools", "management.tools"]

    management = ManagementSpecification(
        name="mgmt", tools=(Tool.KUBECTL, Tool.AZURE_CLI), providers=frozenset({CloudProvider.AZURE}),
    )
    assert PolicyValidator().validate(topology(management=management)) == []


def test_duplicate_cluster_names(kubeadm_cluster, topology):
    errors = PolicyValidator().validate(topology(
        kubeadm_cluster("a", start_address="192.168.56.20"),
        kubeadm_cluster("a", start_address="192.168.56.30"),
    ))
    assert "clusters[].name" in _fields(errors)


def test_vm_limits(kubeadm_cluster, topology):
    errors = PolicyValidator().validate(topology(kubeadm_cluster("big", masters=1, workers=20)))
    assert _fields(errors) == ["clusters[name='big']"]

    defaults = PlannerDefaults(max_total_vms=4)
    errors = PolicyValidator(defaults).validate(topology(
        kubeadm_cluster("a", start_address="192.168.56.20"),
        kubeadm_cluster("b", start_address="192.168.56.30"),
    ))
    assert _fields(errors) == ["topology"]


def test_node_name_conflict_across_clusters(kubeadm_cluster, topology):
    single = ClusterSpecification.builder().name("x-master-1").kind("kind").start_address("192.168.56.30").build()
    errors = PolicyValidator().validate(topology(kubeadm_cluster("x", start_address="192.168.56.20"), single))
    assert _fields(errors) == ["topology.node_names"]


def test_all_layers_run_and_stay_grouped(topology):
    cluster = ClusterSpecification.builder().name("Bad_Name").kind("kind").cni("flannel").nodes(0, 2).build()
    errors = CompositeValidator().validate(topology(cluster))
    levels = [error.level for error in errors]
    assert levels == sorted(levels, key=list(ValidationLevel).index)
    assert {ValidationLevel.STRUCTURAL, ValidationLevel.SEMANTIC, ValidationLevel.POLICY} <= set(levels)
