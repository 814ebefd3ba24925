from labctl.planning import (
    AllocationErrorKind,
    CloudProvider,
    ClusterSpecification,
    ManagementSpecification,
    NodeDescriptor,
    NodeRole,
    PlanOrchestrator,
    PlanState,
    plan_topology,
)


class _AcceptAll:
    def validate(self, topology):
        return []


def test_single_kind_cluster_plan(topology):
    cluster = ClusterSpecification.builder().name("clu-m7-hw-kind").kind("kind").build()
    outcome = plan_topology(topology(cluster))
    assert outcome.planned
    assert outcome.transitions == (
        PlanState.RECEIVED, PlanState.VALIDATING, PlanState.PLANNING, PlanState.PLANNED,
    )
    (node,) = outcome.plan.nodes
    assert (node.name, node.role, node.address) == ("clu-m7-hw-kind", NodeRole.CLUSTER_SINGLE, "192.168.56.10")
    assert outcome.plan.env["CLUSTER_TYPE"] == "kind"
    assert outcome.plan.env["NAMESPACE_DEFAULT"] == "ns-m7-hw"
    assert outcome.plan.node_env["clu-m7-hw-kind"]["TOOLS"] == "kubectl,docker,kind"


def test_rejected_outcome_carries_every_error(topology):
    cluster = ClusterSpecification.builder().kind("kubeadm").nodes(1, 1).build()
    outcome = plan_topology(topology(cluster))
    assert outcome.rejected
    assert outcome.plan is None
    assert len(outcome.errors) >= 2
    assert outcome.transitions[-1] is PlanState.REJECTED


def test_kubeadm_plan_with_management(kubeadm_cluster, topology):
    management = ManagementSpecification(
        name="mgmt", aggregate_kubeconfigs=True, providers=frozenset({CloudProvider.AZURE}),
    )
    outcome = plan_topology(topology(kubeadm_cluster("prod", start_address="192.168.56.3", masters=2, workers=1),
                                     management=management))
    assert outcome.planned
    plan = outcome.plan
    assert [(node.name, node.address) for node in plan.nodes] == [
        ("mgmt", "192.168.56.5"),
        ("prod-master-1", "192.168.56.3"),
        ("prod-master-2", "192.168.56.4"),
        ("prod-worker-1", "192.168.56.6"),
    ]
    assert plan.has_management_vm
    assert plan.env["CNI_TYPE"] == "calico"
    assert plan.env["KUBE_API_PORT"] == "6443"
    assert plan.env["AZ_LOCATION"] == "${AZ_LOCATION}"
    assert plan.node_env["prod-master-1"]["CONTROL_PLANE"] == "1"
    assert "CONTROL_PLANE" not in plan.node_env["prod-worker-1"]
    assert plan.node_env["mgmt"]["KUBECONFIG_AGGREGATE"] == "1"


def test_no_duplicate_addresses_in_plans(kubeadm_cluster, topology):
    outcome = plan_topology(topology(
        kubeadm_cluster("a", start_address="192.168.56.20", masters=1, workers=2),
        kubeadm_cluster("b", start_address="192.168.56.23", masters=1, workers=1),
        management=ManagementSpecification(name="mgmt"),
    ))
    assert outcome.planned
    addresses = [node.address for node in outcome.plan.nodes]
    assert len(addresses) == len(set(addresses))
    assert addresses[-2:] == ["192.168.56.23", "192.168.56.24"]
    assert outcome.plan.env["CLUSTER_NAMES"] == "a,b"


def test_overlapping_clusters_fail_with_collision(kubeadm_cluster, topology):
    outcome = plan_topology(topology(
        kubeadm_cluster("a", start_address="192.168.56.20", masters=1, workers=2),
        kubeadm_cluster("b", start_address="192.168.56.22", masters=1, workers=1),
    ))
    assert outcome.failed
    assert outcome.failure.kind is AllocationErrorKind.COLLISION
    assert set(outcome.failure.clusters) == {"a", "b"}
    assert outcome.transitions[-2:] == (PlanState.PLANNING, PlanState.FAILED)


def test_explicit_nodes_skip_allocation_but_join_collision_check(topology):
    explicit = (
        ClusterSpecification.builder()
        .name("fixed").kind("kind")
        .node(NodeDescriptor("fixed", NodeRole.CLUSTER_SINGLE, "192.168.56.10"))
        .build()
    )
    generated = ClusterSpecification.builder().name("auto").kind("minikube").start_address("192.168.56.10").build()
    outcome = plan_topology(topology(explicit, generated))
    assert outcome.failed
    assert outcome.failure.kind is AllocationErrorKind.COLLISION


def test_boundary_failure_after_validation(kubeadm_cluster, topology):
    orchestrator = PlanOrchestrator(validator=_AcceptAll())
    outcome = orchestrator.plan(topology(kubeadm_cluster("edge", start_address="192.168.56.252", workers=4)))
    assert outcome.failed
    assert outcome.failure.kind is AllocationErrorKind.SUBNET_BOUNDARY
    assert outcome.failure.fit == 3


def test_orchestrator_is_stateless(kubeadm_cluster, topology):
    orchestrator = PlanOrchestrator()
    spec = topology(kubeadm_cluster("prod", masters=1, workers=1))
    assert orchestrator.plan(spec).plan == orchestrator.plan(spec).plan
