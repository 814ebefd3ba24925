import pytest

from labctl.planning import CloudProvider, ClusterKind, CniType, NodeRole, SizeProfile, Tool, plan_topology, validate
from labctl.utils.loader import SpecificationLoadError, from_document, from_flags, load_yaml, parse_nodes_flag

TOPOLOGY_YAML = """
module:
  num: m9
  type: lab
management:
  name: mgmt
  providers: [azure]
  aggregate_kubeconfigs: true
  tools: [kubectl, azure_cli]
clusters:
  - name: dev
    kind: kind
    start_address: 192.168.56.20
  - name: prod
    kind: kubeadm
    start_address: 192.168.56.30
    masters: 1
    workers: 2
    cni: cilium
    size_profile: large
    pod_network: 10.244.0.0/16
"""


def test_load_yaml(tmp_path):
    path = tmp_path / "topology.yaml"
    path.write_text(TOPOLOGY_YAML)
    spec = load_yaml(path)
    assert spec.module.num == "m9"
    assert [cluster.name for cluster in spec.clusters] == ["dev", "prod"]
    prod = spec.clusters[1]
    assert prod.kind is ClusterKind.KUBEADM
    assert prod.cni is CniType.CILIUM
    assert prod.size_profile is SizeProfile.LARGE
    assert (prod.masters, prod.workers) == (1, 2)
    assert spec.management.providers == frozenset({CloudProvider.AZURE})
    assert spec.management.tools == (Tool.KUBECTL, Tool.AZURE_CLI)


def test_explicit_nodes_from_document():
    spec = from_document({
        "module": {"num": "m1", "type": "pt"},
        "clusters": [{
            "name": "dev",
            "kind": "minikube",
            "nodes": [{"name": "dev", "role": "cluster-single", "address": "192.168.56.50", "cpus": 2}],
        }],
    })
    (node,) = spec.clusters[0].nodes
    assert node.role is NodeRole.CLUSTER_SINGLE
    assert node.cpus == 2


def test_padded_node_address_is_normalized_and_planned():
    spec = from_document({
        "module": {"num": "m1", "type": "pt"},
        "clusters": [{
            "name": "dev",
            "kind": "minikube",
            "nodes": [{"name": "dev", "role": "cluster-single", "address": " 192.168.56.20"}],
        }],
    })
    assert spec.clusters[0].nodes[0].address == "192.168.56.20"
    assert validate(spec) == []
    outcome = plan_topology(spec)
    assert outcome.planned
    assert outcome.plan.nodes[0].address == "192.168.56.20"


def test_missing_fields_are_left_to_validation():
    spec = from_document({"clusters": [{"kind": "kubeadm"}]})
    assert spec.module.num == ""
    assert spec.clusters[0].name is None


def test_type_errors_are_load_errors():
    with pytest.raises(SpecificationLoadError, match="clusters.0.masters"):
        from_document({"clusters": [{"name": "dev", "kind": "kubeadm", "masters": "three"}]})


def test_unknown_enum_value_is_a_load_error():
    with pytest.raises(SpecificationLoadError, match="cluster kind"):
        from_document({"clusters": [{"name": "dev", "kind": "k3d"}]})


def test_unreadable_and_invalid_yaml(tmp_path):
    with pytest.raises(SpecificationLoadError):
        load_yaml(tmp_path / "missing.yaml")
    path = tmp_path / "broken.yaml"
    path.write_text("clusters: [\n")
    with pytest.raises(SpecificationLoadError):
        load_yaml(path)


@pytest.mark.parametrize("value,expected", [
    ("1m,2w", (1, 2)),
    ("3m", (3, 0)),
    ("2w", (0, 2)),
    (None, (0, 0)),
])
def test_parse_nodes_flag(value, expected):
    assert parse_nodes_flag(value) == expected


def test_parse_nodes_flag_rejects_garbage():
    with pytest.raises(SpecificationLoadError):
        parse_nodes_flag("two masters")


def test_from_flags_defaults_cluster_name():
    spec = from_flags(module="m7", module_type="hw", cluster_type="kind")
    assert spec.clusters[0].name == "clu-m7-hw-kind"
    assert spec.management is None


def test_from_flags_mgmt_alias_and_management():
    spec = from_flags(module="m7", module_type="hw", cluster_type="mgmt")
    assert spec.clusters[0].kind is ClusterKind.NONE

    spec = from_flags(
        module="m7", module_type="hw", cluster_type="kubeadm", nodes="1m,1w", cni="calico",
        management="mgmt", providers=["aws"], tools=["kubectl", "aws_cli"],
    )
    assert spec.management.providers == frozenset({CloudProvider.AWS})
    assert spec.clusters[0].cni is CniType.CALICO
