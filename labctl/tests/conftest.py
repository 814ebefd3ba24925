import pytest

from labctl.planning import ClusterSpecification, ModuleInfo, PlannerDefaults, TopologySpecification


@pytest.fixture
def defaults():
    return PlannerDefaults()


@pytest.fixture
def kubeadm_cluster():
    def build(name, start_address=None, masters=1, workers=2, cni="calico"):
        return (
            ClusterSpecification.builder()
            .name(name)
            .kind("kubeadm")
            .start_address(start_address)
            .nodes(masters, workers)
            .cni(cni)
            .build()
        )
    return build


@pytest.fixture
def topology():
    def build(*clusters, management=None, module=None):
        return TopologySpecification(
            module=module or ModuleInfo(num="m7", type="hw"),
            clusters=clusters,
            management=management,
        )
    return build
