"""Environment variables exported to the generated provisioning scripts."""
from typing import Dict, Iterable, Optional, Sequence

from .defaults import PlannerDefaults
from .models import (
    CloudProvider,
    ClusterKind,
    ClusterSpecification,
    ManagementSpecification,
    ModuleInfo,
    NodeDescriptor,
    NodeRole,
)

FLAG_ENABLED = "1"

# Placeholders resolved on the VM at provisioning time
PROVIDER_ENV = {
    CloudProvider.AZURE: ("AZ_SUBSCRIPTION_ID", "AZ_RESOURCE_GROUP", "AZ_LOCATION"),
    CloudProvider.AWS: ("AWS_PROFILE", "AWS_REGION"),
    CloudProvider.GCP: ("GCP_PROJECT", "GCP_REGION"),
}


def _kubeadm_env(cluster: ClusterSpecification, defaults: PlannerDefaults) -> Dict[str, str]:
    env = {}
    if cluster.cni is not None:
        env["CNI_TYPE"] = cluster.cni.value
    env["KUBE_API_PORT"] = str(defaults.kube_api_port)
    env["K8S_POD_CIDR"] = cluster.pod_network or defaults.pod_network
    env["K8S_SVC_CIDR"] = cluster.service_network or defaults.service_network
    return env


def build_global_env(module: ModuleInfo,
                     clusters: Sequence[ClusterSpecification],
                     providers: Iterable[CloudProvider],
                     defaults: PlannerDefaults) -> Dict[str, str]:
    """Module-scoped variables shared by every VM.

    ``clusters`` excludes the management VM.
    """
    env = {
        "MODULE_NUM": module.num,
        "MODULE_TYPE": module.type,
        "NAMESPACE_DEFAULT": module.default_namespace,
    }
    if len(clusters) == 1:
        cluster = clusters[0]
        env["CLUSTER_NAME"] = cluster.name
        env["CLUSTER_TYPE"] = cluster.kind.value
        if cluster.kind is ClusterKind.KUBEADM:
            env.update(_kubeadm_env(cluster, defaults))
    elif clusters:
        env["CLUSTER_NAMES"] = ",".join(cluster.name for cluster in clusters)

    for provider in sorted(providers, key=lambda p: p.value):
        for key in PROVIDER_ENV[provider]:
            env[key] = "${%s}" % key
    return env


def build_node_env(cluster: ClusterSpecification,
                   nodes: Sequence[NodeDescriptor],
                   defaults: PlannerDefaults,
                   management: Optional[ManagementSpecification] = None) -> Dict[str, Dict[str, str]]:
    """Per-VM variables for one cluster's nodes."""
    per_node = {}
    for node in nodes:
        env = {
            "VM_NAME": node.name,
            "ROLE": node.role.value,
            "VM_IP": node.address,
            "CLUSTER_NAME": cluster.name,
            "CLUSTER_TYPE": cluster.kind.value,
            "TOOLS": ",".join(tool.value for tool in cluster.effective_tools()),
        }
        if cluster.kind is ClusterKind.KUBEADM:
            env.update(_kubeadm_env(cluster, defaults))
            if node.is_master:
                env["CONTROL_PLANE"] = FLAG_ENABLED
        if node.role is NodeRole.MANAGEMENT and management is not None and management.aggregate_kubeconfigs:
            env["KUBECONFIG_AGGREGATE"] = FLAG_ENABLED
        per_node[node.name] = env
    return per_node
