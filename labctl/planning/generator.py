"""Turns a cluster specification plus allocated addresses into node descriptors."""
import logging
from typing import List, Sequence, Tuple

from .models import ClusterSpecification, NodeDescriptor, NodeRole

logger = logging.getLogger(__name__)


class PlanningContractError(RuntimeError):
    """Allocator and generator disagree about a cluster's node count.

    Never a user-facing validation problem; it means the planner is wired
    incorrectly.
    """
    pass


def _node(cluster: ClusterSpecification, name: str, role: NodeRole, address: str) -> NodeDescriptor:
    return NodeDescriptor(
        name=name,
        role=role,
        address=address,
        size_profile=cluster.size_profile,
        cpu_override=cluster.cpu_override,
        memory_mb_override=cluster.memory_mb_override,
    )


def predict_node_names(cluster: ClusterSpecification) -> List[str]:
    """Names the generator will produce, without needing addresses."""
    if cluster.has_explicit_nodes:
        return [node.name for node in cluster.nodes]
    if cluster.kind is None or not cluster.name:
        return []
    if not cluster.kind.is_multi_node:
        return [cluster.name]
    masters = [f"{cluster.name}-master-{i}" for i in range(1, max(cluster.masters, 0) + 1)]
    workers = [f"{cluster.name}-worker-{i}" for i in range(1, max(cluster.workers, 0) + 1)]
    return masters + workers


def generate(cluster: ClusterSpecification, addresses: Sequence[str]) -> Tuple[NodeDescriptor, ...]:
    """Build the ordered node list for one cluster.

    Explicit nodes on the specification are returned unchanged. Otherwise
    masters come first, then workers, each consuming the next address.

    Raises:
        PlanningContractError: if the address count does not match the
            node count the cluster kind requires
    """
    if cluster.has_explicit_nodes:
        return cluster.nodes

    expected = cluster.expected_node_count()
    if len(addresses) != expected:
        raise PlanningContractError(
            f"Address count mismatch for cluster '{cluster.name}': "
            f"expected {expected}, got {len(addresses)}"
        )

    role = cluster.kind.single_role
    if role is not None:
        return (_node(cluster, cluster.name, role, addresses[0]),)

    nodes = []
    remaining = iter(addresses)
    for i in range(1, cluster.masters + 1):
        nodes.append(_node(cluster, f"{cluster.name}-master-{i}", NodeRole.MASTER, next(remaining)))
    for i in range(1, cluster.workers + 1):
        nodes.append(_node(cluster, f"{cluster.name}-worker-{i}", NodeRole.WORKER, next(remaining)))

    logger.debug(f"Generated {len(nodes)} node(s) for {cluster.name}")
    return tuple(nodes)
