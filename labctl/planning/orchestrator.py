"""
Plan orchestration: validate, allocate, generate, assemble.

    Received -> Validating -> Rejected
                           -> Planning -> Planned
                                       -> Failed

Validation findings are all collected before deciding; an addressing
failure during planning stops the run at the first error.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from .allocator import AllocationError, allocate_for_cluster, check_collisions
from .defaults import PlannerDefaults
from .env import build_global_env, build_node_env
from .generator import generate
from .models import ClusterKind, ClusterSpecification, NodeDescriptor, Plan, TopologySpecification, ValidationError
from .validation import CompositeValidator

logger = logging.getLogger(__name__)


class PlanState(str, Enum):
    RECEIVED = 'received'
    VALIDATING = 'validating'
    REJECTED = 'rejected'
    PLANNING = 'planning'
    PLANNED = 'planned'
    FAILED = 'failed'


@dataclass(frozen=True)
class PlanOutcome:
    """Terminal result of one orchestration run."""
    state: PlanState
    plan: Optional[Plan] = None
    errors: Tuple[ValidationError, ...] = ()
    failure: Optional[AllocationError] = None
    transitions: Tuple[PlanState, ...] = ()

    @property
    def planned(self) -> bool:
        return self.state is PlanState.PLANNED

    @property
    def rejected(self) -> bool:
        return self.state is PlanState.REJECTED

    @property
    def failed(self) -> bool:
        return self.state is PlanState.FAILED


class PlanOrchestrator:
    """Sequences the validator pipeline, allocator and generator.

    Holds no state between calls; every ``plan()`` call is independent.
    """

    def __init__(self,
                 defaults: Optional[PlannerDefaults] = None,
                 validator: Optional[CompositeValidator] = None,
                 allocator: Callable = allocate_for_cluster,
                 generator: Callable = generate):
        self.defaults = defaults or PlannerDefaults()
        self.validator = validator or CompositeValidator(defaults=self.defaults)
        self.allocator = allocator
        self.generator = generator

    def plan(self, topology: TopologySpecification) -> PlanOutcome:
        transitions: List[PlanState] = [PlanState.RECEIVED]

        def enter(state: PlanState):
            logger.debug(f"Plan state: {transitions[-1].value} -> {state.value}")
            transitions.append(state)

        enter(PlanState.VALIDATING)
        errors = self.validator.validate(topology)
        if errors:
            enter(PlanState.REJECTED)
            logger.info(f"Specification rejected with {len(errors)} validation error(s)")
            return PlanOutcome(PlanState.REJECTED, errors=tuple(errors), transitions=tuple(transitions))

        enter(PlanState.PLANNING)
        ordered = self._ordered_clusters(topology)
        allocations: List[Tuple[str, Tuple[str, ...]]] = []
        generated: List[Tuple[ClusterSpecification, Tuple[NodeDescriptor, ...]]] = []

        for cluster in ordered:
            if cluster.has_explicit_nodes:
                nodes = self.generator(cluster, ())
            else:
                result = self.allocator(cluster, self._default_address(cluster), self.defaults.subnet_ceiling_offset)
                if result.is_failure:
                    return self._fail(result.error, transitions, enter)
                nodes = self.generator(cluster, result.value)
            allocations.append((cluster.name, tuple(node.address for node in nodes)))
            generated.append((cluster, nodes))

        collisions = check_collisions(allocations)
        if collisions.is_failure:
            return self._fail(collisions.error, transitions, enter)

        plan = self._assemble(topology, generated)
        enter(PlanState.PLANNED)
        logger.info(f"Planned {len(plan.nodes)} node(s) across {len(generated)} cluster(s)")
        return PlanOutcome(PlanState.PLANNED, plan=plan, transitions=tuple(transitions))

    def _fail(self, error: AllocationError, transitions: List[PlanState], enter) -> PlanOutcome:
        enter(PlanState.FAILED)
        logger.info(f"Planning failed: {error.message}")
        return PlanOutcome(PlanState.FAILED, failure=error, transitions=tuple(transitions))

    def _ordered_clusters(self, topology: TopologySpecification) -> List[ClusterSpecification]:
        ordered = []
        if topology.management is not None:
            ordered.append(topology.management.as_cluster(self.defaults.management_address))
        ordered.extend(topology.clusters)
        return ordered

    def _default_address(self, cluster: ClusterSpecification) -> str:
        if cluster.kind is ClusterKind.NONE:
            return self.defaults.management_address
        return self.defaults.first_address

    def _assemble(self, topology: TopologySpecification,
                  generated: List[Tuple[ClusterSpecification, Tuple[NodeDescriptor, ...]]]) -> Plan:
        providers = topology.management.providers if topology.management else frozenset()
        env = build_global_env(topology.module, topology.clusters, providers, self.defaults)

        nodes: List[NodeDescriptor] = []
        node_env: Dict[str, Dict[str, str]] = {}
        for cluster, cluster_nodes in generated:
            nodes.extend(cluster_nodes)
            node_env.update(build_node_env(cluster, cluster_nodes, self.defaults, topology.management))

        return Plan(module=topology.module, nodes=tuple(nodes), env=env, node_env=node_env, providers=providers)


def plan_topology(topology: TopologySpecification, defaults: Optional[PlannerDefaults] = None) -> PlanOutcome:
    """Run the default orchestrator once."""
    return PlanOrchestrator(defaults).plan(topology)
