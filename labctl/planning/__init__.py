"""
Topology Planning Engine

Turns a validated lab specification into a fully resolved, address-assigned
plan of VMs.

Key Features:
- Immutable specification and plan models
- Sequential IPv4 allocation that skips reserved host offsets
- Per-engine node generation (management, single-node, kubeadm)
- Structural, semantic and policy validation with aggregated reporting
- Orchestration into a single immutable Plan
"""

from .models import (
    ClusterKind,
    ClusterSpecification,
    ClusterSpecificationBuilder,
    CloudProvider,
    CniType,
    ManagementSpecification,
    ModuleInfo,
    NodeDescriptor,
    NodeRole,
    Plan,
    SizeProfile,
    Tool,
    TopologyClass,
    TopologySpecification,
    ValidationError,
    ValidationLevel,
)
from .result import Failure, Result, Success
from .defaults import PlannerDefaults
from .allocator import AllocationError, AllocationErrorKind, allocate, allocate_for_cluster, check_collisions
from .generator import PlanningContractError, generate
from .validation import CompositeValidator, PolicyValidator, SemanticValidator, StructuralValidator, validate
from .orchestrator import PlanOrchestrator, PlanOutcome, PlanState, plan_topology

__all__ = [
    # Models
    'ClusterKind',
    'ClusterSpecification',
    'ClusterSpecificationBuilder',
    'CloudProvider',
    'CniType',
    'ManagementSpecification',
    'ModuleInfo',
    'NodeDescriptor',
    'NodeRole',
    'Plan',
    'SizeProfile',
    'Tool',
    'TopologyClass',
    'TopologySpecification',
    'ValidationError',
    'ValidationLevel',
    'PlannerDefaults',

    # Results
    'Success',
    'Failure',
    'Result',

    # Allocation and generation
    'AllocationError',
    'AllocationErrorKind',
    'allocate',
    'allocate_for_cluster',
    'check_collisions',
    'PlanningContractError',
    'generate',

    # Validation
    'StructuralValidator',
    'SemanticValidator',
    'PolicyValidator',
    'CompositeValidator',
    'validate',

    # Orchestration
    'PlanOrchestrator',
    'PlanOutcome',
    'PlanState',
    'plan_topology',
]
