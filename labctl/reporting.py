"""Human- and machine-readable presentation of planning outcomes."""
from collections import OrderedDict
from typing import Any, Dict, List, Sequence

import yaml

from labctl.planning import PlanOutcome, PlanState, ValidationError, ValidationLevel
from labctl.planning.allocator import AllocationError
from labctl.planning.models import Plan

EXIT_OK = 0
EXIT_INTERNAL_ERROR = 1
EXIT_REJECTED = 2

LEVEL_TITLES = OrderedDict([
    (ValidationLevel.STRUCTURAL, "Structural errors"),
    (ValidationLevel.SEMANTIC, "Semantic errors"),
    (ValidationLevel.POLICY, "Policy errors"),
])


def group_by_level(errors: Sequence[ValidationError]) -> Dict[ValidationLevel, List[ValidationError]]:
    grouped: Dict[ValidationLevel, List[ValidationError]] = OrderedDict()
    for level in LEVEL_TITLES:
        matching = [error for error in errors if error.level is level]
        if matching:
            grouped[level] = matching
    return grouped


def format_errors(errors: Sequence[ValidationError]) -> str:
    """Render validation errors grouped by layer, one block per error."""
    lines = [f"❌ Validation failed with {len(errors)} error(s)"]
    for level, level_errors in group_by_level(errors).items():
        lines.append("")
        lines.append(f"{LEVEL_TITLES[level]} ({len(level_errors)}):")
        for error in level_errors:
            lines.append(f"  - {error.field}: {error.message}")
            if error.suggestion:
                lines.append(f"    💡 {error.suggestion}")
    return "\n".join(lines)


def format_failure(error: AllocationError) -> str:
    text = f"❌ Planning failed ({error.kind.value}): {error.message}"
    if error.fit is not None:
        text += f"\n  Addresses that fit: {error.fit}"
    return text


def format_plan(plan: Plan) -> str:
    lines = [f"✅ Planned {len(plan.nodes)} VM(s) for module {plan.module.num}-{plan.module.type}"]
    for node in plan.nodes:
        lines.append(
            f"  {node.name:<28} {node.role.value:<15} {node.address:<16} "
            f"{node.cpus} CPU / {node.memory_mb} MB"
        )
    return "\n".join(lines)


def plan_to_yaml(plan: Plan) -> str:
    return yaml.safe_dump(plan.to_dict(), sort_keys=False, default_flow_style=False)


def outcome_to_dict(outcome: PlanOutcome) -> Dict[str, Any]:
    """Plain-dict form of an outcome, as served by the API."""
    return {
        'state': outcome.state.value,
        'plan': outcome.plan.to_dict() if outcome.plan else None,
        'errors': [error.to_dict() for error in outcome.errors],
        'failure': outcome.failure.to_dict() if outcome.failure else None,
    }


def format_outcome(outcome: PlanOutcome) -> str:
    if outcome.state is PlanState.PLANNED:
        return format_plan(outcome.plan)
    if outcome.state is PlanState.REJECTED:
        return format_errors(outcome.errors)
    return format_failure(outcome.failure)


def exit_code(outcome: PlanOutcome) -> int:
    return EXIT_OK if outcome.planned else EXIT_REJECTED
