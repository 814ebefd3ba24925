from fastapi import APIRouter
from fastapi.responses import JSONResponse

from labctl.api.routes.common import TopologyRequest, load_request, planner_defaults
from labctl.logging import setup_logger
from labctl.planning import PlanOrchestrator, PlanState
from labctl.reporting import outcome_to_dict

logger = setup_logger("labctl.api")

router = APIRouter()

STATUS_CODES = {
    PlanState.PLANNED: 200,
    PlanState.REJECTED: 422,
    PlanState.FAILED: 409,
}


@router.post("/plan")
def run_plan(req: TopologyRequest):
    defaults = planner_defaults()
    outcome = PlanOrchestrator(defaults).plan(load_request(req, defaults))
    logger.info(f"[PLAN] module={req.module.get('num')}-{req.module.get('type')} state={outcome.state.value}")
    return JSONResponse(status_code=STATUS_CODES[outcome.state], content=outcome_to_dict(outcome))
