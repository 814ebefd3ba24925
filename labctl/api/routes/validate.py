from fastapi import APIRouter
from fastapi.responses import JSONResponse

from labctl.api.routes.common import TopologyRequest, load_request, planner_defaults
from labctl.planning import validate

router = APIRouter()


@router.post("/validate")
def run_validate(req: TopologyRequest):
    defaults = planner_defaults()
    errors = validate(load_request(req, defaults), defaults)
    body = {"valid": not errors, "errors": [error.to_dict() for error in errors]}
    return JSONResponse(status_code=422 if errors else 200, content=body)
