from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from pydantic import BaseModel, Field

from labctl.config import Config
from labctl.planning import PlannerDefaults, TopologySpecification
from labctl.utils.loader import SpecificationLoadError, from_document


class TopologyRequest(BaseModel):
    """The topology YAML document shape, sent as JSON."""
    module: Dict[str, Any] = Field(default_factory=dict)
    clusters: List[Dict[str, Any]] = Field(default_factory=list)
    management: Optional[Dict[str, Any]] = None


def load_request(req: TopologyRequest, defaults: PlannerDefaults) -> TopologySpecification:
    document = {"module": req.module, "clusters": req.clusters}
    if req.management is not None:
        document["management"] = req.management
    try:
        return from_document(document, defaults)
    except SpecificationLoadError as e:
        raise HTTPException(status_code=400, detail=str(e))


def planner_defaults() -> PlannerDefaults:
    return Config.planner_defaults()
