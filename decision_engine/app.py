from fastapi import Body, FastAPI, HTTPException, Query
from typing import Any, Dict, List, Optional
import logging
import threading

from decision_engine.core.loader import DecisionEngineLoader
from decision_engine.core.scoring import calculate_scores, calculate_weighted_score
from decision_engine.core.verdict import generate_verdict, score_breakdown
from decision_engine.models import ComparisonResult, FeaturedComparison, Persona

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

api = FastAPI()

_loader: Optional[DecisionEngineLoader] = None
_loader_lock = threading.Lock()


def get_loader() -> DecisionEngineLoader:
    global _loader
    if _loader is None:
        with _loader_lock:
            if _loader is None:
                _loader = DecisionEngineLoader()
    return _loader


def _require_tool(tool_id: str):
    tool = get_loader().load_tool_by_id(tool_id)
    if tool is None:
        raise HTTPException(status_code=404, detail=f"Unknown tool: {tool_id}")
    return tool


@api.get("/tools")
def list_tools(category: Optional[str] = None) -> List[Dict[str, Any]]:
    loader = get_loader()
    tools = loader.load_tools_by_category(category) if category else loader.load_all_tools()
    return [t.model_dump(mode="json") for t in tools]


@api.get("/tools/{tool_id}")
def get_tool(tool_id: str) -> Dict[str, Any]:
    return _require_tool(tool_id).model_dump(mode="json")


@api.get("/tools/{tool_id}/scores")
def get_tool_scores(tool_id: str, persona: Persona = "startup") -> Dict[str, Any]:
    """Per-axis scores with display labels plus the persona-weighted total."""
    scores = calculate_scores(_require_tool(tool_id))
    return {
        "id": tool_id,
        "persona": persona,
        "axes": score_breakdown(scores),
        "weightedScore": calculate_weighted_score(scores, persona),
    }


@api.get("/compare", response_model=ComparisonResult)
def compare(tool1: str = Query(...), tool2: str = Query(...), persona: Persona = "startup"):
    """
    Head-to-head comparison of two tools for a persona.
    Returns the ComparisonResult (scores, weighted scores and verdict).
    """
    first, second = get_loader().load_tools_for_comparison(tool1, tool2)
    missing = [tid for tid, t in ((tool1, first), (tool2, second)) if t is None]
    if missing:
        raise HTTPException(status_code=404, detail=f"Unknown tool(s): {', '.join(missing)}")
    return generate_verdict(first, second, persona)


@api.get("/featured", response_model=List[FeaturedComparison])
def featured():
    return get_loader().get_featured_comparisons()


@api.post("/analytics/decision-engine")
def collect_analytics(event: Dict[str, Any] = Body(...)):
    """Sink for DecisionAnalytics events; events are logged, not stored."""
    logger.info("analytics event type=%s session=%s", event.get("type"), event.get("sessionId"))
    return {"status": "ok"}
