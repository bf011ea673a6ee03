"""
Growth Engine API Server
========================

FastAPI server exposing engagement scoring, CTA/content selection, A/B
assignment and metrics, and trigger evaluation as HTTP endpoints.

Run directly:
    python -m growth_engine.api
    uvicorn growth_engine.api:app --host 0.0.0.0 --port 8780

Port configurable via GROWTH_API_PORT environment variable (default 8780).
"""

from __future__ import annotations

import logging
import os
import time
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from growth_engine import __version__
from growth_engine.ab_testing import ABTestEngine, TestStatus
from growth_engine.behavioral_triggers import default_triggers, get_commitment_escalation
from growth_engine.catalog import CONTENT_CATALOG, CTA_CATALOG
from growth_engine.conditions import ConditionContext, evaluate_all, failing
from growth_engine.engagement import EngagementEngine, score_breakdown
from growth_engine.journey import BehaviorSnapshot
from growth_engine.personalization import PersonalizationEngine
from growth_engine.psychological_triggers import (
    PsychologicalTriggerService,
    TriggerContext,
    personalize,
)
from growth_engine.selector import apply_variant, select
from growth_engine.tracking import TrackingSink

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logger = logging.getLogger("growth.api")
logger.setLevel(logging.INFO)

if not logger.handlers:
    _h = logging.StreamHandler()
    _h.setFormatter(logging.Formatter(
        "[%(asctime)s] %(name)s %(levelname)s: %(message)s", datefmt="%H:%M:%S",
    ))
    logger.addHandler(_h)

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

API_PORT = int(os.getenv("GROWTH_API_PORT", "8780"))

ALLOWED_ORIGINS = os.getenv(
    "GROWTH_CORS_ORIGINS",
    "http://localhost:3000,http://localhost:8780",
).split(",")

# ---------------------------------------------------------------------------
# Pydantic Models -- Requests
# ---------------------------------------------------------------------------


class BehaviorPayload(BaseModel):
    session_duration_seconds: int = Field(0, ge=0)
    scroll_depth_percent: float = Field(0.0, ge=0, le=100)
    sections_viewed: List[str] = Field(default_factory=list)
    tools_used: List[str] = Field(default_factory=list)
    content_consumed: List[str] = Field(default_factory=list)
    ctas_clicked: List[str] = Field(default_factory=list)
    device_type: str = Field("desktop", description="mobile, tablet or desktop")
    time_of_day: str = Field("morning", description="morning, afternoon, evening or night")
    return_visitor: bool = False

    def to_snapshot(self) -> BehaviorSnapshot:
        try:
            return BehaviorSnapshot.from_dict(self.model_dump())
        except ValueError as exc:
            raise HTTPException(400, f"Invalid behavior: {exc}")


class SelectRequest(BaseModel):
    behavior: BehaviorPayload = Field(default_factory=BehaviorPayload)
    user_id: Optional[str] = None
    max_items: int = Field(3, ge=0, le=20)


class CreateTestRequest(BaseModel):
    test_id: str
    name: str
    variants: List[Dict[str, Any]]
    traffic_allocation: float = Field(1.0, ge=0, le=1)
    description: str = ""
    status: str = "draft"
    minimum_sample_size: int = 1000
    targeting_rules: List[Dict[str, Any]] = Field(default_factory=list)


class AssignRequest(BaseModel):
    user_id: str
    behavior: Optional[BehaviorPayload] = Field(None, description="Needed for tests with targeting rules")
    custom_data: Dict[str, Any] = Field(default_factory=dict)


class EventRequest(BaseModel):
    user_id: str
    variant_id: str
    event: str = Field(..., description="impression, click or conversion")


class StatusChangeRequest(BaseModel):
    action: str = Field(..., description="start, pause, resume or complete")


class PsychologicalRequest(BaseModel):
    page: str = "/"
    behavior: BehaviorPayload = Field(default_factory=BehaviorPayload)
    name: Optional[str] = None
    city: Optional[str] = None


class BehavioralRequest(BaseModel):
    behavior: BehaviorPayload = Field(default_factory=BehaviorPayload)
    custom_data: Dict[str, Any] = Field(default_factory=dict)
    trigger_type: Optional[str] = None


# ---------------------------------------------------------------------------
# Pydantic Models -- Responses
# ---------------------------------------------------------------------------


class StatusResponse(BaseModel):
    status: str
    timestamp: str
    subsystems: Dict[str, str] = Field(default_factory=dict)
    version: str = __version__


# ---------------------------------------------------------------------------
# Application State
# ---------------------------------------------------------------------------


class AppState:
    """Holds the services created in the lifespan."""

    def __init__(self) -> None:
        self.engagement: Optional[EngagementEngine] = None
        self.ab: Optional[ABTestEngine] = None
        self.tracker: Optional[TrackingSink] = None
        self.psych: Optional[PsychologicalTriggerService] = None
        self.personalization: Optional[PersonalizationEngine] = None
        self.start_time: float = 0.0


state = AppState()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create services on startup, flush tracking on shutdown."""
    logger.info("Starting Growth Engine API on port %d", API_PORT)
    state.start_time = time.monotonic()
    state.tracker = TrackingSink()
    state.engagement = EngagementEngine()
    state.ab = ABTestEngine(tracker=state.tracker)
    state.psych = PsychologicalTriggerService(tracker=state.tracker)
    state.personalization = PersonalizationEngine()
    logger.info("Services initialized (%d A/B tests loaded)", len(state.ab.list_tests()))
    yield

    logger.info("Shutting down Growth Engine API")
    if state.tracker:
        await state.tracker.close()
    logger.info("Shutdown complete")


# ---------------------------------------------------------------------------
# FastAPI App
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Growth Engine API",
    description="Engagement scoring, CTA selection, A/B testing and trigger evaluation.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _require_engagement() -> EngagementEngine:
    if state.engagement is None:
        raise HTTPException(503, "Engagement engine not initialized")
    return state.engagement


def _require_ab() -> ABTestEngine:
    if state.ab is None:
        raise HTTPException(503, "A/B testing engine not initialized")
    return state.ab


def _context(behavior: BehaviorPayload, custom: Optional[Dict[str, Any]] = None) -> ConditionContext:
    snapshot = behavior.to_snapshot()
    engagement = _require_engagement().evaluate(snapshot)
    return ConditionContext(behavior=snapshot, engagement=engagement, custom=custom)


# ===================================================================
# Health
# ===================================================================


@app.get("/health", response_model=StatusResponse, tags=["Health"])
async def health():
    """Server health check with service status."""
    subs: Dict[str, str] = {}
    subs["engagement"] = "ready" if state.engagement else "unavailable"
    subs["ab_testing"] = "ready" if state.ab else "unavailable"
    subs["psychological_triggers"] = "ready" if state.psych else "unavailable"
    subs["tracking"] = "remote" if (state.tracker and state.tracker.endpoint) else "buffer"
    uptime = time.monotonic() - state.start_time if state.start_time else 0
    subs["uptime_seconds"] = f"{uptime:.0f}"
    return StatusResponse(status="ok", timestamp=_now_iso(), subsystems=subs)


# ===================================================================
# Engagement
# ===================================================================


@app.post("/engagement/score", tags=["Engagement"])
async def engagement_score(req: BehaviorPayload):
    """Score, classification, sub-score breakdown and insights."""
    engine = _require_engagement()
    snapshot = req.to_snapshot()
    insights = engine.insights(snapshot)
    return {
        "engagement": insights.pop("engagement"),
        "breakdown": score_breakdown(snapshot),
        "insights": insights,
    }


@app.post("/engagement/escalation", tags=["Engagement"])
async def engagement_escalation(req: BehaviorPayload):
    """Commitment escalation (micro/midi/macro) for this behavior."""
    level = _require_engagement().evaluate(req.to_snapshot())
    return get_commitment_escalation(level).to_dict()


# ===================================================================
# Selection
# ===================================================================


@app.post("/cta/select", tags=["Selection"])
async def cta_select(req: SelectRequest):
    """Eligible CTAs, with the caller's A/B variants applied when user_id is given."""
    ctx = _context(req.behavior)
    ab = state.ab
    items = []
    for cta in select(CTA_CATALOG, ctx.engagement, ctx.behavior, req.max_items):
        variant_id = None
        if ab is not None and req.user_id and cta.ab_test_id:
            variant_id = ab.get_variant(req.user_id, cta.ab_test_id, ctx)
        data = apply_variant(cta, variant_id).to_dict()
        data["variant_id"] = variant_id
        items.append(data)
    return {"engagement": ctx.engagement.to_dict(), "ctas": items}


@app.post("/content/select", tags=["Selection"])
async def content_select(req: SelectRequest):
    """Eligible content items plus the personalized hero bundle."""
    ctx = _context(req.behavior)
    items = select(CONTENT_CATALOG, ctx.engagement, ctx.behavior, req.max_items)
    hero = state.personalization.get_personalized_content(ctx) if state.personalization else None
    return {
        "engagement": ctx.engagement.to_dict(),
        "content": [i.to_dict() for i in items],
        "hero": hero.to_dict() if hero else None,
    }


# ===================================================================
# A/B Testing
# ===================================================================


@app.get("/ab/tests", tags=["A/B Testing"])
async def ab_list_tests(status: Optional[str] = None):
    """List tests, optionally filtered by status."""
    ab = _require_ab()
    try:
        filt = TestStatus(status) if status else None
    except ValueError:
        raise HTTPException(400, f"Invalid status: {status}")
    return {"tests": [t.to_dict() for t in ab.list_tests(filt)]}


@app.post("/ab/tests", tags=["A/B Testing"])
async def ab_create_test(req: CreateTestRequest):
    """Register a new test."""
    ab = _require_ab()
    try:
        test = ab.create_test(
            test_id=req.test_id,
            name=req.name,
            variants=req.variants,
            traffic_allocation=req.traffic_allocation,
            description=req.description,
            status=TestStatus(req.status),
            minimum_sample_size=req.minimum_sample_size,
            targeting_rules=req.targeting_rules,
        )
    except ValueError as exc:
        raise HTTPException(400, str(exc))
    return test.to_dict()


@app.get("/ab/tests/{test_id}", tags=["A/B Testing"])
async def ab_get_test(test_id: str):
    test = _require_ab().get_test(test_id)
    if test is None:
        raise HTTPException(404, f"Test {test_id} not found")
    return test.to_dict()


@app.post("/ab/tests/{test_id}/assign", tags=["A/B Testing"])
async def ab_assign(test_id: str, req: AssignRequest):
    """The user's variant, assigning on first eligible call."""
    ab = _require_ab()
    if ab.get_test(test_id) is None:
        raise HTTPException(404, f"Test {test_id} not found")
    ctx = None
    if req.behavior is not None or req.custom_data:
        behavior = req.behavior or BehaviorPayload()
        custom = {"returnVisitor": behavior.return_visitor}
        custom.update(req.custom_data)
        ctx = _context(behavior, custom)
    variant_id = ab.get_variant(req.user_id, test_id, ctx)
    return {
        "test_id": test_id,
        "user_id": req.user_id,
        "variant_id": variant_id,
        "excluded": ab.is_excluded(req.user_id, test_id),
        "config": ab.get_variant_config(test_id, variant_id) if variant_id else None,
    }


@app.post("/ab/tests/{test_id}/events", tags=["A/B Testing"])
async def ab_event(test_id: str, req: EventRequest):
    """Record an impression, click or conversion."""
    ab = _require_ab()
    handlers = {
        "impression": ab.track_impression,
        "click": ab.track_click,
        "conversion": ab.track_conversion,
    }
    handler = handlers.get(req.event)
    if handler is None:
        raise HTTPException(400, f"Invalid event: {req.event}. Use impression/click/conversion.")
    variant = await handler(req.user_id, test_id, req.variant_id)
    if variant is None:
        raise HTTPException(404, f"Variant {test_id}/{req.variant_id} not found")
    return variant.to_dict()


@app.get("/ab/tests/{test_id}/results", tags=["A/B Testing"])
async def ab_results(test_id: str):
    data = _require_ab().export_results(test_id)
    if data is None:
        raise HTTPException(404, f"Test {test_id} not found")
    return data


@app.post("/ab/tests/{test_id}/status", tags=["A/B Testing"])
async def ab_status(test_id: str, req: StatusChangeRequest):
    """Manual lifecycle change."""
    ab = _require_ab()
    actions = {
        "start": ab.start_test,
        "pause": ab.pause_test,
        "resume": ab.resume_test,
        "complete": ab.complete_test,
    }
    action = actions.get(req.action)
    if action is None:
        raise HTTPException(400, f"Invalid action: {req.action}")
    test = action(test_id)
    if test is None:
        raise HTTPException(404, f"Test {test_id} not found")
    return {"test_id": test_id, "status": test.status.value}


# ===================================================================
# Triggers
# ===================================================================


@app.post("/triggers/psychological", tags=["Triggers"])
async def triggers_psychological(req: PsychologicalRequest):
    """Psychological triggers for a page and behavior, frequency limits applied."""
    if state.psych is None:
        raise HTTPException(503, "Psychological trigger service not initialized")
    ctx = _context(req.behavior)
    trigger_ctx = TriggerContext.from_snapshot(req.page, ctx.behavior, ctx.engagement)
    results = []
    for r in state.psych.get_triggers(trigger_ctx):
        data = r.to_dict()
        data["content"] = asdict(personalize(r, name=req.name, city=req.city))
        results.append(data)
    return {"triggers": results}


@app.post("/triggers/behavioral", tags=["Triggers"])
async def triggers_behavioral(req: BehavioralRequest):
    """
    Which behavioral triggers' conditions hold for this behavior.

    Stateless: cooldowns and session caps belong to a live monitor, so
    nothing fires here.
    """
    custom = {"returnVisitor": req.behavior.return_visitor}
    custom.update(req.custom_data)
    ctx = _context(req.behavior, custom)
    matching, blocked = [], []
    for trigger in sorted(default_triggers(), key=lambda t: -t.priority):
        if req.trigger_type and trigger.trigger_type.value != req.trigger_type:
            continue
        if evaluate_all(trigger.conditions, ctx):
            matching.append({
                "trigger_id": trigger.trigger_id,
                "trigger_type": trigger.trigger_type.value,
                "priority": trigger.priority,
                "actions": [a.to_dict() for a in trigger.actions],
            })
        else:
            blocked.append({
                "trigger_id": trigger.trigger_id,
                "failing": [c.to_dict() for c in failing(trigger.conditions, ctx)],
            })
    return {"engagement": ctx.engagement.to_dict(), "matching": matching, "blocked": blocked}


# ===================================================================
# Entry Point
# ===================================================================

if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    uvicorn.run(
        "growth_engine.api:app",
        host="0.0.0.0",
        port=API_PORT,
        reload=False,
        log_level="info",
    )
