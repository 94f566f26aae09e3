"""
HTTP surface for the control plane.
Thin routes over the core components. Every route that changes pace, mode,
schedule, budget values or thresholds appends an audit entry as agent "api".
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .schemas import (
    HealthResponse,
    PaceRequest,
    ModeRequest,
    ScheduleRequest,
    ProposalCreateRequest,
    ProposalResolveRequest,
    ProposalResponse,
    ProposalCreateResponse,
    AuditEntryResponse,
    ActionCheckRequest,
    ActionCheckResponse,
    BudgetStatusResponse,
    CeilingRequest,
    CostPerCallRequest,
    ThresholdRequest,
    ThresholdsResponse,
    AnomaliesResponse,
    DispatchRequest,
    DispatchResponse,
    DossierEntryResponse,
    DossierTopicsResponse
)
from ..agents.dispatch import DispatchTask
from ..core.allowlist import blocking_reason, is_allowed
from ..core.brief import generate_brief
from ..core.config import CORS_ORIGINS, VERSION, debug_enabled, is_scheduler_enabled, validate_config
from ..core.control_plane import ControlPlane
from ..core.errors import ValidationError
from ..core.proposals import Created
from ..util.logging import logger

router = APIRouter()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def get_plane(request: Request) -> ControlPlane:
    return request.app.state.plane


def _audit_api_change(plane: ControlPlane, action: str, detail: str):
    plane.audit.log_action(agent="api", action=action, domain="system", detail=detail)


@router.get("/health", response_model=HealthResponse)
def health_check_endpoint(plane: ControlPlane = Depends(get_plane)):
    """Check system health."""
    db_health = plane.db.health_check()
    return HealthResponse(
        status="ok" if db_health else "unhealthy",
        version=VERSION,
        db_health=db_health,
        timestamp=_now_iso()
    )


@router.get("/status")
def status_endpoint(plane: ControlPlane = Depends(get_plane)):
    return {
        "pace": plane.state.get_pace().value,
        "mode": plane.state.get_mode().value,
        "schedule": plane.state.get_schedule(),
        "budget": plane.budget.get_budget_status(),
        "scheduler": plane.scheduler.get_status(),
        "timestamp": _now_iso()
    }


@router.get("/heartbeat")
def heartbeat_endpoint(plane: ControlPlane = Depends(get_plane)):
    return {
        "alive": True,
        "pace": plane.state.get_pace().value,
        "mode": plane.state.get_mode().value,
        "timestamp": _now_iso()
    }


@router.post("/pace")
def set_pace_endpoint(req: PaceRequest, plane: ControlPlane = Depends(get_plane)):
    pace = plane.state.set_pace(req.pace, actor="api")
    _audit_api_change(plane, "set_pace", f"pace set to {pace.value}")
    return {"pace": pace.value}


@router.post("/mode")
def set_mode_endpoint(req: ModeRequest, plane: ControlPlane = Depends(get_plane)):
    mode = plane.state.set_mode(req.mode, actor="api")
    _audit_api_change(plane, "set_mode", f"mode set to {mode.value}")
    return {"mode": mode.value}


@router.get("/schedule")
def get_schedule_endpoint(plane: ControlPlane = Depends(get_plane)):
    return {
        **plane.state.get_schedule(),
        "mode": plane.state.get_mode().value,
        "scheduler": plane.scheduler.get_status()
    }


@router.post("/schedule")
def set_schedule_endpoint(req: ScheduleRequest, plane: ControlPlane = Depends(get_plane)):
    schedule = plane.state.set_schedule(req.sleep_start, req.sleep_end, actor="api")
    _audit_api_change(plane, "set_schedule", f"sleep window set to {req.sleep_start}-{req.sleep_end}")
    # Apply the new window right away instead of waiting for the next tick
    plane.scheduler.tick()
    return {**schedule, "mode": plane.state.get_mode().value}


@router.get("/proposals", response_model=List[ProposalResponse])
def list_proposals_endpoint(
    status: Optional[str] = None,
    domain: Optional[str] = None,
    limit: Optional[int] = Query(default=None, ge=1, le=1000),
    plane: ControlPlane = Depends(get_plane)
):
    return [p.to_dict() for p in plane.proposals.list_proposals(status=status, domain=domain, limit=limit)]


@router.post("/proposals", response_model=ProposalCreateResponse, status_code=201)
def create_proposal_endpoint(req: ProposalCreateRequest, response: Response,
                             plane: ControlPlane = Depends(get_plane)):
    result = plane.proposals.create_proposal(
        domain=req.domain,
        title=req.title,
        body=req.body,
        effort=req.effort,
        recommendation=req.recommendation,
        source=req.source
    )
    if not isinstance(result, Created):
        response.status_code = 200
    return {"proposal": result.proposal.to_dict(), "deduplicated": result.deduplicated}


@router.get("/proposals/{proposal_id}", response_model=ProposalResponse)
def get_proposal_endpoint(proposal_id: int, plane: ControlPlane = Depends(get_plane)):
    proposal = plane.proposals.get_proposal(proposal_id)
    if proposal is None:
        raise HTTPException(status_code=404, detail="Proposal not found")
    return proposal.to_dict()


@router.post("/proposals/{proposal_id}/resolve", response_model=ProposalResponse)
def resolve_proposal_endpoint(proposal_id: int, req: ProposalResolveRequest,
                              plane: ControlPlane = Depends(get_plane)):
    proposal = plane.proposals.resolve_proposal(proposal_id, req.status, req.note)
    if proposal is None:
        raise HTTPException(status_code=404, detail="Proposal not found")
    plane.audit.log_action(
        agent="api",
        action="resolve_proposal",
        domain=proposal.domain,
        detail=f"Proposal #{proposal.id} {proposal.status}" + (f": {req.note}" if req.note else "")
    )
    return proposal.to_dict()


@router.get("/audit", response_model=List[AuditEntryResponse])
def audit_endpoint(limit: int = Query(default=50, ge=1, le=1000), plane: ControlPlane = Depends(get_plane)):
    return [entry.to_dict() for entry in plane.audit.get_recent_logs(limit)]


@router.post("/action/check", response_model=ActionCheckResponse)
def action_check_endpoint(req: ActionCheckRequest, plane: ControlPlane = Depends(get_plane)):
    pace = plane.state.get_pace()
    mode = plane.state.get_mode()
    allowed = is_allowed(mode, req.action, pace)

    if not allowed:
        plane.audit.log_action(
            agent=req.agent or "unknown",
            action=req.action,
            domain=req.domain or "unknown",
            detail=f"blocked: mode={mode.value}, pace={pace.value}",
            blocked=True
        )

    return ActionCheckResponse(
        allowed=allowed,
        mode=mode.value,
        pace=pace.value,
        reason=blocking_reason(mode, req.action, pace)
    )


@router.get("/budget", response_model=BudgetStatusResponse)
def budget_endpoint(plane: ControlPlane = Depends(get_plane)):
    return plane.budget.get_budget_status()


@router.post("/budget/ceiling", response_model=BudgetStatusResponse)
def set_ceiling_endpoint(req: CeilingRequest, plane: ControlPlane = Depends(get_plane)):
    ceiling = plane.state.set_ceiling(req.ceiling, actor="api")
    _audit_api_change(plane, "set_budget_ceiling", f"budget ceiling set to ${ceiling:.2f}")
    return plane.budget.get_budget_status()


@router.post("/budget/cost-per-call", response_model=BudgetStatusResponse)
def set_cost_per_call_endpoint(req: CostPerCallRequest, plane: ControlPlane = Depends(get_plane)):
    cost = plane.state.set_cost_per_call(req.cost, actor="api")
    _audit_api_change(plane, "set_cost_per_call", f"cost per call set to ${cost}")
    return plane.budget.get_budget_status()


@router.get("/anomalies", response_model=AnomaliesResponse)
def anomalies_endpoint(plane: ControlPlane = Depends(get_plane)):
    report = plane.anomaly.check_anomalies()
    return {
        **report.to_dict(),
        "thresholds": plane.state.get_anomaly_thresholds().to_dict()
    }


@router.post("/anomalies/threshold", response_model=ThresholdsResponse)
def set_threshold_endpoint(req: ThresholdRequest, plane: ControlPlane = Depends(get_plane)):
    thresholds = plane.state.set_anomaly_threshold(req.key, req.value, actor="api")
    _audit_api_change(plane, "set_anomaly_threshold", f"{req.key} set to {int(req.value)}")
    return thresholds.to_dict()


@router.get("/dossier", response_model=List[DossierEntryResponse])
def dossier_endpoint(
    topic_id: Optional[str] = None,
    category: Optional[str] = None,
    limit: Optional[int] = Query(default=None, ge=1, le=1000),
    plane: ControlPlane = Depends(get_plane)
):
    return [e.to_dict() for e in plane.dossier.get_entries(topic_id=topic_id, category=category, limit=limit)]


@router.get("/dossier/topics", response_model=DossierTopicsResponse)
def dossier_topics_endpoint(plane: ControlPlane = Depends(get_plane)):
    return {
        "topics": [t.to_dict() for t in plane.dossier.get_topics()],
        "references": plane.dossier.get_references()
    }


@router.get("/dossier/recent", response_model=List[DossierEntryResponse])
def dossier_recent_endpoint(limit: int = Query(default=20, ge=1, le=1000),
                            plane: ControlPlane = Depends(get_plane)):
    return [e.to_dict() for e in plane.dossier.get_recent_entries(limit)]


@router.get("/dossier/next-topic")
def dossier_next_topic_endpoint(plane: ControlPlane = Depends(get_plane)):
    topic = plane.dossier.pick_next_topic()
    if topic is None:
        raise HTTPException(status_code=404, detail="No research topics configured")
    return topic.to_dict()


@router.post("/dispatch", response_model=DispatchResponse)
def dispatch_endpoint(req: DispatchRequest, plane: ControlPlane = Depends(get_plane)):
    options = dict(req.options or {})
    if req.node:
        options["node"] = req.node

    task = DispatchTask(
        action=req.action,
        domain=req.domain,
        message=req.message,
        agent_name=req.agent_name,
        options=options
    )
    result = plane.dispatch(task, ingest=req.ingest, topic_id=req.topic_id, category=req.category)
    return result.to_dict()


@router.get("/brief")
def brief_endpoint(plane: ControlPlane = Depends(get_plane)):
    return generate_brief(plane)


async def validation_error_handler(request: Request, exc: ValidationError):
    logger.log_validation_error(exc.field, exc.value, exc.allowed)
    content = jsonable_encoder(exc.to_dict())
    content["detail"] = str(exc)
    return JSONResponse(status_code=400, content=content)


async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions."""
    logger.error(f"Unhandled exception: {exc}")
    content = {"detail": "Internal server error"}
    if debug_enabled():
        content["debug"] = str(exc)
    return JSONResponse(status_code=500, content=content)


def create_app(plane: Optional[ControlPlane] = None, start_scheduler: Optional[bool] = None) -> FastAPI:
    """
    Build the FastAPI application around a control plane.
    Without an explicit plane one is built from the environment.
    """
    owns_plane = plane is None
    if start_scheduler is None:
        start_scheduler = is_scheduler_enabled()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        issues = validate_config()
        for issue in issues:
            logger.warning(f"Config issue: {issue}")

        if start_scheduler:
            if issues:
                logger.warning("Sleep scheduler not started: configuration invalid")
            else:
                app.state.plane.scheduler.start()
        try:
            yield
        finally:
            app.state.plane.scheduler.stop()
            if owns_plane:
                app.state.plane.close()

    app = FastAPI(
        title="pacegate",
        version=VERSION,
        description="Personal automation control plane: pace, mode, audit, budget and dispatch",
        docs_url="/docs" if debug_enabled() else None,
        redoc_url="/redoc" if debug_enabled() else None,
        lifespan=lifespan
    )
    app.state.plane = plane or ControlPlane()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(Exception, global_exception_handler)
    app.include_router(router)
    return app
