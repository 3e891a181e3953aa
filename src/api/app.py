"""
FastAPI application for the lecturer claims workflow.

Provides:
- Claim submission with optional supporting document
- Coordinator review endpoints (approve, reject, bulk approve)
- Dashboards: summary, workflow analysis, lecturer and payment read models
- WebSocket endpoint for live claim notifications
"""

import logging

# Reduce noise from verbose libraries
logging.getLogger("websockets").setLevel(logging.WARNING)
logging.getLogger("python_multipart").setLevel(logging.WARNING)
logging.getLogger("python_multipart.multipart").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)

import asyncio
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, File, Form, Request, UploadFile, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, Field

from ..claims.errors import ClaimValidationError, FileStorageError, InvalidTransitionError
from ..claims.schema import Claim, ClaimInput, ClaimStatus
from ..notifications import NotificationHub, NotificationSink, notify_new_claim, notify_status_change
from ..storage import ClaimsRepository, seed_demo_claims
from ..uploads import LocalFileStore
from ..utils.config import Settings, get_settings

logger = logging.getLogger(__name__)


# =============================================================================
# Request Models
# =============================================================================


class ApproveRequest(BaseModel):
    reviewer: Optional[str] = None
    notes: Optional[str] = None


class RejectRequest(BaseModel):
    reason: str = ""
    reviewer: Optional[str] = None


class BulkApproveRequest(BaseModel):
    claim_ids: List[int] = Field(default_factory=list)
    reviewer: Optional[str] = None


# =============================================================================
# Dependencies
# =============================================================================


def get_repository(request: Request) -> ClaimsRepository:
    return request.app.state.repository


def get_hub(request: Request) -> NotificationSink:
    return request.app.state.hub


def get_file_store(request: Request) -> LocalFileStore:
    return request.app.state.file_store


def _claim_json(claim: Claim) -> dict:
    return claim.model_dump(mode="json")


def _not_found() -> JSONResponse:
    return JSONResponse(status_code=404, content={"success": False, "message": "Claim not found"})


def _transition_conflict(e: InvalidTransitionError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"success": False, "message": e.message, **e.to_dict()})


router = APIRouter()


# =============================================================================
# Health Check Endpoints
# =============================================================================


@router.get("/")
async def root(repo: ClaimsRepository = Depends(get_repository)):
    """Root endpoint - basic health check."""
    return {
        "service": "Lecturer Claims Workflow",
        "status": "running",
        "claims": len(repo),
    }


@router.get("/health")
async def health_check(request: Request):
    """Detailed health check endpoint."""
    settings: Settings = request.app.state.settings
    return {
        "status": "healthy",
        "claims": len(request.app.state.repository),
        "config": {
            "upload_dir": str(settings.upload_dir),
            "allow_terminal_overwrite": settings.allow_terminal_overwrite,
            "auto_approve_max_amount": settings.auto_approve_max_amount,
        },
    }


# =============================================================================
# Lecturer Endpoints
# =============================================================================


@router.post("/claims")
async def submit_claim(
    lecturer_name: str = Form(""),
    hours_worked: float = Form(0.0),
    hourly_rate: float = Form(0.0),
    notes: Optional[str] = Form(None),
    total_amount: Optional[float] = Form(None),
    upload: Optional[UploadFile] = File(None),
    repo: ClaimsRepository = Depends(get_repository),
    hub: NotificationSink = Depends(get_hub),
    file_store: LocalFileStore = Depends(get_file_store),
):
    """
    Submit a claim.

    The supporting document (if any) is stored first; the claim is then
    validated, stored and run through the approval rules.
    """
    file_ref = None
    if upload is not None and upload.filename:
        try:
            file_ref = file_store.store(
                await upload.read(),
                upload.filename,
                category="claims",
                content_type=upload.content_type,
            )
        except FileStorageError as e:
            return JSONResponse(status_code=400, content={"success": False, "errors": [e.message]})

    claim_input = ClaimInput(
        lecturer_name=lecturer_name,
        hours_worked=hours_worked,
        hourly_rate=hourly_rate,
        notes=notes,
        total_amount=total_amount,
        file=file_ref,
    )
    try:
        outcome = repo.create_with_outcome(claim_input)
    except ClaimValidationError as e:
        if file_ref is not None:
            file_store.delete(file_ref.file_path)
        return JSONResponse(status_code=422, content={"success": False, "errors": e.errors})

    claim = outcome.claim
    notify_new_claim(hub, claim)

    return {
        "success": True,
        "message": f"Claim submitted successfully! Total amount: R{claim.total_amount:.2f}",
        "claim_id": claim.id,
        "tracking_token": claim.tracking_token,
        "status": claim.status.value,
        "is_auto_approved": outcome.is_auto_approved,
        "flags": outcome.flags,
    }


@router.get("/claims/recent")
async def recent_claims(count: int = 5, repo: ClaimsRepository = Depends(get_repository)):
    return {"claims": [_claim_json(c) for c in repo.get_recent(count)]}


@router.get("/claims/track/{token}")
async def track_claim(token: str, repo: ClaimsRepository = Depends(get_repository)):
    """Lecturer self-lookup by tracking token."""
    claim = repo.get_by_tracking_token(token)
    if claim is None:
        return _not_found()
    return {"success": True, "data": _claim_json(claim)}


@router.get("/lecturers/{lecturer_name}/claims")
async def lecturer_claims(lecturer_name: str, repo: ClaimsRepository = Depends(get_repository)):
    return {"claims": [_claim_json(c) for c in repo.get_claims_for_lecturer(lecturer_name)]}


# =============================================================================
# Coordinator Endpoints
# =============================================================================


@router.get("/claims")
async def list_claims(
    filter: str = "all",
    sort_by: str = "newest",
    repo: ClaimsRepository = Depends(get_repository),
):
    """List claims for review with a filter and sort order."""
    claims = repo.list_claims(filter=filter, sort_by=sort_by)
    return {
        "filter": filter,
        "sort_by": sort_by,
        "claims": [_claim_json(c) for c in claims],
    }


@router.get("/claims/{claim_id}")
async def get_claim(claim_id: int, repo: ClaimsRepository = Depends(get_repository)):
    claim = repo.get_by_id(claim_id)
    if claim is None:
        return _not_found()
    return {"success": True, "data": _claim_json(claim)}


@router.post("/claims/bulk-approve")
async def bulk_approve(
    body: BulkApproveRequest,
    repo: ClaimsRepository = Depends(get_repository),
    hub: NotificationSink = Depends(get_hub),
):
    if not body.claim_ids:
        return JSONResponse(status_code=400, content={"success": False, "message": "No claims selected"})

    approved = repo.bulk_update_status(body.claim_ids, ClaimStatus.APPROVED, reviewed_by=body.reviewer)
    for claim in approved:
        notify_status_change(hub, claim, "Claim approved")

    logger.info(f"Bulk approved {len(approved)} claims by {body.reviewer or 'unknown reviewer'}")
    return {
        "success": True,
        "message": f"Successfully approved {len(approved)} claims",
        "approved_ids": [c.id for c in approved],
    }


@router.post("/claims/{claim_id}/approve")
async def approve_claim(
    claim_id: int,
    body: Optional[ApproveRequest] = None,
    repo: ClaimsRepository = Depends(get_repository),
    hub: NotificationSink = Depends(get_hub),
):
    body = body or ApproveRequest()
    try:
        claim = repo.update_status(claim_id, ClaimStatus.APPROVED, reviewed_by=body.reviewer, note=body.notes)
    except InvalidTransitionError as e:
        return _transition_conflict(e)
    if claim is None:
        return _not_found()

    notify_status_change(hub, claim, "Claim approved")
    return {"success": True, "message": "Claim approved successfully", "data": _claim_json(claim)}


@router.post("/claims/{claim_id}/reject")
async def reject_claim(
    claim_id: int,
    body: RejectRequest,
    repo: ClaimsRepository = Depends(get_repository),
    hub: NotificationSink = Depends(get_hub),
):
    if not body.reason.strip():
        return JSONResponse(status_code=400, content={"success": False, "message": "Rejection reason is required"})

    try:
        claim = repo.update_status(
            claim_id, ClaimStatus.REJECTED, reviewed_by=body.reviewer, reason=body.reason.strip()
        )
    except InvalidTransitionError as e:
        return _transition_conflict(e)
    if claim is None:
        return _not_found()

    notify_status_change(hub, claim, f"Claim rejected: {claim.rejection_reason}")
    return {"success": True, "message": "Claim rejected successfully", "data": _claim_json(claim)}


# =============================================================================
# Dashboard Endpoints
# =============================================================================


@router.get("/summary")
async def claim_summary(repo: ClaimsRepository = Depends(get_repository)):
    return repo.get_summary()


@router.get("/analysis")
async def workflow_analysis(repo: ClaimsRepository = Depends(get_repository)):
    return repo.get_workflow_analysis()


@router.get("/lecturers")
async def lecturer_summaries(repo: ClaimsRepository = Depends(get_repository)):
    return {"lecturers": repo.get_lecturer_summaries()}


@router.get("/payments")
async def payment_summary(repo: ClaimsRepository = Depends(get_repository)):
    return repo.get_payment_summary()


@router.get("/monthly")
async def monthly_breakdown(repo: ClaimsRepository = Depends(get_repository)):
    return {"months": repo.get_monthly_breakdown()}


# =============================================================================
# WebSocket Endpoint for Notifications
# =============================================================================


@router.websocket("/ws")
async def claim_events(websocket: WebSocket):
    """
    Live claim notifications.

    Clients send ``{"action": "join", "group": "<topic>"}`` (or "leave") and
    receive every event published to the groups they have joined.
    """
    await websocket.accept()
    hub: NotificationHub = websocket.app.state.hub
    subscription = hub.subscribe()

    async def receive_commands():
        while True:
            message = await websocket.receive_json()
            action = message.get("action")
            group = message.get("group")
            if not group:
                await websocket.send_json({"error": "group is required"})
            elif action == "join":
                hub.join(subscription, group)
                await websocket.send_json({"joined": group})
            elif action == "leave":
                hub.leave(subscription, group)
                await websocket.send_json({"left": group})
            else:
                await websocket.send_json({"error": f"Unknown action: {action}"})

    async def forward_events():
        while True:
            event = await subscription.get()
            await websocket.send_json(event.model_dump(mode="json"))

    tasks = [asyncio.create_task(receive_commands()), asyncio.create_task(forward_events())]
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            error = task.exception()
            if isinstance(error, WebSocketDisconnect):
                logger.info("WebSocket disconnected")
            elif error is not None:
                logger.error(f"WebSocket error: {error}")
    finally:
        for task in tasks:
            task.cancel()
        hub.unsubscribe(subscription)


# =============================================================================
# Application Factory
# =============================================================================


def create_app(
    settings: Optional[Settings] = None,
    repository: Optional[ClaimsRepository] = None,
    hub: Optional[NotificationHub] = None,
    file_store: Optional[LocalFileStore] = None,
) -> FastAPI:
    """
    Build the application and its collaborators.

    Anything not passed in is constructed from settings. The repository
    lives as long as the application.
    """
    settings = settings or get_settings()

    if repository is None:
        repository = ClaimsRepository(settings=settings)
        if settings.seed_demo_data:
            seed_demo_claims(repository)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        logger.info("Starting lecturer claims server...")
        logger.info(f"Uploads directory: {settings.upload_dir}")
        yield
        logger.info("Shutting down lecturer claims server...")

    app = FastAPI(
        title="Lecturer Claims Workflow",
        description="Submission, rule-based approval and review of lecturer hours claims",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.repository = repository
    app.state.hub = hub or NotificationHub()
    app.state.file_store = file_store or LocalFileStore(
        settings.upload_dir,
        max_size_bytes=settings.max_upload_size_bytes,
    )

    app.include_router(router)
    app.mount(
        "/uploads",
        StaticFiles(directory=app.state.file_store.base_dir, check_dir=False),
        name="uploads",
    )
    return app


# =============================================================================
# Main Entry Point
# =============================================================================


def main():
    """Run the FastAPI server."""
    import uvicorn

    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(
        "src.api.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
