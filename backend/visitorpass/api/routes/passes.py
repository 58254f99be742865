from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response
import logging

from visitorpass.api.deps import get_backend_client, get_pass_service, http_error
from visitorpass.core.exceptions import VisitorPassError
from visitorpass.schemas import (
    CancelResponse,
    CreatePassRequest,
    PassListResponse,
    PassView,
    RefreshResponse,
)
from visitorpass.services.backend_client import BackendClient
from visitorpass.services.expiry import to_iso, utcnow
from visitorpass.services.pass_service import PassService
from visitorpass.services.pass_store import PassStore
from visitorpass.services.session_store import SessionStore

router = APIRouter()
logger = logging.getLogger(__name__)

async def reconcile_passes(session_factory, client: BackendClient):
    """Background refresh after an optimistic change; failures only get logged"""
    db = session_factory()
    try:
        service = PassService(PassStore(db), SessionStore(db), client)
        await service.refresh()
    except VisitorPassError as e:
        logger.warning(f"Background pass refresh failed: {e}")
    finally:
        db.close()

@router.get("/visitor-passes", response_model=PassListResponse)
def list_passes(service: PassService = Depends(get_pass_service)):
    """
    Active passes of the logged-in resident's building, newest first.
    Countdown fields are computed for the moment of the request.
    """
    now = utcnow()
    try:
        passes = service.list_active(now)
    except VisitorPassError as e:
        raise http_error(e)
    return PassListResponse(passes=passes, generated_at=to_iso(now))

@router.post("/visitor-passes", response_model=PassView, status_code=201)
async def create_pass(
    body: CreatePassRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    service: PassService = Depends(get_pass_service),
    client: BackendClient = Depends(get_backend_client),
):
    """
    Create a 30-minute visitor pass with its QR code.
    """
    try:
        view = await service.create_pass(body.visitor_name)
    except VisitorPassError as e:
        logger.warning(f"Visitor pass creation failed: {e}")
        raise http_error(e)

    background_tasks.add_task(reconcile_passes, request.app.state.session_factory, client)
    return view

@router.post("/visitor-passes/refresh", response_model=RefreshResponse)
async def refresh_passes(service: PassService = Depends(get_pass_service)):
    try:
        return await service.refresh()
    except VisitorPassError as e:
        raise http_error(e)

@router.get("/visitor-passes/{pass_id}", response_model=PassView)
def get_pass(pass_id: str, service: PassService = Depends(get_pass_service)):
    try:
        return service.get_pass(pass_id)
    except VisitorPassError as e:
        raise http_error(e)

@router.get("/visitor-passes/{pass_id}/qr.png")
def get_pass_qr(pass_id: str, service: PassService = Depends(get_pass_service)):
    """QR image for saving or sharing"""
    try:
        png = service.qr_png(pass_id)
    except VisitorPassError as e:
        raise http_error(e)
    return Response(
        content=png,
        media_type="image/png",
        headers={"Content-Disposition": f'inline; filename="visitor-pass-{pass_id}.png"'},
    )

@router.post("/visitor-passes/{pass_id}/cancel", response_model=CancelResponse)
async def cancel_pass(
    pass_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    service: PassService = Depends(get_pass_service),
    client: BackendClient = Depends(get_backend_client),
):
    try:
        result = await service.cancel_pass(pass_id)
    except VisitorPassError as e:
        raise http_error(e)

    background_tasks.add_task(reconcile_passes, request.app.state.session_factory, client)
    return result
