import logging
from fastapi import APIRouter, Depends

from visitorpass.api.deps import get_backend_client, get_session_store, http_error
from visitorpass.core.exceptions import VisitorPassError
from visitorpass.schemas import LoginRequest, LoginResponse, SessionUser
from visitorpass.services.backend_client import BackendClient
from visitorpass.services.session_store import SessionStore

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/login", response_model=LoginResponse)
async def login(
    login_data: LoginRequest,
    sessions: SessionStore = Depends(get_session_store),
    client: BackendClient = Depends(get_backend_client),
):
    """Log in against the community backend and keep the token on this device"""
    try:
        session = await sessions.login(client, login_data.phone, login_data.password)
    except VisitorPassError as e:
        raise http_error(e)
    return LoginResponse(user=SessionUser(**session.user))


@router.post("/logout")
def logout(sessions: SessionStore = Depends(get_session_store)):
    sessions.clear()
    logger.info("👋 Logged out, local passes cleared")
    return {"status": "success", "message": "Logged out"}


@router.get("/me", response_model=SessionUser)
def me(sessions: SessionStore = Depends(get_session_store)):
    try:
        session = sessions.require()
    except VisitorPassError as e:
        raise http_error(e)
    return SessionUser(**session.user)
