import logging
from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from visitorpass.core.exceptions import (
    BackendError,
    BackendUnavailable,
    InvalidPassPayload,
    NotAuthenticated,
    PassNotFound,
    PassValidationError,
    QREncodeError,
    VisitorPassError,
)
from visitorpass.db.session import get_db
from visitorpass.services.backend_client import BackendClient
from visitorpass.services.pass_service import PassService
from visitorpass.services.pass_store import PassStore
from visitorpass.services.session_store import SessionStore

logger = logging.getLogger(__name__)

_backend_client = BackendClient()

def get_backend_client() -> BackendClient:
    return _backend_client

def get_session_store(db: Session = Depends(get_db)) -> SessionStore:
    return SessionStore(db)

def get_pass_service(
    db: Session = Depends(get_db),
    client: BackendClient = Depends(get_backend_client),
) -> PassService:
    return PassService(PassStore(db), SessionStore(db), client)

def http_error(e: VisitorPassError) -> HTTPException:
    """Translate a gateway error into the HTTP answer the screens expect"""
    if isinstance(e, (PassValidationError, InvalidPassPayload)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    if isinstance(e, PassNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    if isinstance(e, NotAuthenticated):
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        )
    if isinstance(e, QREncodeError):
        return HTTPException(status_code=422,detail=e.message)
    if isinstance(e, BackendUnavailable):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)
    if isinstance(e, BackendError):
        # the backend's own 4xx verdicts reach the user as-is
        code = e.status_code if 400 <= e.status_code < 500 else status.HTTP_502_BAD_GATEWAY
        return HTTPException(status_code=code, detail=e.message)

    logger.error(f"Unmapped gateway error: {e}")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=e.message)
