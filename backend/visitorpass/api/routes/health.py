from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from visitorpass.db.session import get_db
import logging

router = APIRouter()
logger = logging.getLogger(__name__)

@router.get("/health")
async def health_check(request: Request, db: Session = Depends(get_db)):
    """Health check endpoint"""
    tickers = {
        name: getattr(request.app.state, name).running
        for name in ("countdown_ticker", "sweep_ticker")
        if hasattr(request.app.state, name)
    }
    try:
        db.execute(text("SELECT 1"))

        return {
            "status": "healthy",
            "database": "connected",
            "tickers": tickers,
            "service": "visitor-pass-gateway"
        }
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {str(e)}")
        return {
            "status": "unhealthy",
            "error": str(e)
        }
