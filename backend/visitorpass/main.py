from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from datetime import datetime
import logging
import uvicorn
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from visitorpass.api.routes import auth, health, passes, stream, verify
from visitorpass.core.config import settings
from visitorpass.core.logging import setup_logging
from visitorpass.db.base import Base
from visitorpass.db.session import SessionLocal, engine
from visitorpass.services.pass_store import PassStore
from visitorpass.services.ticker import Ticker

logger = logging.getLogger(__name__)


def make_sweeper(session_factory):
    """Tick callback that drops expired passes from the local cache"""
    def sweep_expired(now: datetime):
        db = session_factory()
        try:
            PassStore(db).sweep(now)
        finally:
            db.close()
    return sweep_expired


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for startup and shutdown"""
    logger.info("🚀 Starting Visitor Pass Gateway...")

    db_engine = getattr(app.state, "engine", engine)
    session_factory = getattr(app.state, "session_factory", SessionLocal)
    app.state.session_factory = session_factory

    logger.info("📦 Creating local cache tables...")
    Base.metadata.create_all(bind=db_engine)

    try:
        with db_engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("✅ Local database ready")
    except SQLAlchemyError as e:
        logger.error(f"❌ Local database unavailable: {e}")
        raise

    countdown_ticker = Ticker("countdown", settings.COUNTDOWN_TICK_SECONDS)
    sweep_ticker = Ticker("sweep", settings.SWEEP_INTERVAL_SECONDS, offload=True)
    sweep_ticker.subscribe(make_sweeper(session_factory))

    app.state.countdown_ticker = countdown_ticker
    app.state.sweep_ticker = sweep_ticker
    countdown_ticker.start()
    sweep_ticker.start()

    yield

    logger.info("👋 Shutting down...")
    await countdown_ticker.stop()
    await sweep_ticker.stop()


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Resident and gate-side visitor pass lifecycle: codes, QR passes, live countdowns",
        version=settings.VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    prefix = settings.API_PREFIX
    app.include_router(health.router, prefix=prefix, tags=["Health"])
    app.include_router(auth.router, prefix=f"{prefix}/auth", tags=["Auth"])
    app.include_router(stream.router, prefix=prefix, tags=["Visitor Passes"])
    app.include_router(passes.router, prefix=prefix, tags=["Visitor Passes"])
    app.include_router(verify.router, prefix=prefix, tags=["Gate"])

    @app.get("/")
    async def root():
        """Root endpoint with API information"""
        return {
            "service": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "status": "operational",
            "docs": "/docs",
            "endpoints": {
                "health": f"{prefix}/health",
                "login": f"{prefix}/auth/login",
                "visitor_passes": f"{prefix}/visitor-passes",
                "countdown_stream": f"{prefix}/visitor-passes/stream",
                "verify_code": f"{prefix}/verify/code",
                "verify_scan": f"{prefix}/verify/scan"
            },
            "note": "Countdowns are cosmetic; the backend decides whether a pass is valid"
        }

    return app


app = create_app()


def run():
    setup_logging()
    uvicorn.run(app, host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    run()
