from typing import Generator
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from visitorpass.core.config import settings

connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    # Ticker callbacks and request handlers share the engine across threads
    connect_args = {"check_same_thread": False}

engine = create_engine(settings.DATABASE_URL, connect_args=connect_args, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def get_db() -> Generator:
    """Dependency for getting database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
