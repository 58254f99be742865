from sqlalchemy import Column, String, Text
from visitorpass.db.base import Base, BaseModel

class CachedPass(Base, BaseModel):
    """Local copy of a backend visitor pass. The backend stays authoritative."""

    __tablename__ = "cached_passes"

    pass_id = Column(String, unique=True, nullable=False, index=True)  # backend id
    building_id = Column(String, nullable=True, index=True)
    apartment_id = Column(String, nullable=True)

    code = Column(String, nullable=False, index=True)
    visitor_name = Column(String, nullable=False, default="Visitor")
    qr_data = Column(Text, nullable=True)  # data URL as stored by the backend

    # Kept as received; parsed on every read so corrupted values fail safe
    issued_at = Column(String, nullable=True)
    expires_at = Column(String, nullable=True)

    status = Column(String, default="active", nullable=False)  # active, expired, cancelled, verified

    def __repr__(self):
        return f"<CachedPass {self.code} ({self.status})>"
