from sqlalchemy import Column, String, Text
from visitorpass.db.base import Base, BaseModel

class SessionState(Base, BaseModel):
    """The logged-in user's token and profile. At most one row."""

    __tablename__ = "session_state"

    token = Column(Text, nullable=False)
    user_json = Column(Text, nullable=False)  # {id, name, phone, role, buildingId, apartmentId}
    role = Column(String, nullable=True)
    building_id = Column(String, nullable=True)

    def __repr__(self):
        return f"<SessionState role={self.role} building={self.building_id}>"
