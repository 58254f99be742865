import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from visitorpass.core.exceptions import NotAuthenticated, BackendError
from visitorpass.core.security import read_token_claims, token_expired
from visitorpass.models.session_state import SessionState
from visitorpass.models.visitor_pass import CachedPass
from visitorpass.services.backend_client import BackendClient

logger = logging.getLogger(__name__)


@dataclass
class StoredSession:
    token: str
    user: dict

    @property
    def role(self) -> Optional[str]:
        return self.user.get("role")

    @property
    def building_id(self):
        return self.user.get("buildingId")

    def require_building(self):
        if self.building_id is None:
            raise NotAuthenticated("Could not determine your building. Please login again.")
        return self.building_id


def normalize_user(user: dict, token: str) -> dict:
    """Fill building/apartment ids from the token when the user object lacks them"""
    user = dict(user or {})
    claims = read_token_claims(token) or {}
    for camel, snake in (("buildingId", "building_id"), ("apartmentId", "apartment_id")):
        if user.get(camel) is None:
            user[camel] = user.pop(snake, None) or claims.get(camel)
    if user.get("role") is None:
        user["role"] = claims.get("role")
    if user.get("id") is None:
        user["id"] = claims.get("id")
    return user


class SessionStore:
    """Token and user of whoever is logged in on this device"""

    def __init__(self, db: Session):
        self.db = db

    def _row(self) -> Optional[SessionState]:
        return self.db.query(SessionState).first()

    def save(self, token: str, user: dict) -> StoredSession:
        self.db.query(SessionState).delete()
        row = SessionState(
            token=token,
            user_json=json.dumps(user),
            role=user.get("role"),
            building_id=str(user["buildingId"]) if user.get("buildingId") is not None else None,
        )
        self.db.add(row)
        self.db.commit()
        return StoredSession(token=token, user=user)

    def load(self) -> Optional[StoredSession]:
        row = self._row()
        if row is None:
            return None
        try:
            user = json.loads(row.user_json)
        except ValueError:
            logger.warning("Stored user profile is corrupted, discarding session")
            return None
        return StoredSession(token=row.token, user=user if isinstance(user, dict) else {})

    def require(self, now: Optional[datetime] = None) -> StoredSession:
        session = self.load()
        if session is None:
            raise NotAuthenticated()
        if token_expired(session.token, now):
            raise NotAuthenticated("Session expired. Please login again.")
        return session

    def clear(self):
        self.db.query(SessionState).delete()
        self.db.query(CachedPass).delete()
        self.db.commit()

    async def login(self, client: BackendClient, phone: str, password: str) -> StoredSession:
        data = await client.login(phone, password)
        if not isinstance(data, dict) or not data.get("token"):
            raise BackendError("Login response did not include a token")

        user = normalize_user(data.get("user") or {}, data["token"])
        session = self.save(data["token"], user)
        logger.info(f"✅ Logged in as user {user.get('id')} ({user.get('role')})")
        return session
