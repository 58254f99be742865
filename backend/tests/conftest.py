import json
from datetime import datetime, timezone

import httpx
import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from visitorpass.api.deps import get_backend_client
from visitorpass.db.base import Base
from visitorpass.db.session import get_db
from visitorpass.main import app
from visitorpass.models.session_state import SessionState  # noqa: F401 (table registration)
from visitorpass.models.visitor_pass import CachedPass  # noqa: F401
from visitorpass.services.backend_client import BackendClient
from visitorpass.services.expiry import parse_instant, to_iso
from visitorpass.services.pass_service import PassService
from visitorpass.services.pass_store import PassStore
from visitorpass.services.session_store import SessionStore

BACKEND_URL = "http://backend.test/api"
BUILDING_ID = 7
FAR_FUTURE = datetime(2100, 1, 1, tzinfo=timezone.utc)


def make_token(role="resident", building_id=BUILDING_ID, exp=FAR_FUTURE, **extra):
    claims = {"id": 11, "role": role, "buildingId": building_id, "apartmentId": 3, **extra}
    if exp is not None:
        claims["exp"] = int(exp.timestamp())
    return jwt.encode(claims, "backend-secret", algorithm="HS256")


def make_user(role="resident", building_id=BUILDING_ID):
    return {"id": 11, "name": "Priya", "phone": "9000000001", "role": role,
            "buildingId": building_id, "apartmentId": 3}


class FakeBackend:
    """In-memory stand-in for the community backend REST API"""

    def __init__(self):
        self.passes = {}
        self.requests = []
        self.failing = set()
        self.create_response = None
        self._next_id = 100

    def _json(self, request):
        return json.loads(request.content) if request.content else {}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/api")
        method = request.method
        building = f"/buildings/{BUILDING_ID}"

        if method == "POST" and path == "/auth/login":
            body = self._json(request)
            if body.get("password") != "secret":
                return httpx.Response(401, json={"error": "invalid credentials"})
            return httpx.Response(200, json={"user": make_user(), "token": make_token()})

        if path == f"{building}/visitor-passes":
            if method == "POST":
                if "create" in self.failing:
                    return httpx.Response(500, json={"error": "failed to create pass"})
                if self.create_response is not None:
                    return httpx.Response(200, json=self.create_response)
                return httpx.Response(200, json={"pass": self._store(self._json(request))})
            if "list" in self.failing:
                return httpx.Response(500, json={"error": "failed"})
            active = [p for p in self.passes.values() if p["status"] == "active"]
            return httpx.Response(200, json={"passes": active})

        if method == "POST" and path.startswith("/visitor-passes/") and path.endswith("/cancel"):
            if "cancel" in self.failing:
                return httpx.Response(500, json={"error": "failed"})
            pass_id = path.split("/")[2]
            if pass_id not in self.passes:
                return httpx.Response(404, json={"error": "not found"})
            self.passes[pass_id]["status"] = "cancelled"
            return httpx.Response(200, json={"ok": True, "id": pass_id})

        if method == "POST" and path == f"/watchman{building}/verify-pass":
            return httpx.Response(200, json=self._verify(self._json(request).get("code")))

        if method == "POST" and path == f"/admin{building}/verify-pass":
            return httpx.Response(404, json={"error": "Pass not found or does not belong to this building",
                                              "valid": False})

        return httpx.Response(404, json={"error": "Not found"})

    def _store(self, body):
        pass_id = str(self._next_id)
        self._next_id += 1
        record = {
            "id": pass_id,
            "building_id": BUILDING_ID,
            "apartment_id": 3,
            "code": body.get("code"),
            "visitor_name": body.get("visitorName"),
            "qr_data": body.get("qrData"),
            "created_at": to_iso(datetime.now(timezone.utc)),
            "expires_at": body.get("expiresAt"),
            "status": "active",
        }
        self.passes[pass_id] = record
        return record

    def _verify(self, code):
        match = next((p for p in self.passes.values() if p["code"] == code), None)
        if match is None:
            return {"valid": False, "message": "Invalid pass code", "pass": None}
        expires = parse_instant(match["expires_at"])
        minutes = int((expires - datetime.now(timezone.utc)).total_seconds() // 60)
        info = {"code": match["code"], "visitor_name": match["visitor_name"],
                "resident_name": "Priya", "unit_number": "A-101",
                "created_at": match["created_at"], "expires_at": match["expires_at"],
                "timeRemaining": max(minutes, 0)}
        if minutes <= 0:
            return {"valid": False, "message": "Pass has expired", "pass": info}
        if match["status"] == "cancelled":
            return {"valid": False, "message": "Pass has been cancelled", "pass": info}
        return {"valid": True, "message": "Pass verified successfully", "pass": info}


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(db_factory):
    session = db_factory()
    yield session
    session.close()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def backend_client(backend):
    return BackendClient(base_url=BACKEND_URL, transport=httpx.MockTransport(backend.handler))


@pytest.fixture
def resident_session(db):
    return SessionStore(db).save(make_token(), make_user())


@pytest.fixture
def watchman_session(db):
    return SessionStore(db).save(make_token(role="watchman"), make_user(role="watchman"))


@pytest.fixture
def service(db, backend_client):
    return PassService(PassStore(db), SessionStore(db), backend_client)


@pytest.fixture
def client(engine, db_factory, backend_client):
    def override_get_db():
        session = db_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_backend_client] = lambda: backend_client
    app.state.engine = engine
    app.state.session_factory = db_factory

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    del app.state.engine
    del app.state.session_factory
