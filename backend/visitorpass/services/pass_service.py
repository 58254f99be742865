import logging
from datetime import datetime, timedelta
from typing import List, Optional

from visitorpass.core.config import settings
from visitorpass.core.exceptions import (
    BackendError,
    PassNotFound,
    PassValidationError,
    VisitorPassError,
)
from visitorpass.models.visitor_pass import CachedPass
from visitorpass.schemas import CancelResponse, PassView, RefreshResponse, VerificationResult
from visitorpass.services import qr_encoder
from visitorpass.services.backend_client import BackendClient
from visitorpass.services.countdown import evaluate
from visitorpass.services.expiry import (
    compute_expiry,
    format_local,
    parse_instant,
    remaining_seconds,
    to_iso,
    utcnow,
)
from visitorpass.services.pass_store import PassStore, normalize_server_pass
from visitorpass.services.scanner import qr_scanner
from visitorpass.services.session_store import SessionStore
from visitorpass.utils.crypto import generate_access_code, normalize_code

logger = logging.getLogger(__name__)


def to_view(row: CachedPass, now: datetime, qr_payload: Optional[str] = None) -> PassView:
    snap = evaluate(row.expires_at, now)
    return PassView(
        id=row.pass_id,
        code=row.code,
        visitor_name=row.visitor_name,
        status=row.status,
        created_at=row.issued_at,
        expires_at=row.expires_at,
        created_at_local=format_local(row.issued_at, settings.DISPLAY_TIMEZONE),
        expires_at_local=format_local(row.expires_at, settings.DISPLAY_TIMEZONE),
        remaining_seconds=snap.remaining_seconds,
        display=snap.display,
        tier=snap.tier.value,
        state=snap.state.value,
        qr_data_url=row.qr_data,
        qr_payload=qr_payload,
    )


def _server_minutes(value) -> Optional[int]:
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return None


def verification_from_response(data, now: datetime) -> VerificationResult:
    """Normalize watchman and admin verify responses"""
    data = data if isinstance(data, dict) else {}
    info = data.get("pass") if isinstance(data.get("pass"), dict) else {}

    valid = bool(data.get("valid"))
    expires_at = parse_instant(info.get("expires_at") or info.get("expiresAt"))

    minutes = _server_minutes(info.get("timeRemaining"))
    source = "server"
    if minutes is None:
        source = "client"
        minutes = remaining_seconds(expires_at, now) // 60 if expires_at else 0

    return VerificationResult(
        valid=valid,
        message=data.get("message") or ("Valid visitor pass" if valid else "Invalid pass code"),
        code=info.get("code"),
        visitor_name=info.get("visitor_name") or info.get("visitorName"),
        resident_name=info.get("resident_name") or info.get("created_by_name"),
        unit_number=str(info["unit_number"]) if info.get("unit_number") is not None else None,
        expires_at=to_iso(expires_at) if expires_at else None,
        time_remaining_minutes=minutes if valid else 0,
        time_remaining_source=source,
    )


class PassService:
    """Resident and watchman operations on visitor passes"""

    def __init__(self, store: PassStore, sessions: SessionStore, client: BackendClient):
        self.store = store
        self.sessions = sessions
        self.client = client

    # ---- resident side ----------------------------------------------------

    async def create_pass(self, visitor_name: Optional[str] = None, now: Optional[datetime] = None) -> PassView:
        """
        Generate a code, expiry and QR locally, then register the pass with
        the backend. Nothing is cached unless the backend accepts it.
        """
        now = now or utcnow()
        session = self.sessions.require(now)
        building_id = session.require_building()

        name = (visitor_name or "").strip() or settings.DEFAULT_VISITOR_NAME
        validity = settings.PASS_VALIDITY_SECONDS
        code = generate_access_code(settings.PASS_CODE_LENGTH)
        expires_at = compute_expiry(now, timedelta(seconds=validity))

        payload = qr_encoder.build_payload(code, name, now, expires_at, validity)
        encoded = qr_encoder.encode_pass(payload)

        body = {
            "code": code,
            "visitorName": name,
            "qrData": encoded.data_url,
            "expiresAt": payload["expiresAt"],
        }
        data = await self.client.create_pass(session.token, building_id, body)

        if not isinstance(data, dict) or not isinstance(data.get("pass"), dict):
            raise BackendError("Visitor pass creation failed", status_code=502, body=data)

        fields = normalize_server_pass(data["pass"], building_id)
        if fields is None:
            raise BackendError("Backend returned an unusable pass", status_code=502, body=data)
        fields["qr_data"] = fields["qr_data"] or encoded.data_url
        fields["issued_at"] = fields["issued_at"] or payload["createdAt"]
        fields["expires_at"] = fields["expires_at"] or payload["expiresAt"]

        row = self.store.upsert(fields)
        logger.info(f"✅ Created visitor pass {row.code} for '{name}', expires {row.expires_at}")
        return to_view(row, now, qr_payload=encoded.payload_text)

    def list_active(self, now: Optional[datetime] = None) -> List[PassView]:
        now = now or utcnow()
        session = self.sessions.require(now)
        rows = self.store.active(now, session.building_id)
        return [to_view(row, now) for row in rows]

    def get_pass(self, pass_id: str, now: Optional[datetime] = None) -> PassView:
        now = now or utcnow()
        self.sessions.require(now)
        row = self.store.get(pass_id)
        if row is None:
            raise PassNotFound()
        return to_view(row, now)

    def qr_png(self, pass_id: str) -> bytes:
        """PNG of a cached pass, re-rendered from its fields if no image is stored"""
        row = self.store.get(pass_id)
        if row is None:
            raise PassNotFound()

        if row.qr_data:
            try:
                return qr_encoder.png_from_data_url(row.qr_data)
            except VisitorPassError:
                logger.warning(f"Stored QR for pass {row.pass_id} unusable, re-encoding")

        created = parse_instant(row.issued_at) or utcnow()
        expires = parse_instant(row.expires_at) or created
        payload = qr_encoder.build_payload(
            row.code, row.visitor_name, created, expires,
            int((expires - created).total_seconds()),
        )
        return qr_encoder.encode_pass(payload).png

    async def cancel_pass(self, pass_id: str) -> CancelResponse:
        """Optimistic: the pass leaves the local list whatever the backend says"""
        session = self.sessions.require()
        removed = self.store.remove(pass_id)

        confirmed = True
        try:
            await self.client.cancel_pass(session.token, pass_id)
        except VisitorPassError as e:
            confirmed = False
            logger.warning(f"Cancel pass {pass_id} not confirmed by backend: {e}")

        if not removed and not confirmed:
            raise PassNotFound()

        return CancelResponse(
            id=str(pass_id),
            server_confirmed=confirmed,
            message="Visitor pass cancelled" if confirmed else "Visitor pass removed locally",
        )

    async def refresh(self, now: Optional[datetime] = None) -> RefreshResponse:
        """Reconcile the local cache with the backend's list"""
        now = now or utcnow()
        session = self.sessions.require(now)
        building_id = session.require_building()

        data = await self.client.list_passes(session.token, building_id)
        if isinstance(data, list):
            passes = data
        elif isinstance(data, dict):
            passes = data.get("passes") or data.get("visitor_passes") or data.get("data") or []
        else:
            passes = []

        synced, dropped = self.store.replace_building(building_id, passes, now)
        logger.info(f"🔄 Refreshed passes for building {building_id}: {synced} active, {dropped} dropped")
        return RefreshResponse(synced=synced, dropped=dropped)

    def sweep(self, now: Optional[datetime] = None) -> int:
        return self.store.sweep(now or utcnow())

    # ---- gate side --------------------------------------------------------

    async def verify_code(self, code: str, now: Optional[datetime] = None) -> VerificationResult:
        now = now or utcnow()
        code = normalize_code(code)
        if not code:
            raise PassValidationError("Pass code is required")

        session = self.sessions.require(now)
        building_id = session.require_building()

        try:
            data = await self.client.verify_pass(session.token, building_id, code, role=session.role or "watchman")
        except BackendError as e:
            if e.status_code != 404:
                raise
            data = e.body if isinstance(e.body, dict) else {}
            data = {"valid": False, "message": data.get("error") or e.message, "pass": None}

        result = verification_from_response(data, now)
        logger.info(f"🔍 Verified {code}: valid={result.valid} ({result.message})")
        return result

    async def verify_scan(self, image_bytes: bytes, now: Optional[datetime] = None) -> VerificationResult:
        payload = qr_scanner.read_payload(image_bytes)
        return await self.verify_code(payload["code"], now)
