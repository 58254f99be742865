import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from visitorpass.core.config import settings
from visitorpass.models.visitor_pass import CachedPass
from visitorpass.services.expiry import is_expired, parse_instant, to_iso

logger = logging.getLogger(__name__)

ACTIVE = "active"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _first(data: dict, *keys, default=None):
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return default


def _normalize_instant(value) -> Optional[str]:
    # unparseable values are kept verbatim so the row still reads as expired
    if value is None:
        return None
    parsed = parse_instant(value)
    return to_iso(parsed) if parsed else str(value)


def normalize_server_pass(data: dict, building_id=None) -> Optional[dict]:
    """
    Map a backend pass (snake_case or camelCase) onto cache columns.
    Returns None when the pass has neither an id nor a code.
    """
    if not isinstance(data, dict):
        return None

    pass_id = _first(data, "id", "pass_id", "passId")
    code = _first(data, "code", "access_code", "accessCode")
    if pass_id is None and code is None:
        return None

    visitor_name = _first(data, "visitor_name", "visitorName", "name", "visitor")
    if not str(visitor_name or "").strip():
        visitor_name = settings.DEFAULT_VISITOR_NAME

    building = _first(data, "building_id", "buildingId", default=building_id)
    apartment = _first(data, "apartment_id", "apartmentId")

    return {
        "pass_id": str(pass_id if pass_id is not None else code),
        "code": str(code or ""),
        "visitor_name": str(visitor_name).strip(),
        "qr_data": _first(data, "qr_data", "qrDataUrl", "qrData", "qr", "qrcode"),
        "issued_at": _normalize_instant(_first(data, "created_at", "createdAt")),
        "expires_at": _normalize_instant(_first(data, "expires_at", "expiresAt", "expires", "expiry")),
        "status": str(_first(data, "status", default=ACTIVE)).lower(),
        "building_id": str(building) if building is not None else None,
        "apartment_id": str(apartment) if apartment is not None else None,
    }


def is_displayable(row: CachedPass, now: datetime) -> bool:
    """Lazy expiry: a stored `active` status counts only while the clock agrees."""
    return row.status == ACTIVE and not is_expired(row.expires_at, now)


class PassStore:
    """Local cache of the resident's visitor passes."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, pass_id: str) -> Optional[CachedPass]:
        return self.db.query(CachedPass).filter(CachedPass.pass_id == str(pass_id)).first()

    def all(self, building_id=None) -> List[CachedPass]:
        query = self.db.query(CachedPass)
        if building_id is not None:
            query = query.filter(CachedPass.building_id == str(building_id))
        return query.all()

    def _find_duplicate(self, fields: dict) -> Optional[CachedPass]:
        row = self.get(fields["pass_id"])
        if row is None and fields.get("code"):
            row = self.db.query(CachedPass).filter(CachedPass.code == fields["code"]).first()
        return row

    def upsert(self, fields: dict) -> CachedPass:
        """Insert a pass, replacing any cached entry with the same id or code"""
        row = self._find_duplicate(fields)
        if row is None:
            row = CachedPass(**fields)
            self.db.add(row)
        else:
            for key, value in fields.items():
                setattr(row, key, value)
        self.db.commit()
        self.db.refresh(row)
        return row

    def remove(self, pass_id: str) -> bool:
        row = self.get(pass_id)
        if row is None:
            return False
        self.db.delete(row)
        self.db.commit()
        return True

    def active(self, now: datetime, building_id=None) -> List[CachedPass]:
        """Passes still worth showing, newest first"""
        rows = [row for row in self.all(building_id) if is_displayable(row, now)]
        rows.sort(key=lambda row: parse_instant(row.issued_at) or _EPOCH, reverse=True)
        return rows

    def sweep(self, now: datetime) -> int:
        """Drop every cached pass that is expired, cancelled or otherwise inactive"""
        stale = [row for row in self.all() if not is_displayable(row, now)]
        for row in stale:
            self.db.delete(row)
        if stale:
            self.db.commit()
            logger.info(f"🧹 Swept {len(stale)} inactive pass(es)")
        return len(stale)

    def replace_building(self, building_id, passes: Iterable[dict], now: datetime) -> Tuple[int, int]:
        """
        Reconcile with the backend: the building's cache becomes exactly the
        server's active set. Returns (synced, dropped).
        """
        incoming = {}
        for data in passes:
            fields = normalize_server_pass(data, building_id)
            if fields is None:
                continue
            if fields["status"] == ACTIVE and not is_expired(fields["expires_at"], now):
                incoming[fields["pass_id"]] = fields

        dropped = 0
        for row in self.all(building_id):
            if row.pass_id not in incoming:
                self.db.delete(row)
                dropped += 1
        self.db.commit()

        for fields in incoming.values():
            self.upsert(fields)

        return len(incoming), dropped

    def clear(self):
        self.db.query(CachedPass).delete()
        self.db.commit()
