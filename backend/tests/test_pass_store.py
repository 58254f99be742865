from datetime import datetime, timedelta, timezone

from visitorpass.services.expiry import compute_expiry, to_iso
from visitorpass.services.pass_store import PassStore, normalize_server_pass

CREATED = datetime(2024, 1, 1, tzinfo=timezone.utc)


def server_pass(pass_id, code, created=CREATED, status="active", **extra):
    data = {
        "id": pass_id,
        "building_id": 7,
        "code": code,
        "visitor_name": f"Guest {pass_id}",
        "created_at": to_iso(created),
        "expires_at": to_iso(compute_expiry(created)),
        "status": status,
    }
    data.update(extra)
    return data


def test_normalize_accepts_snake_and_camel_case():
    snake = normalize_server_pass(server_pass(1, "AAA222"))
    camel = normalize_server_pass({
        "passId": 1, "accessCode": "AAA222", "visitorName": "Guest 1",
        "createdAt": "2024-01-01T00:00:00Z", "expiresAt": "2024-01-01T05:30:00+05:00",
        "buildingId": 7,
    })
    assert snake["pass_id"] == camel["pass_id"] == "1"
    assert snake["code"] == camel["code"] == "AAA222"
    assert snake["expires_at"] == camel["expires_at"] == "2024-01-01T00:30:00.000Z"
    assert camel["status"] == "active"
    assert camel["building_id"] == "7"


def test_normalize_defaults_blank_visitor_name():
    fields = normalize_server_pass(server_pass(1, "AAA222", visitor_name="   "))
    assert fields["visitor_name"] == "Visitor"


def test_normalize_keeps_unparseable_expiry_verbatim():
    fields = normalize_server_pass(server_pass(1, "AAA222", expires_at="soon"))
    assert fields["expires_at"] == "soon"


def test_normalize_rejects_passes_without_identity():
    assert normalize_server_pass({"visitor_name": "x"}) is None
    assert normalize_server_pass("nope") is None


def test_upsert_dedupes_by_id_and_code(db):
    store = PassStore(db)
    store.upsert(normalize_server_pass(server_pass(1, "AAA222")))
    store.upsert(normalize_server_pass(server_pass(1, "AAA222", visitor_name="Renamed")))
    store.upsert(normalize_server_pass(server_pass("temp", "AAA222")))
    rows = store.all()
    assert len(rows) == 1
    assert rows[0].pass_id == "temp"


def test_active_filters_and_sorts_newest_first(db):
    store = PassStore(db)
    now = CREATED + timedelta(minutes=20)
    store.upsert(normalize_server_pass(server_pass(1, "AAA222", created=CREATED)))
    store.upsert(normalize_server_pass(server_pass(2, "BBB333", created=CREATED + timedelta(minutes=5))))
    store.upsert(normalize_server_pass(server_pass(3, "CCC444", created=CREATED - timedelta(hours=1))))
    store.upsert(normalize_server_pass(server_pass(4, "DDD555", status="cancelled")))
    store.upsert(normalize_server_pass(server_pass(5, "EEE666", expires_at="corrupted")))

    assert [row.pass_id for row in store.active(now)] == ["2", "1"]
    assert store.active(now, building_id=8) == []


def test_sweep_drops_expired_passes(db):
    store = PassStore(db)
    store.upsert(normalize_server_pass(server_pass(1, "AAA222")))

    assert store.sweep(datetime(2024, 1, 1, 0, 25, tzinfo=timezone.utc)) == 0
    assert store.sweep(datetime(2024, 1, 1, 0, 30, 1, tzinfo=timezone.utc)) == 1
    assert store.all() == []


def test_replace_building_reconciles_with_server(db):
    store = PassStore(db)
    now = CREATED + timedelta(minutes=1)
    store.upsert(normalize_server_pass(server_pass(1, "AAA222")))
    store.upsert(normalize_server_pass(server_pass(2, "BBB333")))

    synced, dropped = store.replace_building(7, [
        server_pass(2, "BBB333", visitor_name="Updated"),
        server_pass(3, "CCC444"),
        server_pass(4, "DDD555", status="verified"),
    ], now)

    assert (synced, dropped) == (2, 1)
    rows = {row.pass_id: row for row in store.all()}
    assert set(rows) == {"2", "3"}
    assert rows["2"].visitor_name == "Updated"
