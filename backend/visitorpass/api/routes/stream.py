import asyncio
import logging
from datetime import datetime
from typing import Dict

from fastapi import APIRouter, Depends, WebSocket
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from visitorpass.core.exceptions import NotAuthenticated
from visitorpass.db.session import get_db
from visitorpass.schemas import CountdownTick
from visitorpass.services.countdown import Countdown
from visitorpass.services.expiry import to_iso, utcnow
from visitorpass.services.pass_store import ACTIVE, PassStore
from visitorpass.services.session_store import SessionStore

router = APIRouter()
logger = logging.getLogger(__name__)


async def _wait_for_disconnect(websocket: WebSocket):
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


def _snapshot(store: PassStore, building_id, countdowns: Dict[str, Countdown], now: datetime) -> dict:
    store.db.expire_all()
    rows = [row for row in store.all(building_id) if row.status == ACTIVE]

    ticks = []
    for row in rows:
        countdown = countdowns.get(row.pass_id)
        if countdown is None:
            countdown = countdowns[row.pass_id] = Countdown(row.expires_at)
        snap = countdown.advance(now)
        ticks.append(CountdownTick(
            id=row.pass_id,
            code=row.code,
            remaining_seconds=snap.remaining_seconds,
            display=snap.display,
            tier=snap.tier.value,
            state=snap.state.value,
        ).model_dump())

    # forget passes that left the cache (cancelled or swept)
    live = {row.pass_id for row in rows}
    for pass_id in list(countdowns):
        if pass_id not in live:
            del countdowns[pass_id]

    return {"now": to_iso(now), "passes": ticks}


@router.websocket("/visitor-passes/stream")
async def stream_countdowns(websocket: WebSocket, db: Session = Depends(get_db)):
    """
    Live countdowns for every active pass. The socket subscribes to the
    shared 1-second ticker while open and releases it on disconnect.
    """
    await websocket.accept()

    try:
        session = SessionStore(db).require()
    except NotAuthenticated as e:
        await websocket.close(code=4401, reason=e.message)
        return

    store = PassStore(db)
    countdowns: Dict[str, Countdown] = {}
    ticks: asyncio.Queue = asyncio.Queue(maxsize=1)

    def on_tick(now: datetime):
        # a slow client only ever sees the latest instant
        if ticks.full():
            ticks.get_nowait()
        ticks.put_nowait(now)

    ticker = websocket.app.state.countdown_ticker
    subscription = ticker.subscribe(on_tick)
    disconnected = asyncio.create_task(_wait_for_disconnect(websocket))
    logger.info(f"📡 Countdown stream opened ({ticker.subscriber_count} viewer(s))")

    try:
        # snapshots query the cache, so they run in the threadpool
        snapshot = await run_in_threadpool(_snapshot, store, session.building_id, countdowns, utcnow())
        await websocket.send_json(snapshot)
        while True:
            next_tick = asyncio.create_task(ticks.get())
            done, _ = await asyncio.wait({next_tick, disconnected}, return_when=asyncio.FIRST_COMPLETED)
            if disconnected in done:
                next_tick.cancel()
                break
            snapshot = await run_in_threadpool(_snapshot, store, session.building_id, countdowns, next_tick.result())
            await websocket.send_json(snapshot)
    finally:
        subscription.cancel()
        disconnected.cancel()
        logger.info("📡 Countdown stream closed")
