"""API routes for the alert log and the live alert stream.

``GET /api/alerts`` is the polling interface: newest first, limited to the
most recent 10 by default. ``/api/alerts/stream`` is a WebSocket pushing each
new alert of the account as JSON the moment it is committed.
"""

import asyncio
import contextlib

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import AsyncSession

from homefence.api.dependencies import (
    get_alert_broadcaster_dep,
    get_settings_dep,
    require_admin_account,
)
from homefence.api.schemas.alert import AlertResponse
from homefence.core.config import Settings
from homefence.core.database import get_db, get_session
from homefence.core.exceptions import AuthenticationError
from homefence.core.logging import get_logger
from homefence.models import Account
from homefence.repositories import AlertRepository
from homefence.services.accounts import authenticate
from homefence.services.alert_broadcaster import AlertBroadcaster

logger = get_logger(__name__)

router = APIRouter(prefix="/api/alerts", tags=["alerts"])


@router.get("", response_model=list[AlertResponse])
async def list_alerts(
    limit: int | None = Query(None, ge=1, description="Maximum number of alerts to return"),
    member_id: str | None = Query(None, description="Only alerts of this member"),
    account: Account = Depends(require_admin_account),
    settings: Settings = Depends(get_settings_dep),
    db: AsyncSession = Depends(get_db),
) -> list[AlertResponse]:
    """List the account's alerts, most recent first.

    ``limit`` defaults to the configured default (10) and is capped at the
    configured maximum (100).
    """
    if limit is None:
        limit = settings.alert_list_default_limit
    limit = min(limit, settings.alert_list_max_limit)

    alerts = await AlertRepository(db).list_recent(account.id, limit=limit, member_id=member_id)
    return [AlertResponse.model_validate(a) for a in alerts]


@router.websocket("/stream")
async def alert_stream(
    websocket: WebSocket,
    token: str | None = Query(None, description="Admin API key"),
    broadcaster: AlertBroadcaster = Depends(get_alert_broadcaster_dep),
) -> None:
    """Push the account's new alerts over a WebSocket.

    Browsers cannot set an Authorization header on WebSockets, so the admin
    key is passed as the ``token`` query parameter. The server sends one JSON
    object per alert; a client text message ``ping`` is answered with
    ``pong``.
    """
    try:
        async with get_session() as session:
            account = await authenticate(session, token)
    except AuthenticationError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    queue = broadcaster.subscribe(account.id)

    async def forward_alerts() -> None:
        while True:
            payload = await queue.get()
            await websocket.send_json(payload)

    sender = asyncio.create_task(forward_alerts())
    try:
        while True:
            message = await websocket.receive_text()
            if message == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        logger.debug(f"Alert stream closed for account {account.id}")
    finally:
        sender.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sender
        broadcaster.unsubscribe(account.id, queue)
