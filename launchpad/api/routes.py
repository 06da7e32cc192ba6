import asyncio
import logging
from typing import Optional

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    Query,
    WebSocket,
    WebSocketDisconnect,
    status,
)

from launchpad.api.ai.gateway import AIGateway, get_gateway
from launchpad.api.auth import get_current_viewer, resolve_viewer
from launchpad.api.schemas import (
    AIMessageIn,
    ChatMessageIn,
    FieldSuggestionIn,
    MarkReadIn,
    OfferIn,
    OfferResponseIn,
    PitchSessionCreate,
    StartChatIn,
    StartupCreate,
)
from launchpad.database.database import db_session
from launchpad.database.models import Profile
from launchpad.exceptions import LaunchPadError
from launchpad.marketplace import startups as startup_service
from launchpad.marketplace.dashboard import dashboard
from launchpad.marketplace.leaderboard import leaderboard
from launchpad.marketplace.offers import make_offer, respond_to_offer
from launchpad.messaging.bridge import DirectMessagingBridge
from launchpad.notifications.realtime import queue_forwarder
from launchpad.pitch_rooms.session import PitchRoomSession

logger = logging.getLogger(__name__)

router = APIRouter()


# ──────────────────────────────────────────────────────────────────────────────
#  Startups / leaderboard / dashboard
# ──────────────────────────────────────────────────────────────────────────────
@router.post("/startups", status_code=status.HTTP_201_CREATED, summary="Create a startup")
def create_startup(body: StartupCreate, viewer: Profile = Depends(get_current_viewer)):
    """
    Creates an active startup owned by the calling founder.

    - **current_valuation**: optional; derived from `funding_ask` and
      `equity_offered` when omitted.
    """
    return startup_service.create_startup(viewer, body.model_dump())


@router.get("/startups")
def browse_startups(search: Optional[str] = None, sort: str = "newest"):
    return startup_service.browse_startups(search, sort)


@router.get("/startups/{startup_id}")
def get_startup(startup_id: str):
    return startup_service.get_startup(startup_id)


@router.post("/startups/suggest")
async def suggest_field(
    body: FieldSuggestionIn,
    viewer: Profile = Depends(get_current_viewer),
    gateway: AIGateway = Depends(get_gateway),
):
    suggestion = await startup_service.suggest_field(body.name, body.field, body.details, gateway)
    return {"field": body.field, "suggestion": suggestion}


@router.get("/leaderboard")
def get_leaderboard(tab: str = "invested"):
    return leaderboard(tab)


@router.get("/dashboard")
def get_dashboard(viewer: Profile = Depends(get_current_viewer)):
    return dashboard(viewer)


# ──────────────────────────────────────────────────────────────────────────────
#  Investments
# ──────────────────────────────────────────────────────────────────────────────
@router.post("/investments", status_code=status.HTTP_201_CREATED)
def create_offer(body: OfferIn, viewer: Profile = Depends(get_current_viewer)):
    return make_offer(viewer, body.startup_id, body.amount, body.message)


@router.post("/investments/{investment_id}/respond")
def answer_offer(investment_id: str, body: OfferResponseIn, viewer: Profile = Depends(get_current_viewer)):
    return respond_to_offer(viewer, investment_id, body.accept)


# ──────────────────────────────────────────────────────────────────────────────
#  Pitch sessions
# ──────────────────────────────────────────────────────────────────────────────
@router.get("/pitch-sessions")
def list_pitch_sessions():
    return startup_service.list_active_sessions()


@router.post("/pitch-sessions", status_code=status.HTTP_201_CREATED)
def create_pitch_session(body: PitchSessionCreate, viewer: Profile = Depends(get_current_viewer)):
    return startup_service.create_pitch_session(viewer, **body.model_dump())


@router.get("/pitch-sessions/{session_id}/messages")
async def pitch_session_messages(session_id: str, viewer: Profile = Depends(get_current_viewer)):
    room = PitchRoomSession(viewer)
    return await room.join(session_id, subscribe=False)


@router.post("/pitch-sessions/{session_id}/messages", status_code=status.HTTP_201_CREATED)
async def post_pitch_message(
    session_id: str,
    body: ChatMessageIn,
    background_tasks: BackgroundTasks,
    viewer: Profile = Depends(get_current_viewer),
    gateway: AIGateway = Depends(get_gateway),
):
    room = PitchRoomSession(viewer, gateway=gateway)
    await room.join(session_id, subscribe=False)
    row = await room.send_message(body.message, schedule_reply=False)
    background_tasks.add_task(room.reply_after_delay, row)
    return row


@router.post("/pitch-sessions/{session_id}/ai", status_code=status.HTTP_201_CREATED)
async def post_ai_message(
    session_id: str,
    body: AIMessageIn,
    viewer: Profile = Depends(get_current_viewer),
    gateway: AIGateway = Depends(get_gateway),
):
    room = PitchRoomSession(viewer, gateway=gateway)
    await room.join(session_id, subscribe=False)
    return await room.send_ai_message(body.provider)


@router.websocket("/pitch-sessions/{session_id}/ws")
async def pitch_session_socket(
    websocket: WebSocket,
    session_id: str,
    token: Optional[str] = Query(None),
    gateway: AIGateway = Depends(get_gateway),
):
    """
    Live pitch room. Sends ``{"type": "history"}`` once, then one
    ``{"type": "message"}`` per new row; accepts ``{"message": text}``.
    """
    await websocket.accept()
    try:
        with db_session() as db:
            viewer = resolve_viewer(db, token)
    except LaunchPadError as exc:
        await websocket.send_json({"type": "error", "detail": exc.message, "code": exc.code})
        await websocket.close(code=4401)
        return

    loop = asyncio.get_running_loop()
    outbox: asyncio.Queue = asyncio.Queue()
    room = PitchRoomSession(
        viewer,
        gateway=gateway,
        on_message=queue_forwarder(outbox, loop),
    )
    try:
        history = await room.join(session_id)
    except LaunchPadError as exc:
        await websocket.send_json({"type": "error", "detail": exc.message, "code": exc.code})
        await websocket.close(code=4404)
        return
    await websocket.send_json({"type": "history", "messages": history})

    async def pump_out():
        while True:
            row = await outbox.get()
            await websocket.send_json({"type": "message", "message": row})

    async def pump_in():
        while True:
            payload = await websocket.receive_json()
            if not isinstance(payload, dict):
                await websocket.send_json(
                    {"type": "error", "detail": "Expected a JSON object", "code": "INVALID_INPUT"}
                )
                continue
            try:
                await room.send_message(payload.get("message", ""))
            except LaunchPadError as exc:
                await websocket.send_json({"type": "error", "detail": exc.message, "code": exc.code})

    tasks = [asyncio.create_task(pump_out()), asyncio.create_task(pump_in())]
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            exc = task.exception()
            if exc and not isinstance(exc, WebSocketDisconnect):
                logger.error("Pitch room socket error in %s: %s", session_id, exc)
    finally:
        for task in tasks:
            task.cancel()
        room.leave()
        logger.info("Viewer %s left pitch session %s", viewer.user_id, session_id)


# ──────────────────────────────────────────────────────────────────────────────
#  Direct messages / notifications
# ──────────────────────────────────────────────────────────────────────────────
@router.get("/messages")
def list_conversations(viewer: Profile = Depends(get_current_viewer)):
    return DirectMessagingBridge(viewer).list_conversations()


@router.post("/messages/start", status_code=status.HTTP_201_CREATED)
def start_chat(body: StartChatIn, viewer: Profile = Depends(get_current_viewer)):
    return DirectMessagingBridge(viewer).start_chat(body.founder_id)


@router.get("/messages/{founder_id}")
def load_conversation(founder_id: str, viewer: Profile = Depends(get_current_viewer)):
    return DirectMessagingBridge(viewer).load_conversation(founder_id)


@router.post("/messages/{founder_id}", status_code=status.HTTP_201_CREATED)
async def send_direct_message(founder_id: str, body: ChatMessageIn, viewer: Profile = Depends(get_current_viewer)):
    return DirectMessagingBridge(viewer).send_message(founder_id, body.message)


@router.get("/notifications")
def list_notifications(unread_only: bool = False, viewer: Profile = Depends(get_current_viewer)):
    return DirectMessagingBridge(viewer).notifications(unread_only)


@router.post("/notifications/read")
def mark_notifications_read(body: MarkReadIn, viewer: Profile = Depends(get_current_viewer)):
    return {"updated": DirectMessagingBridge(viewer).mark_notifications_read(body.pitch_session_id)}
