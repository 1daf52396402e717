from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import ValidationError
from typing import Optional

from pharmacy_portal.db.database import get_async_session
from pharmacy_portal.api.dependencies.auth import get_current_active_user, get_current_user_from_token
from pharmacy_portal.api.dependencies.services import get_container, get_productivity_service
from pharmacy_portal.container import Container
from pharmacy_portal.core.exceptions import DataUnavailableError, UserNotFoundError
from pharmacy_portal.models.user import User
from pharmacy_portal.schemas.productivity import OverallProductivityResponse, ProductivityPage, UserProductivity
from pharmacy_portal.schemas.stream import StreamCommand, StreamEventType, StreamMessage
from pharmacy_portal.services.productivity_service import ProductivityService
from pharmacy_portal.services.stream_service import QueueTransport, WebSocketTransport, sse_event_stream
from pharmacy_portal.logs.server_log import api_logger

router = APIRouter(prefix="/productivity", tags=["productivity"])
ws_router = APIRouter(tags=["productivity"])

SSE_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}
CHANNELS = ("users", "overall")


def _unavailable(e: DataUnavailableError) -> HTTPException:
    api_logger.error(f"Productivity data unavailable: {str(e)}")
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Productivity data is temporarily unavailable"
    )


@router.get("/overall", response_model=OverallProductivityResponse)
async def get_overall_productivity(
    productivity: ProductivityService = Depends(get_productivity_service),
    _: User = Depends(get_current_active_user)
):
    """
    Team-wide metrics plus submission counts for the last 7 days
    """
    try:
        return await productivity.get_overall_with_chart()
    except DataUnavailableError as e:
        raise _unavailable(e)


@router.get("/users", response_model=ProductivityPage)
async def get_all_user_productivity(
    page: int = Query(0, ge=0),
    size: int = Query(10, ge=1, le=100),
    productivity: ProductivityService = Depends(get_productivity_service),
    _: User = Depends(get_current_active_user)
):
    """
    Per-user metrics ranked by number of submissions
    """
    try:
        return await productivity.get_all_user_productivity(page, size)
    except DataUnavailableError as e:
        raise _unavailable(e)


@router.get("/users/{username}", response_model=UserProductivity)
async def get_user_productivity(
    username: str,
    productivity: ProductivityService = Depends(get_productivity_service),
    _: User = Depends(get_current_active_user)
):
    try:
        return await productivity.get_user_productivity(username)
    except UserNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User {username} not found"
        )
    except DataUnavailableError as e:
        raise _unavailable(e)


async def _open_sse(container: Container, aggregate: bool) -> StreamingResponse:
    productivity = container.productivity_service
    settings = container.settings
    transport = QueueTransport(maxsize=settings.STREAM_QUEUE_SIZE)

    if aggregate:
        broadcaster = productivity.overall_broadcaster
        subscription = await productivity.open_aggregate_live_stream(transport)
    else:
        broadcaster = productivity.user_broadcaster
        subscription = await productivity.open_live_stream(transport)

    if subscription.closed:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Live stream is temporarily unavailable"
        )

    return StreamingResponse(
        sse_event_stream(broadcaster, subscription, transport, settings.STREAM_HEARTBEAT_SECONDS),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get("/stream")
async def stream_user_productivity(
    container: Container = Depends(get_container),
    _: User = Depends(get_current_active_user)
):
    """
    Server-sent events with the per-user productivity list.

    The first event carries the current list; a new one follows every
    PAC write. The stream closes after a period without updates.
    """
    return await _open_sse(container, aggregate=False)


@router.get("/overall/stream")
async def stream_overall_productivity(
    container: Container = Depends(get_container),
    _: User = Depends(get_current_active_user)
):
    """
    Server-sent events with the team-wide snapshot; stays open until the client leaves
    """
    return await _open_sse(container, aggregate=True)


@ws_router.websocket("/ws/productivity")
async def productivity_websocket(
    websocket: WebSocket,
    token: Optional[str] = None,
    channel: str = "users",
    db: AsyncSession = Depends(get_async_session)
):
    """
    WebSocket alternative to the SSE streams.

    Authentication is done via token query parameter:
    ws://example.com/api/v1/ws/productivity?token=your_access_token&channel=overall

    Commands from client:
    - {"command": "ping", "data": {}}
    """
    client_host = websocket.client.host if websocket.client else "unknown"

    try:
        user = await get_current_user_from_token(token=token, db=db)
    except HTTPException as he:
        api_logger.warning(f"WebSocket: Authentication failed from {client_host}: {he.detail}")
        await websocket.accept()
        error_message = StreamMessage(
            event=StreamEventType.ERROR,
            data={"message": "Authentication failed", "code": 401}
        )
        await websocket.send_text(error_message.model_dump_json())
        await websocket.close(code=1008)
        return

    await websocket.accept()

    if channel not in CHANNELS:
        error_message = StreamMessage(
            event=StreamEventType.ERROR,
            data={"message": f"Unknown channel: {channel}", "code": 400}
        )
        await websocket.send_text(error_message.model_dump_json())
        await websocket.close(code=1008)
        return

    productivity = get_productivity_service(websocket)
    transport = WebSocketTransport(websocket)
    if channel == "overall":
        broadcaster = productivity.overall_broadcaster
        subscription = await productivity.open_aggregate_live_stream(transport)
    else:
        broadcaster = productivity.user_broadcaster
        subscription = await productivity.open_live_stream(transport)

    if subscription.closed:
        return

    api_logger.info(f"WebSocket: User {user.username} subscribed to {channel} productivity from {client_host}")

    try:
        while True:
            data = await websocket.receive_text()
            try:
                command = StreamCommand.model_validate_json(data).command
            except ValidationError:
                command = None

            if command == "ping":
                reply = StreamMessage(event=StreamEventType.PONG, data={})
            else:
                reply = StreamMessage(
                    event=StreamEventType.ERROR,
                    data={"message": f"Unknown command: {command}", "code": 400}
                )
                api_logger.warning(f"WebSocket: User {user.username} sent unknown command: {command}")
            await websocket.send_text(reply.model_dump_json())

    except WebSocketDisconnect:
        api_logger.info(f"WebSocket: User {user.username} disconnected from {channel} productivity")
    except RuntimeError as e:
        # receive after the server closed an idle subscription
        api_logger.info(f"WebSocket: Connection for {user.username} closed: {str(e)}")
    finally:
        await broadcaster.unsubscribe(subscription, "disconnected")
