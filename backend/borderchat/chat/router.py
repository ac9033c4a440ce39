"""Chat router providing HTTP and WebSocket endpoints.

This module provides:
    - GET  /api/chat/{room_name}: Room history
    - POST /api/chat/{room_name}: Post a message to a room
    - WebSocket /ws/chat: Live updates, room chosen with a subscribe message
    - WebSocket /ws/chat/{room_name}: Live updates, subscribed on connect

Realtime Protocol:
    Client -> server:
        {type: "subscribe", roomName}   watch a room (replaces any previous room)
        {type: "unsubscribe"}           stop watching
    Server -> client:
        {type: "subscribed", roomName}  subscribe acknowledged
        {type: "unsubscribed"}          unsubscribe acknowledged
        {type: "update", roomName, chat: [...]}  full room history after a post
        {type: "error", error}          malformed control message or binary frame
"""
import json
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .errors import ChatError, MessageValidationError
from .schemas import ChatHistoryResponse, ChatPostRequest, ChatPostResponse, SubscribeControl
from .state import ChatState, get_chat_state
from .subscriptions import ConnectionState, Subscriber

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


def _error_response(error: ChatError) -> JSONResponse:
    return JSONResponse({"error": error.message}, status_code=error.status_code)


def _parse_post_body(payload: Any, state: ChatState) -> ChatPostRequest:
    """Validate the POST body, naming the first bad field in check order."""
    try:
        return ChatPostRequest.model_validate(payload)
    except ValidationError as e:
        bad_fields = {err["loc"][0] for err in e.errors() if err.get("loc")}
        if "deviceId" in bad_fields and "message" not in bad_fields:
            # the message check still comes first
            state.service.validate_message(payload.get("message"))
            raise MessageValidationError("Invalid or missing deviceId")
        raise MessageValidationError("Invalid or missing message")


# =============================================================================
# HTTP endpoints
# =============================================================================


@router.api_route("/api/chat", methods=["GET", "POST"], include_in_schema=False)
@router.api_route("/api/chat/", methods=["GET", "POST"], include_in_schema=False)
async def missing_room_name() -> JSONResponse:
    """Requests without a room segment."""
    return _error_response(MessageValidationError("Room name is required"))


@router.get("/api/chat/{room_name}", response_model=ChatHistoryResponse)
async def get_chat_history(
    room_name: str,
    state: ChatState = Depends(get_chat_state),
):
    """Get the stored history for a room.

    Unseen rooms return an empty list.

    Example:
        GET /api/chat/north -> {"chat": ["amber @ 14:02: hi"]}
    """
    try:
        history = state.service.get_history(room_name)
    except ChatError as e:
        return _error_response(e)
    return ChatHistoryResponse(chat=history)


@router.post("/api/chat/{room_name}", status_code=201, response_model=ChatPostResponse)
async def post_chat_message(
    room_name: str,
    request: Request,
    state: ChatState = Depends(get_chat_state),
):
    """Post a message to a room and push the new history to its subscribers.

    Body:
        {"message": str, "deviceId": str}

    Returns:
        201 {"message": "Message sent successfully"} on success.
        400 for a bad room name, message or deviceId; 403 for a banned device;
        500 for anything unexpected (details are only logged).
    """
    try:
        state.service.validate_room_name(room_name)
        try:
            payload = await request.json()
        except ValueError:
            payload = None
        body = _parse_post_body(payload, state)
        await state.service.post_message(room_name, body.message, body.deviceId)
    except ChatError as e:
        return _error_response(e)
    except Exception:
        logger.exception("Error in chat post to room %s", room_name)
        return JSONResponse({"error": "Internal server error"}, status_code=500)

    return ChatPostResponse()


# =============================================================================
# WebSocket endpoints
# =============================================================================


async def _subscribe(subscriber: Subscriber, room_name: Any, state: ChatState) -> bool:
    try:
        room_name = state.service.validate_room_name(room_name)
    except ChatError as e:
        await subscriber.send({"type": "error", "error": e.message})
        return False
    state.directory.subscribe(subscriber, room_name)
    await subscriber.send({"type": "subscribed", "roomName": room_name})
    logger.info(
        "[WS] Subscriber %s watching room %s (%d watching)",
        subscriber.id, room_name, state.directory.subscriber_count(room_name),
    )
    return True


async def _handle_control(subscriber: Subscriber, raw: str, state: ChatState) -> None:
    if subscriber.state is ConnectionState.DISCONNECTED:
        # dropped by fan-out; the socket is already closed
        return
    try:
        data = json.loads(raw)
    except ValueError:
        await subscriber.send({"type": "error", "error": "Invalid JSON"})
        return
    message_type = data.get("type") if isinstance(data, dict) else None

    if message_type == "subscribe":
        try:
            control = SubscribeControl.model_validate(data)
        except ValidationError:
            await subscriber.send({
                "type": "error",
                "error": "Invalid subscribe message: roomName is required",
            })
            return
        await _subscribe(subscriber, control.roomName, state)
        return

    if message_type == "unsubscribe":
        state.directory.unsubscribe(subscriber)
        await subscriber.send({"type": "unsubscribed"})
        return

    await subscriber.send({"type": "error", "error": f"Unknown message type: {message_type}"})


async def _serve(
    websocket: WebSocket,
    state: ChatState,
    room_name: Optional[str] = None,
) -> None:
    """Run one connection from accept to disconnect."""
    await websocket.accept()
    subscriber = state.directory.register(websocket)
    logger.info("[WS] New connection %s", subscriber.id)

    try:
        if room_name is not None:
            if not await _subscribe(subscriber, room_name, state):
                await websocket.close(code=1008)  # 1008 = Policy Violation
                return

        while subscriber.state is not ConnectionState.DISCONNECTED:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            raw = message.get("text")
            if raw is None:
                await subscriber.send({"type": "error", "error": "Binary frames are not supported"})
                continue
            await _handle_control(subscriber, raw, state)
    except WebSocketDisconnect:
        logger.info("[WS] Connection %s closed", subscriber.id)
    finally:
        state.directory.disconnect(subscriber)


@router.websocket("/ws/chat")
async def chat_updates(
    websocket: WebSocket,
    state: ChatState = Depends(get_chat_state),
) -> None:
    """Live updates for whichever room the client subscribes to."""
    await _serve(websocket, state)


@router.websocket("/ws/chat/{room_name}")
async def room_updates(
    websocket: WebSocket,
    room_name: str,
    state: ChatState = Depends(get_chat_state),
) -> None:
    """Live updates for ``room_name``; the client is subscribed on connect."""
    await _serve(websocket, state, room_name=room_name)
