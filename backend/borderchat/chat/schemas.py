"""Request, response and realtime payload schemas for the chat API."""
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, StrictStr


class ChatPostRequest(BaseModel):
    """Body of ``POST /api/chat/{room_name}``.

    Both fields are optional at the schema level so that a missing field
    surfaces as the specific 400 error for that field rather than a generic
    schema failure. Types are strict: a number is not a message.
    """
    message: Optional[StrictStr] = Field(default=None, description="Message text")
    deviceId: Optional[StrictStr] = Field(default=None, description="Opaque client device id")


class ChatHistoryResponse(BaseModel):
    chat: List[str] = Field(default_factory=list, description="Formatted lines, oldest first")


class ChatPostResponse(BaseModel):
    message: str = "Message sent successfully"


class SubscribeControl(BaseModel):
    """Realtime control message selecting the room to watch."""
    type: Literal["subscribe"]
    roomName: StrictStr = Field(..., min_length=1)


class RoomUpdate(BaseModel):
    """Push sent to subscribers after a successful post.

    Carries the full history snapshot of the room.
    """
    type: Literal["update"] = "update"
    roomName: str
    chat: List[str]
