"""Moderation admin API endpoints.

The chat write path only reads the banned set; these endpoints are how an
operator changes it at runtime. Bans do not survive a restart beyond the
``moderation.banned_device_ids`` seed list in the settings file.

Endpoints:
    GET    /api/moderation/bans              List banned device ids
    PUT    /api/moderation/bans/{device_id}  Ban a device
    DELETE /api/moderation/bans/{device_id}  Lift a ban

Every request must carry ``X-Admin-Token`` matching
``moderation.admin_token`` from borderchat.secrets.yaml.
"""
import hmac
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel, Field

from borderchat.chat.state import ChatState, get_chat_state
from borderchat.config import get_config

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/moderation", tags=["moderation"])


class BanListResponse(BaseModel):
    bannedDeviceIds: List[str] = Field(default_factory=list)


class BanStatusResponse(BaseModel):
    deviceId: str
    banned: bool


def require_admin_token(x_admin_token: Optional[str] = Header(None)) -> None:
    """Reject the request unless it carries the configured admin token."""
    expected = get_config().secrets.moderation.admin_token
    if not expected:
        raise HTTPException(status_code=503, detail="Moderation API is not configured")
    if not x_admin_token or not hmac.compare_digest(x_admin_token, expected):
        logger.warning("Rejected moderation request with missing or invalid admin token")
        raise HTTPException(status_code=401, detail="Invalid admin token")


@router.get("/bans", response_model=BanListResponse, dependencies=[Depends(require_admin_token)])
async def list_bans(state: ChatState = Depends(get_chat_state)) -> BanListResponse:
    """List banned device ids, sorted."""
    return BanListResponse(bannedDeviceIds=state.moderation.banned_device_ids())


@router.put(
    "/bans/{device_id}",
    response_model=BanStatusResponse,
    dependencies=[Depends(require_admin_token)],
)
async def ban_device(
    device_id: str,
    state: ChatState = Depends(get_chat_state),
) -> BanStatusResponse:
    """Ban a device. Banning an already banned device is a no-op."""
    state.moderation.ban(device_id)
    return BanStatusResponse(deviceId=device_id, banned=True)


@router.delete(
    "/bans/{device_id}",
    response_model=BanStatusResponse,
    dependencies=[Depends(require_admin_token)],
)
async def unban_device(
    device_id: str,
    state: ChatState = Depends(get_chat_state),
) -> BanStatusResponse:
    """Lift a ban. Unknown device ids are reported as not banned."""
    state.moderation.unban(device_id)
    return BanStatusResponse(deviceId=device_id, banned=False)
