"""Chat write path and history reads.

A post moves through RECEIVED -> VALIDATED -> AUTHORIZED -> IDENTIFIED ->
STORED -> BROADCAST and stops at the first failing step. Checks run in a
fixed order, so when several inputs are bad the earliest check decides the
error:

    1. room name present
    2. message non-empty after trimming
    3. message within the length cap
    4. device id well-formed
    5. device not banned
    6. username resolved
    7. line appended (with eviction)
    8. room update published

A post rejected at steps 1-5 leaves no trace: no message, no username
binding and no update. Reads accept any non-empty room name;
reading an unseen room creates it empty.
"""
import logging
from typing import Any, List

from .errors import DeviceBannedError, MessageValidationError
from .identity import IdentityRegistry
from .moderation import ModerationGate
from .schemas import RoomUpdate
from .store import RoomStore
from .subscriptions import SubscriptionDirectory

logger = logging.getLogger(__name__)

DEFAULT_MAX_MESSAGE_LENGTH = 50
DEFAULT_MAX_DEVICE_ID_LENGTH = 128
DEFAULT_MAX_ROOM_NAME_LENGTH = 100


class ChatService:
    """Coordinates moderation, identity, storage and fan-out for one process."""

    def __init__(
        self,
        store: RoomStore,
        identities: IdentityRegistry,
        moderation: ModerationGate,
        directory: SubscriptionDirectory,
        max_message_length: int = DEFAULT_MAX_MESSAGE_LENGTH,
        max_device_id_length: int = DEFAULT_MAX_DEVICE_ID_LENGTH,
        max_room_name_length: int = DEFAULT_MAX_ROOM_NAME_LENGTH,
    ) -> None:
        self.store = store
        self.identities = identities
        self.moderation = moderation
        self.directory = directory
        self.max_message_length = max_message_length
        self.max_device_id_length = max_device_id_length
        self.max_room_name_length = max_room_name_length

    # =========================================================================
    # Validation
    # =========================================================================

    def validate_room_name(self, room_name: Any) -> str:
        if not isinstance(room_name, str) or not room_name.strip():
            raise MessageValidationError("Room name is required")
        if len(room_name) > self.max_room_name_length:
            raise MessageValidationError("Room name too long")
        return room_name

    def validate_message(self, message: Any) -> str:
        if not isinstance(message, str) or not message.strip():
            raise MessageValidationError("Invalid or missing message")
        if len(message) > self.max_message_length:
            raise MessageValidationError("Message too long")
        return message

    def validate_device_id(self, device_id: Any) -> str:
        if (
            not isinstance(device_id, str)
            or not device_id.strip()
            or len(device_id) > self.max_device_id_length
        ):
            raise MessageValidationError("Invalid or missing deviceId")
        return device_id

    # =========================================================================
    # Operations
    # =========================================================================

    def get_history(self, room_name: Any) -> List[str]:
        """Return the room's history. Unseen rooms come back empty.

        Only a missing room name is rejected; the write-path rules for blank
        or overlong names do not apply to reads.
        """
        if not isinstance(room_name, str) or not room_name:
            raise MessageValidationError("Room name is required")
        return self.store.get_history(room_name)

    async def post_message(self, room_name: Any, message: Any, device_id: Any) -> str:
        """Run the full write path for one post.

        Returns:
            The formatted line that was stored.

        Raises:
            MessageValidationError: Bad room name, message or device id.
            DeviceBannedError: The device is banned.
        """
        room_name = self.validate_room_name(room_name)
        message = self.validate_message(message)
        device_id = self.validate_device_id(device_id)

        if not self.moderation.is_allowed(device_id):
            logger.warning("Rejected post from banned device %s to room %s", device_id, room_name)
            raise DeviceBannedError()

        username = await self.identities.resolve_username(device_id)

        line = self.store.add_message(room_name, username, message)

        update = RoomUpdate(roomName=room_name, chat=self.store.get_history(room_name))
        delivered = await self.directory.publish(room_name, update.model_dump())

        logger.info(
            "Post from %s stored in room %s (delivered to %d subscriber(s))",
            username, room_name, delivered,
        )
        return line
