"""Process-wide chat state.

ChatState bundles the identity registry, moderation gate, room store and
subscription directory together with the ChatService that drives them.
Handlers receive it through ``Depends(get_chat_state)`` so tests can install
their own instance with ``set_chat_state`` or a dependency override.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from borderchat.config import AppConfig, get_config

from .identity import IdentityRegistry, RandomWordClient
from .moderation import ModerationGate
from .service import ChatService
from .store import RoomStore
from .subscriptions import SubscriptionDirectory

logger = logging.getLogger(__name__)


@dataclass
class ChatState:
    store: RoomStore
    identities: IdentityRegistry
    moderation: ModerationGate
    directory: SubscriptionDirectory
    service: ChatService

    @classmethod
    def from_config(cls, config: AppConfig) -> "ChatState":
        chat_cfg = config.chat
        naming_cfg = config.naming

        namer = None
        if naming_cfg.enabled:
            namer = RandomWordClient(
                url=naming_cfg.url,
                word_length=naming_cfg.word_length,
                timeout=naming_cfg.timeout_seconds,
            )
        else:
            logger.info("Naming service disabled; all usernames use the fallback format")

        store = RoomStore(history_limit=chat_cfg.history_limit, timezone=chat_cfg.timezone)
        identities = IdentityRegistry(namer)
        moderation = ModerationGate(config.moderation.banned_device_ids)
        directory = SubscriptionDirectory()
        service = ChatService(
            store=store,
            identities=identities,
            moderation=moderation,
            directory=directory,
            max_message_length=chat_cfg.max_message_length,
            max_device_id_length=chat_cfg.max_device_id_length,
            max_room_name_length=chat_cfg.max_room_name_length,
        )
        return cls(
            store=store,
            identities=identities,
            moderation=moderation,
            directory=directory,
            service=service,
        )


_state: Optional[ChatState] = None


def get_chat_state() -> ChatState:
    """Return the shared ChatState, building it from config on first use."""
    global _state
    if _state is None:
        _state = ChatState.from_config(get_config())
    return _state


def set_chat_state(state: Optional[ChatState]) -> None:
    global _state
    _state = state


def reset_chat_state() -> None:
    set_chat_state(None)
