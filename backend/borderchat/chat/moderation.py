"""Banned-device set consulted before any chat write."""
import logging
from typing import Iterable, List, Optional, Set

logger = logging.getLogger(__name__)


class ModerationGate:
    """Set of device ids denied write access.

    The write path only calls ``is_allowed``. ``ban`` and ``unban`` exist for
    the moderation admin API.
    """

    def __init__(self, banned_device_ids: Optional[Iterable[str]] = None) -> None:
        self._banned: Set[str] = set(banned_device_ids or ())

    def is_allowed(self, device_id: str) -> bool:
        return device_id not in self._banned

    def ban(self, device_id: str) -> None:
        self._banned.add(device_id)
        logger.info("Device %s banned", device_id)

    def unban(self, device_id: str) -> bool:
        """Lift a ban. Returns False if the device was not banned."""
        if device_id not in self._banned:
            return False
        self._banned.discard(device_id)
        logger.info("Device %s unbanned", device_id)
        return True

    def banned_device_ids(self) -> List[str]:
        return sorted(self._banned)
