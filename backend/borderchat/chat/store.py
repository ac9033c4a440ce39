"""In-memory room store with bounded, FIFO-evicted history.

Each room keeps an ordered list of preformatted lines of the form
``"<username> @ <HH:MM>: <text>"``. Rooms are created lazily on first read
or write and live for the lifetime of the process.

Concurrency:
    All mutation happens inside plain (non-async) methods, so an append and
    its eviction run as one step on the event loop. Two concurrent posts to
    the same room can never interleave their trims.
"""
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 100


def sanitize_html(text: str) -> str:
    """Escape angle brackets. Nothing else is touched."""
    return text.replace("<", "&lt;").replace(">", "&gt;")


def format_time(tz_name: str, now: Optional[datetime] = None) -> str:
    """Render ``now`` (default: current time) as HH:MM in the given zone."""
    tz = ZoneInfo(tz_name)
    moment = now.astimezone(tz) if now is not None else datetime.now(tz)
    return moment.strftime("%H:%M")


def format_message(username: str, text: str, tz_name: str, now: Optional[datetime] = None) -> str:
    """Build the stored line for a post. ``text`` is sanitized here."""
    return f"{username} @ {format_time(tz_name, now)}: {sanitize_html(text)}"


class RoomStore:
    """Per-room ordered message log capped at ``history_limit`` entries."""

    def __init__(
        self,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        timezone: str = "Asia/Brunei",
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        if history_limit < 1:
            raise ValueError("history_limit must be at least 1")
        self.history_limit = history_limit
        self.timezone = timezone
        self._clock = clock
        # room_name -> formatted lines, oldest first
        self._rooms: Dict[str, List[str]] = {}

    def get_history(self, room_name: str) -> List[str]:
        """Return a copy of the room's history, materializing it if unseen."""
        return list(self._rooms.setdefault(room_name, []))

    def append(self, room_name: str, line: str) -> List[str]:
        """Append ``line`` and evict the oldest entries beyond the cap.

        Returns a snapshot of the room's history after the append.
        """
        history = self._rooms.setdefault(room_name, [])
        history.append(line)
        overflow = len(history) - self.history_limit
        if overflow > 0:
            del history[:overflow]
            logger.debug("Evicted %d message(s) from room %s", overflow, room_name)
        return list(history)

    def add_message(self, room_name: str, username: str, text: str) -> str:
        """Format a post and append it. Returns the stored line."""
        now = self._clock() if self._clock is not None else None
        line = format_message(username, text, self.timezone, now)
        self.append(room_name, line)
        return line

    def message_count(self, room_name: str) -> int:
        return len(self._rooms.get(room_name, []))
