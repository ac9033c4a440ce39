"""Device-to-username binding.

A device id is bound to a display name the first time it posts. The name
comes from an external random-word service; when that call fails, or the
word is already taken, a deterministic fallback of the form
``user_<first 3 chars of device id><last 4 digits of epoch ms>`` is used.
The fallback is accepted even if it collides, so resolution always succeeds.

Usage:
    registry = IdentityRegistry(RandomWordClient(url, word_length=5))
    username = await registry.resolve_username("abc123")
"""
import logging
import time
from typing import Callable, Dict, Optional, Set

import httpx

from .errors import NamingServiceError

logger = logging.getLogger(__name__)


class RandomWordClient:
    """Fetches a single random word from the naming service."""

    def __init__(
        self,
        url: str,
        word_length: int = 5,
        timeout: Optional[float] = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url = url
        self.word_length = word_length
        self.timeout = timeout
        self._transport = transport

    async def fetch_word(self) -> str:
        """Return one word.

        Raises:
            NamingServiceError: On transport errors, non-2xx responses, or a
                body that is not a non-empty JSON list of strings.
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.get(self.url, params={"length": self.word_length})
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise NamingServiceError(f"Naming service request failed: {exc}") from exc

        if not isinstance(data, list) or not data:
            raise NamingServiceError(f"Unexpected naming service payload: {data!r}")
        word = data[0]
        if not isinstance(word, str) or not word.strip():
            raise NamingServiceError(f"Unexpected naming service word: {word!r}")
        return word.strip()


class IdentityRegistry:
    """Maps device ids to usernames and tracks the names in use.

    Attributes:
        usernames: device_id -> username. Entries are never removed.
        active_usernames: every name handed out so far. Only grows.
    """

    def __init__(
        self,
        namer: Optional[RandomWordClient] = None,
        clock_ms: Optional[Callable[[], int]] = None,
    ) -> None:
        self.namer = namer
        self._clock_ms = clock_ms or (lambda: int(time.time() * 1000))
        self.usernames: Dict[str, str] = {}
        self.active_usernames: Set[str] = set()

    def lookup(self, device_id: str) -> Optional[str]:
        return self.usernames.get(device_id)

    def fallback_username(self, device_id: str) -> str:
        stamp = str(self._clock_ms())[-4:]
        return f"user_{device_id[:3]}{stamp}"

    async def resolve_username(self, device_id: str) -> str:
        """Return the username bound to ``device_id``, creating one if needed.

        Never raises for naming-service problems.
        """
        existing = self.usernames.get(device_id)
        if existing is not None:
            return existing

        candidate = await self._generate(device_id)

        # Another request for the same device may have bound a name while we
        # were waiting on the naming service; the first binding stays.
        existing = self.usernames.get(device_id)
        if existing is not None:
            logger.info(
                "Device %s was bound to %s during generation; discarding %s",
                device_id, existing, candidate,
            )
            return existing

        self.usernames[device_id] = candidate
        self.active_usernames.add(candidate)
        logger.info("Bound device %s to username %s", device_id, candidate)
        return candidate

    async def _generate(self, device_id: str) -> str:
        if self.namer is not None:
            try:
                word = await self.namer.fetch_word()
            except NamingServiceError as e:
                logger.warning("Username generation failed for %s: %s", device_id, e)
            else:
                if word not in self.active_usernames:
                    return word
                logger.info("Generated username %s already in use", word)

        fallback = self.fallback_username(device_id)
        if fallback in self.active_usernames:
            logger.warning("Fallback username %s collides with an active name", fallback)
        return fallback
