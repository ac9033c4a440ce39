"""Borderchat Backend Application.

This is the main entry point for the borderchat relay: clients post short
messages to a named room (a border checkpoint) and every WebSocket watching
that room receives the updated history.

Modules:
    - chat: room store, identity registry, moderation gate, live fan-out
    - moderation: admin API over the banned-device set

All state is in memory and lost on restart.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from borderchat import __version__
from borderchat.chat.router import router as chat_router
from borderchat.chat.state import ChatState, set_chat_state
from borderchat.config import get_config
from borderchat.moderation.router import router as moderation_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# httpx/httpcore log every connection to the naming service.
for _noisy in ("httpx", "httpcore", "httpcore.http11", "httpcore.connection"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    config = get_config()

    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    set_chat_state(ChatState.from_config(config))
    logger.info(
        "Chat state ready (history_limit=%d, max_message_length=%d, timezone=%s, banned=%d)",
        config.chat.history_limit,
        config.chat.max_message_length,
        config.chat.timezone,
        len(config.moderation.banned_device_ids),
    )

    yield  # Application runs here

    set_chat_state(None)
    logger.info("Application shutdown complete")


app = FastAPI(
    title="Borderchat API",
    description="Room-scoped realtime chat relay",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(chat_router)
app.include_router(moderation_router)


@app.get("/health")
async def health() -> dict:
    """Health check endpoint.

    Returns:
        dict: Status object indicating the server is running.
    """
    return {"status": "ok"}
