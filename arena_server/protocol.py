"""Wire format helpers: every frame is a JSON object ``{"type": ..., "data": {...}}``."""

import asyncio
import json
import logging

from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

from battle_errors import InvalidMessage

logger = logging.getLogger(__name__)

# Seconds before a pending send is dropped
SEND_TIMEOUT = 5.0


def is_open(websocket) -> bool:
    """True while the transport can still carry frames."""
    protocol = getattr(websocket, "protocol", None)
    return protocol is not None and protocol.state is State.OPEN


def encode_message(msg_type: str, data: dict | None = None) -> str:
    return json.dumps({"type": msg_type, "data": data or {}})


def parse_message(raw) -> tuple[str, dict]:
    """Decode a client frame into (type, data)."""
    try:
        message = json.loads(raw)
    except (TypeError, ValueError):
        raise InvalidMessage()

    if not isinstance(message, dict) or not isinstance(message.get("type"), str):
        raise InvalidMessage()

    data = message.get("data")
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise InvalidMessage("Message data must be an object")
    return message["type"], data


async def send_raw(websocket, text: str) -> bool:
    """Send an encoded frame. Returns False if the transport is gone or too slow."""
    if not is_open(websocket):
        return False
    try:
        await asyncio.wait_for(websocket.send(text), SEND_TIMEOUT)
        return True
    except ConnectionClosed:
        logger.info("Dropped frame for closed connection")
    except asyncio.TimeoutError:
        logger.warning("Dropped frame for slow connection")
    return False


async def send_message(websocket, msg_type: str, data: dict | None = None) -> bool:
    return await send_raw(websocket, encode_message(msg_type, data))
