"""Network client for card arena battles."""

import json
import logging
import threading
from enum import Enum
from queue import Queue, Empty

from websockets.sync.client import connect
from websockets.exceptions import ConnectionClosed

logger = logging.getLogger(__name__)


class EventType(Enum):
    AUTHENTICATED = "authenticated"
    QUEUE_JOINED = "queue_joined"
    QUEUE_LEFT = "queue_left"
    BATTLE_FOUND = "battle_found"
    BATTLE_REJOINED = "battle_rejoined"
    BATTLE_ACTION = "battle_action"
    TURN_CHANGED = "turn_changed"
    OPPONENT_DISCONNECTED = "opponent_disconnected"
    BATTLE_ENDED = "battle_ended"
    ERROR = "error"
    UNKNOWN = "unknown"


class ServerEvent:
    """One frame received from the server."""

    def __init__(self, event_type: EventType, data: dict, raw_type: str | None = None):
        self.type = event_type
        self.data = data
        self.raw_type = raw_type or event_type.value

    def __repr__(self) -> str:
        return f"ServerEvent({self.type.name})"


def parse_event(message: dict) -> ServerEvent:
    raw_type = message.get("type")
    data = message.get("data") or {}
    try:
        event_type = EventType(raw_type)
    except ValueError:
        event_type = EventType.UNKNOWN
    return ServerEvent(event_type, data, raw_type)


class NetworkClient:
    """Handles the WebSocket connection to the battle server.

    Frames are read and written on background threads. Call
    ``process_messages()`` from your own loop to get the events received
    since the last call; the client keeps its own view of the battle up to
    date as it hands them out.
    """

    def __init__(self, server_url: str = "ws://localhost:8765"):
        self.server_url = server_url
        self.websocket = None
        self.connected = False
        self.authenticated = False
        self.player_id = None
        self.username = None

        # Battle view
        self.in_queue = False
        self.room_id = None
        self.side = None
        self.game_state = None
        self.last_error = None

        # Message queues
        self.incoming_queue = Queue()
        self.outgoing_queue = Queue()

        # Threading
        self._receive_thread = None
        self._send_thread = None
        self._running = False

    def connect(self) -> bool:
        """Connect to the server."""
        try:
            self.websocket = connect(self.server_url)
        except (OSError, ConnectionClosed) as e:
            logger.warning("Connection failed: %s", e)
            return False

        self.connected = True
        self._running = True

        self._receive_thread = threading.Thread(target=self._receive_loop, daemon=True)
        self._receive_thread.start()

        self._send_thread = threading.Thread(target=self._send_loop, daemon=True)
        self._send_thread.start()
        return True

    def disconnect(self):
        """Disconnect from server."""
        self._running = False
        if self.websocket:
            self.websocket.close()
        self.connected = False
        self.authenticated = False

    def _receive_loop(self):
        """Background thread to receive messages."""
        while self._running and self.websocket:
            try:
                message = self.websocket.recv(timeout=0.1)
                self.incoming_queue.put(json.loads(message))
            except TimeoutError:
                continue
            except ConnectionClosed:
                self.connected = False
                break
            except ValueError as e:
                logger.warning("Ignoring malformed frame: %s", e)

    def _send_loop(self):
        """Background thread to send messages."""
        while self._running and self.websocket:
            try:
                message = self.outgoing_queue.get(timeout=0.1)
                self.websocket.send(json.dumps(message))
            except Empty:
                continue
            except ConnectionClosed:
                self.connected = False
                break

    def send(self, msg_type: str, data: dict | None = None):
        """Queue a message to send."""
        self.outgoing_queue.put({"type": msg_type, "data": data or {}})

    def process_messages(self) -> list[ServerEvent]:
        """Drain pending frames. Call this in your game loop."""
        events = []
        while True:
            try:
                message = self.incoming_queue.get_nowait()
            except Empty:
                break
            event = parse_event(message)
            self.apply_event(event)
            events.append(event)
        return events

    def apply_event(self, event: ServerEvent):
        """Update the local view of the session from a server event."""
        data = event.data

        if event.type is EventType.AUTHENTICATED:
            self.authenticated = True
            self.player_id = data.get("playerId")
            self.username = data.get("username")

        elif event.type is EventType.QUEUE_JOINED:
            self.in_queue = True

        elif event.type is EventType.QUEUE_LEFT:
            self.in_queue = False

        elif event.type in (EventType.BATTLE_FOUND, EventType.BATTLE_REJOINED):
            self.in_queue = False
            self.room_id = data.get("roomId")
            self.side = data.get("yourSide")
            self.game_state = data.get("gameState")

        elif event.type in (EventType.BATTLE_ACTION, EventType.TURN_CHANGED):
            self.game_state = data.get("gameState", self.game_state)

        elif event.type is EventType.BATTLE_ENDED:
            self.game_state = data.get("gameState", self.game_state)
            self.room_id = None

        elif event.type is EventType.ERROR:
            self.last_error = data.get("message", "Unknown error")

    @property
    def is_my_turn(self) -> bool:
        if not self.game_state or self.side is None:
            return False
        return self.game_state.get("status") == "active" and self.game_state.get("currentTurn") == self.side

    # ==================== API Methods ====================

    def authenticate(self, player_id: int):
        self.send("authenticate", {"playerId": player_id})

    def join_queue(self):
        """Start matchmaking."""
        self.send("join_queue")

    def leave_queue(self):
        """Cancel matchmaking."""
        self.send("leave_queue")

    # ==================== Battle Actions ====================

    def play_card(self, instance_id: str, target_id: str | None = None):
        """Play a card from hand, optionally at a creature or a side's hero."""
        self.send("battle_action", {"action": "play_card", "cardId": instance_id, "targetId": target_id})

    def attack(self, attacker_id: str, target_id: str | None = None):
        """Attack with a creature. No target attacks the enemy hero."""
        self.send("battle_action", {"action": "attack", "cardId": attacker_id, "targetId": target_id})

    def end_turn(self):
        """End your turn."""
        self.send("end_turn")

    def surrender(self):
        self.send("surrender")
