"""Connection registry and matchmaking queue."""

import logging

from battle_errors import AlreadyQueued, NotAuthenticated
from arena_server.protocol import is_open

logger = logging.getLogger(__name__)


class PlayerConnection:
    """One authenticated client. The registry owns it; rooms only point at it."""

    def __init__(self, websocket, player_id: int, username: str):
        self.websocket = websocket
        self.player_id = player_id
        self.username = username
        self.is_in_queue = False
        self.current_room = None  # BattleRoom while in an active battle

    def __repr__(self) -> str:
        return f"PlayerConnection({self.player_id!r}, {self.username!r})"


class ConnectionRegistry:
    """One live connection per player id."""

    def __init__(self):
        self.connections: dict[int, PlayerConnection] = {}

    def register(self, websocket, player_id: int, username: str) -> tuple:
        """Bind a transport to a player. Returns (new connection, replaced connection or None)."""
        previous = self.connections.get(player_id)
        connection = PlayerConnection(websocket, player_id, username)
        self.connections[player_id] = connection
        logger.info("[AUTH] Player %s authenticated", username)
        return connection, previous

    def get(self, player_id: int) -> PlayerConnection | None:
        return self.connections.get(player_id)

    def find_by_transport(self, websocket) -> PlayerConnection | None:
        for connection in self.connections.values():
            if connection.websocket is websocket:
                return connection
        return None

    def remove(self, connection: PlayerConnection):
        # A replaced connection no longer owns the slot
        if self.connections.get(connection.player_id) is connection:
            del self.connections[connection.player_id]

    def __len__(self) -> int:
        return len(self.connections)


class MatchmakingQueue:
    """Players waiting for an opponent, oldest first."""

    def __init__(self):
        self.waiting: list[PlayerConnection] = []

    def enqueue(self, connection: PlayerConnection | None) -> int:
        """Append a connection and return its 1-based position."""
        if connection is None:
            raise NotAuthenticated()
        if connection.is_in_queue or connection in self.waiting:
            raise AlreadyQueued()

        connection.is_in_queue = True
        self.waiting.append(connection)
        logger.info("[QUEUE] %s joined matchmaking queue", connection.username)
        return len(self.waiting)

    def dequeue(self, connection: PlayerConnection) -> bool:
        """Remove a connection if it is waiting. Returns True when it was."""
        connection.is_in_queue = False
        if connection not in self.waiting:
            return False
        self.waiting.remove(connection)
        logger.info("[QUEUE] %s left matchmaking queue", connection.username)
        return True

    def purge_closed(self) -> int:
        """Forget entries whose transport is no longer open."""
        stale = [c for c in self.waiting if not is_open(c.websocket)]
        for connection in stale:
            self.dequeue(connection)
        return len(stale)

    def pop_pair(self) -> tuple | None:
        """Take the two longest-waiting open connections, or None if there aren't two."""
        self.purge_closed()
        if len(self.waiting) < 2:
            return None

        first = self.waiting.pop(0)
        second = self.waiting.pop(0)
        first.is_in_queue = False
        second.is_in_queue = False
        return first, second

    def position(self, connection: PlayerConnection) -> int | None:
        if connection not in self.waiting:
            return None
        return self.waiting.index(connection) + 1

    def __len__(self) -> int:
        return len(self.waiting)
