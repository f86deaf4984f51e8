"""WebSocket game server for card arena battles."""

import asyncio
import logging
import random
import sqlite3
import uuid

from websockets.asyncio.server import serve
from websockets.exceptions import ConnectionClosed

from battle_errors import (
    AlreadyQueued,
    BattleError,
    BattleNotActive,
    InvalidMessage,
    NotAuthenticated,
    PlayerNotFound,
)
from battle_manager import TURN_TIME, battle_rewards, build_deck
from arena_server.battle_room import SIDE_A, SIDE_B, BattleRoom
from arena_server.database import Database
from arena_server.matchmaking import ConnectionRegistry, MatchmakingQueue
from arena_server.protocol import parse_message, send_message

logger = logging.getLogger(__name__)

MATCHMAKING_INTERVAL = 2.0  # seconds
PAIRS_PER_SWEEP = 1


class GameServer:
    """Main game server handling connections, matchmaking and battle rooms."""

    def __init__(self, host: str = "0.0.0.0", port: int = 8765, database: Database | None = None,
                 match_interval: float = MATCHMAKING_INTERVAL, pairs_per_sweep: int = PAIRS_PER_SWEEP,
                 turn_time: float = TURN_TIME, turn_timer: bool = True,
                 rng: random.Random | None = None, clock=None):
        self.host = host
        self.port = port
        self.database = database or Database()
        self.match_interval = match_interval
        self.pairs_per_sweep = pairs_per_sweep
        self.turn_time = turn_time
        self.turn_timer = turn_timer
        self.rng = rng or random.Random()
        self.clock = clock

        self.registry = ConnectionRegistry()
        self.queue = MatchmakingQueue()
        # Active battle rooms: room_id -> BattleRoom
        self.rooms: dict[str, BattleRoom] = {}

        self._matchmaking_task: asyncio.Task | None = None
        # Room starts and transport closes that run beside the request that caused them
        self.background_tasks: set[asyncio.Task] = set()
        self._handlers = {
            "authenticate": self._handle_authenticate,
            "join_queue": self._handle_join_queue,
            "leave_queue": self._handle_leave_queue,
            "battle_action": self._handle_battle_action,
            "end_turn": self._handle_end_turn,
            "surrender": self._handle_surrender,
        }

    # ==================== CONNECTIONS ====================

    async def handle_connection(self, websocket):
        """Handle a new WebSocket connection until it closes."""
        try:
            async for message in websocket:
                await self.handle_message(websocket, message)
        except ConnectionClosed:
            pass
        finally:
            await self.disconnect(websocket)

    async def handle_message(self, websocket, raw):
        """Dispatch one client frame. Failures go back to this client only."""
        msg_type = None
        try:
            msg_type, data = parse_message(raw)
            handler = self._handlers.get(msg_type)
            if handler is None:
                raise InvalidMessage("Unknown message type")
            await handler(websocket, data)
        except BattleError as e:
            logger.info("Rejected %s: %s", msg_type, e)
            await send_message(websocket, "error", e.to_dict())
        except ConnectionClosed:
            raise
        except Exception:
            logger.exception("Error handling %s message", msg_type)
            await send_message(websocket, "error", BattleError("Internal server error").to_dict())

    def _require_connection(self, websocket):
        connection = self.registry.find_by_transport(websocket)
        if connection is None:
            raise NotAuthenticated()
        return connection

    async def authenticate(self, websocket, player_id):
        """Bind a transport to a player profile, replacing any older connection."""
        if not isinstance(player_id, int) or isinstance(player_id, bool):
            raise InvalidMessage("playerId must be an integer")

        player = self.database.get_player(player_id)
        if not player:
            raise PlayerNotFound()

        current = self.registry.find_by_transport(websocket)
        if current is not None:
            if current.player_id == player_id:
                await send_message(websocket, "authenticated", {
                    "playerId": current.player_id, "username": current.username,
                })
                return current
            # Same socket switching players: the old identity leaves properly
            await self.disconnect(websocket)

        connection, previous = self.registry.register(websocket, player_id, player["username"])
        await send_message(websocket, "authenticated", {
            "playerId": connection.player_id, "username": connection.username,
        })

        if previous is not None:
            await self._replace_connection(previous, connection)
        return connection

    async def _replace_connection(self, previous, connection):
        if previous.is_in_queue:
            self.queue.dequeue(previous)

        room, previous.current_room = previous.current_room, None
        if room is not None:
            await room.rebind(previous, connection)

        logger.info("[AUTH] Closing previous connection for %s", previous.username)
        self._spawn(previous.websocket.close())

    async def disconnect(self, websocket):
        """Forget a transport: leave the queue, forfeit any battle, drop the connection."""
        connection = self.registry.find_by_transport(websocket)
        if connection is None:
            return

        if connection.is_in_queue:
            self.queue.dequeue(connection)

        room = connection.current_room
        if room is not None:
            await room.player_disconnected(connection)

        self.registry.remove(connection)
        logger.info("[AUTH] Player %s disconnected", connection.username)

    # ==================== MESSAGE HANDLERS ====================

    async def _handle_authenticate(self, websocket, data: dict):
        await self.authenticate(websocket, data.get("playerId"))

    async def _handle_join_queue(self, websocket, data: dict):
        connection = self._require_connection(websocket)
        if connection.current_room is not None:
            raise AlreadyQueued("Already in a battle")

        position = self.queue.enqueue(connection)
        await send_message(websocket, "queue_joined", {"queuePosition": position})

    async def _handle_leave_queue(self, websocket, data: dict):
        connection = self._require_connection(websocket)
        self.queue.dequeue(connection)
        await send_message(websocket, "queue_left", {})

    def _require_room(self, websocket) -> tuple:
        connection = self._require_connection(websocket)
        room = connection.current_room
        if room is None:
            raise BattleNotActive("Not in a battle")
        return connection, room

    async def _handle_battle_action(self, websocket, data: dict):
        connection, room = self._require_room(websocket)
        action = data.get("action")
        if not isinstance(action, str):
            raise InvalidMessage("action is required")

        if action == "end_turn":
            await room.end_turn(connection)
        else:
            await room.handle_action(connection, action, data.get("cardId"), data.get("targetId"))

    async def _handle_end_turn(self, websocket, data: dict):
        connection, room = self._require_room(websocket)
        await room.end_turn(connection)

    async def _handle_surrender(self, websocket, data: dict):
        connection, room = self._require_room(websocket)
        await room.surrender(connection)

    # ==================== MATCHMAKING ====================

    async def process_matchmaking(self) -> list[BattleRoom]:
        """One sweep: pair the longest-waiting players into new battle rooms."""
        rooms = []
        while len(rooms) < self.pairs_per_sweep:
            pair = self.queue.pop_pair()
            if pair is None:
                break
            rooms.append(await self.create_battle_room(*pair))
        return rooms

    async def run_matchmaking(self):
        while True:
            await asyncio.sleep(self.match_interval)
            try:
                await self.process_matchmaking()
            except Exception:
                logger.exception("[MATCH] Matchmaking sweep failed")

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self.background_tasks.add(task)
        task.add_done_callback(self.background_tasks.discard)
        return task

    def _new_room_id(self) -> str:
        room_id = uuid.uuid4().hex[:9]
        while room_id in self.rooms:
            room_id = uuid.uuid4().hex[:9]
        return room_id

    async def create_battle_room(self, connection_a, connection_b) -> BattleRoom:
        """Seat two queued players in a fresh room. The first one popped moves first.

        The room is announced in the background so a slow peer never holds up
        the sweep.
        """
        decks = {
            SIDE_A: build_deck(self.database.get_active_deck(connection_a.player_id)),
            SIDE_B: build_deck(self.database.get_active_deck(connection_b.player_id)),
        }
        room = BattleRoom(
            self._new_room_id(), connection_a, connection_b, decks,
            on_ended=self._room_ended,
            rng=self.rng,
            clock=self.clock,
            turn_time=self.turn_time,
            turn_timer=self.turn_timer,
        )
        connection_a.current_room = room
        connection_b.current_room = room
        self.rooms[room.room_id] = room

        logger.info("[MATCH] Battle room %s created: %s vs %s",
                    room.room_id, connection_a.username, connection_b.username)
        self._spawn(room.start())
        return room

    async def _room_ended(self, room: BattleRoom):
        self.rooms.pop(room.room_id, None)
        for connection in room.connections.values():
            if connection.current_room is room:
                connection.current_room = None

        try:
            self._record_result(room)
        except sqlite3.Error:
            logger.exception("[MATCH] Could not record result of room %s", room.room_id)

    def _record_result(self, room: BattleRoom):
        manager = room.manager
        winner = room.connections.get(manager.winner)
        for side, connection in room.connections.items():
            won = side == manager.winner
            rewards = battle_rewards(won)
            self.database.apply_battle_result(connection.player_id, won, rewards["experience"], rewards["gold"])

        self.database.record_match(
            room.room_id,
            room.connections[SIDE_A].player_id,
            room.connections[SIDE_B].player_id,
            winner.player_id if winner else None,
            manager.end_reason,
            room.started_at,
            manager.ended_at,
            manager.snapshot(),
        )

    # ==================== SERVER ====================

    def get_stats(self) -> dict:
        return {
            "connectedPlayers": len(self.registry),
            "playersInQueue": len(self.queue),
            "activeBattles": len(self.rooms),
        }

    async def shutdown(self):
        if self._matchmaking_task is not None:
            self._matchmaking_task.cancel()
            self._matchmaking_task = None
        for room in list(self.rooms.values()):
            await room.close()
        for task in list(self.background_tasks):
            task.cancel()

    async def start(self):
        """Start the game server."""
        logger.info("Starting card arena server on %s:%s", self.host, self.port)
        async with serve(self.handle_connection, self.host, self.port):
            logger.info("Server running! Players can connect to ws://%s:%s", self.host, self.port)
            self._matchmaking_task = asyncio.create_task(self.run_matchmaking())
            try:
                await asyncio.Future()  # Run forever
            finally:
                await self.shutdown()
