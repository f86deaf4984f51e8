"""A battle room: one active match between two connections."""

import asyncio
import logging
import random
from typing import Awaitable, Callable

from battle_errors import BattleNotActive, InvalidMessage
from battle_manager import BattleManager, TURN_TIME
from arena_server.protocol import encode_message, send_message, send_raw

logger = logging.getLogger(__name__)

SIDE_A = "player1"
SIDE_B = "player2"

ROOM_CREATED = "created"


class BattleRoom:
    """Owns the authoritative state of one match.

    Every state change goes through ``self.lock``: client actions, turn
    timeouts and disconnects are applied and broadcast one at a time, so
    both participants see the same sequence of snapshots.
    """

    def __init__(self, room_id: str, connection_a, connection_b, decks: dict,
                 on_ended: Callable[["BattleRoom"], Awaitable] | None = None,
                 rng: random.Random | None = None, clock=None,
                 turn_time: float = TURN_TIME, turn_timer: bool = True):
        self.room_id = room_id
        self.connections = {SIDE_A: connection_a, SIDE_B: connection_b}
        self.manager = BattleManager(
            (SIDE_A, SIDE_B),
            {SIDE_A: connection_a.username, SIDE_B: connection_b.username},
            decks,
            rng=rng,
            clock=clock,
            turn_time=turn_time,
        )
        self.started_at = self.manager.turn_start_time
        self.lock = asyncio.Lock()
        self.turn_timer_enabled = turn_timer

        self._on_ended = on_ended
        self._started = False
        self._finished = False
        self._turn_timer: asyncio.Task | None = None

    @property
    def status(self) -> str:
        if not self._started:
            return ROOM_CREATED
        return self.manager.status

    @property
    def is_active(self) -> bool:
        return self.manager.is_active

    def side_of(self, connection) -> str | None:
        for side, conn in self.connections.items():
            if conn is connection:
                return side
        return None

    def _require_side(self, connection) -> str:
        if not self.manager.is_active:
            raise BattleNotActive()
        side = self.side_of(connection)
        if side is None:
            raise BattleNotActive("Not in this battle")
        return side

    def _opponent_info(self, side: str) -> dict:
        other = self.connections[self.manager.opponent_of(side)]
        return {"playerId": other.player_id, "username": other.username}

    # ==================== LIFECYCLE ====================

    async def start(self):
        """Tell both players the battle has begun and start the first turn clock."""
        async with self.lock:
            # A disconnect may have ended the battle before it was announced
            if not self.manager.is_active:
                return
            self._started = True
            game_state = self.manager.snapshot()
            await asyncio.gather(*(
                send_message(connection.websocket, "battle_found", {
                    "roomId": self.room_id,
                    "opponent": self._opponent_info(side),
                    "yourSide": side,
                    "yourTurn": side == self.manager.current_turn,
                    "gameState": game_state,
                })
                for side, connection in self.connections.items()
            ))
            self._arm_turn_timer()
        logger.info("[MATCH] Battle room %s started", self.room_id)

    async def rebind(self, old_connection, new_connection) -> bool:
        """Hand a seat to a player's new connection after re-authentication."""
        async with self.lock:
            side = self.side_of(old_connection)
            if side is None or not self.manager.is_active:
                return False
            self.connections[side] = new_connection
            new_connection.current_room = self
            await send_message(new_connection.websocket, "battle_rejoined", {
                "roomId": self.room_id,
                "opponent": self._opponent_info(side),
                "yourSide": side,
                "yourTurn": side == self.manager.current_turn,
                "gameState": self.manager.snapshot(),
            })
        logger.info("[MATCH] %s rejoined room %s", new_connection.username, self.room_id)
        return True

    async def close(self):
        """Stop the turn clock. Used on server shutdown."""
        self._cancel_turn_timer()

    # ==================== ACTIONS ====================

    async def handle_action(self, connection, action: str, card_id=None, target_id=None):
        """Apply a play_card or attack request and broadcast the result."""
        async with self.lock:
            side = self._require_side(connection)

            if action not in ("play_card", "attack"):
                raise InvalidMessage(f"Unknown battle action: {action}")
            if not isinstance(card_id, str):
                raise InvalidMessage("cardId is required")
            if target_id is not None and not isinstance(target_id, str):
                raise InvalidMessage("targetId must be a string")

            if action == "play_card":
                self.manager.play_card(side, card_id, target_id)
            else:
                self.manager.attack(side, card_id, target_id)

            await self._broadcast("battle_action", {
                "playerId": connection.player_id,
                "action": action,
                "cardId": card_id,
                "targetId": target_id,
                "gameState": self.manager.snapshot(),
            })
            if not self.manager.is_active:
                await self._finish()

    async def end_turn(self, connection):
        async with self.lock:
            side = self._require_side(connection)
            await self._end_turn(side, "end_turn")

    async def surrender(self, connection):
        async with self.lock:
            side = self._require_side(connection)
            self.manager.surrender(side)
            await self._finish()

    async def handle_turn_timeout(self, turn_number: int) -> bool:
        """End the turn if `turn_number` is still running. Stale timers do nothing."""
        async with self.lock:
            if not self.manager.is_active or self.manager.turn_number != turn_number:
                return False
            side = self.manager.current_turn
            self.manager.add_to_log(f"{self.manager.players[side].name} ran out of time")
            logger.info("[MATCH] Turn timeout in room %s for %s", self.room_id, side)
            await self._end_turn(side, "timeout")
            return True

    async def player_disconnected(self, connection):
        """The leaver loses. The remaining player is told and wins."""
        async with self.lock:
            side = self.side_of(connection)
            if side is None or not self.manager.is_active:
                return
            opponent_side = self.manager.opponent_of(side)
            self.manager.add_to_log(f"{connection.username} disconnected")
            self.manager.end_battle(opponent_side, "disconnect")
            await send_message(self.connections[opponent_side].websocket, "opponent_disconnected", {})
            await self._finish()

    async def _end_turn(self, side: str, reason: str):
        self.manager.end_turn(side)
        await self._broadcast("turn_changed", {
            "currentTurn": self.manager.current_turn,
            "turnStartTime": self.manager.turn_start_time,
            "reason": reason,
            "gameState": self.manager.snapshot(),
        })
        self._arm_turn_timer()

    # ==================== BROADCAST ====================

    async def _broadcast(self, msg_type: str, data: dict):
        """Send one identical frame to both participants."""
        text = encode_message(msg_type, data)
        await asyncio.gather(*(send_raw(c.websocket, text) for c in self.connections.values()))

    async def _finish(self):
        if self._finished:
            return
        self._finished = True
        self._cancel_turn_timer()

        manager = self.manager
        winner = manager.winner
        winner_connection = self.connections.get(winner)
        await self._broadcast("battle_ended", {
            "roomId": self.room_id,
            "winner": winner,
            "winnerId": winner_connection.player_id if winner_connection else None,
            "reason": manager.end_reason,
            "gameState": manager.snapshot(),
        })
        logger.info("[MATCH] Battle room %s ended: winner=%s reason=%s",
                    self.room_id, winner, manager.end_reason)

        if self._on_ended is not None:
            await self._on_ended(self)

    # ==================== TURN TIMER ====================

    def _arm_turn_timer(self):
        self._cancel_turn_timer()
        if not self.turn_timer_enabled or not self.manager.is_active:
            return
        self._turn_timer = asyncio.create_task(self._run_turn_timer(self.manager.turn_number))

    def _cancel_turn_timer(self):
        timer, self._turn_timer = self._turn_timer, None
        # The timer task re-arms itself while ending a turn; it must not cancel itself
        if timer is not None and timer is not asyncio.current_task() and not timer.done():
            timer.cancel()

    async def _run_turn_timer(self, turn_number: int):
        await asyncio.sleep(self.manager.turn_time)
        await self.handle_turn_timeout(turn_number)
