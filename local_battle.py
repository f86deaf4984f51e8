"""Single-player battles against a scripted opponent, run in-process.

Uses the same BattleManager as networked rooms, so mana, draws, summoning
sickness, deaths and the win check are identical. Only the way actions
arrive differs: the human side calls methods directly and the other side
is played by ScriptedOpponent.
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable

import cards_database as db
from battle_errors import BattleNotActive
from battle_manager import BattleManager, TURN_TIME, battle_rewards, build_deck

logger = logging.getLogger(__name__)

PLAYER = "player"
OPPONENT = "opponent"

OPPONENT_DECK_SIZE = 10


class ScriptedOpponent:
    """A deliberately weak opponent: random thresholds, no lookahead.

    On its turn it waits a moment, maybe plays one random affordable card,
    maybe attacks with its first ready creature (usually at the enemy hero),
    then ends the turn after another short wait.
    """

    # An action happens when rng.random() is above the threshold
    PLAY_THRESHOLD = 0.3
    ATTACK_THRESHOLD = 0.5
    CREATURE_TARGET_THRESHOLD = 0.6

    THINK_DELAY = (1.0, 3.0)  # seconds
    END_TURN_DELAY = (2.0, 4.0)

    def __init__(self, rng: random.Random | None = None,
                 sleep: Callable[[float], Awaitable] = asyncio.sleep):
        self.rng = rng or random.Random()
        self._sleep = sleep

    async def take_turn(self, manager: BattleManager, side: str = OPPONENT):
        """Play out one turn for `side`. Returns once the turn is over."""
        await self._sleep(self.rng.uniform(*self.THINK_DELAY))
        if not manager.is_active or manager.current_turn != side:
            return

        self.try_play_card(manager, side)
        self.try_attack(manager, side)

        await self._sleep(self.rng.uniform(*self.END_TURN_DELAY))
        if manager.is_active and manager.current_turn == side:
            manager.end_turn(side)

    def try_play_card(self, manager: BattleManager, side: str):
        player = manager.players[side]
        if not player.hand or self.rng.random() <= self.PLAY_THRESHOLD:
            return None

        playable = [card for card in player.hand if card.cost <= player.mana]
        if not playable:
            return None

        card = self.rng.choice(playable)
        target_id = self._choose_spell_target(manager, side, card)
        return manager.play_card(side, card.instance_id, target_id)

    def try_attack(self, manager: BattleManager, side: str):
        if not manager.is_active:
            return None

        attackers = [c for c in manager.players[side].field
                     if c.can_attack and not c.has_attacked_this_turn]
        if not attackers or self.rng.random() <= self.ATTACK_THRESHOLD:
            return None

        attacker = attackers[0]
        enemy_field = manager.players[manager.opponent_of(side)].field
        target_id = None
        if enemy_field and self.rng.random() > self.CREATURE_TARGET_THRESHOLD:
            target_id = self.rng.choice(enemy_field).instance_id
        return manager.attack(side, attacker.instance_id, target_id)

    def _choose_spell_target(self, manager: BattleManager, side: str, card) -> str | None:
        if card.card_type != "spell":
            return None
        enemy_side = manager.opponent_of(side)
        if card.effect == "damage":
            enemy_field = manager.players[enemy_side].field
            return self.rng.choice(enemy_field).instance_id if enemy_field else enemy_side
        if card.effect == "heal":
            wounded = [c for c in manager.players[side].field if c.current_health < c.health]
            return self.rng.choice(wounded).instance_id if wounded else side
        return None


class LocalBattleSession:
    """A battle between the local player and a scripted opponent."""

    def __init__(self, username: str = "Player", opponent: ScriptedOpponent | None = None,
                 rng: random.Random | None = None, clock=None, turn_time: float = TURN_TIME,
                 profile_store=None, player_id: int | None = None):
        self.username = username
        self.rng = rng or random.Random()
        self.opponent = opponent or ScriptedOpponent(rng=self.rng)
        self.clock = clock
        self.turn_time = turn_time
        self.profile_store = profile_store
        self.player_id = player_id

        self.manager: BattleManager | None = None
        self._rewards_applied = False

    @property
    def phase(self) -> str:
        if self.manager is None:
            return "setup"
        return "playing" if self.manager.is_active else "ended"

    @property
    def battle_log(self) -> list:
        return self.manager.battle_log if self.manager else []

    @property
    def winner(self) -> str | None:
        return self.manager.winner if self.manager else None

    def start(self, player_deck: list | None = None, opponent_deck: list | None = None) -> BattleManager:
        """Shuffle both decks, deal opening hands and give the player the first turn."""
        if opponent_deck is None:
            opponent_deck = db.generate_random_deck(OPPONENT_DECK_SIZE, self.rng)

        self.manager = BattleManager(
            (PLAYER, OPPONENT),
            {PLAYER: self.username, OPPONENT: "Opponent"},
            {PLAYER: build_deck(player_deck), OPPONENT: build_deck(opponent_deck)},
            rng=self.rng,
            clock=self.clock,
            turn_time=self.turn_time,
        )
        self._rewards_applied = False
        logger.info("[BATTLE] Local battle started for %s", self.username)
        return self.manager

    def reset(self):
        """Drop the current battle, log included."""
        self.manager = None
        self._rewards_applied = False

    def _require_manager(self) -> BattleManager:
        if self.manager is None:
            raise BattleNotActive("No battle in progress")
        return self.manager

    # ==================== PLAYER ACTIONS ====================

    def play_card(self, instance_id: str, target_id: str | None = None):
        card = self._require_manager().play_card(PLAYER, instance_id, target_id)
        self._after_action()
        return card

    def attack(self, attacker_id: str, target_id: str | None = None):
        card = self._require_manager().attack(PLAYER, attacker_id, target_id)
        self._after_action()
        return card

    def surrender(self):
        self._require_manager().surrender(PLAYER)
        self._after_action()

    async def end_turn(self):
        """End the player's turn and let the opponent play its own."""
        manager = self._require_manager()
        manager.end_turn(PLAYER)
        await self.run_opponent_turn()

    async def run_opponent_turn(self):
        manager = self._require_manager()
        if manager.is_active and manager.current_turn == OPPONENT:
            await self.opponent.take_turn(manager, OPPONENT)
        self._after_action()

    async def check_turn_timer(self) -> bool:
        """End the player's turn if its time has run out. Returns True when it did."""
        manager = self._require_manager()
        if not manager.is_active or manager.current_turn != PLAYER:
            return False
        if manager.time_remaining() > 0:
            return False
        manager.add_to_log(f"{self.username} ran out of time")
        await self.end_turn()
        return True

    def _after_action(self):
        manager = self.manager
        if manager is None or manager.is_active or self._rewards_applied:
            return
        self._rewards_applied = True
        if self.profile_store is None or self.player_id is None:
            return
        won = manager.winner == PLAYER
        rewards = battle_rewards(won)
        self.profile_store.apply_battle_result(self.player_id, won, rewards["experience"], rewards["gold"])
