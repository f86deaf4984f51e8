"""Battle manager handling battle state, turns, and card resolution.

One BattleManager holds the authoritative state of one match. It knows
nothing about transports or opponents: the arena server drives it from
websocket messages, the local session drives it from direct calls and a
scripted opponent. Sides are plain string labels chosen by the caller.
"""

import itertools
import logging
import random
import time
from typing import Callable

import cards_database as db
from battle_errors import (
    BattleNotActive,
    CannotAttack,
    CardNotInHand,
    InsufficientMana,
    InvalidTarget,
    NotYourTurn,
    TargetRequired,
)

logger = logging.getLogger(__name__)

STARTING_HEALTH = 30
STARTING_MANA = 1
MAX_MANA = 10
OPENING_HAND_SIZE = 5
MAX_HAND_SIZE = 10
TURN_TIME = 75  # seconds

# Experience and gold handed to the profile store when a battle ends
WIN_REWARDS = {"experience": 100, "gold": 75}
LOSS_REWARDS = {"experience": 50, "gold": 25}

STATUS_ACTIVE = "active"
STATUS_ENDED = "ended"
DRAW = "draw"

# Spell effects that must name a target
TARGETED_EFFECTS = ("damage", "heal")


def now_ms() -> int:
    """Wall clock in milliseconds, the unit used for turn start stamps."""
    return int(time.time() * 1000)


def shuffle_deck(deck: list, rng: random.Random | None = None) -> list:
    """Return a uniformly shuffled copy of a deck (Fisher-Yates)."""
    rng = rng or random.Random()
    shuffled = list(deck)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def battle_rewards(won: bool) -> dict:
    return dict(WIN_REWARDS if won else LOSS_REWARDS)


def build_deck(card_ids: list | None) -> list:
    """Keep the known card ids of a stored deck, falling back to the default deck."""
    deck = []
    for card_id in card_ids or []:
        if db.get_card_info(card_id):
            deck.append(card_id)
        else:
            logger.warning("[BATTLE] Dropping unknown card from deck: %s", card_id)
    if not deck:
        return list(db.DEFAULT_DECK)
    return deck


class BattleCard:
    """A copy of a card while it sits in a hand, on a field or in a graveyard."""

    def __init__(self, instance_id: str, card_id: str, card_info: list):
        self.instance_id = instance_id
        self.card_id = card_id
        self.card_info = card_info

        self.current_attack = self.attack
        self.current_health = self.health
        self.can_attack = False
        self.has_attacked_this_turn = False

    @property
    def name(self) -> str:
        return self.card_info[db.IDX_NAME]

    @property
    def card_type(self) -> str:
        return self.card_info[db.IDX_TYPE]

    @property
    def rarity(self) -> str:
        return self.card_info[db.IDX_RARITY]

    @property
    def effect(self) -> str:
        return self.card_info[db.IDX_EFFECT]

    @property
    def attack(self) -> int:
        return self.card_info[db.IDX_ATTACK] or 0

    @property
    def health(self) -> int:
        return self.card_info[db.IDX_HEALTH] or 0

    @property
    def cost(self) -> int:
        return self.card_info[db.IDX_COST]

    @property
    def keywords(self) -> list:
        return list(self.card_info[db.IDX_KEYWORDS])

    def to_dict(self) -> dict:
        """Serialize a card for network transmission."""
        return {
            "instanceId": self.instance_id,
            "cardId": self.card_id,
            "name": self.name,
            "type": self.card_type,
            "rarity": self.rarity,
            "effect": self.effect or None,
            "keywords": self.keywords,
            "manaCost": self.cost,
            "attack": self.attack,
            "health": self.health,
            "currentAttack": self.current_attack,
            "currentHealth": self.current_health,
            "canAttack": self.can_attack,
            "hasAttackedThisTurn": self.has_attacked_this_turn,
        }

    def __repr__(self) -> str:
        return f"BattleCard({self.instance_id!r}, hp={self.current_health})"


class PlayerBattleState:
    """One side of a battle."""

    def __init__(self, side: str, name: str, deck: list):
        self.side = side
        self.name = name
        self.health = STARTING_HEALTH
        self.max_health = STARTING_HEALTH
        self.mana = STARTING_MANA
        self.max_mana = STARTING_MANA
        self.deck: list[str] = list(deck)
        self.hand: list[BattleCard] = []
        self.field: list[BattleCard] = []
        self.graveyard: list[BattleCard] = []

    def find_in_hand(self, instance_id: str) -> BattleCard | None:
        for card in self.hand:
            if card.instance_id == instance_id:
                return card
        return None

    def find_on_field(self, instance_id: str) -> BattleCard | None:
        for card in self.field:
            if card.instance_id == instance_id:
                return card
        return None

    def to_dict(self) -> dict:
        return {
            "side": self.side,
            "username": self.name,
            "health": self.health,
            "maxHealth": self.max_health,
            "mana": self.mana,
            "maxMana": self.max_mana,
            "deck": list(self.deck),
            "deckCount": len(self.deck),
            "hand": [c.to_dict() for c in self.hand],
            "field": [c.to_dict() for c in self.field],
            "graveyard": [c.to_dict() for c in self.graveyard],
        }


class BattleManager:
    """Manages the entire battle state."""

    def __init__(self, sides: tuple, names: dict, decks: dict,
                 rng: random.Random | None = None,
                 clock: Callable[[], int] | None = None,
                 turn_time: float = TURN_TIME):
        if len(sides) != 2 or sides[0] == sides[1]:
            raise ValueError(f"A battle needs two distinct sides, got {sides!r}")

        self.sides = tuple(sides)
        self.rng = rng or random.Random()
        self.clock = clock or now_ms
        self.turn_time = turn_time
        self._instance_ids = itertools.count(1)

        self.players: dict[str, PlayerBattleState] = {
            side: PlayerBattleState(side, names[side], shuffle_deck(decks[side], self.rng))
            for side in self.sides
        }

        self.current_turn = self.sides[0]
        self.turn_number = 1
        self.turn_start_time = self.clock()
        self.status = STATUS_ACTIVE
        self.winner: str | None = None
        self.end_reason: str | None = None
        self.ended_at: int | None = None
        self.battle_log: list[str] = []

        self._deal_opening_hands()
        self.add_to_log("Battle begins!")

    def _deal_opening_hands(self):
        for player in self.players.values():
            opening, player.deck = player.deck[:OPENING_HAND_SIZE], player.deck[OPENING_HAND_SIZE:]
            player.hand = [self.create_battle_card(card_id) for card_id in opening]

    # ==================== HELPERS ====================

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE

    def opponent_of(self, side: str) -> str:
        first, second = self.sides
        if side == first:
            return second
        if side == second:
            return first
        raise ValueError(f"Unknown side: {side!r}")

    def create_battle_card(self, card_id: str) -> BattleCard:
        card_info = db.get_card_info(card_id)
        if card_info is None:
            raise ValueError(f"Card not found in database: {card_id}")
        return BattleCard(f"{card_id}#{next(self._instance_ids)}", card_id, card_info)

    def add_to_log(self, message: str):
        self.battle_log.append(message)
        logger.debug("[BATTLE] %s", message)

    def time_remaining(self, now: int | None = None) -> float:
        """Seconds left in the current turn."""
        now = self.clock() if now is None else now
        return max(0.0, self.turn_time - (now - self.turn_start_time) / 1000)

    def _require_active(self):
        if not self.is_active:
            raise BattleNotActive()

    def _require_turn(self, side: str):
        if side != self.current_turn:
            raise NotYourTurn()

    # ==================== TURNS ====================

    def draw_card(self, side: str) -> BattleCard | None:
        """Draw the top card of a deck.

        An empty deck draws nothing. With a full hand the top card still
        leaves the deck but is burned instead of entering the hand.
        """
        player = self.players[side]
        if not player.deck:
            return None

        card_id = player.deck.pop(0)
        if len(player.hand) >= MAX_HAND_SIZE:
            self.add_to_log(f"{player.name}'s hand is full, {db.get_card_info(card_id)[db.IDX_NAME]} is burned")
            return None

        card = self.create_battle_card(card_id)
        player.hand.append(card)
        return card

    def start_turn(self):
        """Begin the current side's turn: ramp mana, draw, ready the field."""
        player = self.players[self.current_turn]

        player.max_mana = min(MAX_MANA, player.max_mana + 1)
        player.mana = player.max_mana

        self.draw_card(self.current_turn)

        for card in player.field:
            card.can_attack = True
            card.has_attacked_this_turn = False

        self.turn_start_time = self.clock()
        self.add_to_log(f"{player.name}'s turn begins!")

    def end_turn(self, side: str) -> str:
        """End `side`'s turn and start the opponent's. Returns the new current side."""
        self._require_active()
        self._require_turn(side)

        self.current_turn = self.opponent_of(side)
        self.turn_number += 1
        self.start_turn()
        return self.current_turn

    # ==================== ACTIONS ====================

    def play_card(self, side: str, instance_id: str, target_id: str | None = None) -> BattleCard:
        """Play a card from `side`'s hand. Nothing changes unless every check passes."""
        self._require_active()
        self._require_turn(side)

        player = self.players[side]
        card = player.find_in_hand(instance_id)
        if card is None:
            raise CardNotInHand()
        if card.cost > player.mana:
            raise InsufficientMana(f"{card.name} costs {card.cost} mana, you have {player.mana}")

        target = None
        if card.card_type == "spell" and card.effect in TARGETED_EFFECTS:
            if target_id is None:
                raise TargetRequired(f"{card.name} needs a target")
            target = self._find_spell_target(target_id)

        player.hand.remove(card)
        player.mana -= card.cost

        if card.card_type == "creature":
            # Summoning sickness
            card.can_attack = False
            card.has_attacked_this_turn = False
            player.field.append(card)
            self.add_to_log(f"{player.name} plays {card.name}")
        elif card.card_type == "spell" and card.effect == "damage":
            player.graveyard.append(card)
            self.add_to_log(f"{player.name} casts {card.name} on {self._target_name(target)} "
                            f"for {card.attack} damage")
            self._apply_damage(target, card.attack)
        elif card.card_type == "spell" and card.effect == "heal":
            player.graveyard.append(card)
            self._apply_heal(target, card.attack)
            self.add_to_log(f"{player.name} casts {card.name} on {self._target_name(target)}, "
                            f"restoring {card.attack} health")
        else:
            player.graveyard.append(card)
            self.add_to_log(f"{player.name} plays {card.name}")

        return card

    def attack(self, side: str, attacker_id: str, target_id: str | None = None) -> BattleCard:
        """Attack an enemy creature, or the enemy hero when no creature is targeted."""
        self._require_active()
        self._require_turn(side)

        player = self.players[side]
        enemy_side = self.opponent_of(side)
        enemy = self.players[enemy_side]

        attacker = player.find_on_field(attacker_id)
        if attacker is None:
            raise CannotAttack("Attacker is not on your field")
        if not attacker.can_attack or attacker.has_attacked_this_turn:
            raise CannotAttack(f"{attacker.name} cannot attack this turn")

        target = None
        if target_id is not None and target_id != enemy_side:
            target = enemy.find_on_field(target_id)
            if target is None:
                raise InvalidTarget()

        attacker.has_attacked_this_turn = True
        attacker.can_attack = False

        if target is not None:
            dealt, taken = attacker.current_attack, target.current_attack
            target.current_health -= dealt
            attacker.current_health -= taken
            self.add_to_log(f"{attacker.name} attacks {target.name}")
            self._check_death(enemy_side, target)
            self._check_death(side, attacker)
        else:
            damage = attacker.current_attack
            self.add_to_log(f"{attacker.name} attacks {enemy.name} for {damage} damage")
            self.damage_player(enemy_side, damage)

        return attacker

    def surrender(self, side: str):
        self._require_active()
        self.add_to_log(f"{self.players[side].name} surrenders")
        self.end_battle(self.opponent_of(side), "surrender")

    # ==================== DAMAGE ====================

    def damage_player(self, side: str, amount: int):
        """Subtract hero health and end the battle the moment it drops to zero."""
        player = self.players[side]
        player.health -= amount
        if player.health <= 0 and self.is_active:
            self.end_battle(self.opponent_of(side), "health")

    def _find_spell_target(self, target_id: str) -> tuple:
        """Resolve a target id to (owner side, card). A side label targets that hero (card None)."""
        if target_id in self.players:
            return target_id, None
        for side, player in self.players.items():
            card = player.find_on_field(target_id)
            if card is not None:
                return side, card
        raise InvalidTarget()

    def _target_name(self, target: tuple) -> str:
        side, card = target
        return card.name if card is not None else self.players[side].name

    def _apply_damage(self, target: tuple, amount: int):
        side, card = target
        if card is None:
            self.damage_player(side, amount)
            return
        card.current_health -= amount
        self._check_death(side, card)

    def _apply_heal(self, target: tuple, amount: int):
        side, card = target
        if card is None:
            player = self.players[side]
            player.health = min(player.max_health, player.health + amount)
        else:
            card.current_health = min(card.health, card.current_health + amount)

    def _check_death(self, side: str, card: BattleCard) -> bool:
        if card.current_health > 0:
            return False
        player = self.players[side]
        player.field.remove(card)
        player.graveyard.append(card)
        self.add_to_log(f"{card.name} dies")
        return True

    # ==================== END OF BATTLE ====================

    def end_battle(self, winner: str, reason: str):
        """Finish the battle. Later calls are ignored."""
        if not self.is_active:
            return
        self.status = STATUS_ENDED
        self.winner = winner
        self.end_reason = reason
        self.ended_at = self.clock()

        if winner == DRAW:
            self.add_to_log("The battle ends in a draw")
        else:
            self.add_to_log(f"{self.players[winner].name} wins!")
        logger.info("[BATTLE] Battle ended: winner=%s reason=%s", winner, reason)

    def snapshot(self) -> dict:
        """The complete shared state. Both sides see the same thing."""
        state = {
            "currentTurn": self.current_turn,
            "turnNumber": self.turn_number,
            "turnStartTime": self.turn_start_time,
            "turnTime": self.turn_time,
            "status": self.status,
            "winner": self.winner,
            "endReason": self.end_reason,
            "battleLog": list(self.battle_log),
        }
        for side, player in self.players.items():
            state[side] = player.to_dict()
        return state
