"""Fixtures for the card arena test suite."""

import random

import pytest

from arena_server.database import Database
from arena_server.game_server import GameServer
from battle_manager import BattleManager
from tests.helpers import FakeClock

SIDES = ("player1", "player2")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def manager(clock):
    """A battle where every card in both decks is a Novice Warrior."""
    decks = {side: ["basic_warrior"] * 15 for side in SIDES}
    return BattleManager(SIDES, {"player1": "Alice", "player2": "Bob"}, decks,
                         rng=random.Random(7), clock=clock)


@pytest.fixture
def players():
    """In-memory profile store with two players. Yields (database, alice_id, bob_id)."""
    database = Database(":memory:")
    alice = database.create_player("alice")
    bob = database.create_player("bob")
    yield database, alice, bob
    database.close()


@pytest.fixture
def server(players, clock):
    database, _, _ = players
    return GameServer(database=database, turn_timer=False, rng=random.Random(3), clock=clock)
