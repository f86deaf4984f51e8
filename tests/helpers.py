"""Shared test doubles."""

import asyncio
import json
import random
from types import SimpleNamespace

from websockets.protocol import State


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, now: int = 1_700_000_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float):
        self.now += int(seconds * 1000)


class FakeWebSocket:
    """Records frames sent by the server; looks open until closed."""

    def __init__(self):
        self.protocol = SimpleNamespace(state=State.OPEN)
        self.raw: list[str] = []
        # Set to make every later send or close hang, like a peer that stopped reading
        self.stalled = False

    @property
    def sent(self) -> list[dict]:
        return [json.loads(text) for text in self.raw]

    async def send(self, text: str):
        if self.stalled:
            await asyncio.get_running_loop().create_future()
        self.raw.append(text)

    async def close(self):
        if self.stalled:
            await asyncio.get_running_loop().create_future()
        self.protocol.state = State.CLOSED

    def of_type(self, msg_type: str) -> list[dict]:
        return [m for m in self.sent if m["type"] == msg_type]

    def last(self) -> dict:
        return self.sent[-1]

    def clear(self):
        self.raw.clear()


class FixedRandom(random.Random):
    """random() always returns the same value; choice/uniform pick the low end."""

    def __init__(self, value: float):
        super().__init__(0)
        self.value = value

    def random(self):
        return self.value

    def choice(self, seq):
        return seq[0]

    def uniform(self, a, b):
        return a


class FakeProfileStore:
    def __init__(self):
        self.results = []

    def apply_battle_result(self, player_id, won, experience, gold):
        self.results.append((player_id, won, experience, gold))


def frame(msg_type: str, **data) -> str:
    return json.dumps({"type": msg_type, "data": data})


def put_in_hand(manager, side: str, card_id: str):
    card = manager.create_battle_card(card_id)
    manager.players[side].hand.append(card)
    return card


def put_on_field(manager, side: str, card_id: str, ready: bool = True):
    card = manager.create_battle_card(card_id)
    card.can_attack = ready
    manager.players[side].field.append(card)
    return card


async def settle(server):
    """Wait for the server's background room starts and closes."""
    await asyncio.gather(*list(server.background_tasks))
