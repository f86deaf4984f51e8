"""Two real websocket clients playing against a running server."""

import asyncio
import json

import pytest
from websockets.asyncio.client import connect
from websockets.asyncio.server import serve


async def send(client, msg_type, **data):
    await client.send(json.dumps({"type": msg_type, "data": data}))


async def recv_type(client, msg_type, timeout=2.0):
    """Read frames until one of `msg_type` arrives."""
    while True:
        message = json.loads(await asyncio.wait_for(client.recv(), timeout))
        if message["type"] == msg_type:
            return message["data"]


@pytest.mark.asyncio
async def test_full_match_over_websockets(server, players):
    database, alice, bob = players

    async with serve(server.handle_connection, "127.0.0.1", 0) as ws_server:
        port = list(ws_server.sockets)[0].getsockname()[1]
        url = f"ws://127.0.0.1:{port}"

        async with connect(url) as client_a, connect(url) as client_b:
            await send(client_a, "authenticate", playerId=alice)
            assert (await recv_type(client_a, "authenticated"))["username"] == "alice"
            await send(client_b, "authenticate", playerId=bob)
            await recv_type(client_b, "authenticated")

            await send(client_a, "join_queue")
            assert (await recv_type(client_a, "queue_joined"))["queuePosition"] == 1
            await send(client_b, "join_queue")
            await recv_type(client_b, "queue_joined")

            await server.process_matchmaking()
            found_a = await recv_type(client_a, "battle_found")
            found_b = await recv_type(client_b, "battle_found")
            assert found_a["yourTurn"] and not found_b["yourTurn"]
            assert found_a["gameState"] == found_b["gameState"]

            # Out of turn: only bob hears about it
            await send(client_b, "end_turn")
            assert (await recv_type(client_b, "error"))["code"] == "NotYourTurn"

            await send(client_a, "end_turn")
            changed_a = await recv_type(client_a, "turn_changed")
            changed_b = await recv_type(client_b, "turn_changed")
            assert changed_a == changed_b
            assert changed_a["currentTurn"] == "player2"

            await client_b.close()

            await recv_type(client_a, "opponent_disconnected")
            ended = await recv_type(client_a, "battle_ended")
            assert ended["winnerId"] == alice
            assert ended["reason"] == "disconnect"

    assert database.get_player(alice)["wins"] == 1
    assert database.get_player(bob)["losses"] == 1
    assert server.rooms == {}
