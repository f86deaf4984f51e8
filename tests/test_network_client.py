"""Tests for the client-side view of a networked battle."""

from arena_client.network import EventType, NetworkClient, parse_event


def test_parse_event():
    event = parse_event({"type": "queue_joined", "data": {"queuePosition": 2}})
    assert event.type is EventType.QUEUE_JOINED
    assert event.data == {"queuePosition": 2}

    unknown = parse_event({"type": "fireworks"})
    assert unknown.type is EventType.UNKNOWN
    assert unknown.raw_type == "fireworks"
    assert unknown.data == {}


def test_requests_are_queued_as_frames():
    client = NetworkClient()
    client.authenticate(3)
    client.play_card("basic_spell#4", "player2")
    client.attack("basic_archer#2")
    client.end_turn()

    sent = [client.outgoing_queue.get_nowait() for _ in range(4)]
    assert sent[0] == {"type": "authenticate", "data": {"playerId": 3}}
    assert sent[1] == {"type": "battle_action",
                       "data": {"action": "play_card", "cardId": "basic_spell#4", "targetId": "player2"}}
    assert sent[2]["data"]["targetId"] is None
    assert sent[3] == {"type": "end_turn", "data": {}}


def test_process_messages_tracks_the_battle():
    client = NetworkClient()
    state = {"status": "active", "currentTurn": "player2"}
    for message in (
        {"type": "authenticated", "data": {"playerId": 3, "username": "alice"}},
        {"type": "queue_joined", "data": {"queuePosition": 1}},
        {"type": "battle_found", "data": {"roomId": "abc", "yourSide": "player2", "gameState": state}},
    ):
        client.incoming_queue.put(message)

    events = client.process_messages()

    assert [e.type for e in events] == [EventType.AUTHENTICATED, EventType.QUEUE_JOINED, EventType.BATTLE_FOUND]
    assert client.authenticated and client.username == "alice"
    assert not client.in_queue
    assert client.room_id == "abc"
    assert client.is_my_turn

    client.incoming_queue.put({"type": "turn_changed",
                               "data": {"gameState": {"status": "active", "currentTurn": "player1"}}})
    client.incoming_queue.put({"type": "error", "data": {"message": "Not your turn", "code": "NotYourTurn"}})
    client.process_messages()
    assert not client.is_my_turn
    assert client.last_error == "Not your turn"

    client.incoming_queue.put({"type": "battle_ended",
                               "data": {"winner": "player1", "gameState": {"status": "ended"}}})
    client.process_messages()
    assert client.room_id is None
    assert not client.is_my_turn
