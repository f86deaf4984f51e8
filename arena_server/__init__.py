"""WebSocket battle server: matchmaking, battle rooms and turn handling."""
