#!/usr/bin/env python3
"""
Card Arena Server Launcher

Run this script to start the multiplayer battle server.

Usage:
    python -m arena_server.run_server
    python -m arena_server.run_server --port 8765
    python -m arena_server.run_server --add-player alice --add-player bob
"""

import argparse
import asyncio
import logging
import socket

from battle_manager import TURN_TIME
from arena_server.database import Database
from arena_server.game_server import GameServer, MATCHMAKING_INTERVAL, PAIRS_PER_SWEEP


def get_local_ip():
    """Get the local IP address for LAN play."""
    try:
        # Create a socket to get local IP
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        s.connect(("8.8.8.8", 80))
        ip = s.getsockname()[0]
        s.close()
        return ip
    except OSError:
        return "localhost"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Card Arena Battle Server")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8765, help="Port to listen on (default: 8765)")
    parser.add_argument("--db", default=None, help="SQLite database path (default: arena.db next to the server)")
    parser.add_argument("--match-interval", type=float, default=MATCHMAKING_INTERVAL,
                        help=f"Seconds between matchmaking sweeps (default: {MATCHMAKING_INTERVAL})")
    parser.add_argument("--pairs-per-sweep", type=int, default=PAIRS_PER_SWEEP,
                        help=f"Battles created per sweep at most (default: {PAIRS_PER_SWEEP})")
    parser.add_argument("--turn-time", type=float, default=TURN_TIME,
                        help=f"Seconds per turn before it ends automatically (default: {TURN_TIME})")
    parser.add_argument("--add-player", action="append", default=[], metavar="USERNAME",
                        help="Create a player profile with the starter deck, then exit")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging level")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    database = Database(args.db)

    if args.add_player:
        for username in args.add_player:
            player_id = database.create_player(username)
            print(f"Created player {username} with id {player_id}")
        database.close()
        return

    local_ip = get_local_ip()

    print("=" * 60)
    print("       Card Arena Multiplayer Server")
    print("=" * 60)
    print()
    print(f"Server starting on port {args.port}...")
    print()
    print("Share this address with your friends:")
    print(f"  LAN:      ws://{local_ip}:{args.port}")
    print(f"  Local:    ws://localhost:{args.port}")
    print()
    print("Press Ctrl+C to stop the server")
    print("=" * 60)
    print()

    server = GameServer(
        args.host,
        args.port,
        database=database,
        match_interval=args.match_interval,
        pairs_per_sweep=args.pairs_per_sweep,
        turn_time=args.turn_time,
    )
    try:
        asyncio.run(server.start())
    except KeyboardInterrupt:
        print("\nServer stopped.")
    finally:
        database.close()


if __name__ == "__main__":
    main()
