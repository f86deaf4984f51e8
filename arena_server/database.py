"""Database module for the card arena: player profiles, decks and match history."""

import sqlite3
import json
from datetime import datetime
from pathlib import Path

import cards_database as db


class Database:
    """SQLite database manager for player profiles and battle data."""

    def __init__(self, db_path: str = None):
        # Use absolute path relative to this file's directory
        if db_path is None:
            db_path = Path(__file__).parent / "arena.db"
        self.db_path = str(db_path)
        self.conn = None
        self._init_database()

    def _init_database(self):
        """Initialize database with tables."""
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        cursor = self.conn.cursor()

        # Players table
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS players (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                username TEXT UNIQUE NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                wins INTEGER DEFAULT 0,
                losses INTEGER DEFAULT 0,
                total_games INTEGER DEFAULT 0,
                experience INTEGER DEFAULT 0,
                gold INTEGER DEFAULT 0
            )
        ''')

        # Decks table
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS decks (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                player_id INTEGER NOT NULL,
                name TEXT NOT NULL,
                cards TEXT NOT NULL,
                is_active INTEGER DEFAULT 0,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (player_id) REFERENCES players(id)
            )
        ''')

        # Matches table
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS matches (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                room_id TEXT NOT NULL,
                player1_id INTEGER NOT NULL,
                player2_id INTEGER NOT NULL,
                winner_id INTEGER,
                reason TEXT,
                started_at TIMESTAMP,
                ended_at TIMESTAMP,
                game_state TEXT,
                FOREIGN KEY (player1_id) REFERENCES players(id),
                FOREIGN KEY (player2_id) REFERENCES players(id),
                FOREIGN KEY (winner_id) REFERENCES players(id)
            )
        ''')

        self.conn.commit()

    # ==================== PLAYER MANAGEMENT ====================

    def create_player(self, username: str, deck: list = None) -> int:
        """Create a player profile with an active starter deck. Returns the player id."""
        cursor = self.conn.cursor()
        cursor.execute("INSERT INTO players (username) VALUES (?)", (username,))
        self.conn.commit()
        player_id = cursor.lastrowid

        self.save_deck(player_id, "Starter Deck", deck or list(db.DEFAULT_DECK), is_active=True)
        return player_id

    def get_player(self, player_id: int) -> dict | None:
        """Get a player profile."""
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT id, username, wins, losses, total_games, experience, gold FROM players WHERE id = ?",
            (player_id,)
        )
        row = cursor.fetchone()
        if row:
            return {
                "player_id": row["id"],
                "username": row["username"],
                "wins": row["wins"],
                "losses": row["losses"],
                "total_games": row["total_games"],
                "experience": row["experience"],
                "gold": row["gold"],
            }
        return None

    def apply_battle_result(self, player_id: int, won: bool, experience: int, gold: int):
        """Record a finished battle on a player's profile."""
        cursor = self.conn.cursor()
        cursor.execute('''
            UPDATE players
            SET wins = wins + ?, losses = losses + ?, total_games = total_games + 1,
                experience = experience + ?, gold = gold + ?
            WHERE id = ?
        ''', (1 if won else 0, 0 if won else 1, experience, gold, player_id))
        self.conn.commit()

    # ==================== DECK MANAGEMENT ====================

    def save_deck(self, player_id: int, name: str, cards: list, is_active: bool = False) -> int:
        """Save a deck for a player."""
        cursor = self.conn.cursor()

        # If setting as active, deactivate others
        if is_active:
            cursor.execute(
                "UPDATE decks SET is_active = 0 WHERE player_id = ?",
                (player_id,)
            )

        cursor.execute(
            "INSERT INTO decks (player_id, name, cards, is_active) VALUES (?, ?, ?, ?)",
            (player_id, name, json.dumps(cards), 1 if is_active else 0)
        )
        self.conn.commit()
        return cursor.lastrowid

    def get_player_decks(self, player_id: int) -> list:
        """Get all decks for a player."""
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT id, name, cards, is_active FROM decks WHERE player_id = ?",
            (player_id,)
        )
        return [
            {
                "id": row["id"],
                "name": row["name"],
                "cards": json.loads(row["cards"]),
                "is_active": bool(row["is_active"])
            }
            for row in cursor.fetchall()
        ]

    def get_active_deck(self, player_id: int) -> list | None:
        """Get the card ids of a player's active deck."""
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT cards FROM decks WHERE player_id = ? AND is_active = 1",
            (player_id,)
        )
        row = cursor.fetchone()
        if row:
            return json.loads(row["cards"])
        return None

    def set_active_deck(self, player_id: int, deck_id: int) -> bool:
        """Set a deck as active."""
        cursor = self.conn.cursor()
        cursor.execute("UPDATE decks SET is_active = 0 WHERE player_id = ?", (player_id,))
        cursor.execute(
            "UPDATE decks SET is_active = 1 WHERE id = ? AND player_id = ?",
            (deck_id, player_id)
        )
        self.conn.commit()
        return cursor.rowcount > 0

    # ==================== MATCH HISTORY ====================

    def record_match(self, room_id: str, player1_id: int, player2_id: int,
                     winner_id: int | None, reason: str,
                     started_at: int, ended_at: int, game_state: dict) -> int:
        """Store a finished battle. Timestamps are epoch milliseconds."""
        cursor = self.conn.cursor()
        cursor.execute('''
            INSERT INTO matches
                (room_id, player1_id, player2_id, winner_id, reason, started_at, ended_at, game_state)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        ''', (
            room_id, player1_id, player2_id, winner_id, reason,
            datetime.fromtimestamp(started_at / 1000).isoformat(),
            datetime.fromtimestamp(ended_at / 1000).isoformat(),
            json.dumps(game_state)
        ))
        self.conn.commit()
        return cursor.lastrowid

    def get_match_history(self, player_id: int) -> list:
        """Get finished battles a player took part in, newest first."""
        cursor = self.conn.cursor()
        cursor.execute('''
            SELECT id, room_id, player1_id, player2_id, winner_id, reason, started_at, ended_at
            FROM matches
            WHERE player1_id = ? OR player2_id = ?
            ORDER BY id DESC
        ''', (player_id, player_id))
        return [dict(row) for row in cursor.fetchall()]

    def close(self):
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None
