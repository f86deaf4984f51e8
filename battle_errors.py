"""Errors raised by the battle engine and the arena server.

Every error here is reported back to the connection that caused it as an
``error`` frame. None of them is fatal: the room and the connection stay
usable for the next valid action. Transport loss is not an error, it goes
through the disconnect path.
"""


class BattleError(Exception):
    """Base class for all player-facing battle errors."""

    default_message = "Battle error"

    def __init__(self, message: str | None = None, details: dict | None = None):
        self.message = message or self.default_message
        self.details = details or {}
        self.error_code = self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Payload for an ``error`` frame."""
        data = {"message": self.message, "code": self.error_code}
        if self.details:
            data["details"] = self.details
        return data

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


class NotAuthenticated(BattleError):
    default_message = "Not authenticated"


class PlayerNotFound(BattleError):
    default_message = "Player not found"


class AlreadyQueued(BattleError):
    default_message = "Already in queue"


class NotYourTurn(BattleError):
    default_message = "Not your turn"


class InsufficientMana(BattleError):
    default_message = "Not enough mana"


class CardNotInHand(BattleError):
    default_message = "Card not in hand"


class TargetRequired(BattleError):
    default_message = "This card needs a target"


class InvalidTarget(BattleError):
    default_message = "Target not found"


class CannotAttack(BattleError):
    default_message = "This creature cannot attack right now"


class BattleNotActive(BattleError):
    default_message = "Battle not active"


class InvalidMessage(BattleError):
    default_message = "Invalid message format"
