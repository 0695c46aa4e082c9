"""Errors raised by the game services.

Each error carries the HTTP status the API layer renders it with, so routes
never have to map exceptions by hand.
"""


class BingoError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {'error': self.message}


class ValidationError(BingoError):
    """Malformed or out-of-range input."""
    status_code = 400


class NumberNotFound(ValidationError):
    """A marked number is not on the player's card."""


class InvalidState(BingoError):
    """Operation is not valid in the game's current status."""
    status_code = 409


class NotFound(BingoError):
    status_code = 404


class Conflict(BingoError):
    """A uniquely claimed resource is already taken."""
    status_code = 409


class GameFull(Conflict):
    pass


class AlreadyJoined(Conflict):
    pass


class Exhausted(BingoError):
    """Every value of the draw pool has been drawn."""
    status_code = 409
