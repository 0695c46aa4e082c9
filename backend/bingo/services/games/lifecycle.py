"""Lifecycle steps shared by Number Bingo and Letter Bingo.

Both variants walk ``preparing -> ready -> (in play) -> completed`` with the same
roster rules; only the in-play states and per-player entities differ.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from flask import current_app

from bingo.models import utcnow
from .errors import AlreadyJoined, GameFull, InvalidState, ValidationError
from .scheduler import stop_auto_advance

MIN_PLAYERS = 2
MAX_PLAYERS = 50
MIN_INTERVAL_MS = 1000
MAX_INTERVAL_MS = 10000


@dataclass
class DrawResult:
    """Outcome of one draw: the value (None once exhausted) and any new winners."""
    value: Optional[Any]
    winners: List[Dict[str, Any]] = field(default_factory=list)
    exhausted: bool = False

    @property
    def finished(self) -> bool:
        return self.exhausted or bool(self.winners)


def int_in_range(value, name: str, lo: int, hi: Optional[int] = None) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f'{name} must be an integer')
    if value < lo or (hi is not None and value > hi):
        bound = f'between {lo} and {hi}' if hi is not None else f'at least {lo}'
        raise ValidationError(f'{name} must be {bound}')
    return value


def number_in_range(value, name: str, lo: float, hi: Optional[float] = None) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f'{name} must be a number')
    if value < lo or (hi is not None and value > hi):
        bound = f'between {lo} and {hi}' if hi is not None else f'at least {lo}'
        raise ValidationError(f'{name} must be {bound}')
    return value


def validate_player_id(player_id) -> str:
    if not isinstance(player_id, str) or not player_id.strip():
        raise ValidationError('player_id is required')
    return player_id


def require_status(game, allowed, message: str) -> None:
    if game.status not in allowed:
        raise InvalidState(message)


def prepare(tx) -> None:
    game = tx.game
    require_status(game, ('preparing',), 'Game is not in preparing state')
    game.status = 'ready'
    current_app.logger.info(f"[prepare] game={game.game_id} ready for players")


def join(tx, roster_model, player_id: str) -> None:
    game = tx.game
    validate_player_id(player_id)
    require_status(game, ('ready',), 'Game is not ready to join')
    if len(game.players) >= game.max_players:
        raise GameFull('Game is full')
    if game.has_player(player_id):
        raise AlreadyJoined('Already joined this game')
    game.players.append(roster_model(player_id=player_id))
    tx.notify('player_joined', {
        'player_id': player_id,
        'total_players': len(game.players),
        'max_players': game.max_players,
    }, everyone=True)
    current_app.logger.info(f"[join] game={game.game_id} player={player_id} {len(game.players)}/{game.max_players}")


def complete(tx, reason: str) -> None:
    """Move to the terminal state and stop auto-advance once committed."""
    game = tx.game
    game.status = 'completed'
    if game.completed_at is None:
        game.completed_at = utcnow()
    app = current_app._get_current_object()
    game_id = game.game_id
    tx.after_commit(lambda: stop_auto_advance(game_id, app))
    tx.notify('game_completed', {'reason': reason, 'winners': game.winner_ids})
    current_app.logger.info(f"[complete] game={game.game_id} reason={reason}")


def stop(tx) -> None:
    game = tx.game
    if game.status == 'completed':
        raise InvalidState('Game is already completed')
    game.status = 'completed'
    if game.completed_at is None:
        game.completed_at = utcnow()
    app = current_app._get_current_object()
    game_id = game.game_id
    tx.after_commit(lambda: stop_auto_advance(game_id, app))
    tx.notify('game_stopped', {})
    current_app.logger.info(f"[stop] game={game.game_id} stopped by admin")
