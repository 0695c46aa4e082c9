"""Number Bingo state machine.

preparing -> ready -> active <-> paused -> completed

Every mutation runs under ``game_transaction`` so the timer-driven caller and
admin/player requests never interleave on the same game.
"""

from typing import Any, Dict, List

from flask import current_app

from bingo import db
from bingo.models import BingoCard, BingoWinner, CalledNumber, NumberGame, NumberGamePlayer, utcnow
from . import draws, lifecycle
from .cards import generate_card
from .errors import Conflict, InvalidState, NotFound, NumberNotFound, ValidationError
from .lifecycle import DrawResult
from .patterns import PATTERNS, matched_pattern
from .registry import broadcast, game_transaction
from .scheduler import start_auto_advance, stop_auto_advance

MARKING_MODES = ('auto', 'manual')
CALLABLE_STATUSES = ('active', 'paused')


def create_game(created_by: str, max_players: int, winning_pattern: str = 'any-line',
                auto_call_interval: int = None, marking_mode: str = 'auto',
                game_cost: float = 2, profit_percentage: float = 10,
                player_entry_fee: float = 10) -> Dict[str, Any]:
    if not isinstance(created_by, str) or not created_by.strip():
        raise ValidationError('admin_id is required')
    lifecycle.int_in_range(max_players, 'max_players', lifecycle.MIN_PLAYERS, lifecycle.MAX_PLAYERS)
    if winning_pattern not in PATTERNS:
        raise ValidationError('Invalid winning pattern')
    if marking_mode not in MARKING_MODES:
        raise ValidationError('Invalid marking mode')
    if auto_call_interval is None:
        auto_call_interval = current_app.config.get('DEFAULT_CALL_INTERVAL_MS', 3000)
    lifecycle.int_in_range(auto_call_interval, 'auto_call_interval', lifecycle.MIN_INTERVAL_MS, lifecycle.MAX_INTERVAL_MS)
    lifecycle.number_in_range(game_cost, 'game_cost', 1)
    lifecycle.number_in_range(profit_percentage, 'profit_percentage', 0, 100)
    lifecycle.number_in_range(player_entry_fee, 'player_entry_fee', 0)

    game = NumberGame(
        max_players=max_players,
        winning_pattern=winning_pattern,
        auto_call_interval=auto_call_interval,
        marking_mode=marking_mode,
        game_cost=game_cost,
        profit_percentage=profit_percentage,
        player_entry_fee=player_entry_fee,
        created_by=created_by,
        status='preparing',
    )
    db.session.add(game)
    db.session.flush()
    game.game_id = f"BG{game.id}"
    db.session.commit()
    current_app.logger.info(f"[create] game={game.game_id} max_players={max_players} pattern={winning_pattern} mode={marking_mode}")
    created = game.to_dict()
    broadcast('game_created', created)
    return created


def prepare_game(game_id: str) -> Dict[str, Any]:
    with game_transaction(NumberGame, game_id) as tx:
        lifecycle.prepare(tx)
        pool_size = int(current_app.config.get('CARD_POOL_SIZE', 100))
        tx.game.available_cards = range(1, pool_size + 1)
        tx.notify('game_ready', {
            'max_players': tx.game.max_players,
            'winning_pattern': tx.game.winning_pattern,
        }, everyone=True)
        return tx.game.to_dict()


def join_game(game_id: str, player_id: str) -> Dict[str, Any]:
    with game_transaction(NumberGame, game_id) as tx:
        lifecycle.join(tx, NumberGamePlayer, player_id)
        return {
            'game_id': game_id,
            'player_id': player_id,
            'available_cards': tx.game.available_cards,
        }


def select_card(game_id: str, player_id: str, card_number) -> Dict[str, Any]:
    with game_transaction(NumberGame, game_id) as tx:
        game = tx.game
        lifecycle.require_status(game, ('ready',), 'Game is not ready')
        if not game.has_player(player_id):
            raise NotFound('You have not joined this game')
        if game.card_for(player_id):
            raise Conflict('You already have a card')
        if isinstance(card_number, bool) or not isinstance(card_number, int) or card_number < 1:
            raise ValidationError('Invalid card number')
        available = game.available_cards
        if card_number not in available:
            raise Conflict('Card not available')

        card = BingoCard(player_id=player_id, card_number=card_number, grid=generate_card(card_number))
        game.cards.append(card)
        available.remove(card_number)
        game.available_cards = available
        tx.notify('card_selected', {
            'player_id': player_id,
            'card_number': card_number,
            'available_cards': available,
        }, everyone=True)
        current_app.logger.info(f"[select-card] game={game_id} player={player_id} card={card_number}")
        return {
            'game_id': game_id,
            'card_number': card_number,
            'card': card.to_dict(),
        }


def start_game(game_id: str) -> Dict[str, Any]:
    with game_transaction(NumberGame, game_id) as tx:
        game = tx.game
        lifecycle.require_status(game, ('ready',), 'Game is not ready to start')
        if len(game.players) < game.max_players:
            raise InvalidState(
                f'Game must be full to start. {len(game.players)}/{game.max_players} players joined.'
            )
        carded = {c.player_id for c in game.cards}
        missing = [pid for pid in game.player_ids if pid not in carded]
        if missing:
            raise InvalidState(
                f'Cannot start: {len(missing)} player(s) have not selected their card yet.'
            )
        game.status = 'active'
        game.started_at = utcnow()
        _schedule(tx)
        tx.notify('game_started', {
            'auto_call_interval': game.auto_call_interval,
            'started_at': game.started_at.isoformat(),
        })
        current_app.logger.info(f"[start] game={game_id} players={len(game.players)}")
        return game.to_dict()


def pause_game(game_id: str) -> Dict[str, Any]:
    with game_transaction(NumberGame, game_id) as tx:
        lifecycle.require_status(tx.game, ('active',), 'Game is not active')
        tx.game.status = 'paused'
        app = current_app._get_current_object()
        tx.after_commit(lambda: stop_auto_advance(game_id, app))
        tx.notify('game_paused', {})
        return tx.game.to_dict()


def resume_game(game_id: str) -> Dict[str, Any]:
    with game_transaction(NumberGame, game_id) as tx:
        lifecycle.require_status(tx.game, ('paused',), 'Game is not paused')
        tx.game.status = 'active'
        _schedule(tx)
        tx.notify('game_resumed', {})
        return tx.game.to_dict()


def stop_game(game_id: str) -> Dict[str, Any]:
    with game_transaction(NumberGame, game_id) as tx:
        lifecycle.stop(tx)
        return tx.game.to_dict()


def call_next(game_id: str) -> DrawResult:
    """Manually call the next number. Allowed while active or paused."""
    with game_transaction(NumberGame, game_id) as tx:
        lifecycle.require_status(tx.game, CALLABLE_STATUSES, 'Game must be active or paused')
        return _call(tx)


def auto_call(game_id: str, handle) -> bool:
    """One scheduler tick; returns False once the timer should stop."""
    with game_transaction(NumberGame, game_id) as tx:
        if not handle.is_current() or tx.game.status != 'active':
            current_app.logger.info(f"[timer-abort] game={game_id} status={tx.game.status}")
            tx.abort()
            return False
        result = _call(tx)
    return not result.finished


def mark_number(game_id: str, player_id: str, number) -> Dict[str, Any]:
    with game_transaction(NumberGame, game_id) as tx:
        game = tx.game
        lifecycle.require_status(game, CALLABLE_STATUSES, 'Game is not active')
        if game.marking_mode != 'manual':
            raise InvalidState('Game is not in manual marking mode')
        if not game.has_player(player_id):
            raise NotFound('You are not a player in this game')
        if isinstance(number, bool) or not isinstance(number, int) or not 1 <= number <= 75:
            raise ValidationError('Invalid number')
        if number not in game.called_values:
            raise ValidationError('This number has not been called yet')
        card = game.card_for(player_id)
        if card is None or card.mark(number) == 0:
            raise NumberNotFound('Number not found on your card')
        tx.notify('number_marked', {'player_id': player_id, 'number': number})
        current_app.logger.info(f"[mark] game={game_id} player={player_id} number={number}")

        winners = _record_winners(tx)
        return {
            'game_id': game_id,
            'number': number,
            'marked': card.marked,
            'has_won': any(w['player_id'] == player_id for w in winners),
        }


def check_for_winners(game: NumberGame) -> List[BingoWinner]:
    """New winners under the game's pattern; players already recorded are skipped."""
    existing = set(game.winner_ids)
    found = []
    for card in game.cards:
        if card.player_id in existing:
            continue
        pattern = matched_pattern(card.marked, game.winning_pattern)
        if pattern:
            found.append(BingoWinner(
                player_id=card.player_id,
                card_number=card.card_number,
                pattern=pattern,
                completed_at=utcnow(),
                winning_card_json=card.grid_json,
                marked_cells_json=card.marked_json,
            ))
    return found


def get_player_view(game_id: str, player_id: str) -> Dict[str, Any]:
    game = NumberGame.query.filter_by(game_id=game_id).first()
    if not game:
        raise NotFound('Game not found')
    return game.to_player_view(player_id)


def list_games() -> List[Dict[str, Any]]:
    games = NumberGame.query.order_by(NumberGame.created_at.desc(), NumberGame.id.desc()).all()
    return [dict(g.to_dict(), players=g.player_ids) for g in games]


def get_history(player_id: str, limit: int = None) -> List[Dict[str, Any]]:
    """Completed games the player took part in, most recent first."""
    if limit is None:
        limit = int(current_app.config.get('HISTORY_LIMIT', 50))
    games = (
        NumberGame.query.join(NumberGamePlayer)
        .filter(NumberGamePlayer.player_id == player_id, NumberGame.status == 'completed')
        .order_by(NumberGame.completed_at.desc())
        .limit(limit)
        .all()
    )
    history = []
    for game in games:
        card = game.card_for(player_id)
        history.append({
            'game_id': game.game_id,
            'completed_at': game.completed_at.isoformat() if game.completed_at else None,
            'winning_pattern': game.winning_pattern,
            'total_players': len(game.players),
            'called_numbers': len(game.called_numbers),
            'called_numbers_list': [c.to_dict() for c in game.called_numbers],
            'winners': [w.to_dict() for w in game.winners],
            'user_won': player_id in game.winner_ids,
            'user_card': card.to_dict() if card else None,
        })
    return history


def _schedule(tx) -> None:
    game = tx.game
    app = current_app._get_current_object()
    game_id, interval = game.game_id, game.auto_call_interval
    tx.after_commit(lambda: start_auto_advance(app, game_id, interval, auto_call))


def _call(tx) -> DrawResult:
    game = tx.game
    number = draws.NUMBER_POOL.draw_next(game.called_values)
    if number is None:
        lifecycle.complete(tx, 'All numbers called')
        return DrawResult(value=None, exhausted=True)

    game.called_numbers.append(CalledNumber(number=number, called_at=utcnow()))
    game.current_number = number
    if game.marking_mode == 'auto':
        for card in game.cards:
            card.mark(number)
    tx.notify('number_called', {
        'number': number,
        'total_called': len(game.called_numbers),
        'current_number': number,
    })
    current_app.logger.info(f"[call] game={game.game_id} number={number} total={len(game.called_numbers)}")
    return DrawResult(value=number, winners=_record_winners(tx))


def _record_winners(tx) -> List[Dict[str, Any]]:
    game = tx.game
    new_winners = check_for_winners(game)
    if not new_winners:
        return []
    for winner in new_winners:
        game.winners.append(winner)
    payload = [w.to_dict() for w in new_winners]
    tx.notify('winner', {'winners': [w.to_dict() for w in game.winners]})
    for w in new_winners:
        current_app.logger.info(f"[winner] game={game.game_id} player={w.player_id} pattern={w.pattern}")
    lifecycle.complete(tx, 'winner')
    return payload
