"""Letter Bingo state machine.

preparing -> ready -> playing -> completed

Players pick words of distinct letters; letters A-Z are drawn until one word is
fully matched. The first completed word ends the game.
"""

import re
from typing import Any, Dict, List, Optional

from flask import current_app

from bingo import db
from bingo.models import DrawnLetter, LetterGame, LetterGamePlayer, LetterWinner, PlayerWord, utcnow
from . import draws, lifecycle
from .errors import Conflict, InvalidState, NotFound, ValidationError
from .lifecycle import DrawResult
from .registry import broadcast, game_transaction
from .scheduler import start_auto_advance

MIN_WORD_LENGTH = 3
MAX_WORD_LENGTH = 7
MIN_WORDS_TO_START = 2

_LETTERS_ONLY = re.compile(r'[A-Z]+')


def create_game(created_by: str, max_players: int, word_length: int = None,
                draw_speed: int = None) -> Dict[str, Any]:
    if not isinstance(created_by, str) or not created_by.strip():
        raise ValidationError('admin_id is required')
    lifecycle.int_in_range(max_players, 'max_players', lifecycle.MIN_PLAYERS, lifecycle.MAX_PLAYERS)
    if word_length is None:
        word_length = current_app.config.get('DEFAULT_WORD_LENGTH', 5)
    lifecycle.int_in_range(word_length, 'word_length', MIN_WORD_LENGTH, MAX_WORD_LENGTH)
    if draw_speed is None:
        draw_speed = current_app.config.get('DEFAULT_CALL_INTERVAL_MS', 3000)
    lifecycle.int_in_range(draw_speed, 'draw_speed', lifecycle.MIN_INTERVAL_MS, lifecycle.MAX_INTERVAL_MS)

    game = LetterGame(
        max_players=max_players,
        word_length=word_length,
        draw_speed=draw_speed,
        created_by=created_by,
        status='preparing',
        remaining_letters='',
    )
    db.session.add(game)
    db.session.flush()
    game.game_id = f"LB{game.id}"
    db.session.commit()
    current_app.logger.info(f"[create] game={game.game_id} max_players={max_players} word_length={word_length}")
    created = game.to_dict()
    broadcast('game_created', created)
    return created


def prepare_game(game_id: str) -> Dict[str, Any]:
    with game_transaction(LetterGame, game_id) as tx:
        lifecycle.prepare(tx)
        tx.notify('game_ready', {'word_length': tx.game.word_length}, everyone=True)
        return tx.game.to_dict()


def join_game(game_id: str, player_id: str) -> Dict[str, Any]:
    with game_transaction(LetterGame, game_id) as tx:
        lifecycle.join(tx, LetterGamePlayer, player_id)
        return {
            'game_id': game_id,
            'player_id': player_id,
            'word_length': tx.game.word_length,
        }


def normalize_word(word, word_length: int) -> str:
    """Uppercase ``word`` and check it is ``word_length`` distinct letters."""
    if not isinstance(word, str):
        raise ValidationError(f'Word must be exactly {word_length} characters')
    # case mapping can change the length (ligatures, sharp s)
    upper = word.upper()
    if len(upper) != word_length:
        raise ValidationError(f'Word must be exactly {word_length} characters')
    if not _LETTERS_ONLY.fullmatch(upper):
        raise ValidationError('Word must contain only letters')
    if len(set(upper)) != len(upper):
        raise ValidationError('Word must have all unique characters')
    return upper


def submit_word(game_id: str, player_id: str, word) -> Dict[str, Any]:
    with game_transaction(LetterGame, game_id) as tx:
        game = tx.game
        lifecycle.require_status(game, ('ready',), 'Game is not in ready state')
        if not game.has_player(player_id):
            raise NotFound('You are not in this game')
        upper = normalize_word(word, game.word_length)
        if not game.is_word_available(upper, player_id):
            raise Conflict('This word is already taken')

        existing = game.word_for(player_id)
        if existing:
            existing.word = upper
            existing.matched_letters = ''
            existing.is_winner = False
            existing.submitted_at = utcnow()
        else:
            game.words.append(PlayerWord(player_id=player_id, word=upper, matched_letters='', submitted_at=utcnow()))
        tx.notify('word_submitted', {
            'player_id': player_id,
            'total_submitted': len(game.words),
            'total_players': len(game.players),
        }, everyone=True)
        current_app.logger.info(f"[submit-word] game={game_id} player={player_id}")
        return {'game_id': game_id, 'word': upper}


def check_word(game_id: str, player_id: str, word) -> Dict[str, Any]:
    if not isinstance(word, str) or not word:
        raise ValidationError('word is required')
    game = LetterGame.query.filter_by(game_id=game_id).first()
    if not game:
        raise NotFound('Game not found')
    return {'available': game.is_word_available(word.upper(), player_id)}


def start_game(game_id: str) -> Dict[str, Any]:
    with game_transaction(LetterGame, game_id) as tx:
        game = tx.game
        lifecycle.require_status(game, ('ready',), 'Game is not ready to start')
        if len(game.words) < MIN_WORDS_TO_START:
            raise InvalidState(f'At least {MIN_WORDS_TO_START} players must submit words')
        game.remaining_letters = ''.join(draws.LETTERS)
        game.drawn_letters = []
        game.status = 'playing'
        game.started_at = utcnow()
        app = current_app._get_current_object()
        interval = game.draw_speed
        tx.after_commit(lambda: start_auto_advance(app, game_id, interval, auto_draw))
        tx.notify('game_started', {
            'draw_speed': game.draw_speed,
            'started_at': game.started_at.isoformat(),
        })
        current_app.logger.info(f"[start] game={game_id} words={len(game.words)}")
        return game.to_dict()


def stop_game(game_id: str) -> Dict[str, Any]:
    with game_transaction(LetterGame, game_id) as tx:
        lifecycle.stop(tx)
        return tx.game.to_dict()


def draw_next(game_id: str) -> DrawResult:
    """Manually draw the next letter."""
    with game_transaction(LetterGame, game_id) as tx:
        lifecycle.require_status(tx.game, ('playing',), 'Game is not playing')
        return _draw(tx)


def auto_draw(game_id: str, handle) -> bool:
    """One scheduler tick; returns False once the timer should stop."""
    with game_transaction(LetterGame, game_id) as tx:
        if not handle.is_current() or tx.game.status != 'playing':
            current_app.logger.info(f"[timer-abort] game={game_id} status={tx.game.status}")
            tx.abort()
            return False
        result = _draw(tx)
    return not result.finished


def check_for_winner(game: LetterGame, letter: str) -> Optional[PlayerWord]:
    """Match ``letter`` against every word still in play; first full match wins."""
    existing = set(game.winner_ids)
    for player_word in game.words:
        if player_word.is_winner or player_word.player_id in existing:
            continue
        if letter not in player_word.word:
            continue
        if player_word.match(letter):
            return player_word
    return None


def get_player_view(game_id: str, player_id: str) -> Dict[str, Any]:
    game = LetterGame.query.filter_by(game_id=game_id).first()
    if not game:
        raise NotFound('Game not found')
    return game.to_player_view(player_id)


def list_games() -> List[Dict[str, Any]]:
    games = LetterGame.query.order_by(LetterGame.created_at.desc(), LetterGame.id.desc()).all()
    return [dict(g.to_dict(), players=g.player_ids) for g in games]


def get_history(player_id: str, limit: int = None) -> List[Dict[str, Any]]:
    """Completed games the player took part in, most recent first."""
    if limit is None:
        limit = int(current_app.config.get('HISTORY_LIMIT', 50))
    games = (
        LetterGame.query.join(LetterGamePlayer)
        .filter(LetterGamePlayer.player_id == player_id, LetterGame.status == 'completed')
        .order_by(LetterGame.completed_at.desc())
        .limit(limit)
        .all()
    )
    history = []
    for game in games:
        mine = game.word_for(player_id)
        history.append({
            'game_id': game.game_id,
            'completed_at': game.completed_at.isoformat() if game.completed_at else None,
            'word_length': game.word_length,
            'total_players': len(game.players),
            'drawn_letters': game.drawn_values,
            'winners': [w.to_dict() for w in game.winners],
            'user_won': player_id in game.winner_ids,
            'user_word': mine.word if mine else '',
        })
    return history


def _draw(tx) -> DrawResult:
    game = tx.game
    letter = draws.LETTER_POOL.draw_next(game.drawn_values)
    if letter is None:
        lifecycle.complete(tx, 'All letters drawn')
        return DrawResult(value=None, exhausted=True)

    game.drawn_letters.append(DrawnLetter(letter=letter, drawn_at=utcnow()))
    game.remaining_letters = game.remaining_letters.replace(letter, '')
    tx.notify('letter_drawn', {
        'letter': letter,
        'drawn_letters': game.drawn_values,
        'remaining_count': len(game.remaining_letters),
    })
    current_app.logger.info(f"[draw] game={game.game_id} letter={letter} remaining={len(game.remaining_letters)}")

    winner = check_for_winner(game, letter)
    if winner is None:
        return DrawResult(value=letter)

    winner.is_winner = True
    record = LetterWinner(player_id=winner.player_id, word=winner.word, completed_at=utcnow())
    game.winners.append(record)
    tx.notify('winner', {'winners': [w.to_dict() for w in game.winners]})
    current_app.logger.info(f"[winner] game={game.game_id} player={winner.player_id} word={winner.word}")
    lifecycle.complete(tx, 'winner')
    return DrawResult(value=letter, winners=[record.to_dict()])
