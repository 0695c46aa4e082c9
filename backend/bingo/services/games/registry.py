"""Per-game serialization and the notification boundary.

Every mutating operation on a game runs inside ``game_transaction``: the game's
lock is held from load to commit, and events are emitted only after the commit
succeeded, so clients never hear about a state that was rolled back.
"""

import threading
import weakref
from contextlib import contextmanager
from typing import Any, Callable, Dict, List, Tuple

from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from bingo import db, socketio
from .errors import Conflict, NotFound


NAMESPACE = '/ws'

# entries vanish once no request holds or waits on the lock
_locks: "weakref.WeakValueDictionary[str, Any]" = weakref.WeakValueDictionary()
_locks_guard = threading.Lock()


def room_for(game_id: str) -> str:
    return f"game:{game_id}"


def game_lock(game_id: str) -> threading.RLock:
    with _locks_guard:
        lock = _locks.get(game_id)
        if lock is None:
            lock = threading.RLock()
            _locks[game_id] = lock
        return lock


def notify(game_id: str, event: str, payload: Dict[str, Any]) -> None:
    """Fire-and-forget broadcast to everyone watching ``game_id``."""
    socketio.emit(event, payload, to=room_for(game_id), namespace=NAMESPACE)


def broadcast(event: str, payload: Dict[str, Any]) -> None:
    """Broadcast to every connected client (lobby listings, admin dashboards)."""
    socketio.emit(event, payload, namespace=NAMESPACE)


class GameTransaction:
    def __init__(self, game):
        self.game = game
        self.events: List[Tuple[str, Dict[str, Any], bool]] = []
        self.callbacks: List[Callable[[], None]] = []
        self.aborted = False

    def abort(self) -> None:
        """Leave the game untouched: roll back instead of committing, emit nothing."""
        self.aborted = True

    def after_commit(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` once the commit succeeded, still under the game lock."""
        self.callbacks.append(callback)

    def notify(self, event: str, payload: Dict[str, Any], everyone: bool = False) -> None:
        payload = dict(payload)
        payload.setdefault('game_id', self.game.game_id)
        self.events.append((event, payload, everyone))


@contextmanager
def game_transaction(model, game_id: str):
    """Lock, load, yield, commit, then emit the collected events.

    Raises NotFound for an unknown game and Conflict when the commit loses an
    optimistic-lock race or violates a uniqueness constraint.
    """
    with game_lock(game_id):
        game = model.query.filter_by(game_id=game_id).first()
        if not game:
            raise NotFound('Game not found')
        tx = GameTransaction(game)
        try:
            yield tx
            if tx.aborted:
                db.session.rollback()
                return
            # bumps the version column even when only child rows changed
            game.touch()
            db.session.commit()
        except StaleDataError:
            db.session.rollback()
            current_app.logger.warning(f"[conflict] game={game_id} concurrent update rejected")
            raise Conflict('Game was modified concurrently, retry the request')
        except IntegrityError:
            db.session.rollback()
            current_app.logger.warning(f"[conflict] game={game_id} uniqueness violated")
            raise Conflict('Value already taken')
        except Exception:
            db.session.rollback()
            raise
        for callback in tx.callbacks:
            callback()
        for event, payload, everyone in tx.events:
            if everyone:
                broadcast(event, payload)
            else:
                notify(game_id, event, payload)
