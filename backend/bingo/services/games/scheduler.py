import threading
from typing import Callable, Dict

from bingo import socketio


class AutoAdvance:
    """Handle for one game's recurring draw timer."""

    def __init__(self, game_id: str, interval: float):
        self.game_id = game_id
        self.interval = interval
        self.cancelled = threading.Event()

    def is_current(self) -> bool:
        """True while this handle is the registered, uncancelled timer for its game."""
        if self.cancelled.is_set():
            return False
        with _handles_guard:
            return _handles.get(self.game_id) is self


# advance(game_id, handle) -> True to keep ticking
Advance = Callable[[str, AutoAdvance], bool]

_handles: Dict[str, AutoAdvance] = {}
_handles_guard = threading.Lock()


def start_auto_advance(app, game_id: str, interval_ms: int, advance: Advance) -> AutoAdvance:
    """Start (or restart) the recurring draw timer for a game.

    - Cancels any timer already registered for the game
    - Tracks the handle but spawns no worker in TESTING mode unless
      ENABLE_SCHEDULER_IN_TESTS is set
    - Each tick calls ``advance``; the loop ends when it returns False or raises
    """
    scale = float(app.config.get('AUTO_ADVANCE_TIME_SCALE', 1.0))
    handle = AutoAdvance(game_id, interval_ms / 1000.0 * scale)
    with _handles_guard:
        stale = _handles.get(game_id)
        if stale is not None:
            stale.cancelled.set()
        _handles[game_id] = handle
    if stale is not None:
        app.logger.info(f"[timer-replace] game={game_id} stale timer cancelled")
    app.logger.info(f"[timer-set] game={game_id} interval={interval_ms}ms")

    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return handle
    socketio.start_background_task(_worker, app, handle, advance)
    return handle


def stop_auto_advance(game_id: str, app=None) -> bool:
    with _handles_guard:
        handle = _handles.pop(game_id, None)
    if handle is None:
        return False
    handle.cancelled.set()
    if app is not None:
        app.logger.info(f"[timer-stop] game={game_id}")
    return True


def is_auto_advancing(game_id: str) -> bool:
    with _handles_guard:
        return game_id in _handles


def _discard(handle: AutoAdvance) -> None:
    handle.cancelled.set()
    with _handles_guard:
        if _handles.get(handle.game_id) is handle:
            del _handles[handle.game_id]


def _wait(app, handle: AutoAdvance) -> bool:
    """Sleep one interval; True if the handle was cancelled meanwhile."""
    hb = int(app.config.get('TIMER_HEARTBEAT_SEC', 0))
    if hb <= 0:
        return handle.cancelled.wait(handle.interval)
    slept = 0.0
    while slept < handle.interval:
        step = min(hb, handle.interval - slept)
        if handle.cancelled.wait(step):
            return True
        slept += step
        app.logger.info(f"[timer-heartbeat] game={handle.game_id} remaining={max(0.0, handle.interval - slept):.1f}s")
    return False


def _worker(app, handle: AutoAdvance, advance: Advance) -> None:
    while not _wait(app, handle):
        with app.app_context():
            app.logger.debug(f"[timer-fire] game={handle.game_id}")
            try:
                keep_going = advance(handle.game_id, handle)
            except Exception:
                app.logger.exception(f"[timer-error] game={handle.game_id} auto-advance failed, timer stopped")
                keep_going = False
        if not keep_going:
            break
    _discard(handle)
    app.logger.info(f"[timer-exit] game={handle.game_id}")
