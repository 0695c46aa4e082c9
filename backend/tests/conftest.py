import os
import sys
import pytest

# Ensure the backend root (containing the `bingo` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from bingo import create_app, db, socketio
from bingo.services.games import scheduler


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = '*'
    LOG_LEVEL = 'DEBUG'
    CARD_POOL_SIZE = 100
    DEFAULT_CALL_INTERVAL_MS = 3000
    DEFAULT_WORD_LENGTH = 5
    HISTORY_LIMIT = 50
    TIMER_HEARTBEAT_SEC = 0
    AUTO_ADVANCE_TIME_SCALE = 1.0


@pytest.fixture(autouse=True)
def reset_timers():
    yield
    with scheduler._handles_guard:
        for handle in scheduler._handles.values():
            handle.cancelled.set()
        scheduler._handles.clear()


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import bingo.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


@pytest.fixture()
def number_game(flask_app):
    """Factory for a Number Bingo game that is ready to start."""
    from bingo.services.games import number_bingo

    def build(players=('p1', 'p2'), cards=None, **options):
        options.setdefault('max_players', len(players))
        game = number_bingo.create_game(created_by='admin', **options)
        game_id = game['game_id']
        number_bingo.prepare_game(game_id)
        for player_id in players:
            number_bingo.join_game(game_id, player_id)
        for player_id, card_number in zip(players, cards or range(1, len(players) + 1)):
            number_bingo.select_card(game_id, player_id, card_number)
        return game_id

    return build


@pytest.fixture()
def letter_game(flask_app):
    """Factory for a Letter Bingo game with every player's word submitted."""
    from bingo.services.games import letter_bingo

    def build(words, word_length=4, **options):
        options.setdefault('max_players', len(words))
        game = letter_bingo.create_game(created_by='admin', word_length=word_length, **options)
        game_id = game['game_id']
        letter_bingo.prepare_game(game_id)
        for player_id, word in words.items():
            letter_bingo.join_game(game_id, player_id)
            letter_bingo.submit_word(game_id, player_id, word)
        return game_id

    return build


@pytest.fixture()
def script_draws(monkeypatch):
    """Replace a draw pool with one that draws ``script`` in order, then anything left."""
    from bingo.services.games import draws

    def install(pool_name, script):
        domain = draws.NUMBERS if pool_name == 'NUMBER_POOL' else draws.LETTERS

        def choose(candidates):
            for value in script:
                if value in candidates:
                    return value
            return candidates[0]

        monkeypatch.setattr(draws, pool_name, draws.DrawPool(domain, choose=choose))

    return install
