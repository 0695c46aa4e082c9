from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or '*'

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from bingo.main import main
    flask_app.register_blueprint(main)

    from bingo.api.number_bingo import number_bingo
    from bingo.api.letter_bingo import letter_bingo
    flask_app.register_blueprint(number_bingo, url_prefix='/api/bingo')
    flask_app.register_blueprint(letter_bingo, url_prefix='/api/letter-bingo')

    from bingo.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates all tables."""
        with flask_app.app_context():
            import bingo.models  # noqa: F401
            db.drop_all()
            db.create_all()
            print('Database has been reset!')

    @click.command('create-sample-game')
    @click.option('--admin-id', required=True, help='Identifier of the admin creating the game.')
    @click.option('--max-players', default=10, show_default=True, type=int)
    def create_sample_game_command(admin_id, max_players):
        """Creates a Number Bingo game in the preparing state."""
        from bingo.services.games import number_bingo as svc
        with flask_app.app_context():
            game = svc.create_game(
                created_by=admin_id,
                max_players=max_players,
                winning_pattern='any-line',
                auto_call_interval=flask_app.config['DEFAULT_CALL_INTERVAL_MS'],
            )
            print(f"Sample BINGO game created: {game['game_id']} "
                  f"(max players {game['max_players']}, pattern {game['winning_pattern']})")

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(create_sample_game_command)

    return flask_app
