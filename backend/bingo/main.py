from flask import Blueprint, jsonify, current_app
from bingo.services.games.errors import BingoError

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the Bingo game server!'})

@main.app_errorhandler(BingoError)
def handle_bingo_error(error):
    current_app.logger.info(f"[rejected] {type(error).__name__}: {error.message}")
    return jsonify(error.to_dict()), error.status_code
