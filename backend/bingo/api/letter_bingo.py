from flask import Blueprint, jsonify, request
from bingo.services.games import letter_bingo as svc
from bingo.services.games.errors import Exhausted, ValidationError


letter_bingo = Blueprint('letter_bingo', __name__)


def _player_id(data):
    player_id = data.get('player_id')
    if not player_id:
        raise ValidationError('player_id is required')
    return str(player_id)


@letter_bingo.route('/create', methods=['POST'])
def create_game():
    data = request.get_json(silent=True) or {}
    game = svc.create_game(
        created_by=str(data.get('admin_id') or ''),
        max_players=data.get('max_players'),
        word_length=data.get('word_length'),
        draw_speed=data.get('draw_speed'),
    )
    return jsonify({'message': 'Letter Bingo game created successfully', 'game': game}), 201


@letter_bingo.route('/games', methods=['GET'])
def list_games():
    return jsonify(svc.list_games())


@letter_bingo.route('/history', methods=['GET'])
def history():
    return jsonify(svc.get_history(_player_id(request.args)))


@letter_bingo.route('/games/<string:game_id>', methods=['GET'])
def get_game(game_id):
    return jsonify(svc.get_player_view(game_id, request.args.get('player_id', '')))


@letter_bingo.route('/games/<string:game_id>/prepare', methods=['POST'])
def prepare_game(game_id):
    game = svc.prepare_game(game_id)
    return jsonify({'message': 'Game is now ready for players', 'game': game})


@letter_bingo.route('/games/<string:game_id>/join', methods=['POST'])
def join_game(game_id):
    data = request.get_json(silent=True) or {}
    joined = svc.join_game(game_id, _player_id(data))
    return jsonify(dict(joined, message='Successfully joined game'))


@letter_bingo.route('/games/<string:game_id>/submit-word', methods=['POST'])
def submit_word(game_id):
    data = request.get_json(silent=True) or {}
    submitted = svc.submit_word(game_id, _player_id(data), data.get('word'))
    return jsonify(dict(submitted, message='Word submitted successfully'))


@letter_bingo.route('/games/<string:game_id>/check-word', methods=['POST'])
def check_word(game_id):
    data = request.get_json(silent=True) or {}
    return jsonify(svc.check_word(game_id, _player_id(data), data.get('word')))


@letter_bingo.route('/games/<string:game_id>/start', methods=['POST'])
def start_game(game_id):
    game = svc.start_game(game_id)
    return jsonify({'message': 'Game started successfully', 'game': game})


@letter_bingo.route('/games/<string:game_id>/draw-letter', methods=['POST'])
def draw_letter(game_id):
    result = svc.draw_next(game_id)
    if result.exhausted:
        raise Exhausted('All letters have been drawn')
    return jsonify({
        'message': 'Letter drawn successfully',
        'letter': result.value,
        'has_winner': bool(result.winners),
        'winners': result.winners,
    })


@letter_bingo.route('/games/<string:game_id>/stop', methods=['POST'])
def stop_game(game_id):
    game = svc.stop_game(game_id)
    return jsonify({'message': 'Game stopped successfully', 'game': game})
