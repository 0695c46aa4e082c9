from flask import Blueprint, jsonify, request
from bingo.services.games import number_bingo as svc
from bingo.services.games.errors import Exhausted, ValidationError


number_bingo = Blueprint('number_bingo', __name__)


def _player_id(data):
    player_id = data.get('player_id')
    if not player_id:
        raise ValidationError('player_id is required')
    return str(player_id)


# ---- Admin endpoints ----

@number_bingo.route('/create', methods=['POST'])
def create_game():
    data = request.get_json(silent=True) or {}
    game = svc.create_game(
        created_by=str(data.get('admin_id') or ''),
        max_players=data.get('max_players'),
        winning_pattern=data.get('winning_pattern') or 'any-line',
        auto_call_interval=data.get('auto_call_interval'),
        marking_mode=data.get('marking_mode') or 'auto',
        game_cost=data.get('game_cost', 2),
        profit_percentage=data.get('profit_percentage', 10),
        player_entry_fee=data.get('player_entry_fee', 10),
    )
    return jsonify({'message': 'BINGO game created successfully', 'game': game}), 201


@number_bingo.route('/games/<string:game_id>/prepare', methods=['POST'])
def prepare_game(game_id):
    game = svc.prepare_game(game_id)
    return jsonify({'message': 'Game is now ready for players to join', 'game': game})


@number_bingo.route('/games/<string:game_id>/start', methods=['POST'])
def start_game(game_id):
    game = svc.start_game(game_id)
    return jsonify({'message': 'Game started successfully', 'game': game})


@number_bingo.route('/games/<string:game_id>/pause', methods=['POST'])
def pause_game(game_id):
    game = svc.pause_game(game_id)
    return jsonify({'message': 'Game paused successfully', 'game': game})


@number_bingo.route('/games/<string:game_id>/resume', methods=['POST'])
def resume_game(game_id):
    game = svc.resume_game(game_id)
    return jsonify({'message': 'Game resumed successfully', 'game': game})


@number_bingo.route('/games/<string:game_id>/call-number', methods=['POST'])
def call_number(game_id):
    result = svc.call_next(game_id)
    if result.exhausted:
        raise Exhausted('All numbers have been called')
    return jsonify({
        'message': 'Number called successfully',
        'number': result.value,
        'has_winner': bool(result.winners),
        'winners': result.winners,
    })


@number_bingo.route('/games/<string:game_id>/stop', methods=['POST'])
def stop_game(game_id):
    game = svc.stop_game(game_id)
    return jsonify({'message': 'Game stopped successfully', 'game': game})


# ---- Player endpoints ----

@number_bingo.route('/games', methods=['GET'])
def list_games():
    return jsonify(svc.list_games())


@number_bingo.route('/games/<string:game_id>', methods=['GET'])
def get_game(game_id):
    return jsonify(svc.get_player_view(game_id, request.args.get('player_id', '')))


@number_bingo.route('/games/<string:game_id>/join', methods=['POST'])
def join_game(game_id):
    data = request.get_json(silent=True) or {}
    joined = svc.join_game(game_id, _player_id(data))
    return jsonify(dict(joined, message='Successfully joined game'))


@number_bingo.route('/games/<string:game_id>/select-card', methods=['POST'])
def select_card(game_id):
    data = request.get_json(silent=True) or {}
    selected = svc.select_card(game_id, _player_id(data), data.get('card_number'))
    return jsonify(dict(selected, message='Card selected successfully'))


@number_bingo.route('/games/<string:game_id>/mark-number', methods=['POST'])
def mark_number(game_id):
    data = request.get_json(silent=True) or {}
    marked = svc.mark_number(game_id, _player_id(data), data.get('number'))
    return jsonify(dict(marked, message='Number marked successfully'))


@number_bingo.route('/history', methods=['GET'])
def history():
    return jsonify(svc.get_history(_player_id(request.args)))
