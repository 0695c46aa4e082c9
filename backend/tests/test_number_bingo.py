import pytest

from bingo.models import BingoCard, NumberGame
from bingo.services.games import number_bingo, scheduler
from bingo.services.games.cards import generate_card, new_marking
from bingo.services.games.errors import (
    AlreadyJoined, Conflict, GameFull, InvalidState, NotFound, NumberNotFound, ValidationError,
)


def load(game_id):
    return NumberGame.query.filter_by(game_id=game_id).first()


def test_create_validates_options(flask_app):
    with pytest.raises(ValidationError):
        number_bingo.create_game('admin', max_players=1)
    with pytest.raises(ValidationError):
        number_bingo.create_game('admin', max_players=51)
    with pytest.raises(ValidationError):
        number_bingo.create_game('admin', max_players=4, winning_pattern='x-shape')
    with pytest.raises(ValidationError):
        number_bingo.create_game('admin', max_players=4, marking_mode='sometimes')
    with pytest.raises(ValidationError):
        number_bingo.create_game('admin', max_players=4, auto_call_interval=500)
    with pytest.raises(ValidationError):
        number_bingo.create_game('', max_players=4)

    game = number_bingo.create_game('admin', max_players=4)
    assert game['game_id'].startswith('BG')
    assert game['status'] == 'preparing'
    assert game['auto_call_interval'] == 3000
    assert game['winning_pattern'] == 'any-line'


def test_join_requires_ready_and_respects_capacity(flask_app):
    game_id = number_bingo.create_game('admin', max_players=2)['game_id']
    with pytest.raises(InvalidState):
        number_bingo.join_game(game_id, 'p1')

    number_bingo.prepare_game(game_id)
    with pytest.raises(InvalidState):
        number_bingo.prepare_game(game_id)

    joined = number_bingo.join_game(game_id, 'p1')
    assert joined['available_cards'] == list(range(1, 101))
    with pytest.raises(AlreadyJoined):
        number_bingo.join_game(game_id, 'p1')
    number_bingo.join_game(game_id, 'p2')
    with pytest.raises(GameFull):
        number_bingo.join_game(game_id, 'p3')

    assert load(game_id).player_ids == ['p1', 'p2']


def test_unknown_game(flask_app):
    with pytest.raises(NotFound):
        number_bingo.prepare_game('BG999')
    with pytest.raises(NotFound):
        number_bingo.get_player_view('BG999', 'p1')


def test_card_selection_is_exclusive(flask_app):
    game_id = number_bingo.create_game('admin', max_players=3)['game_id']
    number_bingo.prepare_game(game_id)
    for player_id in ('p1', 'p2'):
        number_bingo.join_game(game_id, player_id)

    selected = number_bingo.select_card(game_id, 'p1', 5)
    assert selected['card']['grid'] == generate_card(5)

    with pytest.raises(Conflict):
        number_bingo.select_card(game_id, 'p2', 5)
    with pytest.raises(Conflict):
        number_bingo.select_card(game_id, 'p1', 6)
    with pytest.raises(ValidationError):
        number_bingo.select_card(game_id, 'p2', 0)
    with pytest.raises(Conflict):
        number_bingo.select_card(game_id, 'p2', 101)
    with pytest.raises(NotFound):
        number_bingo.select_card(game_id, 'p3', 7)

    game = load(game_id)
    assert 5 not in game.available_cards
    assert len(game.available_cards) == 99
    assert BingoCard.query.filter_by(card_number=5).count() == 1


def test_start_requires_full_roster_with_cards(flask_app):
    game_id = number_bingo.create_game('admin', max_players=2)['game_id']
    number_bingo.prepare_game(game_id)
    number_bingo.join_game(game_id, 'p1')
    number_bingo.select_card(game_id, 'p1', 1)
    with pytest.raises(InvalidState):
        number_bingo.start_game(game_id)

    number_bingo.join_game(game_id, 'p2')
    with pytest.raises(InvalidState):
        number_bingo.start_game(game_id)

    number_bingo.select_card(game_id, 'p2', 2)
    started = number_bingo.start_game(game_id)
    assert started['status'] == 'active'
    assert started['started_at'] is not None
    assert scheduler.is_auto_advancing(game_id)


def test_pause_resume_stop_control_the_timer(number_game):
    game_id = number_game()
    with pytest.raises(InvalidState):
        number_bingo.resume_game(game_id)
    number_bingo.start_game(game_id)

    assert number_bingo.pause_game(game_id)['status'] == 'paused'
    assert not scheduler.is_auto_advancing(game_id)
    with pytest.raises(InvalidState):
        number_bingo.pause_game(game_id)

    assert number_bingo.resume_game(game_id)['status'] == 'active'
    assert scheduler.is_auto_advancing(game_id)

    stopped = number_bingo.stop_game(game_id)
    assert stopped['status'] == 'completed'
    assert stopped['completed_at'] is not None
    assert not scheduler.is_auto_advancing(game_id)
    with pytest.raises(InvalidState):
        number_bingo.stop_game(game_id)
    with pytest.raises(InvalidState):
        number_bingo.call_next(game_id)


def test_manual_call_allowed_while_paused(number_game):
    game_id = number_game()
    with pytest.raises(InvalidState):
        number_bingo.call_next(game_id)
    number_bingo.start_game(game_id)
    number_bingo.pause_game(game_id)

    result = number_bingo.call_next(game_id)
    assert 1 <= result.value <= 75
    game = load(game_id)
    assert game.status == 'paused'
    assert game.current_number == result.value


def test_exhaustion_completes_without_winner(number_game):
    game_id = number_game(marking_mode='manual')
    number_bingo.start_game(game_id)

    called = [number_bingo.call_next(game_id).value for _ in range(75)]
    assert sorted(called) == list(range(1, 76))

    result = number_bingo.call_next(game_id)
    assert result.exhausted
    assert result.value is None
    game = load(game_id)
    assert game.status == 'completed'
    assert game.winners == []
    assert not scheduler.is_auto_advancing(game_id)


def test_auto_marking_finds_winner(number_game, script_draws):
    column_b = generate_card(1)[0]
    script_draws('NUMBER_POOL', column_b)
    game_id = number_game()
    number_bingo.start_game(game_id)

    for _ in range(4):
        assert number_bingo.call_next(game_id).winners == []

    result = number_bingo.call_next(game_id)
    winners = {w['player_id']: w for w in result.winners}
    assert 'p1' in winners
    assert winners['p1']['pattern'] == 'vertical'
    assert winners['p1']['card_number'] == 1
    assert winners['p1']['winning_card'] == generate_card(1)
    assert all(winners['p1']['marked_cells'][0])

    game = load(game_id)
    assert game.status == 'completed'
    assert game.winner_ids.count('p1') == 1
    with pytest.raises(InvalidState):
        number_bingo.call_next(game_id)


def test_same_pass_records_every_winner(flask_app):
    game = NumberGame(winning_pattern='any-line')
    for player_id, card_number in (('p1', 1), ('p2', 2), ('p3', 3)):
        card = BingoCard(player_id=player_id, card_number=card_number, grid=generate_card(card_number))
        game.cards.append(card)
    for card in game.cards[:2]:
        marked = card.marked
        marked[4] = [True] * 5
        card.marked = marked

    winners = number_bingo.check_for_winners(game)
    assert [w.player_id for w in winners] == ['p1', 'p2']
    assert all(w.pattern == 'vertical' for w in winners)

    game.winners.append(winners[0])
    assert [w.player_id for w in number_bingo.check_for_winners(game)] == ['p2']


def test_manual_marking(number_game, script_draws):
    grid_1, grid_2 = generate_card(1), generate_card(2)
    only_p1 = [n for n in grid_1[0] if n not in grid_2[0]]
    script_draws('NUMBER_POOL', grid_1[0])
    game_id = number_game(marking_mode='manual')
    number_bingo.start_game(game_id)

    first = number_bingo.call_next(game_id).value
    assert first == grid_1[0][0]
    with pytest.raises(ValidationError):
        number_bingo.mark_number(game_id, 'p1', grid_1[0][1])
    with pytest.raises(ValidationError):
        number_bingo.mark_number(game_id, 'p1', 76)
    with pytest.raises(NotFound):
        number_bingo.mark_number(game_id, 'stranger', first)

    marked = number_bingo.mark_number(game_id, 'p1', first)
    expected = new_marking()
    expected[0][0] = True
    assert marked['marked'] == expected
    assert marked['has_won'] is False

    number_bingo.call_next(game_id)
    second = grid_1[0][1]
    if second in only_p1:
        with pytest.raises(NumberNotFound):
            number_bingo.mark_number(game_id, 'p2', second)
    assert load(game_id).card_for('p2').marked == new_marking()

    for _ in range(3):
        number_bingo.call_next(game_id)
    results = [number_bingo.mark_number(game_id, 'p1', n) for n in grid_1[0][1:]]
    assert [r['has_won'] for r in results] == [False, False, False, True]
    assert load(game_id).status == 'completed'


def test_mark_rejected_in_auto_mode(number_game):
    game_id = number_game()
    number_bingo.start_game(game_id)
    number = number_bingo.call_next(game_id).value
    with pytest.raises(InvalidState):
        number_bingo.mark_number(game_id, 'p1', number)


def test_auto_call_respects_handle_and_status(number_game):
    game_id = number_game()
    number_bingo.start_game(game_id)
    first_handle = scheduler._handles[game_id]

    number_bingo.pause_game(game_id)
    version = load(game_id).version
    assert number_bingo.auto_call(game_id, first_handle) is False
    assert load(game_id).called_values == []
    assert load(game_id).version == version

    number_bingo.resume_game(game_id)
    second_handle = scheduler._handles[game_id]
    assert second_handle is not first_handle
    assert number_bingo.auto_call(game_id, first_handle) is False
    assert number_bingo.auto_call(game_id, second_handle) is True
    assert len(load(game_id).called_values) == 1


def test_player_view_shows_only_own_card(number_game):
    game_id = number_game()
    view = number_bingo.get_player_view(game_id, 'p2')
    assert view['my_card']['card_number'] == 2
    assert view['players'] == ['p1', 'p2']
    assert view['cards_selected'] == 2
    assert 'cards' not in view

    assert number_bingo.get_player_view(game_id, 'nobody')['my_card'] is None


def test_history_lists_completed_games(number_game):
    game_id = number_game()
    number_bingo.start_game(game_id)
    number_bingo.call_next(game_id)
    assert number_bingo.get_history('p1') == []

    number_bingo.stop_game(game_id)
    history = number_bingo.get_history('p1')
    assert len(history) == 1
    entry = history[0]
    assert entry['game_id'] == game_id
    assert entry['total_players'] == 2
    assert entry['called_numbers'] == 1
    assert entry['user_won'] is False
    assert entry['user_card']['card_number'] == 1
    assert number_bingo.get_history('someone-else') == []


def test_list_games_includes_roster(number_game):
    game_id = number_game()
    games = number_bingo.list_games()
    assert [g['game_id'] for g in games] == [game_id]
    assert games[0]['players'] == ['p1', 'p2']
