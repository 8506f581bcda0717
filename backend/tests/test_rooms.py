import pytest

from klassespill.models import (
    ROOM_CODE_ALPHABET,
    ROOM_CODE_LENGTH,
    GameState,
    generate_room_code,
    is_valid_room_code,
)
from klassespill.services.games import engine


def test_codes_are_unique_and_use_the_alphabet(registry):
    codes = {registry.create_room(f'host-{i}', 'quiz') for i in range(200)}
    assert len(codes) == 200
    for code in codes:
        assert len(code) == ROOM_CODE_LENGTH
        assert set(code) <= set(ROOM_CODE_ALPHABET)
        assert is_valid_room_code(code)


def test_generate_room_code_skips_taken_codes(monkeypatch):
    drawn = iter(['AAAAAA', 'AAAAAA', 'BBBBBB'])
    monkeypatch.setattr('klassespill.models.random.choices', lambda alphabet, k: list(next(drawn)))
    assert generate_room_code(lambda code: code == 'AAAAAA') == 'BBBBBB'


def test_create_room_and_lobby(registry):
    code = registry.create_room('host', 'quiz')
    room = registry.get_room(code)
    assert room.game == 'quiz'
    assert room.game_state == GameState.LOBBY
    assert registry.room_for_connection('host') is room

    lobby = registry.get_room(registry.create_lobby('host-2'))
    assert lobby.game is None
    assert lobby.game_state == GameState.LOBBY_IDLE
    assert lobby.lobby_minigame == 'jumper'


def test_create_lobby_reuses_requested_code(registry):
    assert registry.create_lobby('host', 'ABC234') == 'ABC234'
    # taken now, so a fresh one is drawn
    assert registry.create_lobby('other', 'ABC234') != 'ABC234'
    # not a valid code
    assert registry.create_lobby('third', 'abc') != 'ABC'


def test_join_is_case_insensitive_and_idempotent(registry):
    code = registry.create_room('host', 'quiz')
    room = registry.join_room(code.lower(), 'p1', 'Ada')
    assert room is not None
    again = registry.join_room(code, 'p1', 'Ada')
    assert again is room
    assert [p.id for p in room.players] == ['p1']
    assert registry.room_for_connection('p1') is room


def test_join_unknown_room(registry):
    assert registry.join_room('ZZZZZZ', 'p1', 'Ada') is None
    assert registry.join_room(None, 'p1', 'Ada') is None
    assert 'p1' not in registry.connections


def test_names_are_cleaned_and_made_unique(registry):
    code = registry.create_room('host', 'quiz')
    registry.join_room(code, 'p1', '  Ada   Lovelace  ')
    registry.join_room(code, 'p2', 'ada lovelace')
    registry.join_room(code, 'p3', 'x' * 40)
    registry.join_room(code, 'p4', '   ')
    names = [p.name for p in registry.get_room(code).players]
    assert names == ['Ada Lovelace', 'ada lovelace 2', 'x' * 20, 'Spiller']


def test_kick_player(registry):
    code = registry.create_room('host', 'quiz')
    registry.join_room(code, 'p1', 'Ada')
    room = registry.kick_player(code, 'p1')
    assert room.players == []
    assert 'p1' not in registry.connections
    assert registry.kick_player('ZZZZZZ', 'p1') is None


def test_remove_player_drops_or_keeps_seat(registry):
    code = registry.create_room('host', 'quiz')
    registry.join_room(code, 'p1', 'Ada')
    registry.join_room(code, 'p2', 'Bo')

    departure = registry.remove_player('p1')
    assert departure.host_left is False
    assert [p.id for p in departure.room.players] == ['p2']

    departure = registry.remove_player('p2', keep_seat=True)
    player = departure.room.get_player('p2')
    assert player is not None and player.is_connected is False
    assert 'p2' not in registry.connections

    # second removal of the same connection is a no-op
    assert registry.remove_player('p2') is None
    assert registry.remove_player('nobody') is None


def test_host_leaving_leaves_teardown_to_the_caller(registry):
    code = registry.create_room('host', 'quiz')
    registry.join_room(code, 'p1', 'Ada')
    departure = registry.remove_player('host')
    assert departure.host_left is True
    assert registry.get_room(code) is departure.room

    registry.close_room(code)
    assert registry.get_room(code) is None
    assert 'p1' not in registry.connections


def test_rejoin_player_by_name_keeps_score(registry):
    code = registry.create_room('host', 'quiz')
    room = registry.join_room(code, 'old-sid', 'Ada')
    room.players[0].score = 700
    registry.remove_player('old-sid', keep_seat=True)

    room = registry.rejoin_player(code, 'new-sid', 'ADA')
    player = room.get_player('new-sid')
    assert player.score == 700
    assert player.is_connected
    assert registry.room_for_connection('new-sid') is room
    assert len(room.players) == 1


def test_rejoin_player_unknown_name_joins_as_new(registry):
    code = registry.create_room('host', 'quiz')
    room = registry.rejoin_player(code, 'sid', 'Bo')
    assert room.get_player('sid').name == 'Bo'


def test_rejoin_host_repoints_index(registry):
    code = registry.create_room('host', 'quiz')
    registry.remove_player('host')
    room = registry.rejoin_host(code, 'host-2')
    assert room.host_id == 'host-2'
    assert registry.room_for_connection('host-2') is room


def test_game_lifecycle(registry):
    code = registry.create_lobby('host')
    registry.join_room(code, 'p1', 'Ada')
    room = registry.select_game(code, 'ja-eller-nei')
    assert room.game_state == GameState.LOBBY_GAME_SELECTED

    room.players[0].score = 50
    room.players[0].is_eliminated = True
    registry.start_game(code)
    assert room.game_state == GameState.PLAYING
    assert room.session.game_type == 'ja-eller-nei'
    assert room.players[0].score == 0
    assert room.players[0].is_eliminated is False

    # no game switching mid-game
    assert registry.select_game(code, 'quiz') is None

    room.players[0].score = 30
    registry.end_game(code)
    assert room.session is None
    assert room.game_state == GameState.LOBBY_GAME_SELECTED
    assert room.lobby_data.game_results['ja-eller-nei'][0]['score'] == 30

    registry.return_to_lobby(code)
    assert room.game is None
    assert room.game_state == GameState.LOBBY_IDLE


def test_end_game_without_lobby(registry):
    code = registry.create_room('host', 'quiz')
    registry.start_game(code)
    room = registry.end_game(code, return_to_lobby=False)
    assert room.game_state == GameState.GAME_OVER


def test_start_unknown_game_type_gets_noop_session(registry):
    code = registry.create_room('host', 'tegn-det')
    room = registry.start_game(code)
    assert room.session.handle_host_action(room, 'anything', {}) is None
    assert room.to_dict()['gameData'] == {}


def test_start_game_with_bad_config_uses_defaults(registry):
    code = registry.create_room('host', 'quiz')
    room = registry.start_game(code, {'timeLimit': 'fast'})
    assert room.game_state == GameState.PLAYING
    assert room.session.time_limit == 20


def test_non_string_game_type(registry):
    code = registry.create_room('host', ['quiz'])
    room = registry.start_game(code)
    assert room.to_dict()['gameData'] == {}

    lobby = registry.create_lobby('host2')
    assert registry.select_game(lobby, ['quiz']) is None
    assert registry.get_room(lobby).game_state == GameState.LOBBY_IDLE


def test_failed_start_leaves_room_untouched(registry, monkeypatch):
    code = registry.create_room('host', 'ja-eller-nei')
    registry.join_room(code, 'p1', 'Ada')
    room = registry.get_room(code)
    room.players[0].score = 40
    room.players[0].is_eliminated = True

    def broken_initialize(game_type, players, config=None):
        raise RuntimeError('bug')

    monkeypatch.setattr(engine, 'initialize', broken_initialize)
    with pytest.raises(RuntimeError):
        registry.start_game(code)
    assert room.game_state == GameState.LOBBY
    assert room.session is None
    assert room.players[0].score == 40
    assert room.players[0].is_eliminated is True


def test_lobby_scores_keep_best_per_minigame(registry):
    code = registry.create_lobby('host')
    registry.join_room(code, 'p1', 'Ada')
    registry.join_room(code, 'p2', 'Bo')
    registry.submit_lobby_score(code, 'p1', 10, 'jumper')
    registry.submit_lobby_score(code, 'p1', 4, 'jumper')
    registry.submit_lobby_score(code, 'p1', 7, 'flappy')
    registry.submit_lobby_score(code, 'p2', 12, 'nonsense')

    lobby = registry.get_room(code).lobby_data
    assert lobby.player_scores['p1']['total'] == 17
    assert lobby.player_scores['p2']['best'] == {'jumper': 12}
    assert lobby.total_score == 29
    assert [row['id'] for row in lobby.leaderboard()] == ['p1', 'p2']
    assert [row['id'] for row in lobby.game_leaderboards()['jumper']] == ['p2', 'p1']


def test_lobby_score_rejects_bad_input(registry):
    code = registry.create_lobby('host')
    registry.join_room(code, 'p1', 'Ada')
    assert registry.submit_lobby_score(code, 'p1', -1) is None
    assert registry.submit_lobby_score(code, 'p1', '10') is None
    assert registry.submit_lobby_score(code, 'stranger', 10) is None


def test_select_minigame_falls_back_to_default(registry):
    code = registry.create_lobby('host')
    assert registry.select_minigame(code, 'flappy').lobby_minigame == 'flappy'
    assert registry.select_minigame(code, 'tetris').lobby_minigame == 'jumper'


def test_cleanup_removes_only_old_rooms(registry):
    old = registry.create_room('host-old', 'quiz')
    young = registry.create_room('host-young', 'quiz')
    registry.join_room(old, 'p1', 'Ada')
    registry.get_room(old).created_at = 1000.0
    registry.get_room(young).created_at = 4000.0

    removed = registry.cleanup_old_rooms(3600, now=5000.0)
    assert removed == [old]
    assert registry.get_room(old) is None
    assert registry.get_room(young) is not None
    assert 'p1' not in registry.connections
    assert 'host-young' in registry.connections
