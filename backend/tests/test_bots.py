import itertools
import logging
import random

import pytest

from klassespill.services.games import engine
from klassespill.services.games.bots import WORD_BANK, build_expression
from klassespill.services.games.tallkamp import evaluate_expression


class LowRandom(random.Random):
    """Every chance roll succeeds, every pick is the first option and every
    delay is the shortest allowed."""

    def random(self):
        return 0.0


class CyclingRandom(random.Random):
    def __init__(self, values):
        super().__init__()
        self._values = itertools.cycle(values)

    def random(self):
        return next(self._values)


@pytest.fixture()
def room_with_bots(registry, bot_engine):
    def make(game, count=4, humans=('Ada',)):
        code = registry.create_lobby('host')
        for idx, name in enumerate(humans, start=1):
            registry.join_room(code, f'p{idx}', name)
        bot_engine.enable(code, count)
        registry.select_game(code, game)
        return registry.start_game(code)
    bot_engine.rng = LowRandom()
    return make


def _notify(bot_engine, room, effect):
    assert effect is not None and effect.broadcast
    bot_engine.on_broadcast(room.code, effect.event, effect.payload)


def _scheduled(scheduler):
    # (bot id, action, data) of every action handed to the scheduler
    return [token.args[1:] for token in scheduler.started]


# ---- demo mode lifecycle ----

def test_enable_seats_bots_with_unique_names(registry, bot_engine):
    code = registry.create_lobby('host')
    registry.join_room(code, 'p1', 'Eva')
    bot_ids = bot_engine.enable(code, 3)
    room = registry.get_room(code)

    assert bot_ids == ['bot_1', 'bot_2', 'bot_3']
    assert [p.name for p in room.players] == ['Eva', 'Eva (bot)', 'Noah', 'Nora']
    assert all(room.get_player(b).is_bot for b in bot_ids)
    assert bot_engine.is_active(code)
    assert bot_engine.bot_ids(code) == bot_ids
    # bots have no connection
    assert 'bot_1' not in registry.connections


def test_enable_unknown_room(bot_engine):
    assert bot_engine.enable('ZZZZZZ', 3) is None
    assert not bot_engine.is_active('ZZZZZZ')


def test_enable_again_replaces_bots(registry, bot_engine):
    code = registry.create_lobby('host')
    bot_engine.enable(code, 5)
    bot_engine.enable(code, 2)
    room = registry.get_room(code)
    assert [p.id for p in room.players] == ['bot_1', 'bot_2']


def test_disable_removes_bots_and_keeps_humans(registry, bot_engine):
    code = registry.create_lobby('host')
    registry.join_room(code, 'p1', 'Ada')
    bot_engine.enable(code, 3)
    room = bot_engine.disable(code)
    assert [p.id for p in room.players] == ['p1']
    assert not bot_engine.is_active(code)
    assert bot_engine.bot_ids(code) == []


# ---- scheduling ----

def test_bots_answer_after_a_delay(room_with_bots, bot_engine, scheduler):
    room = room_with_bots('ja-eller-nei')
    effect = engine.handle_host_action(room, 'show-question', {'question': {'question': 'Q?', 'answer': True}})
    _notify(bot_engine, room, effect)

    assert len(scheduler.pending(room.code)) == 4
    assert room.session.answers == {}

    scheduler.advance(1.5)
    assert room.session.answers == {}
    scheduler.advance(0.5)
    assert room.session.answers == {f'bot_{i}': 'yes' for i in range(1, 5)}
    assert [e.event for _, _, e in bot_engine.delivered] == ['game:player-answered'] * 4


def test_only_a_subset_of_bots_acts(room_with_bots, bot_engine, scheduler):
    room = room_with_bots('vil-du-heller')
    bot_engine.rng = CyclingRandom([0.1, 0.95])
    effect = engine.handle_host_action(room, 'show-question', {'question': {'optionA': 'A', 'optionB': 'B'}})
    _notify(bot_engine, room, effect)
    assert sorted(bot_id for bot_id, _, _ in _scheduled(scheduler)) == ['bot_1', 'bot_3']


def test_chained_action_is_due_from_its_parent(scheduler):
    fired = []

    def second():
        fired.append(('second', scheduler.now))

    def first():
        fired.append(('first', scheduler.now))
        scheduler.schedule('ROOM', 2.0, second)

    scheduler.schedule('ROOM', 3.0, first)
    assert scheduler.advance(5.0) == 2
    assert fired == [('first', 3.0), ('second', 5.0)]
    assert scheduler.now == 5.0


def test_no_action_fires_after_disable(room_with_bots, bot_engine, scheduler):
    room = room_with_bots('ja-eller-nei')
    effect = engine.handle_host_action(room, 'show-question', {'question': {'question': 'Q?', 'answer': True}})
    _notify(bot_engine, room, effect)
    tokens = list(scheduler.started)

    bot_engine.disable(room.code)
    assert scheduler.advance(60) == 0
    assert all(token.cancelled and not token.fired for token in tokens)
    assert room.session.answers == {}
    assert bot_engine.delivered == []


def test_action_skipped_when_room_is_gone(room_with_bots, bot_engine, scheduler, registry):
    room = room_with_bots('ja-eller-nei')
    effect = engine.handle_host_action(room, 'show-question', {'question': {'question': 'Q?', 'answer': True}})
    _notify(bot_engine, room, effect)

    # closed without going through the bot engine
    registry.close_room(room.code)
    scheduler.advance(60)
    assert bot_engine.delivered == []


def test_reset_cancels_pending_but_keeps_bots(room_with_bots, bot_engine, scheduler):
    room = room_with_bots('ja-eller-nei')
    effect = engine.handle_host_action(room, 'show-question', {'question': {'question': 'Q?', 'answer': True}})
    _notify(bot_engine, room, effect)
    bot_engine.reset(room.code)
    assert scheduler.pending(room.code) == []
    assert bot_engine.bot_ids(room.code) == ['bot_1', 'bot_2', 'bot_3', 'bot_4']


def test_eliminated_and_disconnected_bots_never_act(room_with_bots, bot_engine, scheduler):
    room = room_with_bots('ja-eller-nei')
    room.get_player('bot_1').is_eliminated = True
    room.get_player('bot_2').is_connected = False
    effect = engine.handle_host_action(room, 'show-question', {'question': {'question': 'Q?', 'answer': True}})
    _notify(bot_engine, room, effect)
    assert sorted(bot_id for bot_id, _, _ in _scheduled(scheduler)) == ['bot_3', 'bot_4']


def test_bot_faults_are_logged_not_raised(room_with_bots, bot_engine, caplog):
    room = room_with_bots('ja-eller-nei')

    def broken_dispatch(room_code, player_id, action, data):
        raise RuntimeError('bug')

    bot_engine.dispatch = broken_dispatch
    with caplog.at_level(logging.ERROR):
        assert bot_engine.execute(room.code, 'bot_1', 'answer', {'answer': 'yes'}) is None
    assert '[bot-error]' in caplog.text


def test_execute_ignores_non_bots(room_with_bots, bot_engine):
    room = room_with_bots('ja-eller-nei')
    assert bot_engine.execute(room.code, 'p1', 'answer', {'answer': 'yes'}) is None


# ---- per-game behavior ----

def test_quiz_bots_pick_an_option(room_with_bots, bot_engine, scheduler):
    room = room_with_bots('quiz')
    effect = engine.handle_host_action(room, 'show-question', {
        'question': {'question': 'Q?', 'options': ['a', 'b', 'c'], 'correct': 2},
    })
    _notify(bot_engine, room, effect)
    scheduler.advance(3.0)
    assert {entry['answer'] for entry in room.session.answers.values()} == {0}
    assert len(room.session.answers) == 4


def test_tallkamp_bots_submit_valid_expressions(room_with_bots, bot_engine, scheduler):
    room = room_with_bots('tallkamp')
    effect = engine.handle_host_action(room, 'start-round', {'numbers': [25, 50, 3, 6, 7, 2], 'target': 151})
    _notify(bot_engine, room, effect)
    scheduler.advance(15)
    assert sorted(room.session.solutions) == ['bot_1', 'bot_2', 'bot_3', 'bot_4']


def test_tidslinje_bots_lock_permutations(room_with_bots, bot_engine, scheduler):
    room = room_with_bots('tidslinje')
    effect = engine.handle_host_action(room, 'start-round', {
        'events': [{'text': 'a', 'year': 3}, {'text': 'b', 'year': 1}, {'text': 'c', 'year': 2}],
    })
    _notify(bot_engine, room, effect)
    scheduler.advance(12)
    assert len(room.session.submissions) == 4
    assert all(sorted(order) == [0, 1, 2] for order in room.session.submissions.values())


def test_slange_bot_buzzes_then_answers(room_with_bots, bot_engine, scheduler):
    room = room_with_bots('slange')
    bot_engine.on_broadcast(room.code, 'game:started', {'room': room.to_dict(), 'gameData': room.session.to_dict()})

    scheduler.advance(3.0)
    assert room.session.current_player == 'bot_1'
    assert room.session.word_chain == []

    # the buzz broadcast named bot_1, which now submits a word
    scheduler.advance(2.0)
    chain = room.session.word_chain
    assert chain[0]['playerId'] == 'bot_1'
    assert chain[0]['word'] == WORD_BANK['S'][0]
    assert room.session.current_letter == 'E'


def test_slange_bots_avoid_used_words(room_with_bots, bot_engine, scheduler):
    room = room_with_bots('slange')
    session = room.session
    # a human already played the first S word
    session.used_words.add(WORD_BANK['S'][0])
    bot_engine.on_broadcast(room.code, 'game:started', {'gameData': session.to_dict()})
    scheduler.advance(5.0)
    assert session.word_chain[0]['word'] == WORD_BANK['S'][1]


def test_gjett_bildet_bot_buzzes_and_guesses(room_with_bots, bot_engine, scheduler):
    room = room_with_bots('gjett-bildet')
    _notify(bot_engine, room, engine.handle_host_action(room, 'next-image', {'image': {'answers': ['sol']}}))
    _notify(bot_engine, room, engine.handle_host_action(room, 'reveal-step', {}))

    scheduler.advance(3.0)
    assert room.session.current_player == 'bot_1'
    scheduler.advance(2.0)
    assert room.session.round_over
    assert room.get_player('bot_1').score > 0


def test_locked_out_bots_do_not_buzz(room_with_bots, bot_engine, scheduler):
    room = room_with_bots('gjett-bildet')
    _notify(bot_engine, room, engine.handle_host_action(room, 'next-image', {'image': {'answers': ['sol']}}))
    bot_engine.on_broadcast(room.code, 'game:guess-result', {
        'isCorrect': False,
        'lockedOut': ['bot_1', 'bot_2', 'bot_3', 'bot_4'],
        'currentPlayer': None,
        'selectedPlayer': None,
    })
    _notify(bot_engine, room, engine.handle_host_action(room, 'reveal-step', {}))
    assert scheduler.pending(room.code) == []


def test_build_expression_uses_the_pool():
    rng = random.Random(3)
    for _ in range(20):
        numbers = [rng.randint(1, 25) for _ in range(6)]
        target = rng.randint(50, 300)
        expression = build_expression(numbers, target, rng)
        evaluate_expression(expression, numbers)
