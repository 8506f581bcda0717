"""Tallkamp: reach a target number using arithmetic on a number pool."""

import ast
import operator
from collections import Counter

from .base import Effect, GameSession, require, InvalidAction
from .scoring import rank_submissions


DEFAULT_TIME_LIMIT = 90
MAX_EXPRESSION_LENGTH = 100

_OPERATORS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
}


def _evaluate(node, used):
    if isinstance(node, ast.Expression):
        return _evaluate(node.body, used)
    if isinstance(node, ast.BinOp) and type(node.op) in _OPERATORS:
        left = _evaluate(node.left, used)
        right = _evaluate(node.right, used)
        if isinstance(node.op, ast.Div) and right == 0:
            raise InvalidAction('division by zero')
        return _OPERATORS[type(node.op)](left, right)
    if isinstance(node, ast.Constant) and type(node.value) is int:
        used.append(node.value)
        return node.value
    raise InvalidAction('unsupported expression')


def evaluate_expression(expression, pool):
    """Evaluate ``expression`` using only numbers from ``pool``.

    Each pool entry may be used at most once. Only ``+ - * /`` and
    parentheses are allowed. Returns the result rounded to 3 decimals.
    """
    require(isinstance(expression, str) and expression.strip(), 'empty expression')
    require(len(expression) <= MAX_EXPRESSION_LENGTH, 'expression too long')
    try:
        tree = ast.parse(expression.strip(), mode='eval')
    except (SyntaxError, ValueError):
        raise InvalidAction('malformed expression') from None

    used = []
    result = _evaluate(tree, used)
    available = Counter(pool)
    for number, count in Counter(used).items():
        require(available[number] >= count, f'{number} is not available')
    return round(result, 3)


class TallkampSession(GameSession):
    game_type = 'tallkamp'

    def __init__(self, players=None, config=None):
        super().__init__(players, config)
        self.round_index = 0
        self.target = None
        self.numbers = []
        # player id -> {'expression', 'result', 'order'}
        self.solutions = {}
        self.time_limit = self.config_count('timeLimit', DEFAULT_TIME_LIMIT)
        self.revealed = False

    def host_start_round(self, room, data):
        numbers = data.get('numbers')
        target = data.get('target')
        require(isinstance(numbers, list) and len(numbers) >= 2, 'number pool missing')
        require(all(type(n) is int for n in numbers), 'numbers must be integers')
        require(type(target) is int, 'target must be an integer')
        time_limit = data.get('timeLimit', self.time_limit)
        require(isinstance(time_limit, (int, float)) and time_limit > 0, 'bad time limit')

        self.numbers = list(numbers)
        self.target = target
        self.time_limit = time_limit
        self.solutions = {}
        self.revealed = False
        return Effect(
            event='game:round-started',
            payload={
                'numbers': list(numbers),
                'target': target,
                'timeLimit': time_limit,
                'roundIndex': self.round_index,
            },
        )

    def player_submit(self, room, player, data):
        require(self.target is not None and not self.revealed, 'no round running')
        require(player.id not in self.solutions, 'already submitted')
        expression = data.get('expression')
        result = evaluate_expression(expression, self.numbers)

        self.solutions[player.id] = {
            'expression': expression.strip(),
            'result': result,
            'order': len(self.solutions),
        }
        return Effect(
            event='game:player-submitted',
            payload={
                'playerId': player.id,
                'submittedCount': len(self.solutions),
                'totalPlayers': len([p for p in room.players if p.is_connected]),
            },
            player_event='game:submission-received',
            player_payload={'expression': expression.strip(), 'result': result},
        )

    def host_reveal_round(self, room, data):
        require(self.target is not None and not self.revealed, 'nothing to reveal')
        self.revealed = True
        results = rank_submissions(self.solutions, self.target)
        for entry in results:
            player = room.get_player(entry['playerId'])
            if player is not None:
                player.score += entry['points']
                entry['playerName'] = player.name
        self.round_index += 1
        return Effect(
            event='game:round-revealed',
            payload={'target': self.target, 'results': results, 'leaderboard': room.leaderboard()},
        )

    def host_next_round(self, room, data):
        self.target = None
        self.numbers = []
        self.solutions = {}
        self.revealed = False
        return Effect(
            event='game:ready-for-round',
            payload={'roundIndex': self.round_index, 'leaderboard': room.leaderboard()},
        )

    def host_end_tallkamp(self, room, data):
        leaderboard = room.leaderboard()
        return Effect(
            event='game:tallkamp-ended',
            payload={'leaderboard': leaderboard, 'winner': leaderboard[0] if leaderboard else None},
        )

    def to_dict(self):
        return {
            'roundIndex': self.round_index,
            'targetNumber': self.target,
            'availableNumbers': list(self.numbers),
            'submittedCount': len(self.solutions),
            'timeLeft': self.time_limit,
        }
