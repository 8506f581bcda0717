"""Tidslinje: put historical events in chronological order."""

from .base import Effect, GameSession, require
from .scoring import ordering_points, ordering_similarity


DEFAULT_TIME_LIMIT = 60


class TidslinjeSession(GameSession):
    game_type = 'tidslinje'

    def __init__(self, players=None, config=None):
        super().__init__(players, config)
        self.round_index = 0
        self.events = []
        self.correct_order = []
        # player id -> list of event indices, earliest first
        self.submissions = {}
        self.time_limit = self.config_count('timeLimit', DEFAULT_TIME_LIMIT)
        self.revealed = False

    def host_start_round(self, room, data):
        events = data.get('events')
        require(isinstance(events, list) and len(events) >= 2, 'events missing')
        require(all(isinstance(e, dict) and isinstance(e.get('year'), (int, float)) for e in events),
                'every event needs a year')
        time_limit = data.get('timeLimit', self.time_limit)
        require(isinstance(time_limit, (int, float)) and time_limit > 0, 'bad time limit')

        self.events = events
        self.correct_order = sorted(range(len(events)), key=lambda idx: events[idx]['year'])
        self.submissions = {}
        self.time_limit = time_limit
        self.revealed = False
        return Effect(
            event='game:round-started',
            payload={
                'events': [{'id': idx, 'text': e.get('text')} for idx, e in enumerate(events)],
                'timeLimit': time_limit,
                'roundIndex': self.round_index,
            },
        )

    def player_lock_answer(self, room, player, data):
        require(self.events and not self.revealed, 'no round running')
        require(player.id not in self.submissions, 'already locked')
        order = data.get('order')
        require(isinstance(order, list) and all(type(i) is int for i in order), 'order must be a list of indices')
        require(sorted(order) == list(range(len(self.events))), 'order must use every event once')

        self.submissions[player.id] = list(order)
        return Effect(
            event='game:player-submitted',
            payload={
                'playerId': player.id,
                'submittedCount': len(self.submissions),
                'totalPlayers': len([p for p in room.players if p.is_connected]),
            },
        )

    def host_reveal_round(self, room, data):
        require(self.events and not self.revealed, 'nothing to reveal')
        self.revealed = True
        results = []
        for player_id, order in self.submissions.items():
            player = room.get_player(player_id)
            if player is None:
                continue
            points = ordering_points(order, self.correct_order)
            player.score += points
            results.append({
                'playerId': player_id,
                'playerName': player.name,
                'order': order,
                'similarity': ordering_similarity(order, self.correct_order),
                'isPerfect': order == self.correct_order,
                'points': points,
            })
        results.sort(key=lambda r: r['points'], reverse=True)
        self.round_index += 1
        return Effect(
            event='game:round-revealed',
            payload={
                'correctOrder': list(self.correct_order),
                'years': [e['year'] for e in self.events],
                'results': results,
                'leaderboard': room.leaderboard(),
            },
        )

    def host_next_round(self, room, data):
        self.events = []
        self.correct_order = []
        self.submissions = {}
        self.revealed = False
        return Effect(
            event='game:ready-for-round',
            payload={'roundIndex': self.round_index, 'leaderboard': room.leaderboard()},
        )

    def host_end_tidslinje(self, room, data):
        leaderboard = room.leaderboard()
        return Effect(
            event='game:tidslinje-ended',
            payload={'leaderboard': leaderboard, 'winner': leaderboard[0] if leaderboard else None},
        )

    def to_dict(self):
        return {
            'roundIndex': self.round_index,
            'events': [{'id': idx, 'text': e.get('text')} for idx, e in enumerate(self.events)],
            'submittedCount': len(self.submissions),
            'timeLeft': self.time_limit,
        }
