"""Vil du heller: pick one of two options, the room sees the split."""

from .base import Effect, GameSession, require


CHOICES = ('optionA', 'optionB')


class VilDuHellerSession(GameSession):
    game_type = 'vil-du-heller'

    def __init__(self, players=None, config=None):
        super().__init__(players, config)
        self.question_index = 0
        self.question = None
        self.show_results = False
        self.votes = {}

    def _counts(self):
        counts = {choice: 0 for choice in CHOICES}
        for choice in self.votes.values():
            counts[choice] += 1
        return counts

    def host_show_question(self, room, data):
        question = data.get('question')
        require(isinstance(question, dict) and all(question.get(c) for c in CHOICES), 'options missing')
        self.question = question
        self.show_results = False
        self.votes = {}
        return Effect(
            event='game:question-shown',
            payload={
                'optionA': question['optionA'],
                'optionB': question['optionB'],
                'questionIndex': self.question_index,
                'timeLimit': data.get('timeLimit'),
            },
        )

    def host_reveal_results(self, room, data):
        require(self.question is not None and not self.show_results, 'nothing to reveal')
        self.show_results = True
        counts = self._counts()
        total = sum(counts.values())
        percentages = {
            choice: (round(100 * count / total) if total else 0)
            for choice, count in counts.items()
        }
        self.question_index += 1
        return Effect(
            event='game:results-revealed',
            payload={'votes': counts, 'percentages': percentages, 'totalVotes': total},
        )

    def host_next_question(self, room, data):
        self.question = None
        self.show_results = False
        self.votes = {}
        return Effect(event='game:ready-for-question', payload={'questionIndex': self.question_index})

    def player_vote(self, room, player, data):
        require(self.question is not None and not self.show_results, 'not accepting votes')
        require(player.id not in self.votes, 'already voted')
        choice = data.get('choice')
        require(choice in CHOICES, 'unknown choice')
        self.votes[player.id] = choice
        return Effect(
            event='game:vote-update',
            payload={'votes': self._counts(), 'totalVotes': len(self.votes)},
        )

    def to_dict(self):
        return {
            'currentQuestionIndex': self.question_index,
            'currentQuestion': self.question,
            'showResults': self.show_results,
            'voteCount': len(self.votes),
        }
