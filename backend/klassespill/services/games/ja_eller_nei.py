"""Ja eller nei: yes/no questions, wrong answers are eliminated."""

from .base import Effect, GameSession, player_summaries, require


ANSWERS = ('yes', 'no')


class JaEllerNeiSession(GameSession):
    game_type = 'ja-eller-nei'

    def __init__(self, players=None, config=None):
        super().__init__(players, config)
        self.question_index = 0
        self.question = None
        self.show_answer = False
        self.answers = {}
        self.eliminated_this_round = []

    def host_show_question(self, room, data):
        question = data.get('question')
        require(isinstance(question, dict) and 'question' in question, 'question missing')
        require(isinstance(question.get('answer'), bool), 'answer must be a boolean')

        self.question = question
        self.show_answer = False
        self.answers = {}
        self.eliminated_this_round = []
        return Effect(
            event='game:question-shown',
            payload={'question': question['question'], 'questionIndex': self.question_index},
        )

    def host_reveal_answer(self, room, data):
        require(self.question is not None and not self.show_answer, 'nothing to reveal')
        self.show_answer = True
        correct = self.question['answer']
        answers = dict(self.answers)

        eliminated = []
        for player in room.players:
            if player.is_eliminated:
                continue
            answer = answers.get(player.id)
            if answer is None or (answer == 'yes') != correct:
                player.is_eliminated = True
                eliminated.append(player.id)

        alive = [p for p in room.players if not p.is_eliminated and p.is_connected]
        winner = None
        if len(alive) == 1:
            winner = {'id': alive[0].id, 'name': alive[0].name}
        elif not alive:
            # Nobody left: this round does not count
            for player in room.players:
                if player.id in eliminated:
                    player.is_eliminated = False
            eliminated = []

        self.eliminated_this_round = eliminated
        self.answers = {}
        self.question_index += 1

        return Effect(
            event='game:answer-revealed',
            payload={
                'correctAnswer': correct,
                'explanation': self.question.get('explanation'),
                'answers': answers,
                'eliminatedThisRound': list(eliminated),
                'players': player_summaries(room),
                'winner': winner,
                'gameOver': winner is not None,
            },
        )

    def host_next_question(self, room, data):
        self.question = None
        self.show_answer = False
        self.answers = {}
        self.eliminated_this_round = []
        return Effect(
            event='game:ready-for-question',
            payload={'questionIndex': self.question_index, 'players': player_summaries(room)},
        )

    def player_answer(self, room, player, data):
        require(not player.is_eliminated, 'eliminated')
        require(self.question is not None and not self.show_answer, 'not accepting answers')
        require(player.id not in self.answers, 'already answered')
        answer = data.get('answer')
        require(answer in ANSWERS, 'answer must be yes or no')

        self.answers[player.id] = answer
        return Effect(
            event='game:player-answered',
            payload={
                'playerId': player.id,
                'answerCount': len(self.answers),
                'totalPlayers': len(room.active_players()),
            },
        )

    def to_dict(self):
        return {
            'currentQuestionIndex': self.question_index,
            'currentQuestion': self.question['question'] if self.question else None,
            'showAnswer': self.show_answer,
            'answerCount': len(self.answers),
            'eliminatedThisRound': list(self.eliminated_this_round),
        }
