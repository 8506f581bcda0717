"""Quiz: multiple-choice or free-text questions scored on speed."""

import time

from .answers import accepted_answers, check_answer
from .base import Effect, GameSession, require
from .scoring import quiz_points


DEFAULT_TIME_LIMIT = 20


class QuizSession(GameSession):
    game_type = 'quiz'

    def __init__(self, players=None, config=None, clock=time.time):
        super().__init__(players, config)
        self.clock = clock
        self.question_index = 0
        self.question = None
        self.show_answer = False
        # player id -> {'answer', 'time'}
        self.answers = {}
        self.time_limit = self.config_count('timeLimit', DEFAULT_TIME_LIMIT)
        self.question_started_at = None

    @property
    def is_multiple_choice(self):
        return bool(self.question and self.question.get('options'))

    def host_show_question(self, room, data):
        question = data.get('question')
        require(isinstance(question, dict) and question.get('question'), 'question missing')
        if question.get('options'):
            require(isinstance(question.get('correct'), int), 'correct option index missing')
            require(0 <= question['correct'] < len(question['options']), 'correct option out of range')
        else:
            answers = accepted_answers(question.get('answers'))
            require(answers, 'accepted answers missing')
            question = dict(question, answers=answers)

        index = data.get('questionIndex', self.question_index)
        require(isinstance(index, int) and index >= 0, 'bad question index')
        time_limit = data.get('timeLimit', self.time_limit)
        require(isinstance(time_limit, (int, float)) and time_limit > 0, 'bad time limit')

        self.question = question
        self.question_index = index
        self.show_answer = False
        self.answers = {}
        self.time_limit = time_limit
        self.question_started_at = self.clock()
        return Effect(
            event='game:question-shown',
            payload={
                'question': question['question'],
                'options': question.get('options'),
                'questionIndex': index,
                'timeLimit': time_limit,
            },
        )

    def _is_correct(self, answer):
        if self.is_multiple_choice:
            correct = self.question['correct']
            if isinstance(answer, bool):
                return False
            if isinstance(answer, int):
                return answer == correct
            return isinstance(answer, str) and answer.strip() == str(self.question['options'][correct]).strip()
        return check_answer(answer, self.question['answers']).is_correct

    def host_reveal_answer(self, room, data):
        require(self.question is not None and not self.show_answer, 'nothing to reveal')
        self.show_answer = True

        results = []
        for player in room.players:
            entry = self.answers.get(player.id)
            is_correct = entry is not None and self._is_correct(entry['answer'])
            points = quiz_points(entry['time'], self.time_limit) if is_correct else 0
            player.score += points
            results.append({
                'playerId': player.id,
                'playerName': player.name,
                'answer': entry['answer'] if entry else None,
                'isCorrect': is_correct,
                'points': points,
                'totalScore': player.score,
            })

        revealed_index = self.question_index
        self.question_index += 1
        if self.is_multiple_choice:
            correct_answer = self.question['correct']
        else:
            correct_answer = self.question['answers'][0]
        return Effect(
            event='game:answer-revealed',
            payload={
                'correctAnswer': correct_answer,
                'results': results,
                'leaderboard': room.leaderboard(),
                'questionIndex': revealed_index,
            },
        )

    def host_next_question(self, room, data):
        self.question = None
        self.show_answer = False
        self.answers = {}
        return Effect(
            event='game:ready-for-question',
            payload={'questionIndex': self.question_index, 'leaderboard': room.leaderboard()},
        )

    def host_end_quiz(self, room, data):
        leaderboard = room.leaderboard()
        return Effect(
            event='game:quiz-ended',
            payload={'leaderboard': leaderboard, 'winner': leaderboard[0] if leaderboard else None},
        )

    def player_answer(self, room, player, data):
        require(self.question is not None and not self.show_answer, 'not accepting answers')
        require(player.id not in self.answers, 'already answered')
        answer = data.get('answer')
        require(answer is not None and answer != '', 'empty answer')
        if self.is_multiple_choice and isinstance(answer, int) and not isinstance(answer, bool):
            require(0 <= answer < len(self.question['options']), 'option out of range')

        self.answers[player.id] = {'answer': answer, 'time': max(0.0, self.clock() - self.question_started_at)}
        return Effect(
            event='game:player-answered',
            payload={
                'playerId': player.id,
                'answerCount': len(self.answers),
                'totalPlayers': len([p for p in room.players if p.is_connected]),
            },
        )

    def to_dict(self):
        return {
            'currentQuestionIndex': self.question_index,
            'currentQuestion': self.question['question'] if self.question else None,
            'options': self.question.get('options') if self.question else None,
            'showAnswer': self.show_answer,
            'answerCount': len(self.answers),
            'timeLimit': self.time_limit,
        }
