"""Slange: a word chain where each word starts with the previous word's
last letter and no word may be used twice."""

import random

from .answers import last_letter, starts_with_letter
from .base import BuzzerSession, Effect, require


MODES = ('samarbeid', 'konkurranse')
DEFAULT_LETTER = 'S'
SKIP_LETTERS = 'ABDEFGHIKLMNOPRSTUV'


class SlangeSession(BuzzerSession):
    game_type = 'slange'

    def __init__(self, players=None, config=None):
        super().__init__(players, config)
        start = str(self.config.get('startLetter') or DEFAULT_LETTER).strip()[:1].upper()
        self.current_letter = start or DEFAULT_LETTER
        self.word_chain = []
        # casefolded words; serialized only in to_dict()
        self.used_words = set()
        self.last_word = None
        self.words_submitted = {}
        mode = self.config.get('mode', MODES[0])
        self.mode = mode if mode in MODES else MODES[0]
        self.category = self.config.get('category', 'blanding')

    @property
    def competitive(self):
        return self.mode == 'konkurranse'

    def validate_word(self, word):
        """Return the reason ``word`` cannot be chained, or ``None``."""
        if not isinstance(word, str) or not word.strip():
            return 'empty'
        if not word.strip().isalpha():
            return 'not-a-word'
        if not starts_with_letter(word, self.current_letter):
            return 'wrong-letter'
        if word.strip().casefold() in self.used_words:
            return 'already-used'
        return None

    def player_submit_word(self, room, player, data):
        require(self.current_player == player.id, 'not your turn')
        word = data.get('word')
        reason = self.validate_word(word)

        if reason is not None:
            next_player = self.release_turn()
            return Effect(
                event='game:word-rejected',
                payload={
                    'playerId': player.id,
                    'playerName': player.name,
                    'word': word.strip() if isinstance(word, str) else None,
                    'reason': reason,
                    'currentLetter': self.current_letter,
                    'buzzerQueue': list(self.buzzer_queue),
                    'currentPlayer': next_player,
                    'selectedPlayer': next_player,
                },
            )

        word = word.strip()
        self.used_words.add(word.casefold())
        self.word_chain.append({'word': word, 'playerId': player.id, 'playerName': player.name})
        self.current_letter = last_letter(word)
        self.last_word = {'playerId': player.id, 'word': word}
        self.words_submitted[player.id] = self.words_submitted.get(player.id, 0) + 1
        if self.competitive:
            player.score += 1
        self.clear_buzzer()

        return Effect(
            event='game:word-approved',
            payload={
                'word': word,
                'playerId': player.id,
                'playerName': player.name,
                'newLetter': self.current_letter,
                'wordChain': [dict(entry) for entry in self.word_chain],
                'usedWords': self.used_words_list(),
                'players': [p.to_dict() for p in room.players],
            },
        )

    def host_skip_letter(self, room, data):
        # Only the starting letter may be changed; later letters come from the chain
        require(not self.word_chain, 'chain already started')
        choices = [letter for letter in SKIP_LETTERS if letter != self.current_letter]
        self.current_letter = random.choice(choices)
        self.clear_buzzer()
        return Effect(
            event='game:letter-skipped',
            payload={'newLetter': self.current_letter, 'usedWords': self.used_words_list()},
        )

    def host_time_up(self, room, data):
        require(self.current_player is not None, 'nobody has the turn')
        timed_out = self.current_player
        next_player = self.release_turn()
        return Effect(
            event='game:turn-timeout',
            payload={
                'playerId': timed_out,
                'currentLetter': self.current_letter,
                'buzzerQueue': list(self.buzzer_queue),
                'currentPlayer': next_player,
                'selectedPlayer': next_player,
            },
        )

    def used_words_list(self):
        return sorted(self.used_words)

    def to_dict(self):
        data = {
            'currentLetter': self.current_letter,
            'wordChain': [dict(entry) for entry in self.word_chain],
            'usedWords': self.used_words_list(),
            'lastWord': dict(self.last_word) if self.last_word else None,
            'wordsSubmitted': dict(self.words_submitted),
            'mode': self.mode,
            'category': self.category,
        }
        data.update(self.buzzer_dict())
        return data
