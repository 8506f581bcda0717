"""Gjett bildet: tiles of an image are revealed until someone guesses it.

The first player to buzz gets to guess. A wrong guess locks that player
out for the rest of the image and hands the turn to the next in line.
"""

from .answers import accepted_answers, check_answer
from .base import BuzzerSession, Effect, require
from .scoring import image_points


DEFAULT_TILE_COUNT = 16


class GjettBildetSession(BuzzerSession):
    game_type = 'gjett-bildet'

    def __init__(self, players=None, config=None):
        super().__init__(players, config)
        self.image_index = 0
        self.answers = []
        self.tile_count = self.config_count('tiles', DEFAULT_TILE_COUNT)
        self.revealed_tiles = []
        self.last_guess = None
        self.locked_out = set()
        self.round_over = True
        self.category = self.config.get('category', 'blanding')

    def buzzing_open(self):
        return bool(self.answers) and not self.round_over

    def can_buzz(self, player):
        return super().can_buzz(player) and player.id not in self.locked_out

    def host_next_image(self, room, data):
        image = data.get('image')
        require(isinstance(image, dict), 'image missing')
        answers = accepted_answers(image.get('answers') or image.get('answer'))
        require(answers, 'image has no accepted answers')
        tiles = image.get('tiles', self.tile_count)
        require(type(tiles) is int and tiles > 0, 'bad tile count')
        index = data.get('imageIndex', self.image_index + 1 if self.answers else 0)
        require(type(index) is int and index >= 0, 'bad image index')

        self.image_index = index
        self.answers = list(answers)
        self.tile_count = tiles
        self.revealed_tiles = []
        self.last_guess = None
        self.locked_out = set()
        self.round_over = False
        self.clear_buzzer()
        return Effect(
            event='game:next-image',
            payload={'imageIndex': index, 'totalTiles': tiles},
        )

    def host_reveal_step(self, room, data):
        require(not self.round_over, 'no image in play')
        tile = data.get('tile')
        if tile is None:
            hidden = [t for t in range(self.tile_count) if t not in self.revealed_tiles]
            require(hidden, 'everything is revealed')
            tile = hidden[0]
        require(type(tile) is int and 0 <= tile < self.tile_count, 'bad tile')
        require(tile not in self.revealed_tiles, 'tile already revealed')
        self.revealed_tiles.append(tile)
        return Effect(
            event='game:reveal-step',
            payload={
                'tile': tile,
                'revealedTiles': list(self.revealed_tiles),
                'step': len(self.revealed_tiles),
                'totalTiles': self.tile_count,
            },
        )

    def _miss(self, player_id):
        self.locked_out.add(player_id)
        return self.release_turn()

    def player_submit_guess(self, room, player, data):
        require(not self.round_over and self.current_player == player.id, 'not your turn')
        guess = data.get('guess')
        require(isinstance(guess, str) and guess.strip(), 'empty guess')

        self.last_guess = {'playerId': player.id, 'guess': guess.strip()}
        check = check_answer(guess, self.answers)
        host_payload = {
            'playerId': player.id,
            'guess': guess.strip(),
            'isCorrect': check.is_correct,
            'closestAnswer': check.matched_answer,
            'distance': check.distance if check.matched_answer is not None else None,
        }

        if check.is_correct:
            points = image_points(len(self.revealed_tiles), self.tile_count)
            player.score += points
            self.round_over = True
            self.clear_buzzer()
            return Effect(
                event='game:guess-result',
                payload={
                    'playerId': player.id,
                    'playerName': player.name,
                    'guess': guess.strip(),
                    'isCorrect': True,
                    'correctAnswer': self.answers[0],
                    'points': points,
                    'players': [p.to_dict() for p in room.players],
                },
                host_event='game:guess-submitted',
                host_payload=host_payload,
            )

        next_player = self._miss(player.id)
        return Effect(
            event='game:guess-result',
            payload={
                'playerId': player.id,
                'playerName': player.name,
                'guess': guess.strip(),
                'isCorrect': False,
                'points': 0,
                'lockedOut': sorted(self.locked_out),
                'buzzerQueue': list(self.buzzer_queue),
                'currentPlayer': next_player,
                'selectedPlayer': next_player,
            },
            host_event='game:guess-submitted',
            host_payload=host_payload,
        )

    def host_time_up(self, room, data):
        require(not self.round_over and self.current_player is not None, 'nobody is guessing')
        timed_out = self.current_player
        next_player = self._miss(timed_out)
        return Effect(
            event='game:turn-timeout',
            payload={
                'playerId': timed_out,
                'lockedOut': sorted(self.locked_out),
                'buzzerQueue': list(self.buzzer_queue),
                'currentPlayer': next_player,
                'selectedPlayer': next_player,
            },
        )

    def host_end_gjett_bildet(self, room, data):
        self.round_over = True
        self.clear_buzzer()
        leaderboard = room.leaderboard()
        return Effect(
            event='game:gjett-bildet-ended',
            payload={'leaderboard': leaderboard, 'winner': leaderboard[0] if leaderboard else None},
        )

    def to_dict(self):
        data = {
            'currentImageIndex': self.image_index,
            'revealedTiles': list(self.revealed_tiles),
            'totalTiles': self.tile_count,
            'lastGuess': dict(self.last_guess) if self.last_guess else None,
            'lockedOutPlayers': sorted(self.locked_out),
            'roundOver': self.round_over,
            'category': self.category,
        }
        data.update(self.buzzer_dict())
        return data
