"""Demo-mode bots.

Bots are ordinary players flagged ``is_bot``. They react to the same
broadcasts a real client receives and act through the same dispatch
function as real players, after a randomized delay. Each policy lets
only some of the eligible bots act on a given event.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from ...models import Player
from . import engine


logger = logging.getLogger(__name__)

BOT_NAMES = ['Eva', 'Noah', 'Nora', 'Julian', 'Sofie', 'Oliver', 'Ella', 'Filip', 'Maja', 'Liam']

WORD_BANK = {
    'A': ['appelsin', 'ananas', 'ape', 'aksel', 'avis', 'arm', 'atlas', 'aks'],
    'B': ['banan', 'bjørn', 'bil', 'bok', 'bord', 'brev', 'bukse', 'bro', 'ball'],
    'C': ['camping', 'celle', 'chips', 'cola'],
    'D': ['delfin', 'drage', 'dress', 'due', 'dal', 'dør', 'drill', 'dukke'],
    'E': ['elefant', 'eple', 'edderkopp', 'ekorn', 'eng', 'esel', 'elv'],
    'F': ['fisk', 'fjell', 'flamingo', 'flue', 'frosk', 'fot', 'fly', 'fest'],
    'G': ['giraff', 'glass', 'gate', 'gris', 'gull', 'gress', 'gave'],
    'H': ['hund', 'hest', 'hus', 'hagle', 'hav', 'hjort', 'hammer'],
    'I': ['is', 'insekt', 'iglo', 'idrett', 'ild'],
    'J': ['jord', 'juice', 'jul', 'jakke', 'jente'],
    'K': ['katt', 'kake', 'klokke', 'ku', 'kano', 'kopp', 'kjole', 'kylling'],
    'L': ['løve', 'lampe', 'lek', 'luft', 'laks', 'lov', 'lue'],
    'M': ['mus', 'melk', 'mat', 'mark', 'maur', 'måke', 'mann'],
    'N': ['nese', 'natt', 'nøkkel', 'neve', 'nål', 'ninja'],
    'O': ['oransje', 'orm', 'ost', 'okse', 'ordbok'],
    'P': ['panda', 'pizza', 'piano', 'pumpe', 'pære', 'pingvin', 'pil'],
    'R': ['rev', 'ring', 'rose', 'rotte', 'regn', 'ris', 'rør'],
    'S': ['slange', 'sol', 'skog', 'sykkel', 'stein', 'stol', 'sau', 'sopp'],
    'T': ['tiger', 'tog', 'tre', 'tann', 'teppe', 'troll', 'tavle'],
    'U': ['ugle', 'ur', 'ulv', 'underbukse', 'utedo'],
    'V': ['vann', 'vegg', 'vind', 'vogn', 'veps', 'vulkan'],
    'W': ['waffle', 'wifi'],
    'Y': ['yoghurt', 'yacht'],
    'Æ': ['ærfugl', 'æsel'],
    'Ø': ['øgle', 'ørn', 'øks', 'øy', 'øre'],
    'Å': ['ål', 'åker', 'årstid', 'ånd'],
}

WRONG_GUESSES = ['noe annet', 'hund', 'bil', 'hus', 'tre', 'blomst', 'sol', 'fisk']
FREE_TEXT_ANSWERS = ['svar', 'vet ikke', 'Oslo', '42']

# (min, max) seconds before a bot acts
ANSWER_DELAY = (2.0, 5.0)
VOTE_DELAY = (2.0, 4.0)
CHOICE_DELAY = (3.0, 8.0)
FREE_TEXT_DELAY = (5.0, 12.0)
EXPRESSION_DELAY = (5.0, 15.0)
ORDERING_DELAY = (5.0, 12.0)
BUZZ_DELAY = (3.0, 8.0)
TURN_DELAY = (2.0, 5.0)

PARTICIPATION = 0.8
IMAGE_BUZZ_CHANCE = 0.3
IMAGE_CORRECT_CHANCE = 0.4


def build_expression(numbers, target, rng=random):
    """A quick two-number expression that lands near ``target``."""
    pool = list(numbers)
    rng.shuffle(pool)
    for i in range(min(len(pool), 3)):
        for j in range(i + 1, min(len(pool), 4)):
            a, b = pool[i], pool[j]
            for op, result in (('+', a + b), ('-', a - b), ('*', a * b)):
                if abs(result - target) < 20:
                    return f'{a}{op}{b}'
    return f'{pool[0]}+{pool[1]}'


@dataclass
class BotRoom:
    bot_ids: List[str]
    # what the bots have learned from broadcasts
    letter: Optional[str] = None
    used_words: set = field(default_factory=set)
    locked_out: set = field(default_factory=set)
    current_player: Optional[str] = None


class BotEngine:
    def __init__(self, registry, scheduler, dispatch: Callable = None, deliver: Callable = None, rng=None):
        self.registry = registry
        self.scheduler = scheduler
        self.dispatch = dispatch or self._dispatch
        # deliver(room_code, actor_id, effect) hands bot effects to the transport
        self.deliver = deliver
        self.rng = rng or random.Random()
        self._rooms: Dict[str, BotRoom] = {}
        self._policies = {
            'ja-eller-nei': self._ja_eller_nei,
            'vil-du-heller': self._vil_du_heller,
            'quiz': self._quiz,
            'tallkamp': self._tallkamp,
            'tidslinje': self._tidslinje,
            'slange': self._slange,
            'gjett-bildet': self._gjett_bildet,
        }

    def _dispatch(self, room_code, player_id, action, data):
        return engine.handle_player_action(self.registry.get_room(room_code), player_id, action, data)

    # ---- demo mode lifecycle ----

    def enable(self, room_code, count) -> Optional[List[str]]:
        """Seat ``count`` bots in the room, replacing any earlier ones."""
        room = self.registry.get_room(room_code)
        if room is None:
            return None
        self.disable(room.code)

        taken_ids = {p.id for p in room.players}
        bot_ids = []
        for i in range(max(0, int(count))):
            bot_id, n = f'bot_{i + 1}', i + 1
            while bot_id in taken_ids:
                n += len(BOT_NAMES)
                bot_id = f'bot_{n}'
            taken_ids.add(bot_id)

            name = BOT_NAMES[i] if i < len(BOT_NAMES) else f'Bot {i + 1}'
            if room.find_player_by_name(name) is not None:
                name = f'{name} (bot)'
            self.registry.add_player(room, Player(id=bot_id, name=name, is_bot=True))
            bot_ids.append(bot_id)

        self._rooms[room.code] = BotRoom(bot_ids=bot_ids)
        logger.debug(f"[bots-seated] room={room.code} bots={bot_ids}")
        return bot_ids

    def disable(self, room_code):
        """Cancel pending bot actions and remove the bots from the room."""
        self.scheduler.cancel_room(room_code)
        state = self._rooms.pop(room_code, None)
        room = self.registry.get_room(room_code)
        if room is not None and state is not None:
            room.players = [p for p in room.players if p.id not in state.bot_ids]
        return room

    def reset(self, room_code):
        """Drop pending actions and observations when the room changes game.

        The bots stay seated.
        """
        self.scheduler.cancel_room(room_code)
        state = self._rooms.get(room_code)
        if state is not None:
            self._rooms[room_code] = BotRoom(bot_ids=state.bot_ids)

    def cleanup(self, room_code):
        """Forget a room that is being closed."""
        self.scheduler.cancel_room(room_code)
        self._rooms.pop(room_code, None)

    def is_active(self, room_code) -> bool:
        state = self._rooms.get(room_code)
        return state is not None and bool(state.bot_ids)

    def bot_ids(self, room_code) -> List[str]:
        state = self._rooms.get(room_code)
        return list(state.bot_ids) if state else []

    # ---- scheduling and execution ----

    def schedule(self, room_code, bot_id, action, data, delay):
        low, high = delay
        return self.scheduler.schedule(
            room_code, self.rng.uniform(low, high), self._fire, room_code, bot_id, action, data
        )

    def _fire(self, room_code, bot_id, action, data):
        # The room or demo mode may be gone by now
        if self.registry.get_room(room_code) is None or not self.is_active(room_code):
            logger.debug(f"[bot-skip] room={room_code} bot={bot_id} action={action}")
            return
        self.execute(room_code, bot_id, action, data)

    def execute(self, room_code, bot_id, action, data):
        """Run a bot action through the player dispatch path.

        A broadcast it causes is fed back into :meth:`on_broadcast` so bots
        can chain (buzz, then answer). Errors are logged, never raised.
        """
        if bot_id not in self.bot_ids(room_code):
            return None
        try:
            effect = self.dispatch(room_code, bot_id, action, data)
            if effect is None:
                return None
            if self.deliver is not None:
                self.deliver(room_code, bot_id, effect)
            if effect.broadcast:
                self.on_broadcast(room_code, effect.event, effect.payload)
            return effect
        except Exception:
            logger.exception(f"[bot-error] room={room_code} bot={bot_id} action={action}")
            return None

    # ---- event routing ----

    def on_broadcast(self, room_code, event, payload):
        state = self._rooms.get(room_code)
        if state is None or not state.bot_ids:
            return
        room = self.registry.get_room(room_code)
        if room is None or room.session is None:
            return
        policy = self._policies.get(room.game)
        if policy is None:
            return
        eligible = [
            p.id for p in room.players
            if p.id in state.bot_ids and p.is_connected and not p.is_eliminated
        ]
        if eligible:
            policy(room, state, event, payload or {}, eligible)

    def _some(self, bot_ids):
        return [bot_id for bot_id in bot_ids if self.rng.random() < PARTICIPATION]

    def _few(self, bot_ids, most=2):
        k = min(len(bot_ids), self.rng.randint(1, most))
        return self.rng.sample(bot_ids, k)

    # ---- per-game policies ----

    def _ja_eller_nei(self, room, state, event, payload, bot_ids):
        if event != 'game:question-shown':
            return
        for bot_id in self._some(bot_ids):
            self.schedule(room.code, bot_id, 'answer', {'answer': self.rng.choice(['yes', 'no'])}, ANSWER_DELAY)

    def _vil_du_heller(self, room, state, event, payload, bot_ids):
        if event != 'game:question-shown':
            return
        for bot_id in self._some(bot_ids):
            choice = self.rng.choice(['optionA', 'optionB'])
            self.schedule(room.code, bot_id, 'vote', {'choice': choice}, VOTE_DELAY)

    def _quiz(self, room, state, event, payload, bot_ids):
        if event != 'game:question-shown':
            return
        options = payload.get('options')
        for bot_id in self._some(bot_ids):
            if isinstance(options, list) and options:
                self.schedule(room.code, bot_id, 'answer', {'answer': self.rng.randrange(len(options))}, CHOICE_DELAY)
            else:
                answer = self.rng.choice(FREE_TEXT_ANSWERS)
                self.schedule(room.code, bot_id, 'answer', {'answer': answer}, FREE_TEXT_DELAY)

    def _tallkamp(self, room, state, event, payload, bot_ids):
        if event != 'game:round-started':
            return
        numbers, target = payload.get('numbers'), payload.get('target')
        if not isinstance(numbers, list) or len(numbers) < 2 or target is None:
            return
        for bot_id in self._some(bot_ids):
            expression = build_expression(numbers, target, self.rng)
            self.schedule(room.code, bot_id, 'submit', {'expression': expression}, EXPRESSION_DELAY)

    def _tidslinje(self, room, state, event, payload, bot_ids):
        if event != 'game:round-started':
            return
        events = payload.get('events') or []
        if not events:
            return
        for bot_id in self._some(bot_ids):
            order = list(range(len(events)))
            self.rng.shuffle(order)
            self.schedule(room.code, bot_id, 'lock-answer', {'order': order}, ORDERING_DELAY)

    def _pick_word(self, state):
        words = WORD_BANK.get((state.letter or '').upper(), [])
        available = [w for w in words if w.casefold() not in state.used_words]
        return self.rng.choice(available) if available else None

    def _slange(self, room, state, event, payload, bot_ids):
        if event == 'game:started':
            game_data = payload.get('gameData') or {}
            state.letter = game_data.get('currentLetter')
            state.used_words = set(game_data.get('usedWords') or [])
        elif event in ('game:word-approved', 'game:letter-skipped'):
            state.letter = payload.get('newLetter')
            state.used_words = set(payload.get('usedWords') or [])
        elif payload.get('currentLetter'):
            state.letter = payload['currentLetter']

        if event in ('game:started', 'game:word-approved', 'game:letter-skipped'):
            if self._pick_word(state) is None:
                return
            for bot_id in self._few(bot_ids):
                self.schedule(room.code, bot_id, 'buzz', {}, BUZZ_DELAY)
            return

        selected = payload.get('selectedPlayer')
        if selected in bot_ids:
            word = self._pick_word(state)
            if word is not None:
                self.schedule(room.code, selected, 'submit-word', {'word': word}, TURN_DELAY)

    def _gjett_bildet(self, room, state, event, payload, bot_ids):
        if event == 'game:next-image':
            state.locked_out = set()
            state.current_player = None
            return
        if 'lockedOut' in payload:
            state.locked_out = set(payload['lockedOut'])
        if 'currentPlayer' in payload:
            state.current_player = payload['currentPlayer']
        if event == 'game:guess-result' and payload.get('isCorrect'):
            state.current_player = None
            return

        if event == 'game:reveal-step':
            candidates = [b for b in bot_ids if b not in state.locked_out]
            if not candidates or state.current_player or self.rng.random() >= IMAGE_BUZZ_CHANCE:
                return
            self.schedule(room.code, self.rng.choice(candidates), 'buzz', {}, BUZZ_DELAY)
            return

        selected = payload.get('selectedPlayer')
        if selected in bot_ids:
            # The guesser may see the image's accepted answers once it has the turn
            answers = getattr(room.session, 'answers', None) or []
            if answers and self.rng.random() < IMAGE_CORRECT_CHANCE:
                guess = answers[0]
            else:
                guess = self.rng.choice(WRONG_GUESSES)
            self.schedule(room.code, selected, 'submit-guess', {'guess': guess}, TURN_DELAY)
