"""Session contract shared by every game type.

A session owns the per-game data of one room while that game runs. Hosts
and players act on it through ``handle_host_action`` and
``handle_player_action``; both return an :class:`Effect` describing what
the transport should send, or ``None`` when nothing observable happened.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional


class InvalidAction(Exception):
    """The action does not fit the session's current phase or data shape."""


@dataclass
class Effect:
    """Outbound messages produced by one action.

    Any combination of the three audiences may be present.
    """

    event: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None
    host_event: Optional[str] = None
    host_payload: Optional[Dict[str, Any]] = None
    player_event: Optional[str] = None
    player_payload: Optional[Dict[str, Any]] = None

    @property
    def broadcast(self) -> bool:
        return self.event is not None

    @property
    def to_host(self) -> bool:
        return self.host_event is not None

    @property
    def to_player(self) -> bool:
        return self.player_event is not None


def require(condition, message='invalid action'):
    if not condition:
        raise InvalidAction(message)


def player_summaries(room):
    return [
        {'id': p.id, 'name': p.name, 'score': p.score,
         'isEliminated': p.is_eliminated, 'isConnected': p.is_connected}
        for p in room.players
    ]


class GameSession:
    """Base session. Action names map to ``host_<name>`` / ``player_<name>``
    methods with dashes turned into underscores."""

    game_type: Optional[str] = None

    def __init__(self, players=None, config=None):
        self.config = dict(config or {})

    def config_count(self, key, default):
        """Positive whole number from the game config, else ``default``."""
        value = self.config.get(key, default)
        if isinstance(value, bool):
            return default
        try:
            value = int(value)
        except (TypeError, ValueError):
            return default
        return value if value > 0 else default

    @classmethod
    def initialize(cls, players, config=None):
        return cls(players, config)

    def handle_host_action(self, room, action, data) -> Optional[Effect]:
        handler = self._lookup('host', action)
        if handler is None:
            return None
        return handler(room, data if isinstance(data, dict) else {})

    def handle_player_action(self, room, player_id, action, data) -> Optional[Effect]:
        handler = self._lookup('player', action)
        if handler is None:
            return None
        player = room.get_player(player_id)
        if player is None:
            return None
        return handler(room, player, data if isinstance(data, dict) else {})

    def _lookup(self, role, action):
        if not isinstance(action, str) or not action:
            return None
        return getattr(self, f"{role}_{action.replace('-', '_')}", None)

    def to_dict(self) -> Dict[str, Any]:
        return {}


class UnsupportedGameSession(GameSession):
    """Placeholder for game types without server-side logic.

    Rooms may still be created for them; every action is a no-op.
    """

    def handle_host_action(self, room, action, data):
        return None

    def handle_player_action(self, room, player_id, action, data):
        return None


class BuzzerSession(GameSession):
    """Session with a FIFO buzzer queue and one player allowed to act."""

    def __init__(self, players=None, config=None):
        super().__init__(players, config)
        self.buzzer_queue: List[str] = []
        self.current_player: Optional[str] = None

    def can_buzz(self, player) -> bool:
        return player.is_connected and not player.is_eliminated

    def release_turn(self) -> Optional[str]:
        """Clear the active player and promote the next queued one."""
        self.current_player = self.buzzer_queue.pop(0) if self.buzzer_queue else None
        return self.current_player

    def clear_buzzer(self):
        self.buzzer_queue = []
        self.current_player = None

    def player_buzz(self, room, player, data):
        require(self.buzzing_open(), 'buzzer closed')
        require(self.can_buzz(player), 'player may not buzz')
        require(player.id != self.current_player and player.id not in self.buzzer_queue, 'already buzzed')

        selected = None
        if self.current_player is None:
            self.current_player = player.id
            selected = player.id
        else:
            self.buzzer_queue.append(player.id)

        return Effect(
            event='game:player-buzzed',
            payload={
                'playerId': player.id,
                'playerName': player.name,
                'buzzerQueue': list(self.buzzer_queue),
                'currentPlayer': self.current_player,
                'selectedPlayer': selected,
            },
            player_event='game:buzz-accepted',
            player_payload={'position': 0 if selected else len(self.buzzer_queue)},
        )

    def host_select_player(self, room, data):
        player = room.get_player(data.get('playerId'))
        require(player is not None and self.current_player is None, 'cannot select player')
        require(self.can_buzz(player), 'player may not act')
        if player.id in self.buzzer_queue:
            self.buzzer_queue.remove(player.id)
        self.current_player = player.id
        return Effect(
            event='game:player-selected',
            payload={
                'playerId': player.id,
                'playerName': player.name,
                'buzzerQueue': list(self.buzzer_queue),
                'selectedPlayer': player.id,
            },
        )

    def host_clear_buzzer(self, room, data):
        self.clear_buzzer()
        return Effect(event='game:buzzer-cleared', payload={'buzzerQueue': []})

    def buzzing_open(self) -> bool:
        return True

    def buzzer_dict(self):
        return {
            'buzzerQueue': list(self.buzzer_queue),
            'currentPlayer': self.current_player,
        }
