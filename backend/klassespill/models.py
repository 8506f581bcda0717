import random
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional


ROOM_CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
ROOM_CODE_LENGTH = 6
MAX_NAME_LENGTH = 20
LOBBY_MINIGAMES = ('jumper', 'flappy', 'clicker', 'emoji', 'pattern')


class GameState:
    LOBBY_IDLE = 'LOBBY_IDLE'
    LOBBY = 'LOBBY'
    LOBBY_GAME_SELECTED = 'LOBBY_GAME_SELECTED'
    PLAYING = 'PLAYING'
    GAME_OVER = 'GAME_OVER'


def generate_room_code(is_taken: Callable[[str], bool], length=ROOM_CODE_LENGTH) -> str:
    """Generate a short room code that ``is_taken`` does not know about."""
    while True:
        code = ''.join(random.choices(ROOM_CODE_ALPHABET, k=length))
        if not is_taken(code):
            return code


def is_valid_room_code(code) -> bool:
    return (
        isinstance(code, str)
        and len(code) == ROOM_CODE_LENGTH
        and all(ch in ROOM_CODE_ALPHABET for ch in code)
    )


@dataclass
class Player:
    id: str
    name: str
    score: int = 0
    is_connected: bool = True
    is_eliminated: bool = False
    is_bot: bool = False

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'score': self.score,
            'isConnected': self.is_connected,
            'isEliminated': self.is_eliminated,
            'isBot': self.is_bot,
        }


@dataclass
class LobbyData:
    """Lobby mini-game scores, kept across main games in the same room."""

    # player id -> {'name', 'total', 'best': {minigame: score}}
    player_scores: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    # main game type -> final leaderboard of the last game ended to lobby
    game_results: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)

    @property
    def total_score(self) -> int:
        return sum(entry['total'] for entry in self.player_scores.values())

    def leaderboard(self):
        entries = [
            {'id': pid, 'name': entry['name'], 'score': entry['total']}
            for pid, entry in self.player_scores.items()
        ]
        return sorted(entries, key=lambda e: e['score'], reverse=True)

    def game_leaderboards(self):
        boards: Dict[str, List[Dict[str, Any]]] = {}
        for pid, entry in self.player_scores.items():
            for minigame, best in entry['best'].items():
                boards.setdefault(minigame, []).append({'id': pid, 'name': entry['name'], 'score': best})
        return {name: sorted(rows, key=lambda e: e['score'], reverse=True) for name, rows in boards.items()}

    def to_dict(self):
        return {
            'totalScore': self.total_score,
            'playerScores': self.player_scores,
            'leaderboard': self.leaderboard(),
            'gameLeaderboards': self.game_leaderboards(),
            'gameResults': self.game_results,
        }


@dataclass
class Room:
    code: str
    host_id: str
    game: Optional[str] = None
    game_state: str = GameState.LOBBY
    players: List[Player] = field(default_factory=list)
    # GameSession for the selected game while one is running
    session: Any = None
    lobby_data: LobbyData = field(default_factory=LobbyData)
    lobby_minigame: str = LOBBY_MINIGAMES[0]
    created_at: float = field(default_factory=time.time)

    def get_player(self, player_id) -> Optional[Player]:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def find_player_by_name(self, name) -> Optional[Player]:
        wanted = (name or '').strip().casefold()
        for player in self.players:
            if player.name.casefold() == wanted:
                return player
        return None

    def active_players(self) -> List[Player]:
        return [p for p in self.players if p.is_connected and not p.is_eliminated]

    def leaderboard(self):
        rows = [{'id': p.id, 'name': p.name, 'score': p.score} for p in self.players]
        return sorted(rows, key=lambda r: r['score'], reverse=True)

    def to_dict(self):
        return {
            'code': self.code,
            'game': self.game,
            'gameState': self.game_state,
            'lobbyMinigame': self.lobby_minigame,
            'players': [p.to_dict() for p in self.players],
            'gameData': self.session.to_dict() if self.session is not None else None,
        }
