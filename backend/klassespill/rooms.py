"""In-memory room registry.

Rooms live only in process memory: a restart loses every room. The
registry owns the room table and the connection -> room code index; the
index holds codes only, never a second copy of a room.
"""

import time
from dataclasses import dataclass
from typing import Dict, List, Optional

from .models import (
    LOBBY_MINIGAMES,
    MAX_NAME_LENGTH,
    GameState,
    Player,
    Room,
    generate_room_code,
    is_valid_room_code,
)
from .services.games import engine


@dataclass
class Departure:
    room: Room
    host_left: bool


def _clean_name(name) -> str:
    name = ' '.join(str(name or '').split())[:MAX_NAME_LENGTH]
    return name or 'Spiller'


class RoomRegistry:
    def __init__(self):
        self.rooms: Dict[str, Room] = {}
        self.connections: Dict[str, str] = {}

    def clear(self):
        self.rooms.clear()
        self.connections.clear()

    # ---- lookup ----

    def get_room(self, code) -> Optional[Room]:
        if not isinstance(code, str):
            return None
        return self.rooms.get(code.strip().upper())

    def room_for_connection(self, connection_id) -> Optional[Room]:
        code = self.connections.get(connection_id)
        return self.rooms.get(code) if code else None

    # ---- creation and membership ----

    def _new_code(self, requested=None) -> str:
        if requested:
            requested = requested.strip().upper()
            if is_valid_room_code(requested) and requested not in self.rooms:
                return requested
        return generate_room_code(lambda code: code in self.rooms)

    def create_room(self, host_id, game=None) -> str:
        code = self._new_code()
        self.rooms[code] = Room(code=code, host_id=host_id, game=game, game_state=GameState.LOBBY)
        self.connections[host_id] = code
        return code

    def create_lobby(self, host_id, code=None) -> str:
        """Create a room without a game; ``code`` is reused when it is free."""
        code = self._new_code(code)
        self.rooms[code] = Room(code=code, host_id=host_id, game_state=GameState.LOBBY_IDLE)
        self.connections[host_id] = code
        return code

    def _unique_name(self, room, name) -> str:
        base = _clean_name(name)
        candidate, suffix = base, 2
        while room.find_player_by_name(candidate) is not None:
            candidate = f"{base} {suffix}"
            suffix += 1
        return candidate

    def join_room(self, code, player_id, name) -> Optional[Room]:
        room = self.get_room(code)
        if room is None:
            return None
        if room.get_player(player_id) is not None:
            return room
        room.players.append(Player(id=player_id, name=self._unique_name(room, name)))
        self.connections[player_id] = room.code
        return room

    def add_player(self, room, player: Player) -> Player:
        """Seat a player that has no connection (bots)."""
        player.name = self._unique_name(room, player.name)
        room.players.append(player)
        return player

    def kick_player(self, code, player_id) -> Optional[Room]:
        room = self.get_room(code)
        if room is None:
            return None
        room.players = [p for p in room.players if p.id != player_id]
        if self.connections.get(player_id) == room.code:
            del self.connections[player_id]
        return room

    def remove_player(self, connection_id, keep_seat=False) -> Optional[Departure]:
        """Detach a connection from its room.

        The host's room is left in place: ``Departure.host_left`` tells the
        caller to close it (now or after a grace period). A player is
        dropped, or with ``keep_seat`` only marked disconnected so a
        reconnect can reclaim the seat. Unknown connections give ``None``.
        """
        code = self.connections.pop(connection_id, None)
        room = self.rooms.get(code) if code else None
        if room is None:
            return None
        if room.host_id == connection_id:
            return Departure(room=room, host_left=True)
        if keep_seat:
            player = room.get_player(connection_id)
            if player is not None:
                player.is_connected = False
        else:
            room.players = [p for p in room.players if p.id != connection_id]
        return Departure(room=room, host_left=False)

    def close_room(self, code) -> Optional[Room]:
        room = self.rooms.pop(code, None)
        if room is None:
            return None
        for connection_id, room_code in list(self.connections.items()):
            if room_code == code:
                del self.connections[connection_id]
        return room

    # ---- reconnection ----

    def rejoin_host(self, code, connection_id) -> Optional[Room]:
        room = self.get_room(code)
        if room is None:
            return None
        old_host = room.host_id
        if old_host != connection_id and self.connections.get(old_host) == room.code:
            del self.connections[old_host]
        room.host_id = connection_id
        self.connections[connection_id] = room.code
        return room

    def rejoin_player(self, code, connection_id, name) -> Optional[Room]:
        room = self.get_room(code)
        if room is None:
            return None
        player = room.find_player_by_name(name)
        if player is None or player.is_bot:
            return self.join_room(room.code, connection_id, name)
        if player.id != connection_id and self.connections.get(player.id) == room.code:
            del self.connections[player.id]
        player.id = connection_id
        player.is_connected = True
        self.connections[connection_id] = room.code
        return room

    # ---- lobby and game lifecycle ----

    def select_game(self, code, game) -> Optional[Room]:
        room = self.get_room(code)
        if room is None or not game or not isinstance(game, str) or room.game_state == GameState.PLAYING:
            return None
        room.game = game
        room.session = None
        room.game_state = GameState.LOBBY_GAME_SELECTED
        return room

    def start_game(self, code, config=None) -> Optional[Room]:
        room = self.get_room(code)
        if room is None or not room.game:
            return None
        session = engine.initialize(room.game, room.players, config)
        for player in room.players:
            player.score = 0
            player.is_eliminated = False
        room.session = session
        room.game_state = GameState.PLAYING
        return room

    def end_game(self, code, return_to_lobby=True) -> Optional[Room]:
        room = self.get_room(code)
        if room is None:
            return None
        if room.game and room.game_state == GameState.PLAYING:
            room.lobby_data.game_results[room.game] = room.leaderboard()
        if return_to_lobby:
            room.session = None
            room.game_state = GameState.LOBBY_GAME_SELECTED if room.game else GameState.LOBBY_IDLE
        else:
            room.game_state = GameState.GAME_OVER
        return room

    def return_to_lobby(self, code) -> Optional[Room]:
        room = self.get_room(code)
        if room is None:
            return None
        room.game = None
        room.session = None
        room.game_state = GameState.LOBBY_IDLE
        for player in room.players:
            player.is_eliminated = False
        return room

    def select_minigame(self, code, minigame) -> Optional[Room]:
        room = self.get_room(code)
        if room is None:
            return None
        room.lobby_minigame = minigame if minigame in LOBBY_MINIGAMES else LOBBY_MINIGAMES[0]
        return room

    def submit_lobby_score(self, code, player_id, score, minigame=LOBBY_MINIGAMES[0]) -> Optional[Room]:
        """Record a lobby mini-game score; only a player's best per mini-game counts."""
        room = self.get_room(code)
        if room is None:
            return None
        player = room.get_player(player_id)
        if player is None or type(score) is not int or score < 0:
            return None
        if minigame not in LOBBY_MINIGAMES:
            minigame = LOBBY_MINIGAMES[0]
        entry = room.lobby_data.player_scores.setdefault(player.id, {'name': player.name, 'total': 0, 'best': {}})
        entry['name'] = player.name
        entry['best'][minigame] = max(score, entry['best'].get(minigame, 0))
        entry['total'] = sum(entry['best'].values())
        return room

    # ---- expiry ----

    def expired_codes(self, max_age, now=None) -> List[str]:
        now = time.time() if now is None else now
        return [code for code, room in self.rooms.items() if now - room.created_at > max_age]

    def cleanup_old_rooms(self, max_age, now=None) -> List[str]:
        removed = self.expired_codes(max_age, now)
        for code in removed:
            self.close_room(code)
        return removed


registry = RoomRegistry()
