from flask import current_app, request
from flask_socketio import emit, join_room, leave_room
from klassespill import socketio
from klassespill.models import LOBBY_MINIGAMES, GameState
from klassespill.rooms import registry
from klassespill.services.games import engine
from klassespill.services.games.bots import BotEngine
from klassespill.services.games.scheduler import BackgroundScheduler
from typing import Dict, Optional
import functools
import threading
import time


NAMESPACE = '/ws'

# Every entry into the registry or a session happens under this lock
_lock = threading.RLock()
# room code -> deadline of a pending host-disconnect close
_close_deadline: Dict[str, float] = {}

bots: Optional[BotEngine] = None


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _guarded(handler):
    """Serialize a socket handler and keep its failures inside the handler."""
    @functools.wraps(handler)
    def wrapper(data=None):
        try:
            with _lock:
                return handler(data if isinstance(data, dict) else {})
        except Exception:
            current_app.logger.exception(f"[action-error] sid={_get_sid()} handler={handler.__name__}")
    return wrapper


def _broadcast(room_code, event, payload=None):
    socketio.emit(event, payload, to=room_code, namespace=NAMESPACE)


def _host_room():
    """The room whose host is the current connection, if any."""
    sid = _get_sid()
    room = registry.room_for_connection(sid)
    if room is None or room.host_id != sid:
        return None
    return room


def deliver_effect(room_code, actor_id, effect) -> None:
    """Send each audience of ``effect`` its message."""
    room = registry.get_room(room_code)
    if room is None or effect is None:
        return
    if effect.broadcast:
        _broadcast(room.code, effect.event, effect.payload)
    if effect.to_host:
        socketio.emit(effect.host_event, effect.host_payload, to=room.host_id, namespace=NAMESPACE)
    if effect.to_player and actor_id:
        player = room.get_player(actor_id)
        if player is not None and not player.is_bot:
            socketio.emit(effect.player_event, effect.player_payload, to=actor_id, namespace=NAMESPACE)


def _deliver_and_notify_bots(room_code, actor_id, effect) -> None:
    deliver_effect(room_code, actor_id, effect)
    if effect is not None and effect.broadcast and bots is not None:
        bots.on_broadcast(room_code, effect.event, effect.payload)


def _reset_bots(room_code) -> None:
    if bots is not None:
        bots.reset(room_code)


def _close_room(room_code) -> None:
    """Drop a room, tell everyone still in it, and forget its bots."""
    _close_deadline.pop(room_code, None)
    if bots is not None:
        bots.cleanup(room_code)
    if registry.close_room(room_code) is None:
        return
    _broadcast(room_code, 'room:closed', {'roomCode': room_code})
    socketio.close_room(room_code, namespace=NAMESPACE)
    current_app.logger.info(f"[room-closed] room={room_code}")


# ---- Host-disconnect grace period ----

def _schedule_close(room_code: str, old_host: str, delay_sec: float) -> None:
    deadline = time.time() + delay_sec
    _close_deadline[room_code] = deadline
    app = current_app._get_current_object()

    def _runner(code: str, host: str, deadline: float):
        socketio.sleep(max(0.0, deadline - time.time()))
        with app.app_context(), _lock:
            room = registry.get_room(code)
            if _close_deadline.get(code) != deadline:
                return
            if room is None or room.host_id != host:
                _close_deadline.pop(code, None)
                return
            _close_room(code)

    socketio.start_background_task(_runner, room_code, old_host, deadline)


def _cancel_scheduled_close(room_code: str) -> None:
    if _close_deadline.pop(room_code, None) is not None:
        current_app.logger.info(f"[host-returned] room={room_code}")


def sweep_rooms(max_age, now=None):
    """Close rooms older than ``max_age`` seconds without notifying anyone."""
    with _lock:
        for code in registry.expired_codes(max_age, now):
            _close_deadline.pop(code, None)
            if bots is not None:
                bots.cleanup(code)
        removed = registry.cleanup_old_rooms(max_age, now)
    if removed:
        current_app.logger.info(f"[rooms-swept] removed={len(removed)} codes={removed}")
    return removed


# ---- Connection ----

def handle_connect(auth=None):
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(data):
    sid = _get_sid()
    departure = registry.remove_player(sid, keep_seat=True)
    if departure is None:
        return
    room = departure.room
    if departure.host_left:
        # In tests, close immediately for determinism; in prod, allow a grace period
        if current_app.config.get('TESTING'):
            _close_room(room.code)
            return
        grace = current_app.config.get('HOST_DISCONNECT_GRACE_SEC', 60)
        current_app.logger.info(f"[host-disconnected] room={room.code} grace={grace}s")
        _schedule_close(room.code, sid, grace)
        return
    _broadcast(room.code, 'room:player-left', {'room': room.to_dict(), 'playerId': sid})
    current_app.logger.info(f"[player-disconnected] room={room.code} player={sid}")


# ---- Host events ----

def handle_host_create_room(data):
    sid = _get_sid()
    code = registry.create_room(sid, data.get('game'))
    room = registry.get_room(code)
    join_room(code)
    emit('room:created', {'roomCode': code, 'game': room.game, 'gameState': room.game_state})
    current_app.logger.info(f"[room-created] room={code} host={sid} game={room.game}")


def handle_host_create_lobby(data):
    sid = _get_sid()
    code = registry.create_lobby(sid)
    room = registry.get_room(code)
    join_room(code)
    emit('lobby:created', {
        'roomCode': code,
        'gameState': room.game_state,
        'lobbyData': room.lobby_data.to_dict(),
        'lobbyMinigame': room.lobby_minigame,
    })
    current_app.logger.info(f"[lobby-created] room={code} host={sid}")


def handle_host_select_game(data):
    room = _host_room()
    if room is None or registry.select_game(room.code, data.get('game')) is None:
        return
    _reset_bots(room.code)
    _broadcast(room.code, 'lobby:game-selected', {
        'game': room.game, 'gameState': room.game_state, 'room': room.to_dict(),
    })
    current_app.logger.info(f"[game-selected] room={room.code} game={room.game}")


def handle_host_return_to_lobby(data):
    room = _host_room()
    if room is None:
        return
    registry.return_to_lobby(room.code)
    _reset_bots(room.code)
    _broadcast(room.code, 'lobby:returned', {'room': room.to_dict(), 'lobbyData': room.lobby_data.to_dict()})


def handle_host_start_game(data):
    room = _host_room()
    if room is None:
        return
    config = data.get('config') if isinstance(data.get('config'), dict) else data
    if registry.start_game(room.code, config) is None:
        return
    _reset_bots(room.code)
    payload = {'room': room.to_dict(), 'gameData': room.session.to_dict()}
    _broadcast(room.code, 'game:started', payload)
    current_app.logger.info(f"[game-started] room={room.code} game={room.game} players={len(room.players)}")
    if bots is not None:
        bots.on_broadcast(room.code, 'game:started', payload)


def handle_host_end_game(data):
    room = _host_room()
    if room is None:
        return
    registry.end_game(room.code, return_to_lobby=bool(data.get('returnToLobby', True)))
    _reset_bots(room.code)
    _broadcast(room.code, 'game:ended', {'room': room.to_dict(), 'lobbyData': room.lobby_data.to_dict()})
    current_app.logger.info(f"[game-ended] room={room.code} state={room.game_state}")


def handle_host_kick_player(data):
    room = _host_room()
    player_id = data.get('playerId')
    player = room.get_player(player_id) if room is not None else None
    if player is None:
        return
    registry.kick_player(room.code, player_id)
    if not player.is_bot:
        socketio.emit('room:kicked', {'roomCode': room.code}, to=player_id, namespace=NAMESPACE)
        leave_room(room.code, sid=player_id, namespace=NAMESPACE)
    _broadcast(room.code, 'room:player-left', {'room': room.to_dict(), 'playerId': player_id})
    current_app.logger.info(f"[player-kicked] room={room.code} player={player_id}")


def handle_host_rejoin(data):
    code = data.get('roomCode')
    if not isinstance(code, str) or not code.strip():
        return
    sid = _get_sid()
    room = registry.get_room(code)
    recreated = room is None
    if recreated:
        # Room lost (expired or server restart): re-create it under the same code when free
        room = registry.get_room(registry.create_lobby(sid, code))
    else:
        _cancel_scheduled_close(room.code)
        registry.rejoin_host(room.code, sid)
    join_room(room.code)
    emit('host:rejoin-success', {
        'roomCode': room.code,
        'room': room.to_dict(),
        'lobbyData': room.lobby_data.to_dict(),
        'lobbyMinigame': room.lobby_minigame,
        'recreated': recreated,
    })
    current_app.logger.info(f"[host-rejoined] room={room.code} host={sid} recreated={recreated}")


def handle_host_select_minigame(data):
    room = _host_room()
    if room is None:
        return
    registry.select_minigame(room.code, data.get('minigame'))
    _broadcast(room.code, 'lobby:minigame-selected', {'minigame': room.lobby_minigame})


def handle_host_enable_demo(data):
    room = _host_room()
    if room is None or bots is None:
        return
    default = current_app.config.get('DEMO_DEFAULT_BOTS', 5)
    count = data.get('count', default)
    if type(count) is not int:
        count = default
    count = max(1, min(count, current_app.config.get('DEMO_MAX_BOTS', 10)))
    bot_ids = bots.enable(room.code, count)
    if bot_ids is None:
        return
    _broadcast(room.code, 'room:player-joined', {'room': room.to_dict()})
    emit('demo:enabled', {'botIds': bot_ids})
    current_app.logger.info(f"[demo-enabled] room={room.code} bots={len(bot_ids)}")


def handle_host_disable_demo(data):
    room = _host_room()
    if room is None or bots is None:
        return
    bots.disable(room.code)
    _broadcast(room.code, 'room:player-left', {'room': room.to_dict()})
    emit('demo:disabled', {})
    current_app.logger.info(f"[demo-disabled] room={room.code}")


def handle_host_game_action(data):
    room = _host_room()
    if room is None:
        return
    effect = engine.handle_host_action(room, data.get('action'), data.get('data'))
    _deliver_and_notify_bots(room.code, _get_sid(), effect)


# ---- Player events ----

def handle_player_join_room(data):
    sid = _get_sid()
    room = registry.join_room(data.get('roomCode'), sid, data.get('playerName'))
    if room is None:
        emit('room:join-error', {'message': 'Kunne ikke bli med i rommet. Sjekk at romkoden er riktig.'})
        return
    join_room(room.code)
    player = room.get_player(sid)
    _broadcast(room.code, 'room:player-joined', {
        'playerId': sid, 'playerName': player.name, 'room': room.to_dict(),
    })
    if room.game_state == GameState.PLAYING:
        emit('game:state-sync', {'room': room.to_dict()})
    current_app.logger.info(f"[player-joined] room={room.code} player={sid} name={player.name}")


def handle_player_rejoin(data):
    code, name = data.get('roomCode'), data.get('playerName')
    if not code or not name:
        return
    sid = _get_sid()
    if registry.get_room(code) is None:
        emit('room:rejoin-failed', {'message': 'Rommet finnes ikke lenger.'})
        return
    room = registry.rejoin_player(code, sid, name)
    join_room(room.code)
    player = room.get_player(sid)
    emit('game:state-sync', {'room': room.to_dict()})
    _broadcast(room.code, 'room:player-joined', {
        'playerId': sid, 'playerName': player.name, 'room': room.to_dict(),
    })
    current_app.logger.info(f"[player-rejoined] room={room.code} player={sid} name={player.name}")


def handle_player_leave_room(data):
    sid = _get_sid()
    departure = registry.remove_player(sid)
    if departure is None:
        return
    room = departure.room
    leave_room(room.code)
    if departure.host_left:
        # Explicit quit by the host: end immediately
        _close_room(room.code)
        return
    _broadcast(room.code, 'room:player-left', {'room': room.to_dict(), 'playerId': sid})
    current_app.logger.info(f"[player-left] room={room.code} player={sid}")


def handle_player_game_action(data):
    sid = _get_sid()
    room = registry.room_for_connection(sid)
    if room is None:
        return
    effect = engine.handle_player_action(room, sid, data.get('action'), data.get('data'))
    _deliver_and_notify_bots(room.code, sid, effect)


# ---- Lobby mini-games ----

def handle_lobby_submit_score(data):
    sid = _get_sid()
    room = registry.room_for_connection(sid)
    if room is None:
        return
    minigame = data.get('gameId') or LOBBY_MINIGAMES[0]
    if registry.submit_lobby_score(room.code, sid, data.get('score'), minigame) is None:
        return
    lobby = room.lobby_data
    _broadcast(room.code, 'lobby:score-update', {
        'playerId': sid,
        'totalScore': lobby.total_score,
        'leaderboard': lobby.leaderboard(),
        'gameLeaderboards': lobby.game_leaderboards(),
    })


def handle_lobby_get_scores(data):
    room = registry.room_for_connection(_get_sid())
    if room is None:
        return
    lobby = room.lobby_data.to_dict()
    emit('lobby:scores', {
        'totalScore': lobby['totalScore'],
        'leaderboard': lobby['leaderboard'],
        'gameLeaderboards': lobby['gameLeaderboards'],
        'playerScores': lobby['playerScores'],
    })


HANDLERS = {
    'disconnect': handle_disconnect,
    'host:create-room': handle_host_create_room,
    'host:create-lobby': handle_host_create_lobby,
    'host:select-game': handle_host_select_game,
    'host:return-to-lobby': handle_host_return_to_lobby,
    'host:start-game': handle_host_start_game,
    'host:end-game': handle_host_end_game,
    'host:kick-player': handle_host_kick_player,
    'host:rejoin': handle_host_rejoin,
    'host:select-minigame': handle_host_select_minigame,
    'host:enable-demo': handle_host_enable_demo,
    'host:disable-demo': handle_host_disable_demo,
    'host:game-action': handle_host_game_action,
    'player:join-room': handle_player_join_room,
    'player:rejoin': handle_player_rejoin,
    'player:leave-room': handle_player_leave_room,
    'player:game-action': handle_player_game_action,
    'lobby:submit-score': handle_lobby_submit_score,
    'lobby:get-scores': handle_lobby_get_scores,
}


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers on namespace '/ws'.

    When testing is True, bot actions are scheduled but never started.
    """
    global bots
    scheduler = BackgroundScheduler(socketio, enabled=not testing, lock=_lock)
    bots = BotEngine(registry, scheduler, deliver=deliver_effect)

    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    for event, handler in HANDLERS.items():
        socketio.on_event(event, _guarded(handler), namespace=NAMESPACE)
