"""Game-type registry and the dispatch entry points used by the transport
and the bot engine."""

import logging
from typing import Dict, Optional, Type

from .base import Effect, GameSession, InvalidAction, UnsupportedGameSession
from .gjett_bildet import GjettBildetSession
from .ja_eller_nei import JaEllerNeiSession
from .quiz import QuizSession
from .slange import SlangeSession
from .tallkamp import TallkampSession
from .tidslinje import TidslinjeSession
from .vil_du_heller import VilDuHellerSession


logger = logging.getLogger(__name__)

GAME_TYPES: Dict[str, Type[GameSession]] = {
    cls.game_type: cls
    for cls in (
        JaEllerNeiSession,
        QuizSession,
        GjettBildetSession,
        TallkampSession,
        TidslinjeSession,
        SlangeSession,
        VilDuHellerSession,
    )
}


def initialize(game_type, players, config=None) -> GameSession:
    """Build fresh game data for ``game_type``.

    Unknown game types are not an error: they get a session that ignores
    every action, so a room can always be created.
    """
    session_cls = UnsupportedGameSession
    if isinstance(game_type, str):
        session_cls = GAME_TYPES.get(game_type, UnsupportedGameSession)
    return session_cls.initialize(players, config if isinstance(config, dict) else {})


def handle_host_action(room, action, data) -> Optional[Effect]:
    if room is None or room.session is None:
        return None
    try:
        return room.session.handle_host_action(room, action, data)
    except InvalidAction as exc:
        logger.debug(f"[host-action-ignored] room={room.code} action={action} reason={exc}")
        return None


def handle_player_action(room, player_id, action, data) -> Optional[Effect]:
    if room is None or room.session is None:
        return None
    try:
        return room.session.handle_player_action(room, player_id, action, data)
    except InvalidAction as exc:
        logger.debug(f"[player-action-ignored] room={room.code} player={player_id} action={action} reason={exc}")
        return None
