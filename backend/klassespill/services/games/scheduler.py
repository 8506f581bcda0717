"""Deferred actions keyed by room.

Each scheduled action carries a cancellation token. Cancelling a room
cancels every token issued for it; a token is checked again right before
its callback runs.
"""

import logging
import threading
from typing import Callable, Dict, Set


logger = logging.getLogger(__name__)


class ScheduledAction:
    def __init__(self, room_code: str, delay: float, callback: Callable, args=()):
        self.room_code = room_code
        self.delay = delay
        self.callback = callback
        self.args = tuple(args)
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if self.cancelled or self.fired:
            return False
        self.fired = True
        self.callback(*self.args)
        return True


class ActionScheduler:
    """Tracks pending actions per room; subclasses decide how time passes."""

    def __init__(self):
        self._pending: Dict[str, Set[ScheduledAction]] = {}

    def schedule(self, room_code, delay, callback, *args) -> ScheduledAction:
        token = ScheduledAction(room_code, max(0.0, float(delay)), callback, args)
        self._pending.setdefault(room_code, set()).add(token)
        self._start(token)
        return token

    def _start(self, token: ScheduledAction) -> None:
        raise NotImplementedError

    def _run(self, token: ScheduledAction) -> None:
        pending = self._pending.get(token.room_code)
        if pending is not None:
            pending.discard(token)
            if not pending:
                self._pending.pop(token.room_code, None)
        token.fire()

    def pending(self, room_code):
        return [t for t in self._pending.get(room_code, ()) if not t.cancelled]

    def cancel_room(self, room_code) -> int:
        tokens = self._pending.pop(room_code, set())
        for token in tokens:
            token.cancel()
        if tokens:
            logger.info(f"[timer-cancel] room={room_code} cancelled={len(tokens)}")
        return len(tokens)


class BackgroundScheduler(ActionScheduler):
    """Runs each action in a Flask-SocketIO background task.

    With ``enabled=False`` (TESTING) actions are tracked but never started.
    ``lock`` is held while an action runs, the same lock the socket
    handlers hold, so a firing action never interleaves with a client one.
    """

    def __init__(self, socketio, enabled=True, lock=None):
        super().__init__()
        self.socketio = socketio
        self.enabled = enabled
        self.lock = lock or threading.RLock()

    def _start(self, token):
        if not self.enabled:
            return
        self.socketio.start_background_task(self._worker, token)

    def _worker(self, token):
        self.socketio.sleep(token.delay)
        if token.cancelled:
            logger.debug(f"[timer-abort] room={token.room_code} cancelled before firing")
            return
        try:
            with self.lock:
                self._run(token)
        except Exception:
            logger.exception(f"[timer-error] room={token.room_code}")
