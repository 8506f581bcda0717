from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
import click
from config import Config

socketio = SocketIO(async_mode=None)


def _allowed_origins(flask_app):
    raw = flask_app.config.get('CLIENT_ORIGIN') or ''
    return [origin.strip() for origin in raw.split(',') if origin.strip()]


def _room_cleanup_loop(flask_app):
    from klassespill.socketio_events import sweep_rooms
    interval = flask_app.config.get('ROOM_CLEANUP_INTERVAL_SEC', 1800)
    max_age = flask_app.config.get('ROOM_MAX_AGE_SEC', 3600)
    while True:
        socketio.sleep(interval)
        with flask_app.app_context():
            try:
                sweep_rooms(max_age)
            except Exception:
                flask_app.logger.exception("[sweep-error] room cleanup failed")


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    allowed_origins = _allowed_origins(flask_app)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from klassespill.main import main
    flask_app.register_blueprint(main)

    # Importing here ensures the handlers bind to the initialized socketio instance
    from klassespill.socketio_events import register_socketio_handlers
    testing = flask_app.config.get('TESTING', False)
    register_socketio_handlers(testing=testing)

    if not testing:
        socketio.start_background_task(_room_cleanup_loop, flask_app)

    @click.command('list-games')
    def list_games_command():
        """Lists the game types the server can run."""
        from klassespill.services.games.engine import GAME_TYPES
        for name in sorted(GAME_TYPES):
            click.echo(f"{name}\t{GAME_TYPES[name].__name__}")

    flask_app.cli.add_command(list_games_command)

    return flask_app
