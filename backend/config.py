import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Comma-separated list of allowed browser origins
    CLIENT_ORIGIN = os.environ.get('CLIENT_ORIGIN', 'http://localhost:5173')
    # Room expiry (seconds since creation) and sweep interval
    ROOM_MAX_AGE_SEC = int(os.environ.get('ROOM_MAX_AGE_SEC', '3600'))
    ROOM_CLEANUP_INTERVAL_SEC = int(os.environ.get('ROOM_CLEANUP_INTERVAL_SEC', '1800'))
    # How long a room survives its host's disconnect
    HOST_DISCONNECT_GRACE_SEC = int(os.environ.get('HOST_DISCONNECT_GRACE_SEC', '60'))
    # Demo mode bot counts
    DEMO_DEFAULT_BOTS = int(os.environ.get('DEMO_DEFAULT_BOTS', '5'))
    DEMO_MAX_BOTS = int(os.environ.get('DEMO_MAX_BOTS', '10'))
