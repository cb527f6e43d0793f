import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Comma-separated list of frontend origins allowed by CORS / Socket.IO
    FRONTEND_ORIGINS = [o.strip() for o in (os.environ.get('FRONTEND_ORIGIN') or 'http://localhost:8080').split(',') if o.strip()]
    PORT = int(os.environ.get('PORT', '5000'))
    # Grace window for a disconnected player to come back (seconds)
    RECONNECT_WINDOW_SEC = float(os.environ.get('RECONNECT_WINDOW_SEC', '60'))
    # Empty rooms older than this are reaped (seconds)
    ROOM_TTL_EMPTY_SEC = float(os.environ.get('ROOM_TTL_EMPTY_SEC', '3600'))
    ROOM_SWEEP_INTERVAL_SEC = float(os.environ.get('ROOM_SWEEP_INTERVAL_SEC', '60'))
    # Sliding window rate limit on createRoom/joinRoom, per client address
    RATE_LIMIT_WINDOW_SEC = float(os.environ.get('RATE_LIMIT_WINDOW_SEC', '60'))
    RATE_LIMIT_MAX = int(os.environ.get('RATE_LIMIT_MAX', '60'))
    CHAT_MAX_LENGTH = int(os.environ.get('CHAT_MAX_LENGTH', '500'))
