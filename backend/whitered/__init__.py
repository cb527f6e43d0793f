from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from config import Config

socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('FRONTEND_ORIGINS') or []

    CORS(flask_app, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # One set of room state per app; handlers and workers reach it through
    # flask_app.extensions instead of module globals
    from whitered.services import build_services
    services = build_services(flask_app.config)
    flask_app.extensions['whitered'] = services

    from whitered.main import main
    flask_app.register_blueprint(main)

    # Register Socket.IO event handlers
    from whitered.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    from whitered.services.scheduler import start_reaper
    start_reaper(flask_app, services)

    return flask_app
