from flask import Flask, jsonify, current_app
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5174",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)


def get_lobby_manager():
    """The LobbyManager bound to the current app."""
    return current_app.extensions['lobbies']


def _build_lobby_manager(flask_app):
    from app.services.lobbies.catalog import LocationCatalog
    from app.services.lobbies.manager import LobbyManager
    from app.services.lobbies.repository import InMemoryLobbyRepository

    cfg = flask_app.config
    catalog = LocationCatalog.from_file(
        cfg.get('LOCATIONS_PATH'),
        default_sets=cfg.get('DEFAULT_LOCATION_SETS') or ('spyfall1',),
    )
    backend = cfg.get('LOBBY_REPOSITORY', 'sql')
    if backend == 'memory':
        repository = InMemoryLobbyRepository()
    elif backend == 'sql':
        from app.services.lobbies.sql_repository import SqlLobbyRepository
        repository = SqlLobbyRepository()
    else:
        raise ValueError(f"Unknown LOBBY_REPOSITORY '{backend}' (expected 'sql' or 'memory')")
    flask_app.logger.info(f"[lobbies] repository={backend} sets={','.join(catalog.set_keys)}")
    return LobbyManager.from_config(repository, catalog, cfg)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    flask_app.extensions['lobbies'] = _build_lobby_manager(flask_app)

    from app.api.lobbies import lobbies
    # Mount lobby routes under /api to match frontend API client
    flask_app.register_blueprint(lobbies, url_prefix='/api/lobbies')

    @flask_app.route('/')
    def index():
        return jsonify({'message': 'Welcome to the spy lobby server!'})

    # Register Socket.IO event handlers on the initialized socketio instance
    from app.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('lobbies-purge')
    def lobbies_purge_command():
        """Deletes lobbies whose retention window has elapsed."""
        with flask_app.app_context():
            removed = flask_app.extensions['lobbies'].repository.purge_expired()
            print(f'Purged {removed} expired lobbies')

    flask_app.cli.add_command(lobbies_purge_command)

    return flask_app
