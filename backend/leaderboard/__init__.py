from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

SOCKETIO_NAMESPACE = '/ws'


def _emit_to_connection(connection_id, event, data):
    # emit() to a sid with no live socket is silently dropped by the server
    if not socketio.server.manager.is_connected(connection_id, SOCKETIO_NAMESPACE):
        raise ConnectionError(f'no live socket for {connection_id}')
    # Each Socket.IO sid is also a room containing only that socket
    socketio.emit(event, data, to=connection_id, namespace=SOCKETIO_NAMESPACE)


def build_live_leaderboard(flask_app, store=None, send=None):
    """Construct the registry, broadcaster and submission gate for an app."""
    from leaderboard.services.broadcast import BroadcastEngine
    from leaderboard.services.live import LiveLeaderboard
    from leaderboard.services.registry import ConnectionRegistry
    from leaderboard.services.store import SqlAlchemyScoreStore
    from leaderboard.services.submission import SubmissionGate

    cfg = flask_app.config
    store = store or SqlAlchemyScoreStore(db)
    registry = ConnectionRegistry()
    broadcaster = BroadcastEngine(registry, send or _emit_to_connection, logger=flask_app.logger)
    gate = SubmissionGate(
        store,
        broadcaster,
        max_score=int(cfg.get('MAX_SCORE', 1_000_000)),
        high_score_threshold=int(cfg.get('HIGH_SCORE_THRESHOLD', 1000)),
        leaderboard_size=int(cfg.get('LEADERBOARD_SIZE', 10)),
        broadcast_room=cfg.get('SUBMISSION_BROADCAST_ROOM') or None,
        logger=flask_app.logger,
    )
    return LiveLeaderboard(
        store,
        registry,
        broadcaster,
        gate,
        leaderboard_size=int(cfg.get('LEADERBOARD_SIZE', 10)),
        default_room=cfg.get('DEFAULT_ROOM', 'leaderboard'),
        logger=flask_app.logger,
    )


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    allowed_origins = flask_app.config.get('CORS_ORIGINS', [])

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    socketio.init_app(
        flask_app,
        cors_allowed_origins=allowed_origins,
        ping_timeout=flask_app.config.get('SOCKETIO_PING_TIMEOUT', 60),
        ping_interval=flask_app.config.get('SOCKETIO_PING_INTERVAL', 25),
    )

    flask_app.extensions['live_leaderboard'] = build_live_leaderboard(flask_app)

    from leaderboard.main import main
    flask_app.register_blueprint(main)

    from leaderboard.api.scores import scores
    flask_app.register_blueprint(scores, url_prefix='/api/scores')

    from leaderboard.api.leaderboard import leaderboard
    flask_app.register_blueprint(leaderboard, url_prefix='/api/leaderboard')

    from leaderboard.socketio_events import register_socketio_handlers
    register_socketio_handlers(namespace=SOCKETIO_NAMESPACE)

    from leaderboard.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Authentication required'}), 401

    @flask_app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Route not found'}), 404

    @flask_app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return jsonify({'error': 'Internal server error'}), 500

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            # Seed users
            users = ['testuser1', 'testuser2', 'testuser3']
            for u in users:
                user = User(username=u)
                user.set_password('password')
                db.session.add(user)

            db.session.commit()
            click.echo('Database has been reset and seeded!')

    @click.command('clear-scores')
    def clear_scores_command():
        """Deletes every submitted score."""
        with flask_app.app_context():
            removed = get_live_leaderboard(flask_app).clear_scores()
            click.echo(f'Cleared {removed} score(s).')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(clear_scores_command)

    return flask_app


def get_live_leaderboard(flask_app=None):
    if flask_app is None:
        from flask import current_app
        flask_app = current_app
    return flask_app.extensions['live_leaderboard']
