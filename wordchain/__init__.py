from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
import json
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5174",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Store, broadcast channel and turn timers shared by every replica
    from wordchain.services.games.runtime import init_game_services
    init_game_services(flask_app, socketio)

    from wordchain.main import main
    flask_app.register_blueprint(main)

    from wordchain.api.games import games
    # Mount game routes under /api to match frontend API client
    flask_app.register_blueprint(games, url_prefix='/api/games')

    from wordchain.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    # Flask-Login user loader
    from wordchain.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Login required'}), 401

    @click.command('db-reset')
    @click.option('--seed', 'seed', multiple=True, default=('alice', 'bob', 'cara'),
                  help='Usernames to create, each with password "password".')
    def db_reset_command(seed):
        """Drops and recreates the schema, then seeds player accounts."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            for username in seed:
                user = User(username=username)
                user.set_password('password')
                db.session.add(user)
            db.session.commit()
            click.echo(f"Database reset; seeded {len(seed)} players")

    @click.command('game-show')
    @click.argument('game_code')
    def game_show_command(game_code):
        """Prints the stored snapshot of one session."""
        from wordchain.services.games.runtime import get_services
        with flask_app.app_context():
            snapshot = get_services().store.load_snapshot(game_code.upper())
            click.echo(json.dumps(snapshot.to_dict(), indent=2))

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(game_show_command)

    return flask_app
