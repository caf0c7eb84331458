from wordchain import db, bcrypt
from flask_login import UserMixin
import string
import random
import time

class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
        }

def generate_game_code(length=4):
    """Generate a unique, short game code."""
    while True:
        code = ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))
        if not Game.query.filter_by(game_code=code).first():
            return code

class Game(db.Model):
    """Persisted snapshot of one word chain session.

    List-valued fields are JSON-encoded text; see SqlSnapshotStore.
    """
    __tablename__ = 'game'
    id = db.Column(db.Integer, primary_key=True)
    game_code = db.Column(db.String(16), unique=True, index=True)
    state = db.Column(db.String(16), default='lobby')  # lobby, playing, ended
    players = db.Column(db.Text, nullable=True)  # JSON list, join order
    current_turn = db.Column(db.String(64), nullable=True)
    letter = db.Column(db.String(1), nullable=True)
    word_log = db.Column(db.Text, nullable=True)  # JSON list of {by, word, timestamp}
    lost_players = db.Column(db.Text, nullable=True)  # JSON list, elimination order
    leaderboard = db.Column(db.Text, nullable=True)  # JSON list, set once when ended
    timeout_job_id = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.Float, default=time.time)

    def __init__(self, **kwargs):
        super(Game, self).__init__(**kwargs)
        if not self.game_code:
            self.game_code = generate_game_code()
