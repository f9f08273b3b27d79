from datetime import timezone

from flask_login import UserMixin

from leaderboard import bcrypt, db
from leaderboard.services.store import ScoreRecord, utcnow


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)

    @property
    def user_id(self):
        """Opaque identity handed to the submission gate."""
        return str(self.id)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'username': self.username,
        }


class Score(db.Model):
    """One row per user; the primary key enforces a single submission."""
    __tablename__ = 'score'
    user_id = db.Column(db.String(64), primary_key=True)
    username = db.Column(db.String(64), nullable=False)
    score = db.Column(db.Integer, nullable=False, index=True)
    submitted_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_record(self):
        submitted_at = self.submitted_at
        # SQLite returns naive datetimes; values are always written in UTC
        if submitted_at.tzinfo is None:
            submitted_at = submitted_at.replace(tzinfo=timezone.utc)
        return ScoreRecord(
            user_id=self.user_id,
            username=self.username,
            score=self.score,
            submitted_at=submitted_at,
        )

    def to_dict(self):
        return self.to_record().to_dict()
