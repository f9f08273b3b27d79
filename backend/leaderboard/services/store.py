"""Score Store: durable, one-record-per-user storage for submitted scores.

The submission gate depends only on three operations:

- ``get_by_user_id(user_id)`` -> ``ScoreRecord`` or ``None``
- ``put_if_absent(record)`` -> ``True`` when written, ``False`` when a
  record for that user already exists (conflict)
- ``top_n(n)`` -> records ordered by score descending, ties broken by the
  earliest ``submitted_at``

Any failure of the underlying technology surfaces as ``StoreUnavailable``.
"""

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace('+00:00', 'Z')


class StoreUnavailable(Exception):
    """The score store could not complete an operation; safe to retry."""


@dataclass(frozen=True)
class ScoreRecord:
    user_id: str
    username: str
    score: int
    submitted_at: datetime

    def to_dict(self):
        return {
            'userId': self.user_id,
            'username': self.username,
            'score': self.score,
            'timestamp': isoformat(self.submitted_at),
        }


def _ranking_key(record: ScoreRecord):
    submitted_at = record.submitted_at
    if submitted_at.tzinfo is None:
        submitted_at = submitted_at.replace(tzinfo=timezone.utc)
    return (-record.score, submitted_at, record.user_id)


class ScoreStore:
    """Interface consumed by the submission gate and notification assembly."""

    def get_by_user_id(self, user_id: str) -> Optional[ScoreRecord]:
        raise NotImplementedError

    def put_if_absent(self, record: ScoreRecord) -> bool:
        raise NotImplementedError

    def top_n(self, n: int) -> List[ScoreRecord]:
        raise NotImplementedError

    def clear(self) -> int:
        raise NotImplementedError


class InMemoryScoreStore(ScoreStore):
    """Process-local store. The lock makes ``put_if_absent`` atomic."""

    def __init__(self) -> None:
        self._records: Dict[str, ScoreRecord] = {}
        self._lock = threading.Lock()

    def get_by_user_id(self, user_id: str) -> Optional[ScoreRecord]:
        with self._lock:
            return self._records.get(user_id)

    def put_if_absent(self, record: ScoreRecord) -> bool:
        with self._lock:
            if record.user_id in self._records:
                return False
            self._records[record.user_id] = record
            return True

    def top_n(self, n: int) -> List[ScoreRecord]:
        if n <= 0:
            return []
        with self._lock:
            records = list(self._records.values())
        return sorted(records, key=_ranking_key)[:n]

    def clear(self) -> int:
        with self._lock:
            removed = len(self._records)
            self._records.clear()
        return removed


class SqlAlchemyScoreStore(ScoreStore):
    """Store backed by the ``score`` table.

    ``user_id`` is the primary key, so the database itself rejects a second
    row for the same user; that ``IntegrityError`` is the conflict signal.
    Must be used inside an application context.
    """

    def __init__(self, db) -> None:
        self.db = db

    def get_by_user_id(self, user_id: str) -> Optional[ScoreRecord]:
        from leaderboard.models import Score
        try:
            row = self.db.session.get(Score, user_id)
        except SQLAlchemyError as exc:
            self.db.session.rollback()
            raise StoreUnavailable(str(exc)) from exc
        return row.to_record() if row else None

    def put_if_absent(self, record: ScoreRecord) -> bool:
        from leaderboard.models import Score
        row = Score(
            user_id=record.user_id,
            username=record.username,
            score=record.score,
            submitted_at=record.submitted_at,
        )
        try:
            self.db.session.add(row)
            self.db.session.commit()
        except IntegrityError:
            self.db.session.rollback()
            return False
        except SQLAlchemyError as exc:
            self.db.session.rollback()
            raise StoreUnavailable(str(exc)) from exc
        return True

    def top_n(self, n: int) -> List[ScoreRecord]:
        from leaderboard.models import Score
        if n <= 0:
            return []
        try:
            rows = (
                Score.query
                .order_by(Score.score.desc(), Score.submitted_at.asc(), Score.user_id.asc())
                .limit(n)
                .all()
            )
        except SQLAlchemyError as exc:
            self.db.session.rollback()
            raise StoreUnavailable(str(exc)) from exc
        return [row.to_record() for row in rows]

    def clear(self) -> int:
        from leaderboard.models import Score
        try:
            removed = Score.query.delete()
            self.db.session.commit()
        except SQLAlchemyError as exc:
            self.db.session.rollback()
            raise StoreUnavailable(str(exc)) from exc
        return removed
