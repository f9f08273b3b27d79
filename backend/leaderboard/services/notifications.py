"""Notification kinds and assembly from an accepted submission."""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from .store import ScoreRecord, isoformat, utcnow


class NotificationKind(str, enum.Enum):
    HIGH_SCORE = 'HighScore'
    NEW_PLAYER = 'NewPlayer'
    LEADERBOARD_SNAPSHOT = 'LeaderboardSnapshot'
    CUSTOM = 'Custom'


@dataclass(frozen=True)
class Notification:
    kind: NotificationKind
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)

    def to_wire(self) -> Dict[str, Any]:
        return {
            'kind': self.kind.value,
            'timestamp': isoformat(self.timestamp),
            'payload': dict(self.payload),
        }


def high_score(username: str, score: int, at: Optional[datetime] = None) -> Notification:
    return Notification(
        kind=NotificationKind.HIGH_SCORE,
        payload={
            'username': username,
            'score': score,
            'message': f'{username} achieved a high score of {score:,}!',
        },
        timestamp=at or utcnow(),
    )


def new_player(username: str, at: Optional[datetime] = None) -> Notification:
    return Notification(
        kind=NotificationKind.NEW_PLAYER,
        payload={
            'username': username,
            'message': f'{username} joined the leaderboard!',
        },
        timestamp=at or utcnow(),
    )


def leaderboard_snapshot(records: Iterable[ScoreRecord], at: Optional[datetime] = None) -> Notification:
    entries = [
        {
            'rank': rank,
            'username': record.username,
            'score': record.score,
            'timestamp': isoformat(record.submitted_at),
        }
        for rank, record in enumerate(records, start=1)
    ]
    return Notification(
        kind=NotificationKind.LEADERBOARD_SNAPSHOT,
        payload={'entries': entries},
        timestamp=at or utcnow(),
    )


def custom(message: str, data: Optional[Dict[str, Any]] = None, at: Optional[datetime] = None) -> Notification:
    payload: Dict[str, Any] = {'message': message}
    if data is not None:
        payload['data'] = data
    return Notification(kind=NotificationKind.CUSTOM, payload=payload, timestamp=at or utcnow())


def assemble_notifications(
    record: ScoreRecord,
    top_records: Optional[List[ScoreRecord]],
    high_score_threshold: int = 1000,
    at: Optional[datetime] = None,
) -> List[Notification]:
    """Build the notifications for an accepted submission, in emit order.

    HighScore (only when ``score > high_score_threshold``), then NewPlayer,
    then LeaderboardSnapshot. ``top_records`` of ``None`` means the
    leaderboard could not be read; the snapshot is skipped.
    """
    at = at or utcnow()
    notifications = []
    if record.score > high_score_threshold:
        notifications.append(high_score(record.username, record.score, at=record.submitted_at))
    notifications.append(new_player(record.username, at=record.submitted_at))
    if top_records is not None:
        notifications.append(leaderboard_snapshot(top_records, at=at))
    return notifications
