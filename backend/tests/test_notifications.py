from datetime import datetime, timedelta, timezone

from leaderboard.services.notifications import (
    NotificationKind,
    assemble_notifications,
    leaderboard_snapshot,
)
from leaderboard.services.store import ScoreRecord

T0 = datetime(2025, 9, 1, 12, 0, 0, tzinfo=timezone.utc)


def _record(score, username='alice', user_id='u1', at=T0):
    return ScoreRecord(user_id=user_id, username=username, score=score, submitted_at=at)


def test_high_score_new_player_and_snapshot_in_order():
    record = _record(1500)
    result = assemble_notifications(record, [record])
    assert [n.kind for n in result] == [
        NotificationKind.HIGH_SCORE,
        NotificationKind.NEW_PLAYER,
        NotificationKind.LEADERBOARD_SNAPSHOT,
    ]
    assert result[0].payload['username'] == 'alice'
    assert result[0].payload['score'] == 1500
    assert result[0].payload['message'] == 'alice achieved a high score of 1,500!'
    assert result[1].payload == {'username': 'alice', 'message': 'alice joined the leaderboard!'}


def test_threshold_is_exclusive():
    at_threshold = assemble_notifications(_record(1000), [])
    above = assemble_notifications(_record(1001), [])
    assert NotificationKind.HIGH_SCORE not in [n.kind for n in at_threshold]
    assert [n.kind for n in above].count(NotificationKind.HIGH_SCORE) == 1


def test_custom_threshold():
    result = assemble_notifications(_record(60), [], high_score_threshold=50)
    assert result[0].kind is NotificationKind.HIGH_SCORE


def test_snapshot_skipped_when_leaderboard_unreadable():
    result = assemble_notifications(_record(10), None)
    assert [n.kind for n in result] == [NotificationKind.NEW_PLAYER]


def test_snapshot_entries_are_ranked():
    records = [
        _record(900, 'bob', 'u2'),
        _record(500, 'cara', 'u3', at=T0 + timedelta(seconds=1)),
    ]
    snapshot = leaderboard_snapshot(records, at=T0)
    wire = snapshot.to_wire()
    assert wire['kind'] == 'LeaderboardSnapshot'
    assert wire['timestamp'] == '2025-09-01T12:00:00Z'
    assert wire['payload']['entries'] == [
        {'rank': 1, 'username': 'bob', 'score': 900, 'timestamp': '2025-09-01T12:00:00Z'},
        {'rank': 2, 'username': 'cara', 'score': 500, 'timestamp': '2025-09-01T12:00:01Z'},
    ]


def test_wire_shape():
    wire = assemble_notifications(_record(5), [])[0].to_wire()
    assert set(wire) == {'kind', 'timestamp', 'payload'}
    assert wire['kind'] == 'NewPlayer'
    assert wire['timestamp'] == '2025-09-01T12:00:00Z'
