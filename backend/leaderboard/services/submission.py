"""Submission gate: at most one score per user, ever.

The accept/reject decision for a user is made by the store's conditional
write (``put_if_absent``). The read that precedes it only short-circuits
the common duplicate case; two racing submissions that both pass the read
still cannot both be written, and the loser is reported as
``ALREADY_SUBMITTED`` with the winner's score.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from .broadcast import BroadcastEngine
from .notifications import Notification, assemble_notifications
from .store import ScoreRecord, ScoreStore, StoreUnavailable, utcnow


class SubmissionReason(str, enum.Enum):
    ACCEPTED = 'Accepted'
    ALREADY_SUBMITTED = 'AlreadySubmitted'
    INVALID_SCORE = 'InvalidScore'
    STORE_FAILURE = 'StoreFailure'


@dataclass(frozen=True)
class SubmissionOutcome:
    """Result of one submission.

    ``existing_score`` is the stored score on ``ALREADY_SUBMITTED``. It is
    ``None`` only when every write attempt conflicted and the conflicting
    row was gone again when re-read (e.g. scores cleared mid-submission).
    """
    accepted: bool
    reason: SubmissionReason
    record: Optional[ScoreRecord] = None
    existing_score: Optional[int] = None
    message: str = ''
    notifications: Tuple[Notification, ...] = ()

    @property
    def retryable(self) -> bool:
        return self.reason is SubmissionReason.STORE_FAILURE

    def to_dict(self):
        data = {
            'accepted': self.accepted,
            'reason': self.reason.value,
            'message': self.message,
        }
        if self.record is not None:
            data['record'] = self.record.to_dict()
        if self.reason is SubmissionReason.ALREADY_SUBMITTED:
            data['alreadySubmitted'] = True
            data['existingScore'] = self.existing_score
        if self.retryable:
            data['retryable'] = True
        return data


class SubmissionGate:

    def __init__(
        self,
        store: ScoreStore,
        broadcaster: Optional[BroadcastEngine] = None,
        max_score: int = 1_000_000,
        high_score_threshold: int = 1000,
        leaderboard_size: int = 10,
        broadcast_room: Optional[str] = None,
        clock: Callable = utcnow,
        write_attempts: int = 2,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.store = store
        self.broadcaster = broadcaster
        self.max_score = max_score
        self.high_score_threshold = high_score_threshold
        self.leaderboard_size = leaderboard_size
        self.broadcast_room = broadcast_room
        self.clock = clock
        self.write_attempts = max(1, write_attempts)
        self.logger = logger or logging.getLogger(__name__)

    def is_valid_score(self, score) -> bool:
        # bool is an int subclass; True is not a score
        if isinstance(score, bool) or not isinstance(score, int):
            return False
        return 0 <= score <= self.max_score

    def submit(self, user_id: str, username: str, score) -> SubmissionOutcome:
        if not self.is_valid_score(score):
            self.logger.info(f"[submit-rejected] user={user_id} reason=InvalidScore score={score!r}")
            return SubmissionOutcome(
                accepted=False,
                reason=SubmissionReason.INVALID_SCORE,
                message=f'Score must be an integer between 0 and {self.max_score:,}',
            )

        try:
            record = None
            for attempt in range(1, self.write_attempts + 1):
                existing = self.store.get_by_user_id(user_id)
                if existing is not None:
                    return self._already_submitted(user_id, existing)

                candidate = ScoreRecord(user_id=user_id, username=username, score=score, submitted_at=self.clock())
                if self.store.put_if_absent(candidate):
                    record = candidate
                    break
                # Lost the race to a concurrent submission for the same user.
                # The next pass reads the winner; if its row is gone the write is retried.
                self.logger.info(f"[submit-conflict] user={user_id} attempt={attempt}")
            if record is None:
                return self._already_submitted(user_id, self.store.get_by_user_id(user_id))
        except StoreUnavailable as exc:
            self.logger.error(f"[submit-store-failure] user={user_id} error={exc}")
            return SubmissionOutcome(
                accepted=False,
                reason=SubmissionReason.STORE_FAILURE,
                message='Score store unavailable, please retry',
            )

        self.logger.info(f"[submit-accepted] user={user_id} username={username} score={score}")
        notifications = self._after_commit(record)
        return SubmissionOutcome(
            accepted=True,
            reason=SubmissionReason.ACCEPTED,
            record=record,
            message='Score submitted successfully!',
            notifications=tuple(notifications),
        )

    def _already_submitted(self, user_id: str, existing: Optional[ScoreRecord]) -> SubmissionOutcome:
        existing_score = existing.score if existing is not None else None
        self.logger.info(f"[submit-rejected] user={user_id} reason=AlreadySubmitted existing={existing_score}")
        return SubmissionOutcome(
            accepted=False,
            reason=SubmissionReason.ALREADY_SUBMITTED,
            record=None,
            existing_score=existing_score,
            message='You have already submitted your score. Each player can only submit once.',
        )

    def _after_commit(self, record: ScoreRecord):
        """Assemble and broadcast notifications for a committed record.

        Runs synchronously before ``submit`` returns. Nothing raised here
        reaches the caller: the score is already stored.
        """
        notifications = []
        try:
            try:
                top_records = self.store.top_n(self.leaderboard_size)
            except StoreUnavailable as exc:
                self.logger.warning(f"[snapshot-skipped] user={record.user_id} error={exc}")
                top_records = None
            notifications = assemble_notifications(
                record, top_records, high_score_threshold=self.high_score_threshold,
            )
            if self.broadcaster is not None:
                for notification in notifications:
                    if self.broadcast_room:
                        self.broadcaster.broadcast_to_room(self.broadcast_room, notification)
                    else:
                        self.broadcaster.broadcast_all(notification)
        except Exception:
            self.logger.exception(f"[notify-failed] user={record.user_id}")
        return notifications
