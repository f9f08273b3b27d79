import logging
from typing import Any, Dict, List, Optional

from . import notifications
from .broadcast import BroadcastEngine
from .registry import ConnectionRegistry
from .store import ScoreRecord, ScoreStore
from .submission import SubmissionGate, SubmissionOutcome


class LiveLeaderboard:
    """Entry points used by the HTTP routes and socket handlers.

    Owns one registry, broadcaster, store and gate. Built by the
    application factory; nothing here is a module-level singleton.
    """

    def __init__(
        self,
        store: ScoreStore,
        registry: ConnectionRegistry,
        broadcaster: BroadcastEngine,
        gate: SubmissionGate,
        leaderboard_size: int = 10,
        default_room: str = 'leaderboard',
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.store = store
        self.registry = registry
        self.broadcaster = broadcaster
        self.gate = gate
        self.leaderboard_size = leaderboard_size
        self.default_room = default_room
        self.logger = logger or logging.getLogger(__name__)

    # ---- Submissions ----

    def submit_score(self, user_id: str, username: str, score) -> SubmissionOutcome:
        return self.gate.submit(user_id, username, score)

    def user_score(self, user_id: str) -> Optional[ScoreRecord]:
        return self.store.get_by_user_id(user_id)

    def top_scores(self, limit: Optional[int] = None) -> List[ScoreRecord]:
        return self.store.top_n(limit or self.leaderboard_size)

    def clear_scores(self) -> int:
        removed = self.store.clear()
        self.logger.warning(f"[scores-cleared] removed={removed}")
        return removed

    # ---- Connection lifecycle ----

    def on_connect(self, connection_id: Optional[str] = None) -> str:
        connection_id = self.registry.register(connection_id)
        self.logger.info(f"[connect] connection={connection_id} total={self.registry.count()}")
        return connection_id

    def on_disconnect(self, connection_id: str) -> None:
        rooms = self.registry.unregister(connection_id)
        self.logger.info(
            f"[disconnect] connection={connection_id} rooms={sorted(rooms)} total={self.registry.count()}"
        )

    def on_join_room(self, connection_id: str, room: Optional[str] = None) -> bool:
        return self.registry.join(connection_id, room or self.default_room)

    def on_leave_room(self, connection_id: str, room: Optional[str] = None) -> None:
        self.registry.leave(connection_id, room or self.default_room)

    def get_stats(self) -> Dict[str, Any]:
        return {
            'connectedClients': self.registry.count(),
            'rooms': self.registry.room_counts(),
        }

    # ---- Side channels ----

    def push_custom(self, message: str, data: Optional[Dict[str, Any]] = None, room: Optional[str] = None) -> int:
        notification = notifications.custom(message, data)
        if room:
            return self.broadcaster.broadcast_to_room(room, notification)
        return self.broadcaster.broadcast_all(notification)

    def send_snapshot(self, connection_id: str) -> bool:
        """Send the current top scores to a single connection."""
        snapshot = notifications.leaderboard_snapshot(self.top_scores())
        return self.broadcaster.send_to(connection_id, snapshot)
