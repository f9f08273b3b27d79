import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, FrozenSet, Optional, Set

from .store import utcnow


@dataclass(frozen=True)
class Connection:
    """Snapshot of one live subscriber connection."""
    connection_id: str
    created_at: datetime
    rooms: FrozenSet[str] = field(default_factory=frozenset)


class ConnectionRegistry:
    """Live connections and their room memberships.

    Two indices are kept: room -> connection ids and connection id -> rooms.
    Every mutation updates both under a single lock, so after any call
    returns a membership is present in both indices or in neither. Reads
    return copies and never expose the indices themselves.

    Joining or leaving with an unknown connection id is a no-op; ``join``
    reports it by returning ``False``.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._created: Dict[str, datetime] = {}
        self._rooms_by_connection: Dict[str, Set[str]] = {}
        self._connections_by_room: Dict[str, Set[str]] = {}

    def register(self, connection_id: Optional[str] = None) -> str:
        """Add a connection with no rooms and return its id.

        A transport that already has a unique id (e.g. a Socket.IO sid)
        passes it in; otherwise a fresh id is generated. Registering an id
        that is already live leaves it untouched.
        """
        if connection_id is None:
            connection_id = uuid.uuid4().hex
        with self._lock:
            if connection_id not in self._created:
                self._created[connection_id] = utcnow()
                self._rooms_by_connection[connection_id] = set()
        return connection_id

    def unregister(self, connection_id: str) -> FrozenSet[str]:
        """Remove a connection from every room. Unknown ids are ignored.

        Returns the rooms the connection was a member of.
        """
        with self._lock:
            self._created.pop(connection_id, None)
            rooms = self._rooms_by_connection.pop(connection_id, set())
            for room in rooms:
                members = self._connections_by_room.get(room)
                if members is None:
                    continue
                members.discard(connection_id)
                if not members:
                    del self._connections_by_room[room]
        return frozenset(rooms)

    def join(self, connection_id: str, room: str) -> bool:
        with self._lock:
            rooms = self._rooms_by_connection.get(connection_id)
            if rooms is None:
                return False
            rooms.add(room)
            self._connections_by_room.setdefault(room, set()).add(connection_id)
        return True

    def leave(self, connection_id: str, room: str) -> None:
        with self._lock:
            rooms = self._rooms_by_connection.get(connection_id)
            if rooms is None or room not in rooms:
                return
            rooms.discard(room)
            members = self._connections_by_room[room]
            members.discard(connection_id)
            if not members:
                del self._connections_by_room[room]

    def members_of(self, room: str) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self._connections_by_room.get(room, ()))

    def rooms_of(self, connection_id: str) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self._rooms_by_connection.get(connection_id, ()))

    def connection_ids(self) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self._created)

    def is_registered(self, connection_id: str) -> bool:
        with self._lock:
            return connection_id in self._created

    def get(self, connection_id: str) -> Optional[Connection]:
        with self._lock:
            created_at = self._created.get(connection_id)
            if created_at is None:
                return None
            return Connection(
                connection_id=connection_id,
                created_at=created_at,
                rooms=frozenset(self._rooms_by_connection[connection_id]),
            )

    def count(self) -> int:
        with self._lock:
            return len(self._created)

    def room_counts(self) -> Dict[str, int]:
        with self._lock:
            return {room: len(members) for room, members in self._connections_by_room.items()}
