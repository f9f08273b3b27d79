import logging
from typing import Any, Callable, Dict, Iterable, Optional

from .notifications import Notification
from .registry import ConnectionRegistry

# (connection_id, event_name, data) -> None; raises when the transport fails
Sender = Callable[[str, str, Dict[str, Any]], None]

NOTIFICATION_EVENT = 'notification'


class BroadcastEngine:
    """Fan-out of notifications to registered connections.

    Targets are read from the registry when the call starts. Delivery runs
    sequentially on the calling thread, so notifications broadcast one
    after another by the same thread reach each connection in that order.
    A failure to deliver to one connection is logged and skipped; it never
    reaches the caller.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        send: Sender,
        event: str = NOTIFICATION_EVENT,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.registry = registry
        self.send = send
        self.event = event
        self.logger = logger or logging.getLogger(__name__)

    def broadcast_all(self, notification: Notification) -> int:
        targets = self.registry.connection_ids()
        return self._deliver(targets, notification, scope='*')

    def broadcast_to_room(self, room: str, notification: Notification) -> int:
        targets = self.registry.members_of(room)
        return self._deliver(targets, notification, scope=room)

    def send_to(self, connection_id: str, notification: Notification) -> bool:
        return self._deliver([connection_id], notification, scope=connection_id) == 1

    def _deliver(self, targets: Iterable[str], notification: Notification, scope: str) -> int:
        wire = notification.to_wire()
        targets = sorted(targets)
        delivered = 0
        for connection_id in targets:
            # Skip connections that went away after the target snapshot
            if not self.registry.is_registered(connection_id):
                continue
            try:
                self.send(connection_id, self.event, wire)
            except Exception:
                self.logger.warning(
                    f"[delivery-failed] connection={connection_id} kind={notification.kind.value}",
                    exc_info=True,
                )
                continue
            delivered += 1
        self.logger.debug(
            f"[broadcast] kind={notification.kind.value} scope={scope} targets={len(targets)} delivered={delivered}"
        )
        return delivered
