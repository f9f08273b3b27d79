import logging
import threading

from conftest import RecordingSender

from leaderboard.services import notifications
from leaderboard.services.broadcast import BroadcastEngine
from leaderboard.services.registry import ConnectionRegistry


def _engine(sender=None):
    registry = ConnectionRegistry()
    sender = sender or RecordingSender()
    return registry, sender, BroadcastEngine(registry, sender)


def test_broadcast_all_reaches_every_connection_once():
    registry, sender, engine = _engine()
    ids = [registry.register() for _ in range(3)]
    delivered = engine.broadcast_all(notifications.custom('hello'))
    assert delivered == 3
    assert sorted(cid for cid, _, _ in sender.sent) == sorted(ids)
    for _, event, data in sender.sent:
        assert event == 'notification'
        assert data['kind'] == 'Custom'
        assert data['payload'] == {'message': 'hello'}
        assert data['timestamp'].endswith('Z')


def test_broadcast_to_room_only_reaches_members():
    registry, sender, engine = _engine()
    first, second, outsider = registry.register(), registry.register(), registry.register()
    registry.join(first, 'leaderboard')
    registry.join(second, 'leaderboard')

    delivered = engine.broadcast_to_room('leaderboard', notifications.custom('scoped'))

    assert delivered == 2
    assert sender.connections() == {first, second}
    assert outsider not in sender.connections()


def test_broadcast_to_empty_room_delivers_nothing():
    registry, sender, engine = _engine()
    registry.register()
    assert engine.broadcast_to_room('nobody-here', notifications.custom('x')) == 0
    assert sender.sent == []


def test_unregistered_connection_is_never_targeted():
    registry, sender, engine = _engine()
    gone = registry.register()
    stays = registry.register()
    registry.join(gone, 'leaderboard')
    registry.join(stays, 'leaderboard')
    registry.unregister(gone)

    engine.broadcast_all(notifications.custom('a'))
    engine.broadcast_to_room('leaderboard', notifications.custom('b'))

    assert gone not in sender.connections()
    assert sender.kinds_for(stays) == ['Custom', 'Custom']


def test_connection_unregistered_mid_broadcast_is_skipped():
    registry = ConnectionRegistry()
    sent = []

    def send(connection_id, event, data):
        sent.append(connection_id)
        # First delivery drops every other connection
        for cid in registry.connection_ids():
            if cid != connection_id:
                registry.unregister(cid)

    engine = BroadcastEngine(registry, send)
    for name in ('a', 'b', 'c'):
        registry.register(name)
    assert engine.broadcast_all(notifications.custom('x')) == 1
    assert sent == ['a']


def test_delivery_failure_is_isolated_and_logged(caplog):
    sender = RecordingSender(failing={'broken'})
    registry, _, engine = _engine(sender)
    registry.register('broken')
    registry.register('healthy')

    with caplog.at_level(logging.WARNING):
        delivered = engine.broadcast_all(notifications.custom('still delivered'))

    assert delivered == 1
    assert sender.connections() == {'healthy'}
    assert any('[delivery-failed] connection=broken' in rec.getMessage() for rec in caplog.records)


def test_sequential_broadcasts_keep_order_per_connection():
    registry, sender, engine = _engine()
    cid = registry.register()
    registry.join(cid, 'leaderboard')
    for i in range(20):
        if i % 2:
            engine.broadcast_to_room('leaderboard', notifications.custom(str(i)))
        else:
            engine.broadcast_all(notifications.custom(str(i)))
    received = [data['payload']['message'] for _, _, data in sender.sent]
    assert received == [str(i) for i in range(20)]


def test_send_to_single_connection():
    registry, sender, engine = _engine()
    target = registry.register()
    registry.register()
    assert engine.send_to(target, notifications.custom('direct')) is True
    assert sender.connections() == {target}
    assert engine.send_to('unknown', notifications.custom('direct')) is False


def test_concurrent_churn_does_not_affect_stable_connections():
    sender = RecordingSender()
    registry, _, engine = _engine(sender)
    stable = [registry.register(f'stable-{i}') for i in range(5)]
    stop = threading.Event()

    def churn(n):
        i = 0
        while not stop.is_set():
            cid = registry.register(f'churn-{n}-{i}')
            registry.join(cid, 'leaderboard')
            registry.unregister(cid)
            i += 1

    def broadcaster():
        for i in range(50):
            engine.broadcast_all(notifications.custom(str(i)))

    churners = [threading.Thread(target=churn, args=(n,)) for n in range(4)]
    for t in churners:
        t.start()
    producer = threading.Thread(target=broadcaster)
    producer.start()
    producer.join()
    stop.set()
    for t in churners:
        t.join()

    for cid in stable:
        received = [data['payload']['message'] for sent_to, _, data in sender.sent if sent_to == cid]
        # Exactly once each, in broadcast order
        assert received == [str(i) for i in range(50)]
