from flask import request
from flask_socketio import emit
from leaderboard import get_live_leaderboard, socketio
from leaderboard.services.store import StoreUnavailable, isoformat, utcnow


def _get_sid() -> str:
    # request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _room_from(data):
    room = (data or {}).get('room') if isinstance(data, dict) else None
    return room or get_live_leaderboard().default_room


def handle_connect(auth=None):
    sid = get_live_leaderboard().on_connect(_get_sid())
    emit('welcome', {
        'message': 'Connected to leaderboard WebSocket',
        'timestamp': isoformat(utcnow()),
        'socketId': sid,
    })


def handle_disconnect(reason=None):
    # Fired on client close and on transport ping timeout
    get_live_leaderboard().on_disconnect(_get_sid())


def handle_join(data=None):
    room = _room_from(data)
    if not get_live_leaderboard().on_join_room(_get_sid(), room):
        emit('error', {'message': 'Connection is not registered'})
        return
    emit('joined', {'room': room})


def handle_leave(data=None):
    room = _room_from(data)
    get_live_leaderboard().on_leave_room(_get_sid(), room)
    emit('left', {'room': room})


def handle_request_leaderboard(data=None):
    try:
        get_live_leaderboard().send_snapshot(_get_sid())
    except StoreUnavailable:
        emit('error', {'message': 'Leaderboard unavailable, please retry'})


def handle_ping(data=None):
    emit('pong', {'timestamp': isoformat(utcnow())})


def register_socketio_handlers(namespace: str = '/ws') -> None:
    """Register Socket.IO event handlers on the given namespace."""
    socketio.on_event('connect', handle_connect, namespace=namespace)
    socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
    socketio.on_event('join', handle_join, namespace=namespace)
    socketio.on_event('leave', handle_leave, namespace=namespace)
    socketio.on_event('request_leaderboard', handle_request_leaderboard, namespace=namespace)
    socketio.on_event('ping', handle_ping, namespace=namespace)
