from flask_socketio import join_room, leave_room, emit
from bosstrack import socketio
from bosstrack.transport import NAMESPACE, user_room


def handle_connect():
    emit('connected', {'message': f'Connected to {NAMESPACE}'})


def handle_subscribe(data):
    user_id = (data or {}).get('user_id')
    if user_id is None:
        emit('error', {'message': 'user_id is required'})
        return
    room = user_room(user_id)
    join_room(room)
    emit('subscribed', {'room': room})


def handle_unsubscribe(data):
    user_id = (data or {}).get('user_id')
    if user_id is None:
        emit('error', {'message': 'user_id is required'})
        return
    room = user_room(user_id)
    leave_room(room)
    emit('unsubscribed', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = [NAMESPACE, '/'] if testing else [NAMESPACE]
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('subscribe_alerts', handle_subscribe, namespace=namespace)
        socketio.on_event('unsubscribe_alerts', handle_unsubscribe, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
