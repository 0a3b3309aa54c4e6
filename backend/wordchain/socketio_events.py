from flask_socketio import join_room, leave_room, emit
from wordchain import socketio
from wordchain.errors import ValidationError
from wordchain.feed import NAMESPACE, scope_name, validate_scope


def handle_connect():
    emit('connected', {'message': f'Connected to {NAMESPACE}'})


def _scope_rooms(data):
    """Turn a ``{collection, filter}`` payload into its change-feed room names."""
    collection = (data or {}).get('collection')
    filters = (data or {}).get('filter') or {}
    if not collection or not isinstance(filters, dict) or len(filters) != 1:
        raise ValidationError('collection and a single-field filter are required')
    validate_scope(collection, filters)
    return [scope_name(collection, field_name, value) for field_name, value in filters.items()]


def handle_subscribe(data):
    try:
        rooms = _scope_rooms(data)
    except ValidationError as exc:
        emit('error', {'message': exc.message})
        return
    for room in rooms:
        join_room(room)
    emit('subscribed', {'rooms': rooms})


def handle_unsubscribe(data):
    try:
        rooms = _scope_rooms(data)
    except ValidationError as exc:
        emit('error', {'message': exc.message})
        return
    for room in rooms:
        leave_room(room)
    emit('unsubscribed', {'rooms': rooms})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on the change-feed namespace."""
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('subscribe', handle_subscribe, namespace=NAMESPACE)
    socketio.on_event('unsubscribe', handle_unsubscribe, namespace=NAMESPACE)
    socketio.on_event('ping', handle_ping, namespace=NAMESPACE)
