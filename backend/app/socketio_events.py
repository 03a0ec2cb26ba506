from flask_socketio import join_room, leave_room, emit
from flask import current_app
from app.services.lobbies.codes import normalize_code
from app.services.lobbies.errors import ValidationError

# Socket.IO only carries "something changed" hints for a lobby room. Clients
# always refetch the lobby through GET /api/lobbies/<code>/state, so a missed
# event never leaves anyone with stale round data.


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def _room_for(data):
    try:
        code = normalize_code((data or {}).get('code'))
    except ValidationError as exc:
        emit('error', {'message': str(exc)})
        return None
    return f"lobby:{code}"


def handle_join_lobby(data):
    room = _room_for(data)
    if not room:
        return
    join_room(room)
    current_app.logger.info(f"[ws-join] room={room}")
    emit('joined', {'room': room})


def handle_leave_lobby(data):
    room = _room_for(data)
    if not room:
        return
    leave_room(room)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    from app import socketio

    # Primary namespace
    socketio.on_event('connect', handle_connect, namespace='/ws')
    socketio.on_event('join_lobby', handle_join_lobby, namespace='/ws')
    socketio.on_event('leave_lobby', handle_leave_lobby, namespace='/ws')
    socketio.on_event('ping', handle_ping, namespace='/ws')

    if testing:
        # Test-only mirror on default namespace
        socketio.on_event('connect', handle_connect, namespace='/')
        socketio.on_event('join_lobby', handle_join_lobby, namespace='/')
        socketio.on_event('leave_lobby', handle_leave_lobby, namespace='/')
        socketio.on_event('ping', handle_ping, namespace='/')
