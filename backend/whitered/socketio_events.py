from functools import wraps
from flask import current_app, request
from flask_socketio import emit, join_room, leave_room
from whitered import socketio
from whitered.broadcast import NAMESPACE, deliver
from whitered.models import RoomError, normalize_room_code
from whitered.services.scheduler import schedule_removal


def _services():
    return current_app.extensions['whitered']


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _payload(data) -> dict:
    return data if isinstance(data, dict) else {}


def _reject(code: str) -> None:
    emit('error', {'code': code})


def guarded(handler):
    """Report rejected actions to the caller only; never let one bad action
    tear down the connection or touch other rooms."""
    @wraps(handler)
    def wrapper(*args, **kwargs):
        try:
            return handler(*args, **kwargs)
        except RoomError as exc:
            current_app.logger.info(f"[reject] sid={_get_sid()} action={handler.__name__} code={exc.code}")
            _reject(exc.code)
        except Exception:
            current_app.logger.exception(f"[handler-error] sid={_get_sid()} action={handler.__name__}")
            _reject('internal_error')
    return wrapper


def _rate_limited() -> bool:
    if _services().limiter.hit(request.remote_addr):
        current_app.logger.warning(f"[rate-limited] addr={request.remote_addr}")
        _reject('rate_limited')
        return True
    return False


def handle_connect():
    current_app.logger.info(f"[connect] sid={_get_sid()} addr={request.remote_addr}")


def handle_disconnect(reason=None):
    sid = _get_sid()
    services = _services()
    pending = services.sessions.disconnect(sid)
    current_app.logger.info(f"[disconnect] sid={sid} room={pending.code if pending else None}")
    if pending:
        schedule_removal(current_app._get_current_object(), services, pending)


@guarded
def handle_create_room(data=None):
    if _rate_limited():
        return
    sid = _get_sid()
    room, messages = _services().rooms.create_room(sid, _payload(data).get('name'))
    join_room(room.code)
    current_app.logger.info(f"[room-created] room={room.code} by={sid}")
    deliver(messages)


@guarded
def handle_join_room(data=None):
    if _rate_limited():
        return
    # payload can be the bare room code
    if isinstance(data, str):
        code, name = data, None
    else:
        code, name = _payload(data).get('room'), _payload(data).get('name')
    sid = _get_sid()
    room, messages = _services().rooms.join_room(sid, code, name)
    join_room(room.code)
    current_app.logger.info(f"[joined] room={room.code} sid={sid}")
    deliver(messages)


@guarded
def handle_reconnect_to_room(data=None):
    data = _payload(data)
    sid = _get_sid()
    room, messages = _services().sessions.reconnect(sid, data.get('room'), data.get('name'))
    join_room(room.code)
    current_app.logger.info(f"[reconnected] room={room.code} sid={sid}")
    deliver(messages)


@guarded
def handle_start_game(data=None):
    data = _payload(data)
    deliver(_services().rooms.start_game(_get_sid(), data.get('room')))


@guarded
def handle_set_secret(data=None):
    data = _payload(data)
    deliver(_services().rooms.set_secret(_get_sid(), data.get('room'), data.get('secret')))


@guarded
def handle_guess(data=None):
    data = _payload(data)
    deliver(_services().rooms.guess(_get_sid(), data.get('room'), data.get('guess')))


@guarded
def handle_send_chat(data=None):
    data = _payload(data)
    deliver(_services().rooms.send_chat(_get_sid(), data.get('room'), data.get('message'), data.get('name')))


@guarded
def handle_typing(data=None):
    data = _payload(data)
    deliver(_services().rooms.typing(_get_sid(), data.get('room'), data.get('isTyping')))


@guarded
def handle_request_rematch(data=None):
    data = _payload(data)
    deliver(_services().rooms.request_rematch(_get_sid(), data.get('room')))


@guarded
def handle_leave_room(data=None):
    data = _payload(data)
    code = normalize_room_code(data.get('room'))
    messages = _services().rooms.leave_room(_get_sid(), code)
    # only unsubscribe once the seat is actually gone
    leave_room(code)
    current_app.logger.info(f"[left] room={code} sid={_get_sid()}")
    deliver(messages)


def register_socketio_handlers(namespace: str = NAMESPACE) -> None:
    """Register Socket.IO event handlers on ``namespace``."""
    socketio.on_event('connect', handle_connect, namespace=namespace)
    socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
    socketio.on_event('createRoom', handle_create_room, namespace=namespace)
    socketio.on_event('joinRoom', handle_join_room, namespace=namespace)
    socketio.on_event('reconnectToRoom', handle_reconnect_to_room, namespace=namespace)
    socketio.on_event('startGame', handle_start_game, namespace=namespace)
    socketio.on_event('setSecret', handle_set_secret, namespace=namespace)
    socketio.on_event('guess', handle_guess, namespace=namespace)
    socketio.on_event('sendChat', handle_send_chat, namespace=namespace)
    socketio.on_event('typing', handle_typing, namespace=namespace)
    socketio.on_event('requestRematch', handle_request_rematch, namespace=namespace)
    socketio.on_event('leaveRoom', handle_leave_room, namespace=namespace)
