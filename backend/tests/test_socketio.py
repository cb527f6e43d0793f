import time

from conftest import FirstChoice


def received(client, name=None):
    packets = client.get_received()
    if name is None:
        return packets
    return [pkt for pkt in packets if pkt['name'] == name]


def first_arg(packets):
    assert packets, 'expected at least one packet'
    return packets[0]['args'][0]


def wait_for(client, name, timeout=3.0):
    """Poll a test client until an event shows up (background timers emit later)."""
    deadline = time.time() + timeout
    got = []
    while time.time() < deadline and not got:
        got.extend(pkt for pkt in client.get_received() if pkt['name'] == name)
        if not got:
            time.sleep(0.05)
    return got


def open_room(sio_factory):
    host = sio_factory()
    guest = sio_factory()
    host.emit('createRoom', {'name': 'Alice'})
    code = first_arg(received(host, 'roomCreated'))
    guest.emit('joinRoom', {'room': code.lower(), 'name': 'Bob'})
    return host, guest, code


def test_create_and_join(sio_factory):
    host, guest, code = open_room(sio_factory)
    assert len(code) == 4

    joined = received(guest)
    names = [pkt['name'] for pkt in joined]
    assert 'joined' in names and 'playerNames' in names
    assert next(p for p in joined if p['name'] == 'joined')['args'][0] == {'room': code, 'started': False}
    assert next(p for p in joined if p['name'] == 'playerNames')['args'][0] == {'self': 'Bob', 'opponent': 'Alice'}

    host_events = received(host)
    assert any(p['name'] == 'playerJoined' and p['args'][0]['name'] == 'Bob' for p in host_events)
    assert any(p['name'] == 'playerNames' and p['args'][0] == {'self': 'Alice', 'opponent': 'Bob'} for p in host_events)


def test_room_full_and_errors_keep_connection(sio_factory):
    host, guest, code = open_room(sio_factory)
    third = sio_factory()
    third.emit('joinRoom', {'room': code, 'name': 'Cara'})
    assert first_arg(received(third, 'error')) == {'code': 'room_full'}
    assert third.is_connected()

    third.emit('joinRoom', {'room': 'ZZZZ', 'name': 'Cara'})
    assert first_arg(received(third, 'error')) == {'code': 'room_not_found'}

    guest.get_received()
    guest.emit('startGame', {'room': code})
    assert first_arg(received(guest, 'error')) == {'code': 'not_creator'}
    assert guest.is_connected()


def test_full_duel(flask_app, sio_factory):
    flask_app.extensions['whitered'].rooms.rng = FirstChoice()
    host, guest, code = open_room(sio_factory)
    host_id = first_arg(received(host, 'hostInfo'))['hostId']
    guest.get_received()

    host.emit('startGame', {'room': code})
    assert received(guest, 'gameStarted')

    host.emit('setSecret', {'room': code, 'secret': '1234'})
    assert first_arg(received(guest, 'playerLocked')) == {'by': host_id}
    guest.emit('setSecret', {'room': code, 'secret': '5678'})
    assert first_arg(received(host, 'bothReady')) == {'currentTurn': host_id}
    guest.get_received()

    guest.emit('guess', {'room': code, 'guess': '1234'})
    assert first_arg(received(guest, 'error')) == {'code': 'not_your_turn'}

    host.emit('guess', {'room': code, 'guess': '8765'})
    host_events = received(host)
    assert next(p for p in host_events if p['name'] == 'guessResult')['args'][0] == {'whites': 0, 'reds': 4, 'guess': '8765'}
    guest_events = received(guest)
    assert next(p for p in guest_events if p['name'] == 'opponentGuessed')['args'][0] == {'guess': '8765', 'whites': 0, 'reds': 4}
    guest_id = next(p for p in guest_events if p['name'] == 'turnChanged')['args'][0]['currentTurn']
    assert guest_id != host_id

    guest.emit('guess', {'room': code, 'guess': '1234'})
    assert first_arg(received(host, 'gameOver')) == {'winner': guest_id}
    guest.get_received()

    host.emit('guess', {'room': code, 'guess': '5678'})
    assert first_arg(received(host, 'error')) == {'code': 'game_not_playing'}

    host.emit('requestRematch', {'room': code})
    host.emit('requestRematch', {'room': code})
    statuses = [p['args'][0] for p in received(guest, 'rematchStatus')]
    assert statuses == [{'count': 1}, {'count': 1}]
    guest.emit('requestRematch', {'room': code})
    assert received(host, 'rematchStarted')


def test_chat_and_typing(sio_factory):
    host, guest, code = open_room(sio_factory)
    guest.get_received()
    host.emit('sendChat', {'room': code, 'message': 'good luck', 'name': 'Alice'})
    msg = first_arg(received(guest, 'chatMessage'))
    assert msg['name'] == 'Alice' and msg['message'] == 'good luck'
    guest.emit('typing', {'room': code, 'isTyping': True})
    assert first_arg(received(host, 'typing'))['isTyping'] is True


def test_leave_room_notifies_and_transfers_host(sio_factory):
    host, guest, code = open_room(sio_factory)
    guest.get_received()
    host.emit('leaveRoom', {'room': code})
    events = received(guest)
    assert [p['name'] for p in events].count('playerLeft') == 1
    assert any(p['name'] == 'hostChanged' and p['args'][0]['name'] == 'Bob' for p in events)


def test_leave_mid_game_sends_survivor_back_to_lobby(sio_factory):
    host, guest, code = open_room(sio_factory)
    host.emit('startGame', {'room': code})
    host.emit('setSecret', {'room': code, 'secret': '1234'})
    guest.emit('setSecret', {'room': code, 'secret': '5678'})
    assert received(guest, 'bothReady')

    host.emit('leaveRoom', {'room': code})
    events = received(guest)
    names = [p['name'] for p in events]
    assert names.count('playerLeft') == 1
    assert next(p for p in events if p['name'] == 'joined')['args'][0] == {'room': code, 'started': False}
    assert not received(host, 'joined')


def test_rejected_leave_keeps_subscription(sio_factory, monkeypatch):
    import whitered.socketio_events as gateway

    host, guest, code = open_room(sio_factory)
    outsider = sio_factory()
    unsubscribed = []
    monkeypatch.setattr(gateway, 'leave_room', lambda room: unsubscribed.append(room))

    outsider.emit('leaveRoom', {'room': code})
    assert first_arg(received(outsider, 'error')) == {'code': 'not_in_room'}
    assert unsubscribed == []

    guest.get_received()
    host.emit('leaveRoom', {'room': code})
    assert unsubscribed == [code]
    assert received(guest, 'playerLeft')


def test_reconnect_within_grace_window(flask_app, sio_factory):
    host, guest, code = open_room(sio_factory)
    host.emit('startGame', {'room': code})
    host.emit('setSecret', {'room': code, 'secret': '1234'})
    guest.get_received()

    host.disconnect()
    returning = sio_factory()
    returning.emit('reconnectToRoom', {'room': code, 'name': 'Alice'})
    assert first_arg(received(returning, 'reconnected')) == {'ok': True}

    # well past the grace window: the superseded timer must not evict anyone
    time.sleep(0.5)
    events = received(guest)
    assert any(p['name'] == 'playerReconnected' for p in events)
    assert not any(p['name'] == 'playerLeft' for p in events)

    # the locked secret survived the reconnect
    guest.emit('setSecret', {'room': code, 'secret': '5678'})
    assert received(returning, 'bothReady')


def test_disconnect_without_return_evicts_player(flask_app, sio_factory):
    host, guest, code = open_room(sio_factory)
    guest.get_received()

    host.disconnect()
    left = wait_for(guest, 'playerLeft')
    assert len(left) == 1
    room = flask_app.extensions['whitered'].registry.get(code)
    assert room is not None and len(room.players) == 1
    assert room.players[room.host_id].name == 'Bob'


def test_rate_limited_create(flask_app, sio_factory, monkeypatch):
    client = sio_factory()
    monkeypatch.setattr(flask_app.extensions['whitered'].limiter, 'hit', lambda key: True)
    client.emit('createRoom', {'name': 'Alice'})
    assert first_arg(received(client, 'error')) == {'code': 'rate_limited'}
    assert not received(client, 'roomCreated')
    assert len(flask_app.extensions['whitered'].registry) == 0


def test_health(client):
    res = client.get('/')
    assert res.status_code == 200
    assert res.get_data(as_text=True) == 'White & Red backend OK'
    res = client.get('/health')
    assert res.get_json() == {'status': 'ok', 'rooms': 0}


def test_reaper_sweeps_idle_rooms():
    from conftest import TestConfig
    from whitered import create_app

    class ReaperConfig(TestConfig):
        ENABLE_REAPER_IN_TESTS = True
        ROOM_SWEEP_INTERVAL_SEC = 0.05
        ROOM_TTL_EMPTY_SEC = 0

    application = create_app(ReaperConfig)
    registry = application.extensions['whitered'].registry
    idle = registry.create('sid-a', 'Alice')
    idle.players.clear()
    busy = registry.create('sid-b', 'Bob')

    deadline = time.time() + 3.0
    while time.time() < deadline and idle.code in registry:
        time.sleep(0.05)
    assert idle.code not in registry
    assert registry.get(busy.code) is busy
