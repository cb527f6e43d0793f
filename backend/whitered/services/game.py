import random
from contextlib import contextmanager
from typing import List

from whitered.broadcast import Outbound
from whitered.models import (
    FINISHED,
    NAME_MAX_LENGTH,
    PLAYING,
    STARTED,
    WAITING,
    GuessRecord,
    Player,
    Room,
    RoomError,
    validate_code,
    validate_name,
)
from .scoring import is_win, score


@contextmanager
def locked_room(registry, code):
    """Resolve ``code`` and hold the room lock for the duration of the block."""
    room = registry.get(code)
    if room is None:
        raise RoomError('room_not_found')
    with room.lock:
        if room.closed:
            raise RoomError('room_not_found')
        yield room


def names_messages(room: Room) -> List[Outbound]:
    return [Outbound('playerNames', room.names_for(pid), pid) for pid in room.players]


def host_message(room: Room) -> Outbound:
    return Outbound('hostInfo', {'hostId': room.host_id}, room.code)


def remove_player(registry, sessions, room: Room, sid: str) -> List[Outbound]:
    """Drop a slot for good. Caller holds ``room.lock``.

    Clears any pending grace-window removal, transfers host, and deletes the
    room once nobody is left.
    """
    player = room.players.pop(sid)
    player.removal_token = None
    sessions.unbind(sid, room.code)
    room.rematch_requests.discard(sid)
    out = [Outbound('playerLeft', {'by': sid}, room.code)]

    if not room.players:
        registry.delete(room.code, room)
        return out

    # A duel cannot go on with one player
    was_reset = room.status != WAITING
    if was_reset:
        room.reset_round(WAITING)
    if room.host_id == sid:
        new_host = next(iter(room.players))
        room.host_id = new_host
        out.append(Outbound('hostChanged', {'newHost': new_host, 'name': room.players[new_host].name}, room.code))
    out.extend(names_messages(room))
    if was_reset:
        # tell whoever is left that they are back in the lobby
        out.extend(Outbound('joined', {'room': room.code, 'started': False}, pid) for pid in room.players)
    return out


class RoomService:
    """Room state machine: every inbound game action lands here.

    Methods validate against the current room state, mutate under the room
    lock, and return the notifications to send. Nothing is sent from here;
    delivery belongs to the socket layer.
    """

    def __init__(self, registry, sessions, rng=None, chat_max_length=500):
        self.registry = registry
        self.sessions = sessions
        self.rng = rng or random.Random()
        self.chat_max_length = chat_max_length

    def _seated(self, room: Room, sid: str) -> Player:
        player = room.players.get(sid)
        if player is None:
            raise RoomError('not_in_room')
        return player

    def create_room(self, sid: str, name=None):
        if self.sessions.room_of(sid):
            raise RoomError('already_in_room')
        player_name = name.strip() if validate_name(name) else 'Host'
        room = self.registry.create(sid, player_name)
        self.sessions.bind(sid, room.code)
        with room.lock:
            out = [Outbound('roomCreated', room.code, sid)]
            out.extend(names_messages(room))
            out.append(host_message(room))
        return room, out

    def join_room(self, sid: str, code, name=None):
        with locked_room(self.registry, code) as room:
            if sid in room.players:
                # same connection asking again, just resync it
                return room, [Outbound('joined', {'room': room.code, 'started': room.started}, sid)] + names_messages(room)
            if self.sessions.room_of(sid):
                raise RoomError('already_in_room')
            if room.is_full():
                raise RoomError('room_full')
            player_name = name.strip() if validate_name(name) else f'Player-{sid[:4]}'
            if room.find_by_name(player_name):
                raise RoomError('name_taken')

            room.players[sid] = Player(name=player_name, joined_at=self.registry.now())
            self.sessions.bind(sid, room.code)
            out = [
                Outbound('joined', {'room': room.code, 'started': room.started}, sid),
                Outbound('playerJoined', {'name': player_name, 'started': room.started}, room.code),
            ]
            out.extend(names_messages(room))
            out.append(host_message(room))
            return room, out

    def start_game(self, sid: str, code) -> List[Outbound]:
        with locked_room(self.registry, code) as room:
            if sid != room.host_id:
                raise RoomError('not_creator')
            if len(room.players) < 2:
                raise RoomError('need_two_players')
            if room.status != WAITING:
                raise RoomError('game_already_started')
            room.status = STARTED
            return [Outbound('gameStarted', {}, room.code)]

    def set_secret(self, sid: str, code, secret) -> List[Outbound]:
        if not validate_code(secret):
            raise RoomError('invalid_secret')
        with locked_room(self.registry, code) as room:
            player = self._seated(room, sid)
            if room.status != STARTED:
                raise RoomError('game_not_started')
            if player.secret is not None:
                raise RoomError('already_locked')
            player.secret = secret

            locked = [pid for pid, p in room.players.items() if p.secret is not None]
            if len(locked) == 2:
                room.status = PLAYING
                room.current_turn = self.rng.choice(locked)
                room.guess_history = []
                room.rematch_requests = set()
                return [Outbound('bothReady', {'currentTurn': room.current_turn}, room.code)]
            return [Outbound('playerLocked', {'by': sid}, room.code)]

    def guess(self, sid: str, code, guess) -> List[Outbound]:
        with locked_room(self.registry, code) as room:
            if room.status != PLAYING:
                raise RoomError('game_not_playing')
            self._seated(room, sid)
            if room.current_turn != sid:
                raise RoomError('not_your_turn')
            if not validate_code(guess):
                raise RoomError('invalid_guess')
            opponent_id = room.opponent_of(sid)
            if opponent_id is None:
                raise RoomError('no_opponent')
            opponent_secret = room.players[opponent_id].secret
            if not opponent_secret:
                raise RoomError('opponent_no_secret')

            hits = score(opponent_secret, guess)
            room.guess_history.insert(0, GuessRecord(
                by=sid, guess=guess, whites=hits.whites, reds=hits.reds, at=self.registry.now(),
            ))
            out = [
                Outbound('guessResult', {'whites': hits.whites, 'reds': hits.reds, 'guess': guess}, sid),
                Outbound('opponentGuessed', {'guess': guess, 'whites': hits.whites, 'reds': hits.reds}, opponent_id),
            ]
            if is_win(hits):
                room.status = FINISHED
                out.append(Outbound('gameOver', {'winner': sid}, room.code))
                return out

            room.current_turn = opponent_id
            out.append(Outbound('turnChanged', {'currentTurn': opponent_id}, room.code))
            return out

    def leave_room(self, sid: str, code) -> List[Outbound]:
        with locked_room(self.registry, code) as room:
            self._seated(room, sid)
            return remove_player(self.registry, self.sessions, room, sid)

    def request_rematch(self, sid: str, code) -> List[Outbound]:
        with locked_room(self.registry, code) as room:
            self._seated(room, sid)
            if room.status != FINISHED:
                raise RoomError('game_not_finished')
            room.rematch_requests.add(sid)
            out = [Outbound('rematchStatus', {'count': len(room.rematch_requests)}, room.code)]
            if len(room.rematch_requests) == len(room.players):
                room.reset_round(STARTED)
                out.append(Outbound('rematchStarted', {}, room.code))
            return out

    def send_chat(self, sid: str, code, message, name=None) -> List[Outbound]:
        if self.registry.get(code) is None:
            return []
        with locked_room(self.registry, code) as room:
            player = self._seated(room, sid)
            sender = name[:NAME_MAX_LENGTH] if isinstance(name, str) and name.strip() else player.name
            msg = {
                'from': sid,
                'name': sender,
                'message': str(message if message is not None else '')[:self.chat_max_length],
                'at': self.registry.now(),
            }
            return [Outbound('chatMessage', msg, room.code)]

    def typing(self, sid: str, code, is_typing) -> List[Outbound]:
        if self.registry.get(code) is None:
            return []
        with locked_room(self.registry, code) as room:
            self._seated(room, sid)
            return [Outbound('typing', {'from': sid, 'isTyping': bool(is_typing)}, room.code)]
