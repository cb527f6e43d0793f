import threading
from typing import Dict, List, NamedTuple, Optional

from whitered.broadcast import Outbound
from whitered.models import RoomError
from .game import host_message, locked_room, names_messages, remove_player


class PendingRemoval(NamedTuple):
    code: str
    sid: str
    token: int


class SessionManager:
    """Binds transport identities (Socket.IO sids) to player slots.

    A player's logical identity is (room code, display name); the sid
    changes on every reconnect. ``reconnect`` moves a disconnected slot onto
    the new sid, ``expire`` drops it once the grace window has run out.
    """

    def __init__(self, registry):
        self.registry = registry
        self._index: Dict[str, str] = {}
        self._lock = threading.Lock()

    def bind(self, sid: str, code: str) -> None:
        with self._lock:
            self._index[sid] = code

    def unbind(self, sid: str, code: Optional[str] = None) -> None:
        with self._lock:
            if code is None or self._index.get(sid) == code:
                self._index.pop(sid, None)

    def room_of(self, sid: str) -> Optional[str]:
        with self._lock:
            return self._index.get(sid)

    def disconnect(self, sid: str) -> Optional[PendingRemoval]:
        """Mark the sid's slot as disconnected and hand out a removal token.

        Returns None when the sid was not seated anywhere.
        """
        code = self.room_of(sid)
        if code is None:
            return None
        try:
            with locked_room(self.registry, code) as room:
                player = room.players.get(sid)
                if player is None:
                    self.unbind(sid, code)
                    return None
                player.connected = False
                player.disconnected_at = self.registry.now()
                player.removal_token = room.next_token()
                return PendingRemoval(room.code, sid, player.removal_token)
        except RoomError:
            self.unbind(sid, code)
            return None

    def reconnect(self, sid: str, code, name):
        """Move a disconnected player's slot onto ``sid``.

        The pending removal is cancelled by clearing its token while the room
        lock is held, so a timer that fires later finds nothing to do.
        """
        if isinstance(name, str):
            name = name.strip()
        with locked_room(self.registry, code) as room:
            old_sid = next(
                (pid for pid, p in room.players.items() if p.name == name and not p.connected),
                None,
            )
            if old_sid is None:
                raise RoomError('no_reconnect_slot')
            if self.room_of(sid) is not None:
                raise RoomError('already_in_room')

            player = room.players[old_sid]
            player.connected = True
            player.disconnected_at = None
            player.removal_token = None
            # keep seating order, only the key changes
            room.players = {(sid if pid == old_sid else pid): p for pid, p in room.players.items()}
            if room.host_id == old_sid:
                room.host_id = sid
            if room.current_turn == old_sid:
                room.current_turn = sid
            if old_sid in room.rematch_requests:
                room.rematch_requests.discard(old_sid)
                room.rematch_requests.add(sid)
            self.unbind(old_sid, room.code)
            self.bind(sid, room.code)

            out = [Outbound('playerReconnected', {'id': sid, 'name': player.name}, room.code)]
            out.extend(names_messages(room))
            out.append(host_message(room))
            out.append(Outbound('reconnected', {'ok': True}, sid))
            return room, out

    def expire(self, code: str, sid: str, token: int) -> List[Outbound]:
        """Grace window elapsed. No-op if the slot came back, left, or the room is gone."""
        try:
            with locked_room(self.registry, code) as room:
                player = room.players.get(sid)
                if player is None or player.connected or player.removal_token != token:
                    return []
                return remove_player(self.registry, self, room, sid)
        except RoomError:
            self.unbind(sid, code)
            return []
