import threading
import time
from typing import Callable, Dict, List, Optional

from whitered.models import Room, Player, generate_room_code, normalize_room_code


class RoomRegistry:
    """Owns every live Room, keyed by room code.

    One registry is built per application in ``create_app`` and shared by
    the socket handlers and the background workers. The registry lock only
    guards the code -> Room map; room state is guarded by each room's own
    lock.
    """

    def __init__(self, clock: Callable[[], float] = time.time, code_factory=generate_room_code):
        self._rooms: Dict[str, Room] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self._code_factory = code_factory

    def now(self) -> float:
        return self._clock()

    def create(self, host_id: str, name: str) -> Room:
        ts = self.now()
        with self._lock:
            code = self._code_factory()
            while code in self._rooms:
                code = self._code_factory()
            room = Room(code=code, host_id=host_id, created_at=ts)
            room.players[host_id] = Player(name=name, joined_at=ts)
            self._rooms[code] = room
        return room

    def get(self, code) -> Optional[Room]:
        code = normalize_room_code(code)
        if not code:
            return None
        with self._lock:
            return self._rooms.get(code)

    def delete(self, code: str, room: Optional[Room] = None) -> bool:
        """Remove a room. When ``room`` is given only that exact instance is removed."""
        with self._lock:
            current = self._rooms.get(code)
            if current is None or (room is not None and current is not room):
                return False
            del self._rooms[code]
            current.closed = True
            return True

    def sweep_expired(self, ttl_sec: float) -> List[str]:
        """Delete empty rooms older than ``ttl_sec``. Occupied rooms are never touched."""
        ts = self.now()
        with self._lock:
            candidates = list(self._rooms.values())
        removed = []
        for room in candidates:
            with room.lock:
                if room.players or ts - room.created_at <= ttl_sec:
                    continue
                if self.delete(room.code, room):
                    removed.append(room.code)
        return removed

    def __contains__(self, code) -> bool:
        return self.get(code) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._rooms)
