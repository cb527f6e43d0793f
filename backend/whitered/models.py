import random
import string
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

WAITING = 'waiting'
STARTED = 'started'
PLAYING = 'playing'
FINISHED = 'finished'

MAX_PLAYERS = 2
CODE_LENGTH = 4
NAME_MAX_LENGTH = 32
ROOM_CODE_LENGTH = 4


class RoomError(Exception):
    """A rejected action. ``code`` is reported to the acting connection."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


def validate_name(name) -> bool:
    return isinstance(name, str) and 1 <= len(name.strip()) <= NAME_MAX_LENGTH


def validate_code(code) -> bool:
    """Secrets and guesses: exactly 4 decimal digits, all distinct."""
    return (
        isinstance(code, str)
        and len(code) == CODE_LENGTH
        and all(ch in string.digits for ch in code)
        and len(set(code)) == CODE_LENGTH
    )


def normalize_room_code(code) -> Optional[str]:
    if not isinstance(code, str):
        return None
    code = code.strip().upper()
    return code or None


def generate_room_code(length=ROOM_CODE_LENGTH):
    """Generate a short room code. Uniqueness is checked by the registry."""
    return ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))


@dataclass
class Player:
    name: str
    joined_at: float
    secret: Optional[str] = None
    connected: bool = True
    disconnected_at: Optional[float] = None
    # token of the pending grace-window removal, None when nothing is pending
    removal_token: Optional[int] = None


@dataclass(frozen=True)
class GuessRecord:
    by: str
    guess: str
    whites: int
    reds: int
    at: float


@dataclass
class Room:
    code: str
    host_id: str
    created_at: float
    players: Dict[str, Player] = field(default_factory=dict)
    status: str = WAITING
    current_turn: Optional[str] = None
    guess_history: List[GuessRecord] = field(default_factory=list)
    rematch_requests: Set[str] = field(default_factory=set)
    # serializes every transition on this room
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)
    timer_generation: int = 0
    # set once the registry drops the room; holders of a stale reference must bail
    closed: bool = False

    @property
    def started(self) -> bool:
        return self.status != WAITING

    def is_full(self) -> bool:
        return len(self.players) >= MAX_PLAYERS

    def opponent_of(self, sid: str) -> Optional[str]:
        return next((pid for pid in self.players if pid != sid), None)

    def find_by_name(self, name: str) -> Optional[str]:
        return next((pid for pid, p in self.players.items() if p.name == name), None)

    def next_token(self) -> int:
        self.timer_generation += 1
        return self.timer_generation

    def reset_round(self, status: str) -> None:
        for p in self.players.values():
            p.secret = None
        self.status = status
        self.current_turn = None
        self.guess_history = []
        self.rematch_requests = set()

    def names_for(self, sid: str) -> dict:
        opponent = self.opponent_of(sid)
        return {
            'self': self.players[sid].name,
            'opponent': self.players[opponent].name if opponent else None,
        }

