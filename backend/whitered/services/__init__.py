"""Duel domain services: scoring, rooms, sessions and timers.

This package holds the room state and the rules that act on it. Socket
handlers call into it and deliver whatever notifications come back,
keeping transport concerns separated from core game mechanics.
"""
from dataclasses import dataclass

from .game import RoomService
from .ratelimit import SlidingWindowLimiter
from .registry import RoomRegistry
from .sessions import SessionManager


@dataclass
class Services:
    registry: RoomRegistry
    sessions: SessionManager
    rooms: RoomService
    limiter: SlidingWindowLimiter


def build_services(config, clock=None, rng=None) -> Services:
    """Wire up one set of services for an application instance."""
    registry = RoomRegistry(clock=clock) if clock else RoomRegistry()
    sessions = SessionManager(registry)
    rooms = RoomService(
        registry,
        sessions,
        rng=rng,
        chat_max_length=int(config.get('CHAT_MAX_LENGTH', 500)),
    )
    limiter_kwargs = {'clock': clock} if clock else {}
    limiter = SlidingWindowLimiter(
        int(config.get('RATE_LIMIT_MAX', 60)),
        float(config.get('RATE_LIMIT_WINDOW_SEC', 60)),
        **limiter_kwargs,
    )
    return Services(registry=registry, sessions=sessions, rooms=rooms, limiter=limiter)
