from dataclasses import dataclass
from typing import Any, Iterable

from whitered import socketio

NAMESPACE = '/'


@dataclass(frozen=True)
class Outbound:
    """A notification produced by a room transition.

    ``to`` is either a connection sid or a room code; Socket.IO puts every
    sid in a room of its own, so both are delivered the same way.
    """
    event: str
    payload: Any
    to: str


def deliver(messages: Iterable[Outbound], namespace: str = NAMESPACE) -> None:
    # Use socketio.emit since this may be called from a background task
    for msg in messages:
        socketio.emit(msg.event, msg.payload, to=msg.to, namespace=namespace)
