"""
Identity generation.

Document identities come from an injected generator rather than wall-clock
timestamps, so two documents created in the same millisecond never collide.
"""

import threading
from abc import ABC, abstractmethod
from uuid import UUID, uuid4


class IdGenerator(ABC):
    """Produces opaque, unique document identities."""

    @abstractmethod
    def next_id(self) -> UUID:
        ...


class UUIDGenerator(IdGenerator):
    """Random (uuid4) identities. The production default."""

    def next_id(self) -> UUID:
        return uuid4()


class SequentialIdGenerator(IdGenerator):
    """
    Monotonic counter rendered as a UUID.

    Deterministic across runs, which keeps test output and log lines
    reproducible.  Thread-safe.
    """

    def __init__(self, start: int = 1):
        self._next = start
        self._lock = threading.Lock()

    def next_id(self) -> UUID:
        with self._lock:
            value = self._next
            self._next += 1
        return UUID(int=value)
