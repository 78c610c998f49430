import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, Iterator, Optional, Tuple


class ReadWriteLock:
    """
    Many concurrent readers or one exclusive writer.

    Waiting writers block new readers, so a steady stream of requests
    cannot starve the refresh thread.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


@dataclass(frozen=True)
class CachedArtifact:
    data: bytes = b''
    updated_at: Optional[datetime] = None

    @property
    def available(self) -> bool:
        return bool(self.data)


class CachedImage:
    """The latest bitmap for one content slot."""

    def __init__(self):
        self._lock = ReadWriteLock()
        self._artifact = CachedArtifact()

    def set(self, data: bytes) -> None:
        artifact = CachedArtifact(bytes(data), datetime.now().astimezone())
        with self._lock.write():
            self._artifact = artifact

    def get(self) -> Tuple[bytes, Optional[datetime]]:
        with self._lock.read():
            artifact = self._artifact
        return artifact.data, artifact.updated_at

    @property
    def populated(self) -> bool:
        with self._lock.read():
            return self._artifact.available


class ImageCache:
    """
    One CachedImage per named slot.

    Slots are fixed at construction; each has its own lock, so writing one
    slot never waits on readers of another.
    """

    def __init__(self, slots: Iterable[str]):
        self._slots: Dict[str, CachedImage] = {slot: CachedImage() for slot in slots}

    @property
    def slots(self) -> Tuple[str, ...]:
        return tuple(self._slots)

    def __contains__(self, slot: str) -> bool:
        return slot in self._slots

    def _slot(self, slot: str) -> CachedImage:
        try:
            return self._slots[slot]
        except KeyError:
            raise KeyError(f"Unknown cache slot: {slot}") from None

    def set(self, slot: str, data: bytes) -> None:
        self._slot(slot).set(data)

    def get(self, slot: str) -> Tuple[bytes, Optional[datetime]]:
        """Return (bytes, updated_at), or (b'', None) if never set."""
        return self._slot(slot).get()

    def is_populated(self, slot: str) -> bool:
        return self._slot(slot).populated
