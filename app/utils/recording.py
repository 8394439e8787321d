import asyncio
import logging
import tempfile
import time
import uuid
from pathlib import Path
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_RECORDING_TTL_SECONDS = 600.0


class RecordingSession:
    """Collects webcam recorder chunks until the client stops recording."""

    def __init__(
        self,
        max_bytes: Optional[int] = None,
        suffix: str = ".webm",
        ttl_seconds: float = DEFAULT_RECORDING_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.id = uuid.uuid4().hex
        self.max_bytes = max_bytes
        self.suffix = suffix
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self.created_at = clock()
        self.last_activity = self.created_at
        self.cancel_event: Optional[asyncio.Event] = None
        self._chunks: List[bytes] = []
        self._size = 0
        self._path: Optional[Path] = None

    @property
    def size(self) -> int:
        return self._size

    @property
    def chunk_count(self) -> int:
        return len(self._chunks)

    @property
    def stopping(self) -> bool:
        return self.cancel_event is not None

    def expired(self, now: float) -> bool:
        return not self.stopping and now - self.last_activity > self.ttl_seconds

    def append(self, chunk: bytes) -> None:
        if self.stopping or self._path is not None:
            raise ValueError("Recording has already been stopped.")
        self.last_activity = self._clock()
        if not chunk:
            return
        if self.max_bytes is not None and self._size + len(chunk) > self.max_bytes:
            raise OverflowError("Recording exceeds the maximum allowed size.")
        self._chunks.append(chunk)
        self._size += len(chunk)

    def stop(self) -> Path:
        """Assemble the chunks, in arrival order, into one playable file."""
        if self.stopping:
            raise ValueError("Recording is already being stopped.")
        if not self._chunks:
            raise ValueError("No video data was recorded.")
        with tempfile.NamedTemporaryFile(delete=False, suffix=self.suffix) as tmp:
            for chunk in self._chunks:
                tmp.write(chunk)
        self._chunks.clear()
        self._path = Path(tmp.name)
        self.cancel_event = asyncio.Event()
        logger.info("Assembled recording %s (%d bytes)", self.id, self._size)
        return self._path

    def cancel(self) -> None:
        """Ask an in-flight stop to abandon sampling; the stop request cleans up."""
        if self.cancel_event is not None:
            self.cancel_event.set()

    def discard(self) -> None:
        self._chunks.clear()
        self._size = 0
        if self._path is not None:
            self._path.unlink(missing_ok=True)
            self._path = None


class RecordingStore:
    """
    In-memory registry of recordings for the lifetime of the process.

    Sessions idle for longer than their TTL are discarded whenever the store
    is touched, so a client that never stops or deletes a recording does not
    keep its chunks alive.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._sessions: Dict[str, RecordingSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(
        self, max_bytes: Optional[int] = None, ttl_seconds: float = DEFAULT_RECORDING_TTL_SECONDS
    ) -> RecordingSession:
        self.sweep()
        session = RecordingSession(max_bytes=max_bytes, ttl_seconds=ttl_seconds, clock=self._clock)
        self._sessions[session.id] = session
        return session

    def get(self, recording_id: str) -> Optional[RecordingSession]:
        self.sweep()
        return self._sessions.get(recording_id)

    def pop(self, recording_id: str) -> Optional[RecordingSession]:
        return self._sessions.pop(recording_id, None)

    def sweep(self) -> int:
        now = self._clock()
        expired = [session for session in self._sessions.values() if session.expired(now)]
        for session in expired:
            del self._sessions[session.id]
            session.discard()
            logger.info("Discarded idle recording %s", session.id)
        return len(expired)

    def clear(self) -> None:
        for session in self._sessions.values():
            session.cancel()
            session.discard()
        self._sessions.clear()
