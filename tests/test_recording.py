import pytest

from app.utils.recording import RecordingSession, RecordingStore


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


class TestRecordingSession:
    def test_chunks_joined_in_arrival_order(self):
        session = RecordingSession()
        session.append(b"first-")
        session.append(b"")
        session.append(b"second")

        path = session.stop()
        try:
            assert path.read_bytes() == b"first-second"
            assert session.stopping
        finally:
            session.discard()
        assert not path.exists()

    def test_size_limit(self):
        session = RecordingSession(max_bytes=4)
        session.append(b"abcd")
        with pytest.raises(OverflowError):
            session.append(b"e")
        assert session.size == 4

    def test_no_appends_or_second_stop_after_stop(self):
        session = RecordingSession()
        session.append(b"data")
        session.stop()
        try:
            with pytest.raises(ValueError):
                session.append(b"more")
            with pytest.raises(ValueError):
                session.stop()
        finally:
            session.discard()

    def test_cancel_sets_event_of_stopping_session(self):
        session = RecordingSession()
        session.cancel()
        assert session.cancel_event is None

        session.append(b"data")
        session.stop()
        session.cancel()
        assert session.cancel_event.is_set()
        session.discard()


class TestRecordingStoreExpiry:
    def test_idle_session_discarded_on_create(self, clock):
        store = RecordingStore(clock=clock)
        idle = store.create(ttl_seconds=60)
        idle.append(b"abandoned")

        clock.now += 61
        fresh = store.create(ttl_seconds=60)

        assert store.get(idle.id) is None
        assert idle.size == 0
        assert idle.chunk_count == 0
        assert store.get(fresh.id) is fresh
        assert len(store) == 1

    def test_idle_session_discarded_on_get(self, clock):
        store = RecordingStore(clock=clock)
        session = store.create(ttl_seconds=60)

        clock.now += 61
        assert store.get(session.id) is None
        assert len(store) == 0

    def test_appending_keeps_session_alive(self, clock):
        store = RecordingStore(clock=clock)
        session = store.create(ttl_seconds=60)

        for _ in range(3):
            clock.now += 45
            store.get(session.id).append(b"chunk")

        assert store.get(session.id) is session
        assert session.chunk_count == 3

    def test_stopping_session_not_swept(self, clock):
        store = RecordingStore(clock=clock)
        session = store.create(ttl_seconds=60)
        session.append(b"data")
        session.stop()

        clock.now += 3600
        try:
            assert store.sweep() == 0
            assert store.get(session.id) is session
        finally:
            session.discard()

    def test_clear_cancels_and_discards(self, clock):
        store = RecordingStore(clock=clock)
        stopping = store.create()
        stopping.append(b"data")
        path = stopping.stop()
        idle = store.create()
        idle.append(b"data")

        store.clear()

        assert len(store) == 0
        assert stopping.cancel_event.is_set()
        assert not path.exists()
        assert idle.size == 0
