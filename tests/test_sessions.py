"""Unit tests for the in-memory session store.

WHY: The store is shared by every API request. Lost sessions, sessions
that never expire, or a store that grows without bound would all break
a long-running server.

HOW: Tests are organized by concern (creation, retrieval, deletion,
TTL cleanup, thread safety). Each test builds its own SessionStore;
time-dependent tests monkeypatch time.time().
"""

from __future__ import annotations

import threading

import pytest

from readalong_studio.core.session import ReadAlongSession
from readalong_studio.playback import HeadlessAudioBackend
from readalong_studio.server import sessions as sessions_module
from readalong_studio.server.sessions import SessionStore


def _session() -> ReadAlongSession:
    return ReadAlongSession(HeadlessAudioBackend())


class TestCreation:

    def test_creates_with_unique_ids(self):
        store = SessionStore()
        first = store.create_session(_session())
        second = store.create_session(_session())
        assert first.id != second.id
        assert len(first.id) == 32

    def test_timestamps(self):
        stored = SessionStore().create_session(_session())
        assert stored.created_at == stored.last_access
        assert stored.update_count == 0
        assert stored.published_text is None

    def test_max_sessions(self):
        store = SessionStore(max_sessions=1)
        store.create_session(_session())
        with pytest.raises(ValueError, match="Maximum number"):
            store.create_session(_session())

    def test_record_update(self):
        stored = SessionStore().create_session(_session())
        stored.record_update("<TEI/>")
        assert stored.published_text == "<TEI/>"
        assert stored.update_count == 1


class TestRetrieval:

    def test_get_unknown_returns_none(self):
        assert SessionStore().get_session("missing") is None

    def test_get_bumps_last_access(self, monkeypatch):
        store = SessionStore()
        monkeypatch.setattr(sessions_module.time, "time", lambda: 1000.0)
        stored = store.create_session(_session())
        monkeypatch.setattr(sessions_module.time, "time", lambda: 1050.0)
        assert store.get_session(stored.id) is stored
        assert stored.last_access == 1050.0

    def test_list_oldest_first(self, monkeypatch):
        store = SessionStore()
        monkeypatch.setattr(sessions_module.time, "time", lambda: 2.0)
        late = store.create_session(_session())
        monkeypatch.setattr(sessions_module.time, "time", lambda: 1.0)
        early = store.create_session(_session())
        assert store.list_sessions() == [early, late]


class TestDeletion:

    def test_delete(self):
        store = SessionStore()
        stored = store.create_session(_session())
        assert store.delete_session(stored.id) is True
        assert store.get_session(stored.id) is None

    def test_delete_unknown(self):
        assert SessionStore().delete_session("missing") is False

    def test_clear(self):
        store = SessionStore()
        store.create_session(_session())
        store.clear()
        assert store.list_sessions() == []


class TestTTLCleanup:

    def test_expires_idle_sessions(self, monkeypatch):
        store = SessionStore(ttl_seconds=60)
        monkeypatch.setattr(sessions_module.time, "time", lambda: 1000.0)
        idle = store.create_session(_session())
        active = store.create_session(_session())
        monkeypatch.setattr(sessions_module.time, "time", lambda: 1050.0)
        store.get_session(active.id)
        monkeypatch.setattr(sessions_module.time, "time", lambda: 1070.0)
        assert store.cleanup_expired() == 1
        assert store.get_session(idle.id) is None
        assert store.get_session(active.id) is active

    def test_boundary_is_not_expired(self, monkeypatch):
        store = SessionStore(ttl_seconds=60)
        monkeypatch.setattr(sessions_module.time, "time", lambda: 1000.0)
        store.create_session(_session())
        monkeypatch.setattr(sessions_module.time, "time", lambda: 1060.0)
        assert store.cleanup_expired() == 0


class TestThreadSafety:

    def test_concurrent_creation_respects_limit(self):
        store = SessionStore(max_sessions=10)
        errors = []

        def worker():
            try:
                store.create_session(_session())
            except ValueError as exc:
                errors.append(exc)

        threads = [threading.Thread(target=worker) for _ in range(25)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(store.list_sessions()) == 10
        assert len(errors) == 15
