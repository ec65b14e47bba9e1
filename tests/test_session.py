"""
FitManager: session lifecycle tests
Run with: python3 -m pytest tests/
"""

import json
import os
import stat

import pytest

from conftest import BASE_URL, FakeServer
from fitmanager import config
from fitmanager.context import build_context
from fitmanager.errors import AuthenticationError
from fitmanager.session import (
    FileTokenStorage,
    MemoryTokenStorage,
    SessionStateTokenStorage,
    SessionStore,
    default_storage,
)


class TestFileTokenStorage:
    def test_missing_file_reads_as_absent(self, tmp_path):
        storage = FileTokenStorage(str(tmp_path / "none.json"))
        assert storage.get("token") is None

    def test_set_creates_parent_directory(self, tmp_path):
        path = tmp_path / "nested" / "session.json"
        storage = FileTokenStorage(str(path))
        storage.set("token", "abc")
        assert json.loads(path.read_text())["values"]["token"] == "abc"

    def test_corrupt_file_reads_as_absent(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text("{not json")
        assert FileTokenStorage(str(path)).get("token") is None

    def test_delete_missing_key_is_noop(self, tmp_path):
        storage = FileTokenStorage(str(tmp_path / "session.json"))
        storage.delete("token")
        assert storage.get("token") is None

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
    def test_file_is_private_to_owner(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text("{}")
        path.chmod(0o644)
        FileTokenStorage(str(path)).set("token", "abc")
        assert stat.S_IMODE(path.stat().st_mode) == 0o600


class TestSessionStateTokenStorage:
    def test_keys_are_prefixed_in_the_mapping(self):
        state = {}
        storage = SessionStateTokenStorage(state)
        storage.set("token", "abc")
        assert state == {"fitmanager_token": "abc"}
        assert storage.get("token") == "abc"
        storage.delete("token")
        storage.delete("token")
        assert state == {}

    def test_empty_value_reads_as_absent(self):
        assert SessionStateTokenStorage({"fitmanager_token": ""}).get("token") is None


class TestClientIsolation:
    def test_two_clients_do_not_share_a_token(self):
        server = FakeServer()
        first = build_context(storage=SessionStateTokenStorage({}), base_url=BASE_URL, http=server)
        second = build_context(storage=SessionStateTokenStorage({}), base_url=BASE_URL, http=server)
        first.auth.login("u", "p")
        assert first.session.is_authenticated
        assert not second.session.is_authenticated
        with pytest.raises(AuthenticationError):
            second.profiles.fetch()
        assert first.profiles.fetch().username == "u"

    def test_file_slot_is_opt_in(self, tmp_path, monkeypatch):
        path = str(tmp_path / "session.json")
        FileTokenStorage(path).set("token", "someone-else")
        monkeypatch.setattr(config, "STATE_PATH", path)
        monkeypatch.setattr(config, "PERSIST_TOKEN", False)
        assert isinstance(default_storage(), MemoryTokenStorage)
        assert not SessionStore().is_authenticated

    def test_file_slot_when_enabled(self, tmp_path, monkeypatch):
        path = str(tmp_path / "session.json")
        FileTokenStorage(path).set("token", "jwt-1")
        monkeypatch.setattr(config, "STATE_PATH", path)
        monkeypatch.setattr(config, "PERSIST_TOKEN", True)
        assert SessionStore().current_token() == "jwt-1"


class TestSessionStore:
    def test_starts_logged_out(self):
        store = SessionStore(MemoryTokenStorage())
        assert store.current_token() is None
        assert not store.is_authenticated

    def test_login_persists_across_restart(self, tmp_path):
        path = str(tmp_path / "session.json")
        SessionStore(FileTokenStorage(path)).login("jwt-1")
        rehydrated = SessionStore(FileTokenStorage(path))
        assert rehydrated.current_token() == "jwt-1"
        assert rehydrated.is_authenticated

    def test_logout_clears_memory_and_storage(self, tmp_path):
        path = str(tmp_path / "session.json")
        store = SessionStore(FileTokenStorage(path))
        store.login("jwt-1")
        store.logout()
        assert store.current_token() is None
        assert SessionStore(FileTokenStorage(path)).current_token() is None

    def test_logout_is_idempotent(self):
        store = SessionStore(MemoryTokenStorage({"token": "jwt"}))
        store.logout()
        store.logout()
        assert store.current_token() is None

    def test_second_login_replaces_token(self):
        store = SessionStore(MemoryTokenStorage())
        store.login("a")
        store.login("b")
        assert store.current_token() == "b"

    def test_listeners_are_notified(self):
        store = SessionStore(MemoryTokenStorage())
        seen = []
        unsubscribe = store.subscribe(seen.append)
        store.login("a")
        store.logout()
        store.logout()
        unsubscribe()
        store.login("b")
        assert seen == ["a", None]

    def test_failing_listener_does_not_block_others(self):
        store = SessionStore(MemoryTokenStorage())
        seen = []

        def broken(_token):
            raise RuntimeError("boom")

        store.subscribe(broken)
        store.subscribe(seen.append)
        store.login("a")
        assert seen == ["a"]
        assert store.current_token() == "a"
