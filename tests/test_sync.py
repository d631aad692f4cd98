"""Tests für Cloud-Sync und Anmeldung (HTTP über eine Fake-Session, kein Netzwerk)."""

import time
from datetime import date
from pathlib import Path
from typing import Any, Optional

import pytest
import requests

from config.schema import BackendConfig
from data.local_store import CollectionKey, MemoryStore
from data.repository import HomeworkRepository
from sync.auth import AuthError, AuthSession, SessionProvider, SessionStore, SupabaseAuth
from sync.cloud import (
    NOT_AUTHENTICATED, NOT_CONFIGURED, BackgroundPusher, CloudSync, SyncStatus,
)

BACKEND = BackendConfig(url="https://projekt.supabase.co/", anon_key="anon-123")
SESSION = AuthSession(access_token="tok", refresh_token="ref", user_id="user-1",
                      email="lehrer@example.org")


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, text: str = ""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("kein JSON")
        return self._payload


class FakeHttp:
    """Zeichnet Aufrufe auf und liefert vorbereitete Antworten."""

    def __init__(self, response: Optional[FakeResponse] = None,
                 error: Optional[Exception] = None):
        self.response = response or FakeResponse(201)
        self.error = error
        self.calls: list[tuple[str, str, dict]] = []

    def _call(self, method: str, url: str, **kwargs) -> FakeResponse:
        self.calls.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response

    def post(self, url, **kwargs):
        return self._call("POST", url, **kwargs)

    def get(self, url, **kwargs):
        return self._call("GET", url, **kwargs)


def _filled_store() -> MemoryStore:
    store = MemoryStore()
    repo = HomeworkRepository(store)
    c = repo.add_class("3B")
    repo.add_students(["Alice", "Zed"], c.id)
    repo.record_session(c.id, date(2024, 1, 10))
    return store


def _sync(store, http, backend=BACKEND, session=SESSION) -> CloudSync:
    return CloudSync(store, backend, lambda: session, http=http)


# ─── VORBEDINGUNGEN ───────────────────────────────────────────────────────────

class TestGuards:
    def test_push_unconfigured_no_network(self):
        """Ohne Backend: Fehlerergebnis, kein HTTP-Aufruf, keine Exception."""
        http = FakeHttp()
        sync = _sync(MemoryStore(), http, backend=BackendConfig())
        result = sync.push()
        assert result.ok is False
        assert result.error == NOT_CONFIGURED
        assert http.calls == []
        assert sync.status is SyncStatus.IDLE

    def test_pull_unconfigured_no_network(self):
        http = FakeHttp()
        result = _sync(MemoryStore(), http, backend=BackendConfig(url="https://x")).pull()
        assert result.error == NOT_CONFIGURED
        assert http.calls == []

    def test_not_authenticated(self):
        http = FakeHttp()
        sync = _sync(MemoryStore(), http, session=None)
        assert sync.push().error == NOT_AUTHENTICATED
        assert sync.pull().error == NOT_AUTHENTICATED
        assert http.calls == []
        assert sync.status is SyncStatus.IDLE


# ─── PUSH ─────────────────────────────────────────────────────────────────────

class TestPush:
    def test_upsert_payload(self):
        """Eine Zeile pro Nutzer: user_id + content mit allen Sammlungen."""
        http = FakeHttp(FakeResponse(201))
        store = _filled_store()
        result = _sync(store, http).push()

        assert result.ok is True
        ((method, url, kwargs),) = http.calls
        assert method == "POST"
        assert url == "https://projekt.supabase.co/rest/v1/user_data"
        assert kwargs["params"] == {"on_conflict": "user_id"}
        assert "merge-duplicates" in kwargs["headers"]["Prefer"]
        assert kwargs["headers"]["Authorization"] == "Bearer tok"
        body = kwargs["json"]
        assert body["user_id"] == "user-1"
        content = body["content"]
        assert content["classes"] == store.read_collection(CollectionKey.CLASSES)
        assert len(content["records"]) == 2
        assert content["last_updated"].endswith("Z")

    def test_http_error_sets_error_status(self):
        http = FakeHttp(FakeResponse(500, text="kaputt"))
        sync = _sync(_filled_store(), http)
        statuses = []
        sync.add_listener(statuses.append)
        result = sync.push()
        assert result.ok is False
        assert "500" in result.error
        assert sync.status is SyncStatus.ERROR
        assert sync.last_error == result.error
        assert statuses == [SyncStatus.SYNCING, SyncStatus.ERROR]

    def test_network_error_is_swallowed(self):
        http = FakeHttp(error=requests.ConnectionError("offline"))
        sync = _sync(_filled_store(), http)
        result = sync.push()
        assert result.ok is False
        assert sync.status is SyncStatus.ERROR

    def test_success_resets_error(self):
        http = FakeHttp(FakeResponse(500))
        sync = _sync(_filled_store(), http)
        sync.push()
        http.response = FakeResponse(201)
        assert sync.push().ok is True
        assert sync.status is SyncStatus.IDLE
        assert sync.last_error is None


# ─── PULL ─────────────────────────────────────────────────────────────────────

class TestPull:
    def test_overwrites_local_collections(self):
        remote_store = _filled_store()
        content = {
            "classes": remote_store.read_collection(CollectionKey.CLASSES),
            "students": remote_store.read_collection(CollectionKey.STUDENTS),
            "sessions": remote_store.read_collection(CollectionKey.SESSIONS),
            "records": remote_store.read_collection(CollectionKey.RECORDS),
            "last_updated": "2024-01-10T12:00:00Z",
        }
        http = FakeHttp(FakeResponse(200, [{"content": content}]))
        local = MemoryStore()
        HomeworkRepository(local).add_class("Lokal")

        result = _sync(local, http).pull()

        assert result.ok is True and result.no_data is False
        assert local.read_collection(CollectionKey.CLASSES) == content["classes"]
        assert local.read_collection(CollectionKey.RECORDS) == content["records"]
        # Fehlende Sammlung in der Cloud → leer
        assert local.read_collection(CollectionKey.PERIODS) == []
        ((method, url, kwargs),) = http.calls
        assert method == "GET"
        assert kwargs["params"] == {"select": "content", "user_id": "eq.user-1"}

    def test_no_remote_data_keeps_local(self):
        """Erster Abruf eines neuen Nutzers: kein Fehler, lokal unverändert."""
        local = _filled_store()
        before = local.read_collection(CollectionKey.STUDENTS)
        sync = _sync(local, FakeHttp(FakeResponse(200, [])))
        result = sync.pull()
        assert result.ok is True
        assert result.no_data is True
        assert local.read_collection(CollectionKey.STUDENTS) == before
        assert sync.status is SyncStatus.IDLE

    def test_fetch_error_keeps_local(self):
        local = _filled_store()
        before = local.read_collection(CollectionKey.STUDENTS)
        sync = _sync(local, FakeHttp(FakeResponse(401, {"message": "JWT expired"})))
        result = sync.pull()
        assert result.ok is False
        assert sync.status is SyncStatus.ERROR
        assert local.read_collection(CollectionKey.STUDENTS) == before

    def test_invalid_remote_content(self):
        bad = {"classes": [{"id": "c1"}], "students": []}
        local = _filled_store()
        before = local.read_collection(CollectionKey.CLASSES)
        sync = _sync(local, FakeHttp(FakeResponse(200, [{"content": bad}])))
        assert sync.pull().ok is False
        assert local.read_collection(CollectionKey.CLASSES) == before


# ─── HINTERGRUND ──────────────────────────────────────────────────────────────

class TestBackgroundPush:
    def test_push_after_each_change(self):
        http = FakeHttp(FakeResponse(201))
        store = MemoryStore()
        repo = HomeworkRepository(store)
        pusher = BackgroundPusher(_sync(store, http))
        repo.add_listener(pusher)

        c = repo.add_class("3B")
        repo.add_student("Alice", c.id)
        pusher.wait(timeout=5)

        assert len(http.calls) == 2
        # Reihenfolge der Threads offen: mindestens ein Upload enthält Alice
        assert any(len(call[2]["json"]["content"]["students"]) == 1
                   for call in http.calls)

    def test_disabled_or_unconfigured_does_nothing(self):
        http = FakeHttp()
        store = MemoryStore()
        repo = HomeworkRepository(store)
        repo.add_listener(BackgroundPusher(_sync(store, http), enabled=False))
        repo.add_listener(BackgroundPusher(_sync(store, http, backend=BackendConfig())))
        repo.add_class("3B")
        assert http.calls == []


# ─── ANMELDUNG ────────────────────────────────────────────────────────────────

class TestAuth:
    def test_sign_in(self):
        payload = {"access_token": "a", "refresh_token": "r", "expires_in": 3600,
                   "user": {"id": "u-9", "email": "x@example.org"}}
        http = FakeHttp(FakeResponse(200, payload))
        session = SupabaseAuth(BACKEND, http=http).sign_in("x@example.org", "geheim")
        assert session.user_id == "u-9"
        assert not session.is_expired()
        ((_, url, kwargs),) = http.calls
        assert url == "https://projekt.supabase.co/auth/v1/token"
        assert kwargs["params"] == {"grant_type": "password"}

    def test_sign_in_rejected(self):
        http = FakeHttp(FakeResponse(400, {"error_description": "Invalid login credentials"}))
        with pytest.raises(AuthError, match="Invalid login"):
            SupabaseAuth(BACKEND, http=http).sign_in("x@example.org", "falsch")

    def test_get_user_unauthorized_is_none(self):
        http = FakeHttp(FakeResponse(401, {}))
        assert SupabaseAuth(BACKEND, http=http).get_user(SESSION) is None

    def test_session_store_roundtrip(self, tmp_path: Path):
        store = SessionStore(tmp_path / "session.json")
        assert store.load() is None
        store.save(SESSION)
        assert store.load() == SESSION
        store.clear()
        assert store.load() is None

    def test_provider_refreshes_expired_session(self, tmp_path: Path):
        store = SessionStore(tmp_path / "session.json")
        store.save(SESSION.model_copy(update={"expires_at": time.time() - 10}))
        payload = {"access_token": "neu", "refresh_token": "r2", "expires_in": 3600,
                   "user": {"id": "user-1"}}
        http = FakeHttp(FakeResponse(200, payload))
        session = SessionProvider(store, SupabaseAuth(BACKEND, http=http))()
        assert session.access_token == "neu"
        assert store.load().access_token == "neu"
        assert http.calls[0][2]["params"] == {"grant_type": "refresh_token"}

    def test_provider_refresh_failure_is_none(self, tmp_path: Path):
        store = SessionStore(tmp_path / "session.json")
        store.save(SESSION.model_copy(update={"expires_at": time.time() - 10}))
        http = FakeHttp(FakeResponse(400, {"msg": "refresh token revoked"}))
        assert SessionProvider(store, SupabaseAuth(BACKEND, http=http))() is None

    def test_non_json_token_response_is_auth_error(self):
        """HTTP 200 mit HTML-Seite (z.B. Captive Portal) → AuthError statt ValueError."""
        http = FakeHttp(FakeResponse(200, None, text="<html>Anmeldung WLAN</html>"))
        with pytest.raises(AuthError, match="kein JSON"):
            SupabaseAuth(BACKEND, http=http).sign_in("x@example.org", "geheim")

    def test_json_list_token_response_is_auth_error(self):
        http = FakeHttp(FakeResponse(200, ["kein", "objekt"]))
        with pytest.raises(AuthError, match="kein JSON-Objekt"):
            SupabaseAuth(BACKEND, http=http).refresh(SESSION)

    def test_get_user_malformed_is_auth_error(self):
        for response in (FakeResponse(200, None, text="<html/>"), FakeResponse(200, [1])):
            with pytest.raises(AuthError):
                SupabaseAuth(BACKEND, http=FakeHttp(response)).get_user(SESSION)

    def test_get_user_returns_id(self):
        http = FakeHttp(FakeResponse(200, {"id": "user-1", "email": "lehrer@example.org"}))
        assert SupabaseAuth(BACKEND, http=http).get_user(SESSION) == "user-1"
        assert http.calls[0][2]["headers"]["Authorization"] == "Bearer tok"


# ─── FEHLER BEI DER SITZUNG ───────────────────────────────────────────────────

class TestSessionFailures:
    def test_push_with_unparsable_refresh_fails_cleanly(self, tmp_path: Path):
        """Abgelaufene Sitzung, Refresh liefert HTML → push() meldet Fehler, wirft nicht."""
        sessions = SessionStore(tmp_path / "session.json")
        sessions.save(SESSION.model_copy(update={"expires_at": time.time() - 10}))
        http = FakeHttp(FakeResponse(200, None, text="<html>Proxy</html>"))
        sync = CloudSync(_filled_store(), BACKEND,
                         SessionProvider(sessions, SupabaseAuth(BACKEND, http=http)),
                         http=http)
        result = sync.push()
        assert result.ok is False
        assert result.error == NOT_AUTHENTICATED
        # Nur der Refresh-Versuch, kein Upload
        assert [url for _, url, _ in http.calls] == \
            ["https://projekt.supabase.co/auth/v1/token"]

    def test_pull_with_unparsable_refresh_keeps_local(self, tmp_path: Path):
        sessions = SessionStore(tmp_path / "session.json")
        sessions.save(SESSION.model_copy(update={"expires_at": time.time() - 10}))
        http = FakeHttp(FakeResponse(200, ["liste"]))
        store = _filled_store()
        sync = CloudSync(store, BACKEND,
                         SessionProvider(sessions, SupabaseAuth(BACKEND, http=http)),
                         http=http)
        result = sync.pull()
        assert result.ok is False
        assert len(store.read_collection(CollectionKey.CLASSES)) == 1

    @pytest.mark.parametrize("error", [
        AuthError("kaputt"), OSError("Platte"), ValueError("kein JSON"),
        requests.ConnectionError("weg"),
    ])
    def test_failing_session_source_becomes_result(self, error):
        """Jeder Fehler der Sitzungsquelle wird zum Fehlerergebnis + Status ERROR."""
        def source():
            raise error

        http = FakeHttp()
        sync = CloudSync(_filled_store(), BACKEND, source, http=http)
        result = sync.push()
        assert result.ok is False
        assert "Sitzung nicht verfügbar" in result.error
        assert sync.status is SyncStatus.ERROR
        assert http.calls == []
        assert sync.pull().ok is False

    def test_background_push_with_broken_source_does_not_raise(self):
        def source():
            raise ValueError("kein JSON")

        store = MemoryStore()
        repo = HomeworkRepository(store)
        sync = CloudSync(store, BACKEND, source, http=FakeHttp())
        pusher = BackgroundPusher(sync)
        repo.add_listener(pusher)
        repo.add_class("3B")
        pusher.wait(timeout=5)
        assert sync.status is SyncStatus.ERROR


# ─── AUSSTEHENDER UPLOAD ──────────────────────────────────────────────────────

class TestPendingUpload:
    def test_change_marks_pending(self):
        store = MemoryStore()
        sync = _sync(store, FakeHttp())
        assert sync.pending is False
        HomeworkRepository(store).add_class("3B")
        assert sync.pending is True

    def test_successful_push_clears_pending(self):
        store = _filled_store()
        sync = _sync(store, FakeHttp(FakeResponse(201)))
        assert sync.push().ok
        assert sync.pending is False
        assert sync.last_error is None

    def test_failed_push_keeps_pending_and_error(self):
        """Fehler überdauert den Lauf: neue CloudSync-Instanz sieht ihn noch."""
        store = _filled_store()
        _sync(store, FakeHttp(error=requests.ConnectionError("offline"))).push()
        later = _sync(store, FakeHttp())
        assert later.pending is True
        assert later.status is SyncStatus.IDLE
        assert "offline" in later.last_error

    def test_change_after_push_started_stays_pending(self):
        """Upload liest Revision n; eine Änderung danach bleibt ausstehend."""
        store = _filled_store()
        repo = HomeworkRepository(store)

        class ChangingHttp(FakeHttp):
            def post(self, url, **kwargs):
                repo.add_class("4A")
                return super().post(url, **kwargs)

        sync = _sync(store, ChangingHttp(FakeResponse(201)))
        assert sync.push().ok
        assert sync.pending is True

    def test_pull_clears_pending(self):
        store = _filled_store()
        http = FakeHttp(FakeResponse(200, [{"content": {"classes": []}}]))
        sync = _sync(store, http)
        assert sync.pull().ok
        assert sync.pending is False

    def test_sync_on_start_pushes_instead_of_pulling(self):
        """Ausstehende Änderung: beim Start nur Upload, kein Abruf."""
        store = _filled_store()
        http = FakeHttp(FakeResponse(201))
        sync = _sync(store, http)
        assert sync.sync_on_start().ok
        assert [method for method, _, _ in http.calls] == ["POST"]
        assert sync.pending is False

    def test_sync_on_start_failed_push_keeps_local(self):
        store = _filled_store()
        http = FakeHttp(error=requests.ConnectionError("offline"))
        result = _sync(store, http).sync_on_start()
        assert result.ok is False
        assert [method for method, _, _ in http.calls] == ["POST"]
        assert store.read_collection(CollectionKey.CLASSES)[0]["name"] == "3B"

    def test_sync_on_start_pulls_without_pending(self):
        store = MemoryStore()
        http = FakeHttp(FakeResponse(200, [{"content": {"classes": [
            {"id": "c1", "name": "5C"}]}}]))
        assert _sync(store, http).sync_on_start().ok
        assert [method for method, _, _ in http.calls] == ["GET"]
        assert store.read_collection(CollectionKey.CLASSES)[0]["name"] == "5C"
