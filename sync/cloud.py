"""Cloud-Synchronisation: kompletter Datenbestand als eine Zeile pro Nutzer.

push() lädt alle fünf Sammlungen hoch und überschreibt die Cloud-Kopie,
pull() lädt sie herunter und überschreibt den lokalen Stand. Es gibt keinen
Abgleich: wer zuletzt schreibt, gewinnt.

Fehler werden hier abgefangen und in SyncResult + SyncStatus übersetzt,
nie weitergeworfen.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import requests
from pydantic import ValidationError

from config.schema import BackendConfig
from data import sync_state
from data.local_store import LocalStore, StoreCorruptError
from data.transfer import read_snapshot, write_snapshot
from models.snapshot import COLLECTION_NAMES, DataSnapshot
from sync.auth import AuthError, AuthSession

logger = logging.getLogger(__name__)

NOT_CONFIGURED = "Cloud-Sync nicht konfiguriert"
NOT_AUTHENTICATED = "Nicht angemeldet"
NO_DATA = "Keine Cloud-Daten gefunden"


class SyncStatus(str, Enum):
    IDLE = "idle"
    SYNCING = "syncing"
    ERROR = "error"


@dataclass
class SyncResult:
    """Ergebnis eines Sync-Versuchs.

    no_data=True: Abruf erfolgreich, aber für diesen Nutzer liegt noch nichts
    in der Cloud (kein Fehler, lokaler Stand bleibt).
    """

    ok: bool
    error: Optional[str] = None
    no_data: bool = False

    @classmethod
    def success(cls, no_data: bool = False) -> "SyncResult":
        return cls(ok=True, no_data=no_data)

    @classmethod
    def failure(cls, error: str) -> "SyncResult":
        return cls(ok=False, error=error)

    @property
    def message(self) -> str:
        if self.no_data:
            return NO_DATA
        return self.error or "OK"


StatusListener = Callable[[SyncStatus], None]
SessionSource = Callable[[], Optional[AuthSession]]


class CloudSync:
    """Push/Pull zwischen lokalem Speicher und der Tabelle <backend.table>."""

    def __init__(
        self,
        store: LocalStore,
        backend: BackendConfig,
        session_source: SessionSource,
        http: Optional[requests.Session] = None,
    ):
        self.store = store
        self.backend = backend
        self.session_source = session_source
        self.http = http or requests.Session()
        self._status = SyncStatus.IDLE
        self._last_error: Optional[str] = None
        self._status_lock = threading.Lock()
        self._listeners: list[StatusListener] = []

    # ─── Status-Kanal ───

    @property
    def status(self) -> SyncStatus:
        return self._status

    @property
    def last_error(self) -> Optional[str]:
        """Letzter Fehler dieses Laufs, sonst der zuletzt gespeicherte."""
        return self._last_error or sync_state.load_state(self.store).last_error

    @property
    def pending(self) -> bool:
        """Lokale Änderungen, die noch nicht hochgeladen wurden."""
        return sync_state.load_state(self.store).pending

    @property
    def is_configured(self) -> bool:
        return self.backend.is_configured

    def add_listener(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    def _set_status(self, status: SyncStatus, error: Optional[str] = None) -> None:
        with self._status_lock:
            self._status = status
            if status is not SyncStatus.SYNCING:
                self._last_error = error
        for listener in self._listeners:
            listener(status)

    # ─── Vorbedingungen ───

    def _session(self) -> tuple[Optional[AuthSession], Optional[SyncResult]]:
        """Sitzung oder fertiges Fehlerergebnis (ohne Zugriff auf die Tabelle)."""
        if not self.backend.is_configured:
            return None, SyncResult.failure(NOT_CONFIGURED)
        try:
            session = self.session_source()
        except (AuthError, requests.RequestException, OSError, ValueError) as e:
            return None, self._fail(f"Sitzung nicht verfügbar: {e}")
        if session is None:
            return None, SyncResult.failure(NOT_AUTHENTICATED)
        return session, None

    def _headers(self, session: AuthSession) -> dict[str, str]:
        return {
            "apikey": self.backend.anon_key or "",
            "Authorization": f"Bearer {session.access_token}",
            "Content-Type": "application/json",
        }

    def _table_url(self) -> str:
        return f"{self.backend.base_url}/rest/v1/{self.backend.table}"

    # ─── Push ───

    def push(self) -> SyncResult:
        """Lädt den kompletten lokalen Stand hoch (überschreibt die Cloud-Kopie)."""
        session, guard = self._session()
        if guard is not None:
            logger.debug("Push übersprungen: %s", guard.error)
            return guard

        self._set_status(SyncStatus.SYNCING)
        revision = sync_state.load_state(self.store).revision
        try:
            content = read_snapshot(self.store).to_cloud_content()
            headers = self._headers(session)
            headers["Prefer"] = "resolution=merge-duplicates,return=minimal"
            response = self.http.post(
                self._table_url(),
                params={"on_conflict": "user_id"},
                json={"user_id": session.user_id, "content": content},
                headers=headers,
                timeout=self.backend.timeout_seconds,
            )
            if response.status_code >= 400:
                return self._fail(f"Upload fehlgeschlagen: HTTP {response.status_code} "
                                  f"{response.text[:200]}")
        except (requests.RequestException, StoreCorruptError, ValueError) as e:
            return self._fail(f"Upload fehlgeschlagen: {e}")

        self._remember(sync_state.mark_pushed, revision)
        self._set_status(SyncStatus.IDLE)
        logger.info("Cloud-Kopie aktualisiert (Nutzer %s)", session.user_id)
        return SyncResult.success()

    # ─── Pull ───

    def pull(self) -> SyncResult:
        """Lädt die Cloud-Kopie und überschreibt alle lokalen Sammlungen.

        Existiert noch keine Cloud-Kopie, bleibt der lokale Stand unverändert
        und das Ergebnis ist ok mit no_data=True.
        """
        session, guard = self._session()
        if guard is not None:
            logger.debug("Pull übersprungen: %s", guard.error)
            return guard

        self._set_status(SyncStatus.SYNCING)
        try:
            response = self.http.get(
                self._table_url(),
                params={"select": "content", "user_id": f"eq.{session.user_id}"},
                headers=self._headers(session),
                timeout=self.backend.timeout_seconds,
            )
            if response.status_code >= 400:
                return self._fail(f"Abruf fehlgeschlagen: HTTP {response.status_code} "
                                  f"{response.text[:200]}")
            rows = response.json()
        except (requests.RequestException, ValueError) as e:
            return self._fail(f"Abruf fehlgeschlagen: {e}")

        if not isinstance(rows, list):
            return self._fail("Abruf fehlgeschlagen: unerwartetes Antwortformat")
        content = rows[0].get("content") if rows and isinstance(rows[0], dict) else None
        if not content:
            self._set_status(SyncStatus.IDLE)
            logger.info("Noch keine Cloud-Daten für Nutzer %s", session.user_id)
            return SyncResult.success(no_data=True)

        try:
            snapshot = DataSnapshot.model_validate({
                name: content.get(name) or []
                for name in COLLECTION_NAMES
            })
        except (ValidationError, AttributeError) as e:
            return self._fail(f"Cloud-Daten ungültig: {e}")

        try:
            write_snapshot(self.store, snapshot)
        except OSError as e:
            return self._fail(f"Lokales Speichern fehlgeschlagen: {e}")
        self._remember(sync_state.mark_pulled)
        self._set_status(SyncStatus.IDLE)
        logger.info("Cloud-Stand geladen:\n%s", snapshot.summary())
        return SyncResult.success()

    # ─── Programmstart ───

    def sync_on_start(self) -> SyncResult:
        """Abgleich beim Start: offene Änderungen hochladen, sonst Cloud-Stand laden.

        Solange ein Upload aussteht, wird nie gepullt; schlägt der Upload
        fehl, bleibt der lokale Stand unverändert.
        """
        if self.pending:
            logger.info("Ausstehende Änderungen werden zuerst hochgeladen")
            return self.push()
        return self.pull()

    # ─── Hintergrund ───

    def push_in_background(self) -> threading.Thread:
        """Startet push() in einem eigenen Thread; Status über den Status-Kanal."""
        thread = threading.Thread(target=self.push, name="cloud-push", daemon=True)
        thread.start()
        return thread

    def _fail(self, message: str) -> SyncResult:
        logger.error(message)
        self._remember(sync_state.mark_failed, message)
        self._set_status(SyncStatus.ERROR, message)
        return SyncResult.failure(message)

    def _remember(self, mark, *args) -> None:
        try:
            mark(self.store, *args)
        except OSError as e:
            logger.warning("Upload-Merker nicht gespeichert: %s", e)


class BackgroundPusher:
    """Repository-Listener: nach jeder Änderung push() im Hintergrund."""

    def __init__(self, sync: CloudSync, enabled: bool = True):
        self.sync = sync
        self.enabled = enabled
        self._threads: list[threading.Thread] = []

    def __call__(self, action: str) -> None:
        if not self.enabled or not self.sync.is_configured:
            return
        logger.debug("Hintergrund-Push nach '%s'", action)
        self._threads.append(self.sync.push_in_background())

    def wait(self, timeout: Optional[float] = None) -> None:
        """Wartet auf alle gestarteten Uploads (vor Programmende)."""
        for thread in self._threads:
            thread.join(timeout)
        self._threads = [t for t in self._threads if t.is_alive()]
