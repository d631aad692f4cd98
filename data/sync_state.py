"""Upload-Merker: gibt es lokale Änderungen, die noch nicht in der Cloud sind?

Jede Änderung erhöht revision, ein erfolgreicher Upload setzt pushed_revision
auf die Revision, die er gelesen hat. Der Merker liegt im Datenordner und
überlebt damit das Programmende (ebenso der letzte Sync-Fehler).
"""

import logging
import threading
from typing import Optional

from pydantic import BaseModel, ValidationError

from data.local_store import LocalStore

logger = logging.getLogger(__name__)

META_NAME = "sync_state"

# Lesen-Ändern-Schreiben aus Hauptthread und Upload-Threads
_lock = threading.Lock()


class SyncState(BaseModel):
    revision: int = 0
    pushed_revision: int = 0
    last_error: Optional[str] = None

    @property
    def pending(self) -> bool:
        """True, solange eine Änderung nicht hochgeladen wurde."""
        return self.revision > self.pushed_revision


def load_state(store: LocalStore) -> SyncState:
    try:
        return SyncState.model_validate(store.read_meta(META_NAME))
    except ValidationError as e:
        logger.warning("Upload-Merker ungültig, wird zurückgesetzt: %s", e)
        return SyncState()


def _save(store: LocalStore, state: SyncState) -> SyncState:
    store.write_meta(META_NAME, state.model_dump())
    return state


def mark_changed(store: LocalStore) -> SyncState:
    """Lokale Änderung: Upload steht aus."""
    with _lock:
        state = load_state(store)
        state.revision += 1
        return _save(store, state)


def mark_pushed(store: LocalStore, revision: int) -> SyncState:
    """Upload von Stand <revision> erfolgreich (spätere Änderungen bleiben offen)."""
    with _lock:
        state = load_state(store)
        state.pushed_revision = max(state.pushed_revision, revision)
        state.last_error = None
        return _save(store, state)


def mark_pulled(store: LocalStore) -> SyncState:
    """Lokaler Stand entspricht jetzt der Cloud-Kopie."""
    with _lock:
        state = load_state(store)
        state.pushed_revision = state.revision
        state.last_error = None
        return _save(store, state)


def mark_failed(store: LocalStore, message: str) -> SyncState:
    with _lock:
        state = load_state(store)
        state.last_error = message
        return _save(store, state)
