"""Sicherung und Wiederherstellung des kompletten Datenbestands (JSON-Datei).

Unabhängig von der Cloud-Synchronisation. Der Import ist alles-oder-nichts:
erst wird das ganze Dokument geprüft, dann wird geschrieben.
"""

import json
import logging
from datetime import date
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from config.defaults import EXPORT_VERSION
from data.local_store import CollectionKey, LocalStore
from models.snapshot import DataSnapshot

logger = logging.getLogger(__name__)

_MANDATORY = ("classes", "students")


def read_snapshot(store: LocalStore) -> DataSnapshot:
    """Liest alle fünf Sammlungen ohne Nebenwirkungen (keine Default-Zeiträume)."""
    return DataSnapshot.model_validate(
        {key.value: store.read_collection(key) for key in CollectionKey}
    )


def write_snapshot(store: LocalStore, snapshot: DataSnapshot,
                   include_periods: bool = True) -> None:
    """Überschreibt die Sammlungen mit dem Stand des Snapshots."""
    for key in CollectionKey:
        if key is CollectionKey.PERIODS and not include_periods:
            continue
        store.write_collection(key, snapshot.collection_dicts(key.value))


def export_all(store: LocalStore) -> str:
    """Alle Sammlungen + timestamp + version als formatiertes JSON."""
    doc = read_snapshot(store).to_export_document(EXPORT_VERSION)
    return json.dumps(doc, ensure_ascii=False, indent=2)


def parse_export(text: str) -> tuple[DataSnapshot, bool]:
    """Prüft ein Sicherungsdokument vollständig.

    Gibt den Snapshot und ob Zeiträume enthalten waren zurück.
    Wirft ValueError bei jedem Form- oder Inhaltsfehler.
    """
    try:
        doc = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Kein gültiges JSON: {e}") from e
    if not isinstance(doc, dict):
        raise ValueError("Sicherungsdatei muss ein JSON-Objekt sein.")
    for name in _MANDATORY:
        if not isinstance(doc.get(name), list):
            raise ValueError(f"Ungültiges Format: '{name}' fehlt oder ist keine Liste.")

    has_periods = doc.get("periods") is not None
    payload = {
        "classes": doc["classes"],
        "students": doc["students"],
        "sessions": doc.get("sessions") or [],
        "records": doc.get("records") or [],
        "periods": doc.get("periods") or [],
    }
    try:
        snapshot = DataSnapshot.model_validate(payload)
    except ValidationError as e:
        raise ValueError(f"Ungültige Einträge: {e}") from e
    return snapshot, has_periods


def import_all(store: LocalStore, text: str) -> bool:
    """Stellt eine Sicherung wieder her. False bei jedem Fehler, dann ohne Änderung."""
    try:
        snapshot, has_periods = parse_export(text)
    except ValueError as e:
        logger.error("Import fehlgeschlagen: %s", e)
        return False
    write_snapshot(store, snapshot, include_periods=has_periods)
    logger.info("Import abgeschlossen:\n%s", snapshot.summary())
    return True


def clear_all(store: LocalStore) -> None:
    """Entfernt alle fünf Sammlungen. Rückfrage ist Sache des Aufrufers."""
    for key in CollectionKey:
        store.remove_collection(key)
    logger.info("Alle lokalen Daten gelöscht")


# ─── Dateien ──────────────────────────────────────────────────────────────────

def backup_filename(today: Optional[date] = None) -> str:
    """Dateiname der Sicherung, z.B. hausaufgaben_backup_2024-01-10.json."""
    today = today or date.today()
    return f"hausaufgaben_backup_{today.isoformat()}.json"


def write_backup(store: LocalStore, directory: Path,
                 today: Optional[date] = None) -> Path:
    """Schreibt die Sicherung ins Verzeichnis und gibt den Pfad zurück."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / backup_filename(today)
    with open(path, "w", encoding="utf-8") as f:
        f.write(export_all(store))
    return path


def import_file(store: LocalStore, path: Path) -> bool:
    """Liest eine Sicherungsdatei und importiert sie (False bei Fehler)."""
    try:
        with open(path, "r", encoding="utf-8-sig") as f:
            text = f.read()
    except (OSError, UnicodeDecodeError) as e:
        logger.error("Sicherungsdatei nicht lesbar: %s", e)
        return False
    return import_all(store, text)
