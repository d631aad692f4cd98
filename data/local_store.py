"""Lokaler Speicher: fünf Sammlungen als JSON-Arrays unter festen Schlüsseln.

Keine Abfragen außer "alles lesen" – gefiltert wird im aufrufenden Code.
Schreibfehler (Platte voll, nicht serialisierbar) werden nicht abgefangen.
"""

import json
import logging
import os
import tempfile
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

from config.defaults import STORAGE_PREFIX

logger = logging.getLogger(__name__)


class CollectionKey(str, Enum):
    CLASSES = "classes"
    STUDENTS = "students"
    SESSIONS = "sessions"
    RECORDS = "records"
    PERIODS = "periods"

    @property
    def storage_name(self) -> str:
        """Speicherschlüssel, z.B. "cda_classes"."""
        return f"{STORAGE_PREFIX}{self.value}"


class StoreCorruptError(Exception):
    """Eine gespeicherte Sammlung ist kein gültiges JSON-Array."""


class LocalStore(Protocol):
    def read_collection(self, key: CollectionKey) -> list[dict[str, Any]]: ...

    def write_collection(self, key: CollectionKey,
                         items: list[dict[str, Any]]) -> None: ...

    def remove_collection(self, key: CollectionKey) -> None: ...

    def has_collection(self, key: CollectionKey) -> bool: ...

    def read_meta(self, name: str) -> dict[str, Any]: ...

    def write_meta(self, name: str, data: dict[str, Any]) -> None: ...


def _decode(raw: str, source: str) -> list[dict[str, Any]]:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise StoreCorruptError(f"Sammlung '{source}' ist beschädigt: {e}") from e
    if not isinstance(data, list):
        raise StoreCorruptError(
            f"Sammlung '{source}' enthält {type(data).__name__} statt einer Liste."
        )
    return data


class JsonFileStore:
    """Dateibasierter Speicher: <data_dir>/cda_<key>.json.

    Schreiben erfolgt über eine temporäre Datei + os.replace, ein Leser sieht
    also immer entweder den alten oder den neuen vollständigen Stand.
    """

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    def path_for(self, key: CollectionKey) -> Path:
        return self.data_dir / f"{CollectionKey(key).storage_name}.json"

    def has_collection(self, key: CollectionKey) -> bool:
        return self.path_for(key).exists()

    def read_collection(self, key: CollectionKey) -> list[dict[str, Any]]:
        path = self.path_for(key)
        if not path.exists():
            return []
        with open(path, "r", encoding="utf-8") as f:
            return _decode(f.read(), str(path))

    def write_collection(self, key: CollectionKey,
                         items: list[dict[str, Any]]) -> None:
        path = self.path_for(key)
        # Serialisieren vor dem Öffnen: ein TypeError hinterlässt keine Datei
        payload = json.dumps(items, ensure_ascii=False, indent=1)
        _replace_file(path, payload)
        logger.debug("%s geschrieben (%d Einträge)", path.name, len(items))

    def remove_collection(self, key: CollectionKey) -> None:
        self.path_for(key).unlink(missing_ok=True)

    # ─── Verwaltungsdaten (kein Teil der Sicherung) ───

    def meta_path(self, name: str) -> Path:
        return self.data_dir / f"{STORAGE_PREFIX}meta_{name}.json"

    def read_meta(self, name: str) -> dict[str, Any]:
        path = self.meta_path(name)
        if not path.exists():
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            logger.warning("%s unlesbar, wird ignoriert: %s", path.name, e)
            return {}
        return data if isinstance(data, dict) else {}

    def write_meta(self, name: str, data: dict[str, Any]) -> None:
        _replace_file(self.meta_path(name), json.dumps(data, ensure_ascii=False, indent=1))


def _replace_file(path: Path, payload: str) -> None:
    """Schreibt payload über eine temporäre Datei + os.replace."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.stem}.", suffix=".tmp", dir=path.parent
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class MemoryStore:
    """Speicher im Arbeitsspeicher, hält JSON-Text wie der Dateispeicher."""

    def __init__(self):
        self._data: dict[str, str] = {}
        self._meta: dict[str, str] = {}

    def has_collection(self, key: CollectionKey) -> bool:
        return CollectionKey(key).storage_name in self._data

    def read_collection(self, key: CollectionKey) -> list[dict[str, Any]]:
        name = CollectionKey(key).storage_name
        raw = self._data.get(name)
        if raw is None:
            return []
        return _decode(raw, name)

    def write_collection(self, key: CollectionKey,
                         items: list[dict[str, Any]]) -> None:
        self._data[CollectionKey(key).storage_name] = json.dumps(items, ensure_ascii=False)

    def remove_collection(self, key: CollectionKey) -> None:
        self._data.pop(CollectionKey(key).storage_name, None)

    def read_meta(self, name: str) -> dict[str, Any]:
        raw = self._meta.get(name)
        return json.loads(raw) if raw is not None else {}

    def write_meta(self, name: str, data: dict[str, Any]) -> None:
        self._meta[name] = json.dumps(data, ensure_ascii=False)
