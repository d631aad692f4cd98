"""DataSnapshot: Vollständiger Datenbestand aller fünf Sammlungen (Pydantic v2).

Einheitliches Format für Export-Datei, Import und Cloud-Inhalt.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel

from models.class_group import ClassGroup
from models.homework import HomeworkRecord, HomeworkSession
from models.period import SchoolPeriod
from models.student import Student

# Reihenfolge = Reihenfolge im Export-Dokument
COLLECTION_NAMES = ("classes", "students", "sessions", "records", "periods")


class DataSnapshot(BaseModel):
    """Alle Sammlungen als ein zusammenhängender Stand."""

    classes: list[ClassGroup] = []
    students: list[Student] = []
    sessions: list[HomeworkSession] = []
    records: list[HomeworkRecord] = []
    periods: list[SchoolPeriod] = []

    # ─── Übersicht ───

    def summary(self) -> str:
        """Kurze Übersicht über den Datenbestand."""
        lines = [
            f"Klassen: {len(self.classes)}",
            f"Schüler: {len(self.students)}",
            f"Kontrollen: {len(self.sessions)}",
            f"Einträge: {len(self.records)}",
            f"Zeiträume: {len(self.periods)}",
        ]
        return "\n".join(lines)

    def is_empty(self) -> bool:
        return not any(getattr(self, name) for name in COLLECTION_NAMES)

    # ─── Serialisierung ────────────────────────────────────────────────────

    def collection_dicts(self, name: str) -> list[dict[str, Any]]:
        """Eine Sammlung im Speicherformat (camelCase-Felder, ISO-Daten)."""
        return [
            item.model_dump(mode="json", by_alias=True)
            for item in getattr(self, name)
        ]

    def to_document(self) -> dict[str, Any]:
        """Alle Sammlungen als JSON-fähiges Dictionary."""
        return {name: self.collection_dicts(name) for name in COLLECTION_NAMES}

    def to_export_document(self, version: int,
                           timestamp: Optional[datetime] = None) -> dict[str, Any]:
        """Format der Sicherungsdatei: Sammlungen + timestamp + version."""
        doc = self.to_document()
        doc["timestamp"] = _iso(timestamp)
        doc["version"] = version
        return doc

    def to_cloud_content(self, last_updated: Optional[datetime] = None) -> dict[str, Any]:
        """Format des Cloud-Inhalts: Sammlungen + last_updated."""
        doc = self.to_document()
        doc["last_updated"] = _iso(last_updated)
        return doc


def _iso(moment: Optional[datetime]) -> str:
    moment = moment or datetime.now(timezone.utc)
    return moment.isoformat().replace("+00:00", "Z")
