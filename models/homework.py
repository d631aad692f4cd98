"""Datenmodelle für Hausaufgaben-Kontrollen und Einzelergebnisse (Pydantic v2)."""

import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class HomeworkStatus(str, Enum):
    """Status einer Hausaufgabe bei einer Kontrolle.

    Die Werte sind das Speicherformat und bleiben unverändert
    (kompatibel zu bestehenden Sicherungen und Cloud-Daten).
    """
    FAIT = "FAIT"              # erledigt
    NON_FAIT = "NON_FAIT"      # nicht erledigt
    INCOMPLET = "INCOMPLET"    # unvollständig
    ABSENT = "ABSENT"          # abwesend, zählt nicht in die Bewertung


class HomeworkSession(BaseModel):
    """Eine datierte Hausaufgaben-Kontrolle für eine Klasse."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    class_id: str = Field(alias="classId")
    # Datum der Kontrolle; serialisiert als "YYYY-MM-DD"
    date: datetime.date
    description: str = ""


class HomeworkRecord(BaseModel):
    """Ergebnis eines Schülers bei einer Kontrolle.

    Records werden nur gesammelt pro Kontrolle angelegt und nie einzeln
    bearbeitet, sondern per ID ersetzt (siehe accessors.upsert_records).
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    session_id: str = Field(alias="sessionId")
    student_id: str = Field(alias="studentId")
    status: HomeworkStatus
