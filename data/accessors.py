"""Reine Funktionen auf den Sammlungen (Listen von Modellen).

Keine Funktion hier liest oder schreibt den Speicher; das übernimmt
data.repository.HomeworkRepository. Eingabelisten werden nie verändert,
es wird immer eine neue Liste zurückgegeben.
"""

import random
import string
import unicodedata
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Mapping, Optional

from models.class_group import ClassGroup
from models.homework import HomeworkRecord, HomeworkSession, HomeworkStatus
from models.period import SchoolPeriod
from models.snapshot import DataSnapshot
from models.student import Student

_ID_ALPHABET = string.ascii_lowercase + string.digits
_ID_LENGTH = 9


def generate_id(rng: Optional[random.Random] = None) -> str:
    """Lokal eindeutige ID aus 9 Base-36-Zeichen (Kollisionen vernachlässigbar)."""
    rng = rng or random
    return "".join(rng.choices(_ID_ALPHABET, k=_ID_LENGTH))


# ─── Sortierung ───────────────────────────────────────────────────────────────

def name_sort_key(name: str) -> tuple[str, str]:
    """Sortierschlüssel für Namenslisten (Appell-Reihenfolge).

    Groß-/Kleinschreibung und Akzente werden ignoriert ("Élodie" steht bei
    "Elodie", "alice" vor "Bob"). Der Originalname entscheidet nur bei
    Gleichstand, damit die Reihenfolge stabil und eindeutig ist.
    """
    decomposed = unicodedata.normalize("NFKD", name)
    base = "".join(c for c in decomposed if not unicodedata.combining(c))
    return base.casefold().strip(), name


def sort_students(students: Iterable[Student],
                  class_id: Optional[str] = None) -> list[Student]:
    """Schüler (optional einer Klasse) alphabetisch nach Namen."""
    result = [s for s in students if class_id is None or s.class_id == class_id]
    return sorted(result, key=lambda s: name_sort_key(s.name))


def sort_sessions(sessions: Iterable[HomeworkSession],
                  class_id: Optional[str] = None) -> list[HomeworkSession]:
    """Kontrollen (optional einer Klasse), neueste zuerst."""
    result = [s for s in sessions if class_id is None or s.class_id == class_id]
    return sorted(result, key=lambda s: s.date, reverse=True)


# ─── Anlegen ──────────────────────────────────────────────────────────────────

def add_class(classes: list[ClassGroup], name: str) -> tuple[list[ClassGroup], ClassGroup]:
    new_class = ClassGroup(id=generate_id(), name=name)
    return [*classes, new_class], new_class


def add_student(students: list[Student], name: str,
                class_id: str) -> tuple[list[Student], Student]:
    new_student = Student(id=generate_id(), name=name, class_id=class_id)
    return [*students, new_student], new_student


def create_session(sessions: list[HomeworkSession], class_id: str, day: date,
                   description: str) -> tuple[list[HomeworkSession], HomeworkSession]:
    new_session = HomeworkSession(
        id=generate_id(), class_id=class_id, date=day, description=description
    )
    return [*sessions, new_session], new_session


def build_session_records(
    session: HomeworkSession,
    students: Iterable[Student],
    statuses: Optional[Mapping[str, HomeworkStatus]] = None,
) -> list[HomeworkRecord]:
    """Genau ein Eintrag pro Schüler, der jetzt in der Klasse ist.

    Fehlt ein Status, gilt FAIT (Standard beim Durchgehen der Liste).
    Später hinzugefügte Schüler bekommen nachträglich keine Einträge.
    """
    statuses = statuses or {}
    return [
        HomeworkRecord(
            id=generate_id(),
            session_id=session.id,
            student_id=student.id,
            status=statuses.get(student.id, HomeworkStatus.FAIT),
        )
        for student in students
        if student.class_id == session.class_id
    ]


def upsert_records(records: list[HomeworkRecord],
                   incoming: Iterable[HomeworkRecord]) -> list[HomeworkRecord]:
    """Ersetzt Einträge mit gleicher ID, hängt neue an, lässt den Rest unverändert."""
    incoming = list(incoming)
    incoming_ids = {r.id for r in incoming}
    kept = [r for r in records if r.id not in incoming_ids]
    return [*kept, *incoming]


# ─── Kaskadierendes Löschen ───────────────────────────────────────────────────

@dataclass
class CascadePlan:
    """Alle IDs, die bei einer Löschung entfernt werden.

    Wird vollständig berechnet, bevor irgendeine Sammlung geschrieben wird.
    """

    class_ids: set[str] = field(default_factory=set)
    student_ids: set[str] = field(default_factory=set)
    session_ids: set[str] = field(default_factory=set)
    record_ids: set[str] = field(default_factory=set)

    def is_empty(self) -> bool:
        return not (self.class_ids or self.student_ids
                    or self.session_ids or self.record_ids)

    def summary(self) -> str:
        return (
            f"{len(self.class_ids)} Klasse(n), {len(self.student_ids)} Schüler, "
            f"{len(self.session_ids)} Kontrolle(n), {len(self.record_ids)} Einträge"
        )


def _dependent_records(records: Iterable[HomeworkRecord], session_ids: set[str],
                       student_ids: set[str]) -> set[str]:
    return {
        r.id for r in records
        if r.session_id in session_ids or r.student_id in student_ids
    }


def plan_delete_class(snapshot: DataSnapshot, class_id: str) -> CascadePlan:
    """Klasse → Schüler, Kontrollen → Einträge."""
    if not any(c.id == class_id for c in snapshot.classes):
        return CascadePlan()
    student_ids = {s.id for s in snapshot.students if s.class_id == class_id}
    session_ids = {s.id for s in snapshot.sessions if s.class_id == class_id}
    return CascadePlan(
        class_ids={class_id},
        student_ids=student_ids,
        session_ids=session_ids,
        record_ids=_dependent_records(snapshot.records, session_ids, student_ids),
    )


def plan_delete_student(snapshot: DataSnapshot, student_id: str) -> CascadePlan:
    """Schüler → seine Einträge."""
    if not any(s.id == student_id for s in snapshot.students):
        return CascadePlan()
    return CascadePlan(
        student_ids={student_id},
        record_ids=_dependent_records(snapshot.records, set(), {student_id}),
    )


def plan_delete_session(snapshot: DataSnapshot, session_id: str) -> CascadePlan:
    """Kontrolle → ihre Einträge."""
    if not any(s.id == session_id for s in snapshot.sessions):
        return CascadePlan()
    return CascadePlan(
        session_ids={session_id},
        record_ids=_dependent_records(snapshot.records, {session_id}, set()),
    )


def apply_plan(snapshot: DataSnapshot, plan: CascadePlan) -> DataSnapshot:
    """Filtert jede betroffene Sammlung genau einmal."""
    return snapshot.model_copy(update={
        "classes": [c for c in snapshot.classes if c.id not in plan.class_ids],
        "students": [s for s in snapshot.students if s.id not in plan.student_ids],
        "sessions": [s for s in snapshot.sessions if s.id not in plan.session_ids],
        "records": [r for r in snapshot.records if r.id not in plan.record_ids],
    })


# ─── Zeiträume ────────────────────────────────────────────────────────────────

def filter_sessions_by_period(sessions: Iterable[HomeworkSession],
                              period: Optional[SchoolPeriod]) -> list[HomeworkSession]:
    """Kontrollen innerhalb des Zeitraums (Grenzen eingeschlossen); None = alle."""
    if period is None:
        return list(sessions)
    return [s for s in sessions if period.contains(s.date)]
