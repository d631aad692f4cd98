"""HomeworkRepository: Zugriffsschicht über dem lokalen Speicher.

Jede Änderung liest die betroffene Sammlung komplett, wendet eine reine
Funktion aus data.accessors an und schreibt die Sammlung komplett zurück.
Registrierte Listener werden danach benachrichtigt (z.B. für den
Cloud-Upload im Hintergrund).
"""

import logging
from datetime import date
from pathlib import Path
from typing import Callable, Iterable, Mapping, Optional

from pydantic import BaseModel

from config.defaults import default_periods
from data import accessors, sync_state, transfer
from data.local_store import CollectionKey, LocalStore
from models.class_group import ClassGroup
from models.homework import HomeworkRecord, HomeworkSession, HomeworkStatus
from models.period import SchoolPeriod
from models.snapshot import DataSnapshot
from models.student import Student

logger = logging.getLogger(__name__)

ChangeListener = Callable[[str], None]

_MODELS: dict[CollectionKey, type[BaseModel]] = {
    CollectionKey.CLASSES: ClassGroup,
    CollectionKey.STUDENTS: Student,
    CollectionKey.SESSIONS: HomeworkSession,
    CollectionKey.RECORDS: HomeworkRecord,
    CollectionKey.PERIODS: SchoolPeriod,
}


class EntityNotFoundError(Exception):
    """Eine referenzierte Klasse/Kontrolle existiert nicht."""


class HomeworkRepository:
    """Anwendungszustand: besitzt den Speicher, kennt keine globalen Objekte."""

    def __init__(self, store: LocalStore):
        self.store = store
        self._listeners: list[ChangeListener] = []

    # ─── Listener ───

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def _changed(self, action: str) -> None:
        logger.debug("Änderung: %s", action)
        sync_state.mark_changed(self.store)
        for listener in self._listeners:
            listener(action)

    # ─── Lesen/Schreiben ganzer Sammlungen ───

    def _read(self, key: CollectionKey) -> list:
        model = _MODELS[key]
        return [model.model_validate(item) for item in self.store.read_collection(key)]

    def _write(self, key: CollectionKey, items: Iterable[BaseModel]) -> None:
        self.store.write_collection(
            key, [item.model_dump(mode="json", by_alias=True) for item in items]
        )

    def snapshot(self) -> DataSnapshot:
        """Alle fünf Sammlungen in Speicherreihenfolge (ungefiltert, unsortiert)."""
        return DataSnapshot(
            classes=self._read(CollectionKey.CLASSES),
            students=self._read(CollectionKey.STUDENTS),
            sessions=self._read(CollectionKey.SESSIONS),
            records=self._read(CollectionKey.RECORDS),
            periods=self._read(CollectionKey.PERIODS),
        )

    # ─── Klassen ───

    def get_classes(self) -> list[ClassGroup]:
        return self._read(CollectionKey.CLASSES)

    def get_class(self, class_id: str) -> ClassGroup:
        for c in self.get_classes():
            if c.id == class_id:
                return c
        raise EntityNotFoundError(f"Klasse '{class_id}' nicht gefunden.")

    def add_class(self, name: str) -> ClassGroup:
        classes, new_class = accessors.add_class(self.get_classes(), name.strip())
        self._write(CollectionKey.CLASSES, classes)
        self._changed("add_class")
        return new_class

    def rename_class(self, class_id: str, name: str) -> ClassGroup:
        classes = self.get_classes()
        if not any(c.id == class_id for c in classes):
            raise EntityNotFoundError(f"Klasse '{class_id}' nicht gefunden.")
        renamed = ClassGroup(id=class_id, name=name.strip())
        self._write(CollectionKey.CLASSES,
                    [renamed if c.id == class_id else c for c in classes])
        self._changed("rename_class")
        return renamed

    def delete_class(self, class_id: str) -> accessors.CascadePlan:
        """Löscht Klasse samt Schülern, Kontrollen und deren Einträgen."""
        snap = self.snapshot()
        plan = accessors.plan_delete_class(snap, class_id)
        self._apply(snap, plan, "delete_class")
        return plan

    # ─── Schüler ───

    def get_students(self, class_id: Optional[str] = None) -> list[Student]:
        """Schüler alphabetisch (akzent- und groß/klein-neutral)."""
        return accessors.sort_students(self._read(CollectionKey.STUDENTS), class_id)

    def add_student(self, name: str, class_id: str) -> Student:
        if not name.strip():
            raise ValueError("Schülername darf nicht leer sein.")
        return self.add_students([name], class_id)[0]

    def add_students(self, names: Iterable[str], class_id: str) -> list[Student]:
        """Legt mehrere Schüler mit einem einzigen Schreibvorgang an."""
        self.get_class(class_id)
        students = self._read(CollectionKey.STUDENTS)
        created = []
        for name in names:
            name = name.strip()
            if not name:
                continue
            students, student = accessors.add_student(students, name, class_id)
            created.append(student)
        if created:
            self._write(CollectionKey.STUDENTS, students)
            self._changed("add_students")
        return created

    def delete_student(self, student_id: str) -> accessors.CascadePlan:
        snap = self.snapshot()
        plan = accessors.plan_delete_student(snap, student_id)
        self._apply(snap, plan, "delete_student")
        return plan

    # ─── Kontrollen ───

    def get_sessions(self, class_id: Optional[str] = None) -> list[HomeworkSession]:
        """Kontrollen, neueste zuerst."""
        return accessors.sort_sessions(self._read(CollectionKey.SESSIONS), class_id)

    def get_session(self, session_id: str) -> HomeworkSession:
        for s in self._read(CollectionKey.SESSIONS):
            if s.id == session_id:
                return s
        raise EntityNotFoundError(f"Kontrolle '{session_id}' nicht gefunden.")

    def create_session(self, class_id: str, day: date,
                       description: str = "") -> HomeworkSession:
        self.get_class(class_id)
        sessions, session = accessors.create_session(
            self._read(CollectionKey.SESSIONS), class_id, day, description
        )
        self._write(CollectionKey.SESSIONS, sessions)
        self._changed("create_session")
        return session

    def record_session(
        self,
        class_id: str,
        day: date,
        description: str = "",
        statuses: Optional[Mapping[str, HomeworkStatus]] = None,
    ) -> tuple[HomeworkSession, list[HomeworkRecord]]:
        """Legt eine Kontrolle an und speichert je Schüler einen Eintrag."""
        self.get_class(class_id)
        sessions, session = accessors.create_session(
            self._read(CollectionKey.SESSIONS), class_id, day, description
        )
        records = accessors.build_session_records(
            session, self.get_students(class_id), statuses
        )
        self._write(CollectionKey.SESSIONS, sessions)
        self._write(CollectionKey.RECORDS,
                    accessors.upsert_records(self.get_all_records(), records))
        self._changed("record_session")
        return session, records

    def delete_session(self, session_id: str) -> accessors.CascadePlan:
        snap = self.snapshot()
        plan = accessors.plan_delete_session(snap, session_id)
        self._apply(snap, plan, "delete_session")
        return plan

    # ─── Einträge ───

    def get_all_records(self) -> list[HomeworkRecord]:
        return self._read(CollectionKey.RECORDS)

    def get_records(self, session_id: str) -> list[HomeworkRecord]:
        return [r for r in self.get_all_records() if r.session_id == session_id]

    def save_records(self, records: Iterable[HomeworkRecord]) -> None:
        """Upsert per ID: gleiche ID wird ersetzt, alle anderen bleiben."""
        merged = accessors.upsert_records(self.get_all_records(), records)
        self._write(CollectionKey.RECORDS, merged)
        self._changed("save_records")

    # ─── Zeiträume ───

    def get_periods(self, today: Optional[date] = None) -> list[SchoolPeriod]:
        """Zeiträume; fehlt die Sammlung, werden die drei Trimester angelegt."""
        if not self.store.has_collection(CollectionKey.PERIODS):
            periods = default_periods(today)
            self._write(CollectionKey.PERIODS, periods)
            logger.info("Standard-Zeiträume angelegt (%s)", periods[0].start_date.year)
            return periods
        return self._read(CollectionKey.PERIODS)

    def get_period(self, period_id: str) -> SchoolPeriod:
        for p in self.get_periods():
            if p.id == period_id:
                return p
        raise EntityNotFoundError(f"Zeitraum '{period_id}' nicht gefunden.")

    def save_periods(self, periods: Iterable[SchoolPeriod]) -> None:
        self._write(CollectionKey.PERIODS, list(periods))
        self._changed("save_periods")

    def add_period(self, name: str, start: date, end: date) -> SchoolPeriod:
        period = SchoolPeriod(id=accessors.generate_id(), name=name,
                              start_date=start, end_date=end)
        self.save_periods([*self.get_periods(), period])
        return period

    def delete_period(self, period_id: str) -> bool:
        periods = self.get_periods()
        remaining = [p for p in periods if p.id != period_id]
        if len(remaining) == len(periods):
            return False
        self.save_periods(remaining)
        return True

    # ─── Sicherung ───

    def restore_backup(self, path: Path) -> bool:
        """Ersetzt alle Sammlungen durch eine Sicherungsdatei (alles oder nichts)."""
        if not transfer.import_file(self.store, path):
            return False
        self._changed("restore_backup")
        return True

    def clear(self) -> None:
        """Löscht alle lokalen Sammlungen, ohne Listener zu benachrichtigen."""
        transfer.clear_all(self.store)

    # ─── intern ───

    def _apply(self, snap: DataSnapshot, plan: accessors.CascadePlan,
               action: str) -> None:
        if plan.is_empty():
            logger.info("%s: nichts zu löschen", action)
            return
        result = accessors.apply_plan(snap, plan)
        if plan.class_ids:
            self._write(CollectionKey.CLASSES, result.classes)
        if plan.student_ids:
            self._write(CollectionKey.STUDENTS, result.students)
        if plan.session_ids:
            self._write(CollectionKey.SESSIONS, result.sessions)
        if plan.record_ids:
            self._write(CollectionKey.RECORDS, result.records)
        logger.info("%s: %s entfernt", action, plan.summary())
        self._changed(action)
