"""Auswertung: Ernsthaftigkeits-Score, Schülerstatistik und Zeitraum-Filter.

Score = (Erledigt × 1 + Unvollständig × 0,5) / (Kontrollen − Abwesend) × 100,
kaufmännisch gerundet. Ohne gewertete Kontrolle gilt der Score 100.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional

from data.accessors import filter_sessions_by_period, name_sort_key
from models.homework import HomeworkRecord, HomeworkSession, HomeworkStatus
from models.period import SchoolPeriod
from models.student import Student

# Score ohne gewertete Kontrolle (nur Abwesenheiten oder gar keine Einträge)
DEFAULT_SCORE = 100

BAND_GOOD = 80
BAND_MEDIUM = 50


def _round_half_up(numerator: int, denominator: int) -> int:
    """Ganzzahlig gerundet, .5 immer aufwärts (wie Math.round)."""
    return (2 * numerator + denominator) // (2 * denominator)


def seriousness_score(done: int, incomplete: int, absent: int, total: int) -> int:
    """Score in Prozent (0–100).

    >>> seriousness_score(done=3, incomplete=2, absent=1, total=6)
    80
    >>> seriousness_score(done=0, incomplete=0, absent=2, total=2)
    100
    """
    valid_attempts = total - absent
    if valid_attempts <= 0:
        return DEFAULT_SCORE
    # Halbe Punkte ganzzahlig: (2·done + incomplete) / (2·valid)
    return _round_half_up((2 * done + incomplete) * 100, 2 * valid_attempts)


def score_band(score: int) -> str:
    """Einstufung für Farben: "good" ab 80, "medium" ab 50, sonst "low"."""
    if score >= BAND_GOOD:
        return "good"
    if score >= BAND_MEDIUM:
        return "medium"
    return "low"


# ─── Statistik pro Schüler ────────────────────────────────────────────────────

@dataclass
class StudentStats:
    """Zählwerte und Score eines Schülers im betrachteten Zeitraum."""

    student: Student
    done: int = 0
    missed: int = 0
    incomplete: int = 0
    absent: int = 0

    @property
    def total(self) -> int:
        return self.done + self.missed + self.incomplete + self.absent

    @property
    def score(self) -> int:
        return seriousness_score(self.done, self.incomplete, self.absent, self.total)


def status_counts(records: Iterable[HomeworkRecord]) -> dict[HomeworkStatus, int]:
    """Anzahl je Status (alle vier Status immer vorhanden)."""
    counts = Counter(r.status for r in records)
    return {status: counts.get(status, 0) for status in HomeworkStatus}


def _stats_for(student: Student, records: Iterable[HomeworkRecord]) -> StudentStats:
    counts = status_counts(r for r in records if r.student_id == student.id)
    return StudentStats(
        student=student,
        done=counts[HomeworkStatus.FAIT],
        missed=counts[HomeworkStatus.NON_FAIT],
        incomplete=counts[HomeworkStatus.INCOMPLET],
        absent=counts[HomeworkStatus.ABSENT],
    )


def student_stats(students: Iterable[Student],
                  records: Iterable[HomeworkRecord]) -> list[StudentStats]:
    """Statistik je Schüler, schwächster Score zuerst."""
    records = list(records)
    stats = [_stats_for(s, records) for s in students]
    return sorted(stats, key=lambda st: st.score)


def alphabetical(stats: Iterable[StudentStats]) -> list[StudentStats]:
    return sorted(stats, key=lambda st: name_sort_key(st.student.name))


def class_average(stats: Iterable[StudentStats]) -> int:
    """Mittelwert der Scores aller Schüler mit mindestens einem Eintrag."""
    scores = [st.score for st in stats if st.total > 0]
    if not scores:
        return DEFAULT_SCORE
    return _round_half_up(sum(scores), len(scores))


def completion_rate(records: Iterable[HomeworkRecord]) -> int:
    """Anteil "Erledigt" an allen Einträgen in Prozent (0 ohne Einträge)."""
    counts = status_counts(records)
    total = sum(counts.values())
    if total == 0:
        return 0
    return _round_half_up(counts[HomeworkStatus.FAIT] * 100, total)


# ─── Zeiträume ────────────────────────────────────────────────────────────────

@dataclass
class PeriodSelection:
    """Kontrollen und Einträge eines Zeitraums."""

    sessions: list[HomeworkSession] = field(default_factory=list)
    records: list[HomeworkRecord] = field(default_factory=list)
    period: Optional[SchoolPeriod] = None

    @property
    def period_name(self) -> str:
        return self.period.name if self.period else "Gesamtes Schuljahr"


def filter_by_period(sessions: Iterable[HomeworkSession],
                     records: Iterable[HomeworkRecord],
                     period: Optional[SchoolPeriod]) -> PeriodSelection:
    """Kontrollen im Zeitraum (inklusive Grenzen) und deren Einträge."""
    selected = filter_sessions_by_period(sessions, period)
    ids = {s.id for s in selected}
    return PeriodSelection(
        sessions=selected,
        records=[r for r in records if r.session_id in ids],
        period=period,
    )


def visible_periods(periods: Iterable[SchoolPeriod],
                    today: Optional[date] = None) -> list[SchoolPeriod]:
    """Nur Zeiträume, die bereits begonnen haben."""
    today = today or date.today()
    return [p for p in periods if p.start_date <= today]


# ─── Verlauf ──────────────────────────────────────────────────────────────────

@dataclass
class TimelineEntry:
    date: date
    description: str
    status: HomeworkStatus


def student_timeline(student_id: str, sessions: Iterable[HomeworkSession],
                     records: Iterable[HomeworkRecord]) -> list[TimelineEntry]:
    """Alle Kontrollen mit Eintrag für den Schüler, neueste zuerst."""
    by_session = {r.session_id: r for r in records if r.student_id == student_id}
    entries = [
        TimelineEntry(date=s.date, description=s.description,
                      status=by_session[s.id].status)
        for s in sessions
        if s.id in by_session
    ]
    return sorted(entries, key=lambda e: e.date, reverse=True)
