"""Gemeinsame Hilfsfunktionen für Excel- und PDF-Bericht."""

import re
from dataclasses import dataclass
from datetime import date
from typing import Optional

from analysis.scoring import (
    PeriodSelection, StudentStats, alphabetical, class_average,
    filter_by_period, student_stats, student_timeline, TimelineEntry,
)
from data.repository import HomeworkRepository
from models.class_group import ClassGroup
from models.homework import HomeworkStatus

# ─── Farbpalette (RRGGBB, ohne #) ─────────────────────────────────────────────

COLORS: dict[str, str] = {
    HomeworkStatus.FAIT.value:      "22C55E",
    HomeworkStatus.NON_FAIT.value:  "EF4444",
    HomeworkStatus.INCOMPLET.value: "F97316",
    HomeworkStatus.ABSENT.value:    "94A3B8",
    "good":                         "DCFCE7",
    "medium":                       "FEF9C3",
    "low":                          "FEE2E2",
    "header":                       "4F46E5",
    "free":                         "F5F5F5",
}


def hex_to_rgb(hex_color: str) -> tuple[int, int, int]:
    """Wandelt RRGGBB-String in (r, g, b)-Tupel um."""
    h = hex_color.lstrip("#")
    return int(h[0:2], 16), int(h[2:4], 16), int(h[4:6], 16)


def today_str() -> str:
    """Gibt das heutige Datum als DD.MM.YYYY zurück."""
    return date.today().strftime("%d.%m.%Y")


def format_date(day: date) -> str:
    return day.strftime("%d.%m.%Y")


def clean_filename(text: str) -> str:
    """'3ème B' → '3_me_b' (nur a-z, 0-9 und _)."""
    return re.sub(r"[^a-z0-9]", "_", text.lower())


# ─── Berichtsdaten ────────────────────────────────────────────────────────────

@dataclass
class ClassReport:
    """Alles, was ein Klassenbericht braucht, für einen Zeitraum."""

    class_group: ClassGroup
    selection: PeriodSelection
    stats: list[StudentStats]      # alphabetisch
    average: int

    @property
    def period_name(self) -> str:
        return self.selection.period_name

    def timeline(self, student_id: str) -> list[TimelineEntry]:
        return student_timeline(student_id, self.selection.sessions,
                                self.selection.records)

    def default_filename(self, suffix: str) -> str:
        return (f"Bericht_{clean_filename(self.class_group.name)}_"
                f"{clean_filename(self.period_name)}{suffix}")


def build_class_report(repo: HomeworkRepository, class_id: str,
                       period_id: Optional[str] = None) -> ClassReport:
    """Stellt Kontrollen, Einträge und Statistik einer Klasse zusammen."""
    class_group = repo.get_class(class_id)
    period = repo.get_period(period_id) if period_id else None
    selection = filter_by_period(
        repo.get_sessions(class_id), repo.get_all_records(), period
    )
    stats = student_stats(repo.get_students(class_id), selection.records)
    return ClassReport(
        class_group=class_group,
        selection=selection,
        stats=alphabetical(stats),
        average=class_average(stats),
    )
