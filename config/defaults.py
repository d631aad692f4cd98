"""Standardwerte: Speicherschlüssel, Status-Bezeichnungen, Default-Zeiträume."""

from datetime import date
from typing import Optional

from config.schema import AppConfig
from models.homework import HomeworkStatus
from models.period import SchoolPeriod

# Präfix der Speicherschlüssel (kompatibel zum bisherigen Browser-Speicher)
STORAGE_PREFIX = "cda_"

# Version des Sicherungsformats
EXPORT_VERSION = 1

STATUS_LABELS: dict[HomeworkStatus, str] = {
    HomeworkStatus.FAIT:      "Erledigt",
    HomeworkStatus.NON_FAIT:  "Nicht erledigt",
    HomeworkStatus.INCOMPLET: "Unvollständig",
    HomeworkStatus.ABSENT:    "Abwesend",
}

# Kurzformen für Tabellen und Matrix-Ansichten
STATUS_SHORT: dict[HomeworkStatus, str] = {
    HomeworkStatus.FAIT:      "E",
    HomeworkStatus.NON_FAIT:  "N",
    HomeworkStatus.INCOMPLET: "U",
    HomeworkStatus.ABSENT:    "A",
}


def school_year_start(today: Optional[date] = None) -> int:
    """Startjahr des laufenden Schuljahres.

    Ab September gilt das aktuelle Jahr, davor das Vorjahr.
    """
    today = today or date.today()
    return today.year if today.month >= 9 else today.year - 1


def default_periods(today: Optional[date] = None) -> list[SchoolPeriod]:
    """Drei Trimester des laufenden Schuljahres.

    Trimester 1: 01.09. – 31.12.
    Trimester 2: 01.01. – 31.03.
    Trimester 3: 01.04. – 07.07.
    """
    y = school_year_start(today)
    return [
        SchoolPeriod(id="p1", name="Trimester 1",
                     start_date=date(y, 9, 1), end_date=date(y, 12, 31)),
        SchoolPeriod(id="p2", name="Trimester 2",
                     start_date=date(y + 1, 1, 1), end_date=date(y + 1, 3, 31)),
        SchoolPeriod(id="p3", name="Trimester 3",
                     start_date=date(y + 1, 4, 1), end_date=date(y + 1, 7, 7)),
    ]


def default_app_config() -> AppConfig:
    """Konfiguration für den reinen Lokalbetrieb."""
    return AppConfig()
