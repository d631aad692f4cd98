"""Schülerlisten-Import aus Text-/CSV-Dateien oder Excel.

Erwartet einen Namen pro Zeile ("Nachname Vorname", "Nachname, Vorname"
oder "Vorname;Nachname"). Eine Kopfzeile wird erkannt und übersprungen.
"""

import re
from pathlib import Path


class RosterImportError(Exception):
    """Fehler beim Einlesen einer Schülerliste."""


_SEPARATORS = re.compile(r"[,;\t]")
_WHITESPACE = re.compile(r"\s+")

# Kopfzeile: beide Wörter eines Paares kommen in der Zeile vor
_HEADER_PAIRS = (("nom", "prénom"), ("nom", "prenom"), ("name", "vorname"))

_EXCEL_SUFFIXES = {".xlsx", ".xlsm"}


def _is_header(line: str) -> bool:
    low = line.lower()
    return any(a in low and b in low for a, b in _HEADER_PAIRS)


def clean_name(raw: str) -> str:
    """'Dupont,  Alice' → 'Dupont Alice'."""
    return _WHITESPACE.sub(" ", _SEPARATORS.sub(" ", raw)).strip()


def parse_roster_text(text: str) -> list[str]:
    """Liefert die bereinigten Namen in Dateireihenfolge."""
    names = []
    for line in text.splitlines():
        line = line.strip()
        if not line or _is_header(line):
            continue
        name = clean_name(line)
        if name:
            names.append(name)
    return names


def parse_roster_excel(path: Path) -> list[str]:
    """Erstes Tabellenblatt, Spalten A und B werden zu einem Namen verbunden."""
    from openpyxl import load_workbook

    try:
        wb = load_workbook(path, read_only=True, data_only=True)
    except Exception as e:
        raise RosterImportError(f"Excel-Datei nicht lesbar: {path}\n{e}") from e

    names = []
    try:
        ws = wb.worksheets[0]
        for row in ws.iter_rows(min_col=1, max_col=2, values_only=True):
            parts = [str(v).strip() for v in row if v is not None and str(v).strip()]
            if not parts:
                continue
            line = " ".join(parts)
            if _is_header(line):
                continue
            name = clean_name(line)
            if name:
                names.append(name)
    finally:
        wb.close()
    return names


def read_roster(path: Path) -> list[str]:
    """Liest eine Schülerliste; Format anhand der Dateiendung."""
    path = Path(path)
    if not path.exists():
        raise RosterImportError(f"Datei nicht gefunden: {path}")
    if path.suffix.lower() in _EXCEL_SUFFIXES:
        return parse_roster_excel(path)
    try:
        text = path.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError:
        # Fallback: Windows-Kodierung (cp1252)
        text = path.read_text(encoding="cp1252")
    return parse_roster_text(text)
