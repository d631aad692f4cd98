"""Excel-Export des Klassenberichts (openpyxl)."""

from pathlib import Path

from analysis.scoring import score_band
from config.defaults import STATUS_LABELS, STATUS_SHORT
from models.homework import HomeworkStatus

from export.helpers import COLORS, ClassReport, format_date, today_str


class ExcelExporter:
    """Exportiert einen ClassReport in eine Excel-Datei mit 2 Sheets.

    Übersicht: eine Zeile pro Schüler (Zählwerte + Score).
    Kontrollen: Matrix Schüler × Kontrolle mit Status-Kürzeln.
    """

    # Spaltenbreiten (Excel-Einheiten)
    COL_NAME_W   = 28
    COL_COUNT_W  = 14
    COL_SESSION_W = 11

    # Zeilenhöhen (Punkte)
    ROW_HEADER_H = 22

    def __init__(self, report: ClassReport):
        self.report = report

    # ─── Öffentliche API ──────────────────────────────────────────────────────

    def export(self, output_path: Path) -> Path:
        """Erstellt die Excel-Datei mit allen Sheets."""
        from openpyxl import Workbook
        wb = Workbook()
        wb.remove(wb.active)   # Leeres Standard-Sheet entfernen

        self._sheet_uebersicht(wb)
        self._sheet_kontrollen(wb)

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        wb.save(output_path)
        return output_path

    # ─── Style-Helpers ────────────────────────────────────────────────────────

    def _fill(self, hex_color: str):
        from openpyxl.styles import PatternFill
        return PatternFill(start_color=hex_color, end_color=hex_color, fill_type="solid")

    def _center_align(self, wrap: bool = True):
        from openpyxl.styles import Alignment
        return Alignment(wrap_text=wrap, horizontal="center", vertical="center")

    def _thin_border(self):
        from openpyxl.styles import Border, Side
        s = Side(border_style="thin", color="BBBBBB")
        return Border(left=s, right=s, top=s, bottom=s)

    def _write_header_row(self, ws, headers: list[str], row: int = 1) -> None:
        from openpyxl.styles import Font
        fill = self._fill(COLORS["header"])
        border = self._thin_border()
        for col, text in enumerate(headers, 1):
            cell = ws.cell(row=row, column=col, value=text)
            cell.fill = fill
            cell.font = Font(bold=True, color="FFFFFF", size=10)
            cell.alignment = self._center_align(wrap=False)
            cell.border = border
        ws.row_dimensions[row].height = self.ROW_HEADER_H

    # ─── Übersicht ────────────────────────────────────────────────────────────

    def _sheet_uebersicht(self, wb) -> None:
        from openpyxl.styles import Font
        from openpyxl.utils import get_column_letter

        ws = wb.create_sheet("Übersicht")
        r = self.report
        ws.cell(row=1, column=1,
                value=f"{r.class_group.name} – {r.period_name}").font = Font(bold=True, size=13)
        ws.cell(row=2, column=1,
                value=f"Stand {today_str()} | {len(r.selection.sessions)} Kontrollen | "
                      f"Klassenschnitt {r.average}/100")

        headers = ["Schüler"] + [STATUS_LABELS[s] for s in HomeworkStatus] + ["Gesamt", "Score"]
        self._write_header_row(ws, headers, row=4)

        border = self._thin_border()
        for i, stat in enumerate(r.stats, start=5):
            values = [stat.student.name, stat.done, stat.missed, stat.incomplete,
                      stat.absent, stat.total, stat.score]
            for col, value in enumerate(values, 1):
                cell = ws.cell(row=i, column=col, value=value)
                cell.border = border
                if col > 1:
                    cell.alignment = self._center_align(wrap=False)
            ws.cell(row=i, column=len(values)).fill = self._fill(COLORS[score_band(stat.score)])

        ws.column_dimensions["A"].width = self.COL_NAME_W
        for col in range(2, len(headers) + 1):
            ws.column_dimensions[get_column_letter(col)].width = self.COL_COUNT_W
        ws.freeze_panes = "B5"

    # ─── Kontrollen-Matrix ────────────────────────────────────────────────────

    def _sheet_kontrollen(self, wb) -> None:
        from openpyxl.comments import Comment
        from openpyxl.utils import get_column_letter

        ws = wb.create_sheet("Kontrollen")
        # Chronologisch von links nach rechts
        sessions = sorted(self.report.selection.sessions, key=lambda s: s.date)
        self._write_header_row(
            ws, ["Schüler"] + [format_date(s.date) for s in sessions]
        )
        for col, session in enumerate(sessions, 2):
            if session.description:
                ws.cell(row=1, column=col).comment = Comment(session.description, "Hausaufgabenheft")

        status_by_key = {
            (rec.student_id, rec.session_id): rec.status
            for rec in self.report.selection.records
        }
        border = self._thin_border()
        for row, stat in enumerate(self.report.stats, 2):
            ws.cell(row=row, column=1, value=stat.student.name).border = border
            for col, session in enumerate(sessions, 2):
                cell = ws.cell(row=row, column=col)
                cell.border = border
                cell.alignment = self._center_align(wrap=False)
                status = status_by_key.get((stat.student.id, session.id))
                if status is None:
                    cell.fill = self._fill(COLORS["free"])
                    continue
                cell.value = STATUS_SHORT[status]
                cell.fill = self._fill(COLORS[status.value])

        ws.column_dimensions["A"].width = self.COL_NAME_W
        for col in range(2, len(sessions) + 2):
            ws.column_dimensions[get_column_letter(col)].width = self.COL_SESSION_W
        ws.freeze_panes = "B2"
