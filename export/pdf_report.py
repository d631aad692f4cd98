"""PDF-Bericht pro Klasse: eine Seite je Schüler (fpdf2)."""

from pathlib import Path

from analysis.scoring import StudentStats, score_band
from config.defaults import STATUS_LABELS
from models.homework import HomeworkStatus

from export.helpers import (
    COLORS, ClassReport, format_date, hex_to_rgb, today_str,
)


def _pdf_safe(text: str) -> str:
    """Ersetzt nicht-latin-1-fähige Zeichen für fpdf2-Built-in-Fonts."""
    text = (
        text
        .replace("\u2014", " - ")   # Geviertstrich
        .replace("\u2013", "-")      # Halbgeviertstrich
        .replace("\u2019", "'")      # typografischer Apostroph
    )
    return text.encode("latin-1", "replace").decode("latin-1")


# ─── A4-Querformat-Dimensionen ────────────────────────────────────────────────
# Landscape A4: 297 × 210 mm, Rand 12 mm
# Links: Score-Kasten + Status-Balken (110 mm), rechts: Verlauf (155 mm)

_MARGIN      = 12
_LEFT_W      = 110
_RIGHT_X     = 130
_BAR_MAX_W   = 60     # mm bei 100 %
_ROW_H       = 6.5    # mm pro Verlaufszeile
_COL_DATE    = 26
_COL_STATUS  = 34
_COL_DESC    = 95


class _ReportPdf:
    """Interner Wrapper um fpdf.FPDF für Schülerseiten."""

    def __init__(self, class_name: str, period_name: str):
        from fpdf import FPDF

        class _Pdf(FPDF):
            def __init__(inner, title):
                super().__init__(orientation="L", unit="mm", format="A4")
                inner._report_title = title
                inner._student_name = ""
                inner.alias_nb_pages()
                inner.set_auto_page_break(auto=True, margin=16)
                inner.set_margins(left=_MARGIN, top=24, right=_MARGIN)

            def header(inner):
                inner.set_font("Helvetica", "B", 11)
                inner.set_xy(_MARGIN, 8)
                inner.cell(150, 7, _pdf_safe(inner._report_title), border=0, align="L")
                inner.cell(0, 7, _pdf_safe(inner._student_name), border=0, align="R")
                inner.ln(0)
                inner.set_draw_color(150, 150, 150)
                inner.line(_MARGIN, 18, inner.w - _MARGIN, 18)

            def footer(inner):
                inner.set_y(-12)
                inner.set_font("Helvetica", "I", 7)
                inner.cell(
                    0, 8,
                    f"{today_str()}  |  Seite {inner.page_no()}/{{nb}}",
                    border=0, align="C",
                )

        self._pdf = _Pdf(f"Hausaufgaben-Bericht {class_name} - {period_name}")

    @property
    def pdf(self):
        return self._pdf

    def start_student(self, name: str) -> None:
        self._pdf._student_name = name
        self._pdf.add_page()

    def save(self, path: Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self._pdf.output(str(path))

    def fill_rect(self, x: float, y: float, w: float, h: float, hex_color: str) -> None:
        r, g, b = hex_to_rgb(hex_color)
        self._pdf.set_fill_color(r, g, b)
        self._pdf.rect(x, y, w, h, style="F")


class PdfReportExporter:
    """Erzeugt den Klassenbericht als PDF."""

    def __init__(self, report: ClassReport):
        self.report = report

    def export(self, output_path: Path) -> Path:
        """Eine Seite je Schüler (alphabetisch); lange Verläufe laufen weiter."""
        doc = _ReportPdf(self.report.class_group.name, self.report.period_name)
        if not self.report.stats:
            doc.start_student("")
            doc.pdf.set_font("Helvetica", "", 12)
            doc.pdf.cell(0, 10, _pdf_safe("Keine Schüler in dieser Klasse."))
        for stat in self.report.stats:
            doc.start_student(stat.student.name)
            self._draw_summary(doc, stat)
            self._draw_timeline(doc, stat)
        doc.save(output_path)
        return Path(output_path)

    # ─── Linke Spalte ─────────────────────────────────────────────────────────

    def _draw_summary(self, doc: _ReportPdf, stat: StudentStats) -> None:
        pdf = doc.pdf
        x, y = _MARGIN, 24

        pdf.set_xy(x, y)
        pdf.set_font("Helvetica", "B", 18)
        pdf.cell(_LEFT_W, 10, _pdf_safe(stat.student.name), border=0, align="L")

        # Score-Kasten
        y += 14
        doc.fill_rect(x, y, _LEFT_W, 28, COLORS[score_band(stat.score)])
        pdf.set_xy(x, y + 3)
        pdf.set_font("Helvetica", "B", 26)
        pdf.cell(_LEFT_W, 12, f"{stat.score}/100", border=0, align="C")
        pdf.set_xy(x, y + 17)
        pdf.set_font("Helvetica", "", 9)
        pdf.cell(_LEFT_W, 6, f"Ernsthaftigkeit  |  Klassenschnitt: {self.report.average}/100",
                 border=0, align="C")

        # Status-Balken
        y += 36
        counts = {
            HomeworkStatus.FAIT: stat.done,
            HomeworkStatus.NON_FAIT: stat.missed,
            HomeworkStatus.INCOMPLET: stat.incomplete,
            HomeworkStatus.ABSENT: stat.absent,
        }
        pdf.set_font("Helvetica", "", 10)
        for status, count in counts.items():
            pdf.set_xy(x, y)
            pdf.cell(36, 7, _pdf_safe(STATUS_LABELS[status]), border=0, align="L")
            width = _BAR_MAX_W * count / stat.total if stat.total else 0
            if width:
                doc.fill_rect(x + 38, y + 1, width, 5, COLORS[status.value])
            pdf.set_xy(x + 40 + _BAR_MAX_W, y)
            pdf.cell(10, 7, str(count), border=0, align="R")
            y += 9

        pdf.set_xy(x, y + 2)
        pdf.set_font("Helvetica", "I", 8)
        pdf.cell(_LEFT_W, 5, _pdf_safe(f"{stat.total} Kontrolle(n) im Zeitraum "
                                       f"{self.report.period_name}"), border=0, align="L")

    # ─── Rechte Spalte: Verlauf ───────────────────────────────────────────────

    def _draw_timeline(self, doc: _ReportPdf, stat: StudentStats) -> None:
        pdf = doc.pdf
        x, y = _RIGHT_X, 24

        header = [("Datum", _COL_DATE), ("Status", _COL_STATUS), ("Aufgabe", _COL_DESC)]
        r, g, b = hex_to_rgb(COLORS["header"])
        pdf.set_fill_color(r, g, b)
        pdf.set_text_color(255, 255, 255)
        pdf.set_font("Helvetica", "B", 9)
        pdf.set_xy(x, y)
        for label, w in header:
            pdf.cell(w, _ROW_H, label, border=1, align="C", fill=True)
        pdf.set_text_color(0, 0, 0)
        pdf.ln(_ROW_H)

        entries = self.report.timeline(stat.student.id)
        pdf.set_font("Helvetica", "", 8)
        if not entries:
            pdf.set_x(x)
            pdf.cell(_COL_DATE + _COL_STATUS + _COL_DESC, _ROW_H,
                     "Keine Kontrollen im Zeitraum.", border=1, align="C")
            return

        for entry in entries:
            if pdf.will_page_break(_ROW_H):
                pdf.add_page()
            pdf.set_x(x)
            pdf.cell(_COL_DATE, _ROW_H, format_date(entry.date), border=1, align="C")
            r, g, b = hex_to_rgb(COLORS[entry.status.value])
            pdf.set_fill_color(r, g, b)
            pdf.set_text_color(255, 255, 255)
            pdf.cell(_COL_STATUS, _ROW_H, _pdf_safe(STATUS_LABELS[entry.status]),
                     border=1, align="C", fill=True)
            pdf.set_text_color(0, 0, 0)
            pdf.cell(_COL_DESC, _ROW_H, _pdf_safe(entry.description[:70]),
                     border=1, align="L")
            pdf.ln(_ROW_H)
