"""Export-Modul: Klassenbericht als Excel (openpyxl) und PDF (fpdf2)."""

from export.excel_export import ExcelExporter
from export.pdf_report import PdfReportExporter

__all__ = ["ExcelExporter", "PdfReportExporter"]
