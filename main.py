"""Hausaufgabenheft: Haupt-CLI.

Verwendung:
  python main.py init                              Konfiguration anlegen
  python main.py config show                       Konfiguration anzeigen
  python main.py login <email>                     Für Cloud-Sync anmelden
  python main.py class list|add|rename|delete      Klassen verwalten
  python main.py student list|add|delete|import    Schüler verwalten
  python main.py session record|list|show|delete   Kontrollen erfassen
  python main.py period list|add|delete            Zeiträume verwalten
  python main.py stats <klasse>                    Auswertung anzeigen
  python main.py report pdf|excel <klasse>         Bericht exportieren
  python main.py backup export|import|clear        Sicherung (JSON-Datei)
  python main.py sync push|pull|status             Cloud-Synchronisation
"""

import logging
import sys
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Optional

import click
from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from analysis.scoring import (
    class_average, completion_rate, filter_by_period, score_band, student_stats,
    visible_periods,
)
from config.defaults import STATUS_LABELS, STATUS_SHORT
from config.manager import ConfigManager
from config.schema import AppConfig, BackendConfig
from data.local_store import JsonFileStore, StoreCorruptError
from data.repository import EntityNotFoundError, HomeworkRepository
from data.roster_import import RosterImportError
from models.class_group import ClassGroup
from models.homework import HomeworkStatus
from sync.auth import AuthError, SessionProvider, SessionStore, SupabaseAuth
from sync.cloud import BackgroundPusher, CloudSync, SyncStatus

console = Console()
logger = logging.getLogger("hausaufgaben")

_BAND_STYLE = {"good": "green", "medium": "yellow", "low": "red"}

# Eingabe-Kürzel für --status (Groß-/Kleinschreibung egal)
_STATUS_INPUT: dict[str, HomeworkStatus] = {}
for _status in HomeworkStatus:
    _STATUS_INPUT[_status.value.lower()] = _status
    _STATUS_INPUT[STATUS_SHORT[_status].lower()] = _status
    _STATUS_INPUT[STATUS_LABELS[_status].lower()] = _status


# ─── Anwendungskontext ────────────────────────────────────────────────────────

@dataclass
class AppContext:
    """Alles, was die Befehle brauchen; wird pro Aufruf einmal aufgebaut."""

    config: AppConfig
    repo: HomeworkRepository
    sync: CloudSync
    auth: SupabaseAuth
    sessions: SessionStore
    pusher: BackgroundPusher


def _build_context(offline: bool) -> AppContext:
    mgr = ConfigManager()
    config = mgr.load_or_default()
    store = JsonFileStore(Path(config.data_dir))
    repo = HomeworkRepository(store)

    auth = SupabaseAuth(config.backend)
    sessions = SessionStore(mgr.SESSION_FILE)
    sync = CloudSync(store, config.backend, SessionProvider(sessions, auth))
    pusher = BackgroundPusher(sync, enabled=config.sync.auto_push and not offline)
    repo.add_listener(pusher)
    return AppContext(config=config, repo=repo, sync=sync, auth=auth,
                      sessions=sessions, pusher=pusher)


def _sync_on_start(app: AppContext) -> None:
    """Einmaliger Abgleich beim Start.

    Ohne ausstehenden Upload überschreibt der Cloud-Stand den lokalen Stand.
    Steht ein Upload aus (z.B. weil der letzte fehlschlug), wird stattdessen
    hochgeladen und nicht gepullt.
    """
    if not app.config.sync.pull_on_start or not app.sync.is_configured:
        return
    if app.sessions.load() is None:
        return
    pending = app.sync.pending
    result = app.sync.sync_on_start()
    if result.ok:
        return
    if pending:
        console.print(f"[yellow]Ausstehende Änderungen nicht hochgeladen:[/yellow] "
                      f"{result.error}\n  Lokaler Stand bleibt, nächster Versuch "
                      f"beim nächsten Aufruf oder mit 'sync push'.")
    else:
        console.print(f"[yellow]Cloud-Stand nicht geladen:[/yellow] {result.error}")


def _app(ctx: click.Context, startup_sync: bool = True) -> AppContext:
    """Kontext beim ersten Zugriff aufbauen (inkl. Abgleich beim Start)."""
    root = ctx.find_root()
    state = root.ensure_object(dict)
    if "app" not in state:
        app = _build_context(state.get("offline", False))
        if startup_sync and not state.get("offline", False):
            _sync_on_start(app)
        root.call_on_close(app.pusher.wait)
        state["app"] = app
    return state["app"]


def _abort(message: str) -> None:
    console.print(f"[red bold]Fehler:[/red bold] {message}")
    sys.exit(1)


def _resolve_class(app: AppContext, ref: str) -> ClassGroup:
    """Klasse per ID oder (groß/klein-neutralem) Namen."""
    classes = app.repo.get_classes()
    for c in classes:
        if c.id == ref:
            return c
    matches = [c for c in classes if c.name.casefold() == ref.casefold()]
    if len(matches) > 1:
        _abort(f"Klassenname '{ref}' ist nicht eindeutig, bitte die ID angeben.")
    if not matches:
        raise EntityNotFoundError(f"Klasse '{ref}' nicht gefunden.")
    return matches[0]


def _parse_status(raw: str) -> HomeworkStatus:
    status = _STATUS_INPUT.get(raw.strip().lower())
    if status is None:
        raise click.BadParameter(
            f"Unbekannter Status '{raw}'. Erlaubt: "
            + ", ".join(f"{STATUS_SHORT[s]}/{s.value}" for s in HomeworkStatus)
        )
    return status


def _parse_date(raw: Optional[str]) -> date:
    if not raw:
        return date.today()
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise click.BadParameter(f"Datum '{raw}' nicht im Format JJJJ-MM-TT.")


def _score_text(score: int) -> str:
    return f"[{_BAND_STYLE[score_band(score)]}]{score}[/]"


# ─── INIT / CONFIG ────────────────────────────────────────────────────────────

@click.command("init")
@click.option("--url", default=None, help="Supabase-Projekt-URL (optional).")
@click.option("--anon-key", default=None, help="Supabase anon key (optional).")
@click.option("--data-dir", default="daten", show_default=True,
              help="Verzeichnis der lokalen Daten.")
def cmd_init(url: Optional[str], anon_key: Optional[str], data_dir: str):
    """Legt die Konfigurationsdatei an."""
    mgr = ConfigManager()
    if not mgr.first_run_check():
        console.print("[yellow]Eine Konfiguration existiert bereits.[/yellow]")
        if not click.confirm("Überschreiben?", default=False):
            return
    config = AppConfig(data_dir=data_dir,
                       backend=BackendConfig(url=url, anon_key=anon_key))
    mgr.save(config)
    if not config.backend.is_configured:
        console.print("[dim]Kein Cloud-Backend angegeben: reiner Lokalbetrieb.[/dim]")


@click.group("config")
def cmd_config():
    """Konfiguration anzeigen."""


@cmd_config.command("show")
def config_show():
    """Zeigt die aktive Konfiguration (inkl. Umgebungsvariablen)."""
    mgr = ConfigManager()
    config = mgr.load_or_default()
    source = "Standardwerte" if mgr.first_run_check() else str(mgr.DEFAULT_CONFIG)
    be = config.backend
    console.print(Panel(
        f"[bold]Daten:[/bold] {config.data_dir}  |  "
        f"[bold]Ausgabe:[/bold] {config.output_dir}\n"
        f"[bold]Cloud:[/bold] {be.base_url if be.is_configured else 'nicht konfiguriert'}"
        f"  |  Tabelle {be.table}  |  Zeitlimit {be.timeout_seconds}s\n"
        f"[bold]Sync:[/bold] auto_push={config.sync.auto_push}  "
        f"pull_on_start={config.sync.pull_on_start}",
        title=f"Konfiguration ({source})",
        border_style="cyan",
    ))


# ─── LOGIN / LOGOUT ───────────────────────────────────────────────────────────

@click.command("login")
@click.argument("email")
@click.password_option("--password", confirmation_prompt=False,
                       help="Passwort (wird sonst abgefragt).")
@click.pass_context
def cmd_login(ctx: click.Context, email: str, password: str):
    """Meldet sich am Cloud-Dienst an und lädt den Cloud-Stand."""
    app = _app(ctx, startup_sync=False)
    if not app.sync.is_configured:
        _abort("Cloud-Sync nicht konfiguriert (SUPABASE_URL / SUPABASE_ANON_KEY).")
    session = app.auth.sign_in(email, password)
    app.sessions.save(session)
    console.print(f"[green]✓[/green] Angemeldet als {session.email or session.user_id}")

    if app.sync.pending:
        console.print("[yellow]Lokale Änderungen noch nicht in der Cloud.[/yellow] "
                      "Mit 'sync push' hochladen oder mit 'sync pull --force' verwerfen.")
        return
    result = app.sync.pull()
    if result.ok:
        console.print(f"[green]✓[/green] {'Noch keine Cloud-Daten.' if result.no_data else 'Cloud-Stand geladen.'}")
    else:
        console.print(f"[yellow]Cloud-Stand nicht geladen:[/yellow] {result.error}")


@click.command("logout")
def cmd_logout():
    """Entfernt die gespeicherte Sitzung (lokale Daten bleiben)."""
    SessionStore(ConfigManager.SESSION_FILE).clear()
    console.print("[green]✓[/green] Abgemeldet.")


# ─── KLASSEN ──────────────────────────────────────────────────────────────────

@click.group("class")
def cmd_class():
    """Klassen verwalten."""


@cmd_class.command("list")
@click.pass_context
def class_list(ctx: click.Context):
    """Listet alle Klassen mit Schülerzahl."""
    repo = _app(ctx).repo
    classes = repo.get_classes()
    if not classes:
        console.print("[dim]Keine Klassen vorhanden.[/dim]")
        return
    students = repo.get_students()
    sessions = repo.get_sessions()
    table = Table(title="Klassen", box=box.ROUNDED)
    table.add_column("ID", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Schüler", justify="right")
    table.add_column("Kontrollen", justify="right")
    for c in classes:
        table.add_row(
            c.id, c.name,
            str(sum(1 for s in students if s.class_id == c.id)),
            str(sum(1 for s in sessions if s.class_id == c.id)),
        )
    console.print(table)


@cmd_class.command("add")
@click.argument("name")
@click.pass_context
def class_add(ctx: click.Context, name: str):
    """Legt eine neue Klasse an."""
    if not name.strip():
        _abort("Klassenname darf nicht leer sein.")
    new_class = _app(ctx).repo.add_class(name)
    console.print(f"[green]✓[/green] Klasse '{new_class.name}' angelegt (ID {new_class.id}).")


@cmd_class.command("rename")
@click.argument("klasse")
@click.argument("name")
@click.pass_context
def class_rename(ctx: click.Context, klasse: str, name: str):
    """Benennt eine Klasse um."""
    app = _app(ctx)
    if not name.strip():
        _abort("Klassenname darf nicht leer sein.")
    renamed = app.repo.rename_class(_resolve_class(app, klasse).id, name)
    console.print(f"[green]✓[/green] Klasse heißt jetzt '{renamed.name}'.")


@cmd_class.command("delete")
@click.argument("klasse")
@click.option("--yes", "-y", is_flag=True, help="Ohne Rückfrage löschen.")
@click.pass_context
def class_delete(ctx: click.Context, klasse: str, yes: bool):
    """Löscht eine Klasse samt Schülern, Kontrollen und Einträgen."""
    app = _app(ctx)
    target = _resolve_class(app, klasse)
    if not yes and not click.confirm(
        f"Klasse '{target.name}' mit allen Daten löschen?", default=False
    ):
        return
    plan = app.repo.delete_class(target.id)
    console.print(f"[green]✓[/green] Gelöscht: {plan.summary()}")


# ─── SCHÜLER ──────────────────────────────────────────────────────────────────

@click.group("student")
def cmd_student():
    """Schüler verwalten."""


@cmd_student.command("list")
@click.argument("klasse")
@click.pass_context
def student_list(ctx: click.Context, klasse: str):
    """Schüler einer Klasse (alphabetisch)."""
    app = _app(ctx)
    target = _resolve_class(app, klasse)
    students = app.repo.get_students(target.id)
    if not students:
        console.print(f"[dim]Keine Schüler in {target.name}.[/dim]")
        return
    table = Table(title=f"Schüler {target.name}", box=box.ROUNDED)
    table.add_column("#", justify="right")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="bold")
    for i, s in enumerate(students, 1):
        table.add_row(str(i), s.id, s.name)
    console.print(table)


@cmd_student.command("add")
@click.argument("klasse")
@click.argument("namen", nargs=-1, required=True)
@click.pass_context
def student_add(ctx: click.Context, klasse: str, namen: tuple[str, ...]):
    """Fügt einen oder mehrere Schüler hinzu."""
    app = _app(ctx)
    target = _resolve_class(app, klasse)
    created = app.repo.add_students(namen, target.id)
    if not created:
        _abort("Keine gültigen Namen angegeben.")
    for s in created:
        console.print(f"[green]✓[/green] {s.name} ({s.id})")


@cmd_student.command("import")
@click.argument("klasse")
@click.argument("datei", type=click.Path(exists=True, path_type=Path))
@click.pass_context
def student_import(ctx: click.Context, klasse: str, datei: Path):
    """Importiert eine Schülerliste (CSV/Text oder Excel)."""
    from data.roster_import import read_roster

    app = _app(ctx)
    target = _resolve_class(app, klasse)
    names = read_roster(datei)
    if not names:
        _abort(f"Keine Namen in {datei} gefunden.")
    created = app.repo.add_students(names, target.id)
    console.print(f"[green]✓[/green] {len(created)} Schüler in {target.name} importiert.")


@cmd_student.command("delete")
@click.argument("student_id")
@click.option("--yes", "-y", is_flag=True, help="Ohne Rückfrage löschen.")
@click.pass_context
def student_delete(ctx: click.Context, student_id: str, yes: bool):
    """Löscht einen Schüler samt seinen Einträgen."""
    app = _app(ctx)
    if not yes and not click.confirm(f"Schüler {student_id} löschen?", default=False):
        return
    plan = app.repo.delete_student(student_id)
    if plan.is_empty():
        _abort(f"Schüler '{student_id}' nicht gefunden.")
    console.print(f"[green]✓[/green] Gelöscht: {plan.summary()}")


# ─── KONTROLLEN ───────────────────────────────────────────────────────────────

@click.group("session")
def cmd_session():
    """Hausaufgaben-Kontrollen erfassen und anzeigen."""


@cmd_session.command("record")
@click.argument("klasse")
@click.option("--date", "day", default=None, help="Datum JJJJ-MM-TT (Standard: heute).")
@click.option("--description", "-d", default="", help="Aufgabe / Beschreibung.")
@click.option("--status", "-s", "status_args", multiple=True, metavar="NAME=STATUS",
              help="Abweichender Status, z.B. 'Dupont Alice=N'. Standard: erledigt.")
@click.pass_context
def session_record(ctx: click.Context, klasse: str, day: Optional[str],
                   description: str, status_args: tuple[str, ...]):
    """Erfasst eine Kontrolle: jeder Schüler der Klasse bekommt einen Eintrag."""
    app = _app(ctx)
    target = _resolve_class(app, klasse)
    students = app.repo.get_students(target.id)
    if not students:
        _abort(f"Keine Schüler in {target.name}.")

    statuses: dict[str, HomeworkStatus] = {}
    for arg in status_args:
        ref, sep, raw = arg.rpartition("=")
        if not sep or not ref.strip():
            raise click.BadParameter(f"'{arg}' nicht im Format NAME=STATUS.")
        ref = ref.strip()
        found = [s for s in students
                 if s.id == ref or s.name.casefold() == ref.casefold()]
        if len(found) != 1:
            _abort(f"Schüler '{ref}' in {target.name} nicht (eindeutig) gefunden.")
        statuses[found[0].id] = _parse_status(raw)

    session, records = app.repo.record_session(
        target.id, _parse_date(day), description, statuses
    )
    console.print(
        f"[green]✓[/green] Kontrolle {session.date.isoformat()} für {target.name} "
        f"gespeichert ({len(records)} Einträge, ID {session.id})."
    )


@cmd_session.command("list")
@click.argument("klasse")
@click.pass_context
def session_list(ctx: click.Context, klasse: str):
    """Kontrollen einer Klasse, neueste zuerst."""
    app = _app(ctx)
    target = _resolve_class(app, klasse)
    sessions = app.repo.get_sessions(target.id)
    if not sessions:
        console.print(f"[dim]Keine Kontrollen für {target.name}.[/dim]")
        return
    records = app.repo.get_all_records()
    table = Table(title=f"Kontrollen {target.name}", box=box.ROUNDED)
    table.add_column("ID", style="dim")
    table.add_column("Datum")
    table.add_column("Aufgabe")
    table.add_column("Erledigt", justify="right")
    for s in sessions:
        own = [r for r in records if r.session_id == s.id]
        table.add_row(s.id, s.date.strftime("%d.%m.%Y"), s.description,
                      f"{completion_rate(own)} %")
    console.print(table)


@cmd_session.command("show")
@click.argument("session_id")
@click.pass_context
def session_show(ctx: click.Context, session_id: str):
    """Zeigt die Einträge einer Kontrolle."""
    repo = _app(ctx).repo
    session = repo.get_session(session_id)
    names = {s.id: s.name for s in repo.get_students(session.class_id)}
    table = Table(title=f"Kontrolle {session.date.strftime('%d.%m.%Y')} "
                        f"{session.description}", box=box.ROUNDED)
    table.add_column("Schüler", style="bold")
    table.add_column("Status")
    for r in repo.get_records(session_id):
        table.add_row(names.get(r.student_id, f"[dim]{r.student_id}[/dim]"),
                      STATUS_LABELS[r.status])
    console.print(table)


@cmd_session.command("delete")
@click.argument("session_id")
@click.option("--yes", "-y", is_flag=True, help="Ohne Rückfrage löschen.")
@click.pass_context
def session_delete(ctx: click.Context, session_id: str, yes: bool):
    """Löscht eine Kontrolle samt Einträgen."""
    app = _app(ctx)
    if not yes and not click.confirm(f"Kontrolle {session_id} löschen?", default=False):
        return
    plan = app.repo.delete_session(session_id)
    if plan.is_empty():
        _abort(f"Kontrolle '{session_id}' nicht gefunden.")
    console.print(f"[green]✓[/green] Gelöscht: {plan.summary()}")


# ─── ZEITRÄUME ────────────────────────────────────────────────────────────────

@click.group("period")
def cmd_period():
    """Auswertungs-Zeiträume (Trimester) verwalten."""


@cmd_period.command("list")
@click.option("--all", "show_all", is_flag=True,
              help="Auch Zeiträume anzeigen, die noch nicht begonnen haben.")
@click.pass_context
def period_list(ctx: click.Context, show_all: bool):
    """Listet die Zeiträume."""
    periods = _app(ctx).repo.get_periods()
    if not show_all:
        periods = visible_periods(periods)
    table = Table(title="Zeiträume", box=box.ROUNDED)
    table.add_column("ID", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Von")
    table.add_column("Bis")
    for p in periods:
        table.add_row(p.id, p.name, p.start_date.strftime("%d.%m.%Y"),
                      p.end_date.strftime("%d.%m.%Y"))
    console.print(table)


@cmd_period.command("add")
@click.argument("name")
@click.argument("start")
@click.argument("end")
@click.pass_context
def period_add(ctx: click.Context, name: str, start: str, end: str):
    """Legt einen Zeitraum an (START/END als JJJJ-MM-TT)."""
    period = _app(ctx).repo.add_period(name, _parse_date(start), _parse_date(end))
    console.print(f"[green]✓[/green] Zeitraum '{period.name}' angelegt (ID {period.id}).")


@cmd_period.command("delete")
@click.argument("period_id")
@click.pass_context
def period_delete(ctx: click.Context, period_id: str):
    """Löscht einen Zeitraum (Kontrollen bleiben erhalten)."""
    if not _app(ctx).repo.delete_period(period_id):
        _abort(f"Zeitraum '{period_id}' nicht gefunden.")
    console.print("[green]✓[/green] Zeitraum gelöscht.")


# ─── AUSWERTUNG ───────────────────────────────────────────────────────────────

@click.command("stats")
@click.argument("klasse")
@click.option("--period", "-p", "period_id", default=None,
              help="Zeitraum-ID (Standard: gesamtes Schuljahr).")
@click.pass_context
def cmd_stats(ctx: click.Context, klasse: str, period_id: Optional[str]):
    """Ernsthaftigkeits-Score je Schüler, schwächste zuerst."""
    app = _app(ctx)
    target = _resolve_class(app, klasse)
    period = app.repo.get_period(period_id) if period_id else None
    selection = filter_by_period(app.repo.get_sessions(target.id),
                                 app.repo.get_all_records(), period)
    stats = student_stats(app.repo.get_students(target.id), selection.records)

    table = Table(title=f"{target.name}: {selection.period_name}", box=box.ROUNDED)
    table.add_column("Schüler", style="bold")
    for status in HomeworkStatus:
        table.add_column(STATUS_SHORT[status], justify="right")
    table.add_column("Score", justify="right")
    for st in stats:
        table.add_row(st.student.name, str(st.done), str(st.missed),
                      str(st.incomplete), str(st.absent), _score_text(st.score))
    console.print(table)
    console.print(
        f"{len(selection.sessions)} Kontrolle(n)  |  "
        f"Klassenschnitt: {_score_text(class_average(stats))}/100"
    )


# ─── BERICHTE ─────────────────────────────────────────────────────────────────

@click.group("report")
def cmd_report():
    """Klassenbericht als PDF oder Excel exportieren."""


def _report_target(app: AppContext, klasse: str, period_id: Optional[str],
                   output: Optional[str], suffix: str):
    from export.helpers import build_class_report

    report = build_class_report(app.repo, _resolve_class(app, klasse).id, period_id)
    path = Path(output) if output else Path(app.config.output_dir) / report.default_filename(suffix)
    return report, path


@cmd_report.command("pdf")
@click.argument("klasse")
@click.option("--period", "-p", "period_id", default=None, help="Zeitraum-ID.")
@click.option("--output", "-o", default=None, help="Zieldatei.")
@click.pass_context
def report_pdf(ctx: click.Context, klasse: str, period_id: Optional[str],
               output: Optional[str]):
    """PDF mit einer Seite pro Schüler."""
    from export.pdf_report import PdfReportExporter

    report, path = _report_target(_app(ctx), klasse, period_id, output, ".pdf")
    PdfReportExporter(report).export(path)
    console.print(f"[green]✓[/green] PDF gespeichert: {path}")


@cmd_report.command("excel")
@click.argument("klasse")
@click.option("--period", "-p", "period_id", default=None, help="Zeitraum-ID.")
@click.option("--output", "-o", default=None, help="Zieldatei.")
@click.pass_context
def report_excel(ctx: click.Context, klasse: str, period_id: Optional[str],
                 output: Optional[str]):
    """Excel-Arbeitsmappe mit Übersicht und Kontroll-Matrix."""
    from export.excel_export import ExcelExporter

    report, path = _report_target(_app(ctx), klasse, period_id, output, ".xlsx")
    ExcelExporter(report).export(path)
    console.print(f"[green]✓[/green] Excel gespeichert: {path}")


# ─── SICHERUNG ────────────────────────────────────────────────────────────────

@click.group("backup")
def cmd_backup():
    """Sicherung als JSON-Datei (unabhängig von der Cloud)."""


@cmd_backup.command("export")
@click.option("--dir", "directory", default=None,
              help="Zielverzeichnis (Standard: output_dir der Konfiguration).")
@click.pass_context
def backup_export(ctx: click.Context, directory: Optional[str]):
    """Schreibt alle Daten in hausaufgaben_backup_<datum>.json."""
    from data.transfer import write_backup

    app = _app(ctx)
    path = write_backup(app.repo.store, Path(directory or app.config.output_dir))
    console.print(f"[green]✓[/green] Sicherung gespeichert: {path}")


@cmd_backup.command("import")
@click.argument("datei", type=click.Path(exists=True, path_type=Path))
@click.option("--yes", "-y", is_flag=True, help="Ohne Rückfrage überschreiben.")
@click.pass_context
def backup_import(ctx: click.Context, datei: Path, yes: bool):
    """Ersetzt alle lokalen Daten durch die Sicherung."""
    app = _app(ctx)
    if not yes and not click.confirm("Alle lokalen Daten überschreiben?", default=False):
        return
    if not app.repo.restore_backup(datei):
        _abort("Import fehlgeschlagen, lokale Daten unverändert.")
    console.print(f"[green]✓[/green] Sicherung importiert:\n{app.repo.snapshot().summary()}")


@cmd_backup.command("clear")
@click.option("--yes", "-y", is_flag=True, help="Ohne Rückfrage löschen.")
@click.pass_context
def backup_clear(ctx: click.Context, yes: bool):
    """Löscht alle lokalen Daten (die Cloud-Kopie bleibt)."""
    app = _app(ctx)
    if not yes and not click.confirm("Wirklich ALLE lokalen Daten löschen?", default=False):
        return
    app.repo.clear()
    console.print("[green]✓[/green] Lokale Daten gelöscht.")


# ─── SYNC ─────────────────────────────────────────────────────────────────────

@click.group("sync")
def cmd_sync():
    """Cloud-Synchronisation (letzter Schreibvorgang gewinnt)."""


@cmd_sync.command("push")
@click.pass_context
def sync_push(ctx: click.Context):
    """Lädt den lokalen Stand hoch (ohne vorherigen Abruf)."""
    result = _app(ctx, startup_sync=False).sync.push()
    if not result.ok:
        _abort(result.error)
    console.print("[green]✓[/green] Cloud-Kopie aktualisiert.")


@cmd_sync.command("pull")
@click.option("--force", is_flag=True,
              help="Auch bei noch nicht hochgeladenen Änderungen überschreiben.")
@click.pass_context
def sync_pull(ctx: click.Context, force: bool):
    """Lädt den Cloud-Stand und überschreibt die lokalen Daten."""
    app = _app(ctx, startup_sync=False)
    if app.sync.pending and not force:
        _abort("Lokale Änderungen sind noch nicht hochgeladen. "
               "Erst 'sync push' oder mit --force überschreiben.")
    result = app.sync.pull()
    if not result.ok:
        _abort(result.error)
    console.print(f"[green]✓[/green] {result.message if result.no_data else 'Cloud-Stand geladen.'}")


@cmd_sync.command("status")
@click.pass_context
def sync_status(ctx: click.Context):
    """Zeigt Konfiguration, Anmeldung, ausstehende Uploads und letzten Fehler.

    Eine gespeicherte Sitzung wird beim Auth-Dienst geprüft; lehnt er sie ab,
    wird sie entfernt.
    """
    app = _app(ctx, startup_sync=False)
    session = app.sessions.load()
    login = session.email or session.user_id if session else "nein"
    if session is not None and app.sync.is_configured:
        # Abgelaufene Tokens vorher erneuern
        session = app.sync.session_source() or session
        try:
            user_id = app.auth.get_user(session)
        except AuthError as e:
            login += f" (nicht prüfbar: {e})"
        else:
            if user_id != session.user_id:
                app.sessions.clear()
                login = "nein (Sitzung abgelaufen, bitte neu anmelden)"

    last_error = app.sync.last_error
    status = app.sync.status
    if status is SyncStatus.IDLE and last_error:
        status = SyncStatus.ERROR
    console.print(
        f"Konfiguriert: {'ja' if app.sync.is_configured else 'nein'}\n"
        f"Angemeldet:   {login}\n"
        f"Status:       {status.value}\n"
        f"Ausstehender Upload: {'ja' if app.sync.pending else 'nein'}"
        + (f"\nLetzter Fehler: {last_error}" if last_error else "")
    )


# ─── HAUPT-CLI ────────────────────────────────────────────────────────────────

class _Cli(click.Group):
    """Gruppe mit einheitlicher Fehlerausgabe für erwartete Fehler."""

    def invoke(self, ctx: click.Context):
        try:
            return super().invoke(ctx)
        except (EntityNotFoundError, RosterImportError, StoreCorruptError,
                AuthError, FileNotFoundError, ValueError) as e:
            logger.debug("Abbruch", exc_info=True)
            _abort(str(e))


@click.group(cls=_Cli)
@click.option("--verbose", "-v", is_flag=True, help="Ausführliche Protokollausgabe.")
@click.option("--offline", is_flag=True,
              help="Ohne Cloud-Sync (kein Pull beim Start, kein Upload).")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, offline: bool):
    """Hausaufgabenheft: Hausaufgaben-Kontrollen je Klasse erfassen und auswerten.

    Starten Sie mit: python main.py init
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    ctx.ensure_object(dict)["offline"] = offline


def main():
    """Einstiegspunkt."""
    cli()


# Befehle registrieren
cli.add_command(cmd_init)
cli.add_command(cmd_config)
cli.add_command(cmd_login)
cli.add_command(cmd_logout)
cli.add_command(cmd_class)
cli.add_command(cmd_student)
cli.add_command(cmd_session)
cli.add_command(cmd_period)
cli.add_command(cmd_stats)
cli.add_command(cmd_report)
cli.add_command(cmd_backup)
cli.add_command(cmd_sync)


if __name__ == "__main__":
    main()
