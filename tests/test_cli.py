"""CLI-Tests über click.testing.CliRunner (isoliertes Dateisystem, kein Netzwerk)."""

import json
from pathlib import Path

import pytest
import requests
from click.testing import CliRunner

from main import cli
from sync.auth import AuthSession, SessionStore


@pytest.fixture
def runner(monkeypatch) -> CliRunner:
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    monkeypatch.delenv("SUPABASE_ANON_KEY", raising=False)
    return CliRunner()


def _invoke(runner: CliRunner, *args: str):
    result = runner.invoke(cli, list(args))
    assert result.exit_code == 0, result.output
    return result


def _read_collection(name: str) -> list:
    return json.loads(Path(f"daten/cda_{name}.json").read_text(encoding="utf-8"))


class TestCli:
    def test_help(self, runner: CliRunner):
        """main.py --help gibt Usage aus."""
        result = _invoke(runner, "--help")
        assert "Usage" in result.output
        for command in ("class", "student", "session", "report", "backup", "sync"):
            assert command in result.output

    def test_init_writes_config(self, runner: CliRunner):
        with runner.isolated_filesystem():
            _invoke(runner, "init")
            assert Path("config/app_config.yaml").exists()
            result = _invoke(runner, "config", "show")
            assert "nicht konfiguriert" in result.output

    def test_class_student_session_flow(self, runner: CliRunner):
        """3B anlegen, Alice + Zed, Kontrolle mit Zed = nicht erledigt."""
        with runner.isolated_filesystem():
            _invoke(runner, "class", "add", "3B")
            _invoke(runner, "student", "add", "3B", "Zed", "Alice")
            _invoke(runner, "session", "record", "3B", "--date", "2024-01-10",
                    "-d", "Übung 4", "--status", "Zed=N")

            records = _read_collection("records")
            students = {s["id"]: s["name"] for s in _read_collection("students")}
            by_name = {students[r["studentId"]]: r["status"] for r in records}
            assert by_name == {"Alice": "FAIT", "Zed": "NON_FAIT"}

            result = _invoke(runner, "stats", "3B")
            assert "Zed" in result.output
            result = _invoke(runner, "session", "list", "3b")
            assert "10.01.2024" in result.output

    def test_unknown_class_exits_1(self, runner: CliRunner):
        with runner.isolated_filesystem():
            result = runner.invoke(cli, ["student", "list", "gibtsnicht"])
            assert result.exit_code == 1
            assert "nicht gefunden" in result.output

    def test_invalid_status_rejected(self, runner: CliRunner):
        with runner.isolated_filesystem():
            _invoke(runner, "class", "add", "3B")
            _invoke(runner, "student", "add", "3B", "Alice")
            result = runner.invoke(cli, ["session", "record", "3B", "-s", "Alice=vielleicht"])
            assert result.exit_code != 0
            assert not Path("daten/cda_sessions.json").exists()

    def test_class_delete_cascades(self, runner: CliRunner):
        with runner.isolated_filesystem():
            _invoke(runner, "class", "add", "3B")
            _invoke(runner, "student", "add", "3B", "Alice")
            _invoke(runner, "session", "record", "3B")
            _invoke(runner, "class", "delete", "3B", "--yes")
            assert _read_collection("classes") == []
            assert _read_collection("students") == []
            assert _read_collection("records") == []

    def test_student_import(self, runner: CliRunner):
        with runner.isolated_filesystem():
            Path("liste.csv").write_text("Nom;Prénom\nDupont;Alice\nMartin;Zoé\n",
                                         encoding="utf-8")
            _invoke(runner, "class", "add", "5A")
            _invoke(runner, "student", "import", "5A", "liste.csv")
            assert sorted(s["name"] for s in _read_collection("students")) == \
                ["Dupont Alice", "Martin Zoé"]

    def test_backup_export_clear_import(self, runner: CliRunner):
        with runner.isolated_filesystem():
            _invoke(runner, "class", "add", "3B")
            _invoke(runner, "backup", "export", "--dir", "sicherung")
            (backup,) = Path("sicherung").glob("hausaufgaben_backup_*.json")

            _invoke(runner, "backup", "clear", "--yes")
            assert not Path("daten/cda_classes.json").exists()

            _invoke(runner, "backup", "import", str(backup), "--yes")
            assert [c["name"] for c in _read_collection("classes")] == ["3B"]

    def test_backup_import_invalid_file(self, runner: CliRunner):
        with runner.isolated_filesystem():
            Path("kaputt.json").write_text("{nein", encoding="utf-8")
            result = runner.invoke(cli, ["backup", "import", "kaputt.json", "--yes"])
            assert result.exit_code == 1

    def test_reports(self, runner: CliRunner):
        with runner.isolated_filesystem():
            _invoke(runner, "class", "add", "3B")
            _invoke(runner, "student", "add", "3B", "Alice")
            _invoke(runner, "session", "record", "3B", "--date", "2024-01-10")
            _invoke(runner, "report", "pdf", "3B")
            _invoke(runner, "report", "excel", "3B", "-o", "bericht.xlsx")
            assert Path("output/Bericht_3b_gesamtes_schuljahr.pdf").exists()
            assert Path("bericht.xlsx").exists()

    def test_periods_seeded(self, runner: CliRunner):
        with runner.isolated_filesystem():
            result = _invoke(runner, "period", "list", "--all")
            assert "Trimester 3" in result.output

    def test_sync_without_backend(self, runner: CliRunner):
        """Lokalbetrieb: push meldet 'nicht konfiguriert', status funktioniert."""
        with runner.isolated_filesystem():
            result = runner.invoke(cli, ["sync", "push"])
            assert result.exit_code == 1
            assert "nicht konfiguriert" in result.output
            result = _invoke(runner, "sync", "status")
            assert "idle" in result.output


# ─── CLOUD-SYNC ÜBER DIE CLI ──────────────────────────────────────────────────

class _Response:
    def __init__(self, status_code: int, payload=None):
        self.status_code = status_code
        self._payload = payload
        self.text = json.dumps(payload)

    def json(self):
        return self._payload


class FakeCloud:
    """Ersetzt requests.Session.get/post: eine Cloud-Zeile pro Nutzer."""

    def __init__(self):
        self.content = {"classes": [], "students": [], "sessions": [], "records": []}
        self.uploads_fail = False
        self.token_valid = True
        self.uploads: list[dict] = []
        self.table_reads = 0

    def post(self, url, **kwargs):
        if self.uploads_fail:
            raise requests.ConnectionError("Netz weg")
        self.content = kwargs["json"]["content"]
        self.uploads.append(self.content)
        return _Response(201)

    def get(self, url, **kwargs):
        if url.endswith("/auth/v1/user"):
            if self.token_valid:
                return _Response(200, {"id": "user-1"})
            return _Response(401, {"msg": "invalid JWT"})
        self.table_reads += 1
        return _Response(200, [{"content": self.content}])


@pytest.fixture
def cloud(runner: CliRunner, monkeypatch) -> FakeCloud:
    monkeypatch.setenv("SUPABASE_URL", "https://projekt.supabase.co")
    monkeypatch.setenv("SUPABASE_ANON_KEY", "anon-123")
    fake = FakeCloud()
    monkeypatch.setattr(requests.Session, "post", fake.post)
    monkeypatch.setattr(requests.Session, "get", fake.get)
    return fake


def _log_in() -> None:
    SessionStore(Path("config/session.json")).save(
        AuthSession(access_token="tok", user_id="user-1", email="lehrer@example.org")
    )


def _class_names() -> list[str]:
    return [c["name"] for c in _read_collection("classes")]


class TestCliCloudSync:
    def test_failed_upload_survives_sync_push(self, runner: CliRunner, cloud: FakeCloud):
        """Upload schlägt fehl → 'sync push' lädt die Änderung hoch statt sie zu verwerfen."""
        with runner.isolated_filesystem():
            _log_in()
            cloud.uploads_fail = True
            _invoke(runner, "class", "add", "3B")
            assert _class_names() == ["3B"]

            result = _invoke(runner, "sync", "status")
            assert "Ausstehender Upload: ja" in result.output
            assert "error" in result.output
            assert "Netz weg" in result.output

            cloud.uploads_fail = False
            reads_before = cloud.table_reads
            result = _invoke(runner, "sync", "push")
            assert "Cloud-Kopie aktualisiert" in result.output
            assert cloud.table_reads == reads_before
            assert _class_names() == ["3B"]
            assert [c["name"] for c in cloud.uploads[-1]["classes"]] == ["3B"]

            result = _invoke(runner, "sync", "status")
            assert "Ausstehender Upload: nein" in result.output

    def test_next_command_uploads_instead_of_pulling(self, runner: CliRunner,
                                                     cloud: FakeCloud):
        """Beim Start mit ausstehendem Upload: erst hochladen, Cloud-Stand nicht laden."""
        with runner.isolated_filesystem():
            _log_in()
            cloud.uploads_fail = True
            _invoke(runner, "class", "add", "3B")
            reads_before = cloud.table_reads

            cloud.uploads_fail = False
            result = _invoke(runner, "class", "list")
            assert "3B" in result.output
            assert cloud.table_reads == reads_before
            assert [c["name"] for c in cloud.uploads[-1]["classes"]] == ["3B"]

    def test_startup_upload_failure_keeps_local(self, runner: CliRunner, cloud: FakeCloud):
        with runner.isolated_filesystem():
            _log_in()
            cloud.uploads_fail = True
            _invoke(runner, "class", "add", "3B")
            result = _invoke(runner, "class", "list")
            assert "nicht hochgeladen" in result.output
            assert _class_names() == ["3B"]

    def test_pull_refuses_pending_changes(self, runner: CliRunner, cloud: FakeCloud):
        """'sync pull' verwirft ausstehende Änderungen nur mit --force."""
        with runner.isolated_filesystem():
            _log_in()
            cloud.uploads_fail = True
            _invoke(runner, "class", "add", "3B")

            result = runner.invoke(cli, ["sync", "pull"])
            assert result.exit_code == 1
            assert "noch nicht hochgeladen" in result.output
            assert _class_names() == ["3B"]

            _invoke(runner, "sync", "pull", "--force")
            assert _class_names() == []

    def test_status_drops_rejected_session(self, runner: CliRunner, cloud: FakeCloud):
        """Vom Auth-Dienst abgelehnte Sitzung wird entfernt."""
        with runner.isolated_filesystem():
            _log_in()
            cloud.token_valid = False
            result = _invoke(runner, "sync", "status")
            assert "bitte neu anmelden" in result.output
            assert not Path("config/session.json").exists()

    def test_status_confirms_valid_session(self, runner: CliRunner, cloud: FakeCloud):
        with runner.isolated_filesystem():
            _log_in()
            result = _invoke(runner, "sync", "status")
            assert "lehrer@example.org" in result.output
            assert Path("config/session.json").exists()
