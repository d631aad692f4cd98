"""Konfigurationsmanager: Laden, Speichern und Umgebungsvariablen.

Nutzt ruamel.yaml für YAML-Serialisierung mit Kommentaren.
"""

import json
import logging
import os
from datetime import date
from pathlib import Path
from typing import Optional

from rich.console import Console
from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap

from config.defaults import default_app_config
from config.schema import AppConfig

logger = logging.getLogger(__name__)

console = Console()
yaml = YAML()
yaml.default_flow_style = False
yaml.width = 120

# Umgebungsvariablen überschreiben die Backend-Angaben der Datei
ENV_URL = "SUPABASE_URL"
ENV_ANON_KEY = "SUPABASE_ANON_KEY"


# ─── YAML-KOMMENTAR-AUFBAU ───

_YAML_HEADER = f"""\
# ============================================
# Hausaufgabenheft: Konfiguration
# Erstellt: {date.today().isoformat()}
# ============================================
"""

_SECTION_COMMENTS = {
    "data_dir": (
        "Lokale Daten",
        "Eine JSON-Datei pro Sammlung (Klassen, Schüler, Kontrollen, Einträge, Zeiträume).",
    ),
    "backend": (
        "Cloud-Backend (Supabase)",
        "Leer lassen für reinen Lokalbetrieb.\n"
        "SUPABASE_URL / SUPABASE_ANON_KEY in der Umgebung haben Vorrang.",
    ),
    "sync": (
        "Synchronisation",
        "Letzter Schreibvorgang gewinnt – es gibt keinen Abgleich zwischen Geräten.",
    ),
}


class ConfigManager:
    CONFIG_DIR = Path("config")
    DEFAULT_CONFIG = CONFIG_DIR / "app_config.yaml"
    SESSION_FILE = CONFIG_DIR / "session.json"

    def first_run_check(self) -> bool:
        """Gibt True zurück wenn noch keine Config existiert (Erstaufruf)."""
        return not self.DEFAULT_CONFIG.exists()

    # ─── Laden ───

    def load(self, path: Optional[Path] = None) -> AppConfig:
        """Lade Config aus YAML. Validiert automatisch via Pydantic."""
        target = path or self.DEFAULT_CONFIG
        if not target.exists():
            raise FileNotFoundError(
                f"Konfigurationsdatei nicht gefunden: {target}\n"
                f"Führen Sie 'python main.py init' aus."
            )
        with open(target, "r", encoding="utf-8") as f:
            raw = yaml.load(f)
        try:
            return AppConfig.model_validate(dict(raw or {}))
        except Exception as e:
            raise ValueError(
                f"Konfigurationsdatei ungültig: {target}\n"
                f"Pydantic-Fehler: {e}"
            ) from e

    def load_or_default(self) -> AppConfig:
        """Lädt die Config oder liefert Defaults; Umgebungsvariablen werden angewandt."""
        if self.first_run_check():
            config = default_app_config()
        else:
            config = self.load()
        return self.apply_env(config)

    def apply_env(self, config: AppConfig,
                  environ: Optional[dict] = None) -> AppConfig:
        """Überschreibt URL/Schlüssel aus der Umgebung, falls gesetzt."""
        env = os.environ if environ is None else environ
        update = {}
        if env.get(ENV_URL):
            update["url"] = env[ENV_URL]
        if env.get(ENV_ANON_KEY):
            update["anon_key"] = env[ENV_ANON_KEY]
        if update:
            config = config.model_copy(
                update={"backend": config.backend.model_copy(update=update)}
            )
        if not config.backend.is_configured:
            logger.warning(
                "Supabase-URL oder -Schlüssel fehlt – Lokalbetrieb ohne Cloud-Sync."
            )
        return config

    # ─── Speichern ───

    def save(self, config: AppConfig, path: Optional[Path] = None) -> None:
        """Speichere Config als YAML mit deutschen Kommentaren."""
        target = path or self.DEFAULT_CONFIG
        target.parent.mkdir(parents=True, exist_ok=True)

        data = self._build_commented_yaml(config)

        with open(target, "w", encoding="utf-8") as f:
            f.write(_YAML_HEADER + "\n")
            yaml.dump(data, f)

        console.print(f"[green]✓[/green] Konfiguration gespeichert: {target}")

    def _build_commented_yaml(self, config: AppConfig) -> CommentedMap:
        """Baut die YAML-Struktur mit Kommentaren auf."""
        raw = json.loads(config.model_dump_json())
        cm = CommentedMap(raw)

        for field, (label, comment) in _SECTION_COMMENTS.items():
            cm.yaml_set_comment_before_after_key(
                field,
                before=f"\n─── {label} ───" + (f"\n{comment}" if comment else ""),
            )

        # Inline-Kommentar für das HTTP-Zeitlimit
        if "backend" in cm:
            backend_map = CommentedMap(cm["backend"])
            backend_map.yaml_add_eol_comment("Sekunden", "timeout_seconds")
            cm["backend"] = backend_map

        return cm
