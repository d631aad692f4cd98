from pydantic import BaseModel, Field
from typing import Optional


# ─── CLOUD-BACKEND (Supabase) ───

class BackendConfig(BaseModel):
    """Zugangsdaten für die Cloud-Sicherung.

    Fehlen URL oder Schlüssel, läuft die Anwendung im reinen Lokalbetrieb.
    Das ist ein regulärer Betriebsmodus, kein Fehlerzustand.
    """
    # Projekt-URL, z.B. "https://abcd1234.supabase.co"
    url: Optional[str] = Field(None,
        description="Supabase-Projekt-URL")
    # Öffentlicher anon-Schlüssel des Projekts
    anon_key: Optional[str] = Field(None,
        description="Supabase anon key")
    # Tabelle mit einer Zeile pro Nutzer (user_id, content)
    table: str = Field("user_data",
        description="Tabelle für die Cloud-Kopie")
    # Zeitlimit pro HTTP-Anfrage in Sekunden
    timeout_seconds: float = Field(15.0, gt=0, le=300,
        description="HTTP-Zeitlimit (Sekunden)")

    @property
    def is_configured(self) -> bool:
        """True wenn URL und Schlüssel gesetzt sind."""
        return bool(self.url) and bool(self.anon_key)

    @property
    def base_url(self) -> str:
        return (self.url or "").rstrip("/")


# ─── SYNCHRONISATION ───

class SyncConfig(BaseModel):
    """Verhalten der Cloud-Synchronisation."""
    # Nach jeder Änderung automatisch hochladen (im Hintergrund)
    auto_push: bool = Field(True,
        description="Nach jeder Änderung automatisch hochladen")
    # Beim Start einmalig den Cloud-Stand laden
    pull_on_start: bool = Field(True,
        description="Beim Start Cloud-Stand laden")


# ─── GESAMT-CONFIG ───

class AppConfig(BaseModel):
    """Gesamtkonfiguration des Hausaufgabenhefts."""
    # Verzeichnis für die lokalen Sammlungen (eine JSON-Datei je Sammlung)
    data_dir: str = Field("daten",
        description="Verzeichnis der lokalen Daten")
    # Zielverzeichnis für Sicherungen und Berichte
    output_dir: str = Field("output",
        description="Verzeichnis für Sicherungen und Berichte")
    # Cloud-Backend
    backend: BackendConfig = Field(default_factory=BackendConfig)
    # Synchronisation
    sync: SyncConfig = Field(default_factory=SyncConfig)
