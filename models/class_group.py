"""Datenmodell für eine Klasse (Pydantic v2)."""

from pydantic import BaseModel


class ClassGroup(BaseModel):
    """Repräsentiert eine Klasse, deren Hausaufgaben erfasst werden (z.B. 3B)."""

    id: str      # lokal erzeugte ID, z.B. "k3j9x0a1b"
    name: str    # Anzeigename, z.B. "3B" oder "Seconde 4"
