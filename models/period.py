"""Datenmodell für einen Schulabschnitt (Trimester, Halbjahr, ...)."""

from datetime import date

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SchoolPeriod(BaseModel):
    """Benannter Datumsbereich, dient nur als Filter für Auswertungen."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    start_date: date = Field(alias="startDate")
    end_date: date = Field(alias="endDate")

    @model_validator(mode="after")
    def _check_range(self):
        if self.end_date < self.start_date:
            raise ValueError(
                f"Zeitraum '{self.name}': Ende ({self.end_date}) liegt vor Beginn "
                f"({self.start_date})."
            )
        return self

    def contains(self, day: date) -> bool:
        """True wenn das Datum im Zeitraum liegt (Grenzen eingeschlossen)."""
        return self.start_date <= day <= self.end_date
