"""Datenmodell für einen Schüler (Pydantic v2)."""

from pydantic import BaseModel, ConfigDict, Field


class Student(BaseModel):
    """Ein Schüler, der genau einer Klasse angehört."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str                                # "Dupont Alice" – wie eingegeben
    class_id: str = Field(alias="classId")   # → ClassGroup.id
