from models.class_group import ClassGroup
from models.student import Student
from models.homework import HomeworkStatus, HomeworkSession, HomeworkRecord
from models.period import SchoolPeriod
from models.snapshot import DataSnapshot, COLLECTION_NAMES

__all__ = [
    "ClassGroup",
    "Student",
    "HomeworkStatus",
    "HomeworkSession",
    "HomeworkRecord",
    "SchoolPeriod",
    "DataSnapshot",
    "COLLECTION_NAMES",
]
