# timetable_ga/model.py
from dataclasses import dataclass
from typing import Optional, Tuple, Union

DayIdx = int
PeriodIdx = int

THEORY = "Theory"
LAB = "Lab"
ELECTIVE = "Elective"

SUBJECT_TYPES = (THEORY, LAB, ELECTIVE)
ROOM_TYPES = (THEORY, LAB)

NOT_ASSIGNED = "Not Assigned"


@dataclass(frozen=True)
class Subject:
    id: str
    name: str
    type: str               # "Theory", "Lab", "Elective"
    semester: int
    department: str
    periods_per_week: int

    @property
    def is_lab(self) -> bool:
        return self.type == LAB

    @property
    def room_type(self) -> str:
        # Las electivas se dictan en aulas de teoría
        return LAB if self.is_lab else THEORY


@dataclass(frozen=True)
class Teacher:
    id: str
    name: str
    department: str
    preferences: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Room:
    id: str                 # número de aula
    type: str               # "Theory", "Lab"


class _Break:
    """Centinela de receso: inmutable y nunca asignable."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "BREAK"

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self


BREAK = _Break()


@dataclass(frozen=True)
class Assignment:
    # Una celda ocupada de la rejilla
    subject_id: str
    is_lab: bool
    teacher_id: Optional[str]         # None = sin docente ("Not Assigned")
    room_id: Optional[str]            # None = sin aula disponible
    forced: bool = False              # relleno de último recurso
    pair_offset: int = 0              # -1/+1 hacia la otra mitad del bloque de lab

    @property
    def teacher_assigned(self) -> bool:
        return self.teacher_id is not None


Cell = Union[None, _Break, Assignment]
