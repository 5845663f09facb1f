# timetable_ga/domains.py
"""
Dominio de una corrida: entidades indexadas, docente preferido por curso,
aulas por tipo y ocupación reservada por semestres ya programados.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence
import logging

import numpy as np

from .config import GAConfig
from .model import Subject, Teacher, Room, LAB, THEORY

logger = logging.getLogger(__name__)


def _norm(value) -> str:
    return str(value).strip().lower()


def find_preferred_teacher(subject: Subject, teachers: Sequence[Teacher]) -> Optional[Teacher]:
    """
    Primer docente cuya lista de preferencias menciona el curso, por código o
    por nombre y sin distinguir mayúsculas. Preferencias que no corresponden a
    ningún curso simplemente no coinciden.
    """
    keys = {_norm(subject.id), _norm(subject.name)}
    for teacher in teachers:
        if any(_norm(p) in keys for p in teacher.preferences):
            return teacher
    return None


@dataclass
class SchedulingContext:
    semester: int
    cfg: GAConfig
    subjects: List[Subject]
    teachers: List[Teacher]
    rooms: List[Room]
    subject_index: Dict[str, int] = field(default_factory=dict)
    teacher_index: Dict[str, int] = field(default_factory=dict)
    room_index: Dict[str, int] = field(default_factory=dict)
    rooms_by_type: Dict[str, List[Room]] = field(default_factory=dict)
    preferred_teacher: Dict[str, Optional[Teacher]] = field(default_factory=dict)
    reserved_teacher: Optional[np.ndarray] = None
    reserved_room: Optional[np.ndarray] = None

    @property
    def shape(self):
        return (self.cfg.n_days, self.cfg.n_periods_per_day)

    def subject(self, subject_id: str) -> Subject:
        return self.subjects[self.subject_index[subject_id]]

    def teacher(self, teacher_id: Optional[str]) -> Optional[Teacher]:
        if teacher_id is None or teacher_id not in self.teacher_index:
            return None
        return self.teachers[self.teacher_index[teacher_id]]

    def rooms_for(self, subject: Subject) -> List[Room]:
        return self.rooms_by_type.get(subject.room_type, [])

    def teacher_for(self, subject: Subject) -> Optional[Teacher]:
        return self.preferred_teacher.get(subject.id)


def _dedupe(items, what: str):
    seen = {}
    for item in items:
        if item.id in seen:
            logger.warning("%s duplicado ignorado: %s", what, item.id)
            continue
        seen[item.id] = item
    return list(seen.values())


def build_context(
    semester: int,
    subjects: Sequence[Subject],
    teachers: Sequence[Teacher],
    rooms: Sequence[Room],
    cfg: GAConfig,
    reserved_teacher: Optional[np.ndarray] = None,
    reserved_room: Optional[np.ndarray] = None,
) -> SchedulingContext:
    subjects = _dedupe(subjects, "Curso")
    teachers = _dedupe(teachers, "Docente")
    rooms = _dedupe(rooms, "Aula")
    if not subjects:
        raise ValueError(f"El semestre {semester} no tiene cursos que programar")

    shape_t = (len(teachers), cfg.n_days, cfg.n_periods_per_day)
    shape_r = (len(rooms), cfg.n_days, cfg.n_periods_per_day)
    if reserved_teacher is None:
        reserved_teacher = np.zeros(shape_t, dtype=np.int16)
    if reserved_room is None:
        reserved_room = np.zeros(shape_r, dtype=np.int16)
    if reserved_teacher.shape != shape_t or reserved_room.shape != shape_r:
        raise ValueError("La ocupación reservada no coincide con docentes/aulas de la corrida")
    # Copia propia en solo lectura; los arreglos del llamador no se tocan
    reserved_teacher = np.array(reserved_teacher, dtype=np.int16, copy=True)
    reserved_room = np.array(reserved_room, dtype=np.int16, copy=True)
    reserved_teacher.setflags(write=False)
    reserved_room.setflags(write=False)

    preferred = {}
    for subj in subjects:
        preferred[subj.id] = find_preferred_teacher(subj, teachers)
        if preferred[subj.id] is None:
            logger.info("Curso %s sin docente con preferencia, se programará sin docente", subj.id)

    return SchedulingContext(
        semester=semester,
        cfg=cfg,
        subjects=subjects,
        teachers=teachers,
        rooms=rooms,
        subject_index={s.id: i for i, s in enumerate(subjects)},
        teacher_index={t.id: i for i, t in enumerate(teachers)},
        room_index={r.id: i for i, r in enumerate(rooms)},
        rooms_by_type={
            THEORY: [r for r in rooms if r.type == THEORY],
            LAB: [r for r in rooms if r.type == LAB],
        },
        preferred_teacher=preferred,
        reserved_teacher=reserved_teacher,
        reserved_room=reserved_room,
    )
