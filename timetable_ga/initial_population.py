# timetable_ga/initial_population.py
"""
Heurística constructiva: arma un horario completo por fases.

1. Laboratorios con docente preferido (bloques de 2 periodos).
2. Teoría/electivas con docente preferido.
3. Cursos sin docente, verificando solo la ocupación de aulas.
4. Relleno: toda celda que no sea receso termina ocupada; si nada cabe se
   fuerza un curso ignorando conflictos (queda marcado como forzado).

Los bucles de muestreo están acotados; agotar los intentos no es un error,
solo pasa a la siguiente fase.
"""
import logging
import random
from typing import List, Optional

from .domains import SchedulingContext
from .model import Assignment, Room, Subject, Teacher
from .schedule import Individual

logger = logging.getLogger(__name__)


def day_has_lab(ind: Individual, day: int) -> bool:
    # Los rellenos forzados no cuentan como sesión de laboratorio programada
    return any(isinstance(c, Assignment) and c.is_lab and not c.forced for c in ind.grid[day])


def has_back_to_back(ind: Individual, day: int, period: int, subject_id: str) -> bool:
    for p in (period - 1, period + 1):
        if 0 <= p < len(ind.grid[day]):
            cell = ind.grid[day][p]
            if isinstance(cell, Assignment) and cell.subject_id == subject_id:
                return True
    return False


def _tid(teacher: Optional[Teacher]) -> Optional[str]:
    return teacher.id if teacher is not None else None


def lab_fits(ind: Individual, subject: Subject, teacher: Optional[Teacher], room: Room, day: int, period: int) -> bool:
    cfg = ind.ctx.cfg
    tid = _tid(teacher)
    if not (ind.is_empty(day, period) and ind.is_empty(day, period + 1)):
        return False
    if not (ind.is_free(tid, room.id, day, period) and ind.is_free(tid, room.id, day, period + 1)):
        return False
    if tid is not None and ind.teacher_load(tid, day) + 2 > cfg.max_teacher_periods_per_day:
        return False
    # Como máximo un bloque de laboratorio por día
    return not day_has_lab(ind, day)


def theory_fits(ind: Individual, subject: Subject, teacher: Optional[Teacher], room: Room, day: int, period: int) -> bool:
    cfg = ind.ctx.cfg
    tid = _tid(teacher)
    if not ind.is_empty(day, period) or not ind.is_free(tid, room.id, day, period):
        return False
    if tid is not None and ind.teacher_load(tid, day) >= cfg.max_teacher_periods_per_day:
        return False
    if ind.subject_load(subject.id, day) >= cfg.max_subject_periods_per_day:
        return False
    return not has_back_to_back(ind, day, period, subject.id)


def _place(ind: Individual, subject: Subject, teacher: Optional[Teacher], room: Room, day: int, period: int) -> bool:
    if subject.is_lab:
        if lab_fits(ind, subject, teacher, room, day, period):
            ind.place_lab(subject, _tid(teacher), room.id, day, period)
            return True
    elif theory_fits(ind, subject, teacher, room, day, period):
        ind.place(subject, _tid(teacher), room.id, day, period)
        return True
    return False


def sample_placements(
    ind: Individual,
    subject: Subject,
    teacher: Optional[Teacher],
    max_attempts: int,
    rng: random.Random,
) -> int:
    """
    Sortea (día, periodo, aula) hasta cubrir periods_per_week o agotar
    ``max_attempts``. Con ``teacher=None`` solo se verifica el aula.
    Devuelve los periodos colocados.
    """
    rooms = ind.ctx.rooms_for(subject)
    if not rooms:
        return 0
    n_days, n_periods = ind.ctx.shape
    last_start = n_periods - 1 if subject.is_lab else n_periods
    if last_start <= 0:
        return 0

    placed = 0
    attempts = 0
    while ind.deficit(subject) > 0 and attempts < max_attempts:
        attempts += 1
        day = rng.randrange(n_days)
        period = rng.randrange(last_start)
        room = rng.choice(rooms)
        if _place(ind, subject, teacher, room, day, period):
            placed += 2 if subject.is_lab else 1
    return placed


def try_place_at(
    ind: Individual,
    subject: Subject,
    teacher: Optional[Teacher],
    day: int,
    period: int,
    rng: random.Random,
) -> bool:
    """Intenta el curso en una celda concreta probando las aulas del tipo en orden aleatorio."""
    rooms = list(ind.ctx.rooms_for(subject))
    rng.shuffle(rooms)
    for room in rooms:
        if _place(ind, subject, teacher, room, day, period):
            return True
    return False


def force_place(ind: Individual, day: int, period: int, subject: Subject, rng: random.Random) -> List[Assignment]:
    """
    Último recurso: ocupa la celda sin docente e ignorando conflictos.
    Un laboratorio se fuerza como bloque de dos periodos si alguna celda
    vecina está libre; solo sin vecina libre queda una celda suelta.
    """
    ctx = ind.ctx
    rooms = ctx.rooms_for(subject) or ctx.rooms
    room_id = rng.choice(rooms).id if rooms else None
    if subject.is_lab:
        if ind.is_empty(day, period + 1):
            return list(ind.place_lab(subject, None, room_id, day, period, forced=True))
        if ind.is_empty(day, period - 1):
            return list(ind.place_lab(subject, None, room_id, day, period - 1, forced=True))
    return [ind.place(subject, None, room_id, day, period, forced=True)]


def _deficit_order(ind: Individual) -> List[Subject]:
    pending = [s for s in ind.ctx.subjects if ind.deficit(s) > 0]
    # sorted es estable: a igual déficit se respeta el orden de entrada
    return sorted(pending, key=lambda s: ind.deficit(s), reverse=True)


def _filler_subject(ctx: SchedulingContext, rng: random.Random) -> Subject:
    non_lab = [s for s in ctx.subjects if not s.is_lab]
    return rng.choice(non_lab or ctx.subjects)


def _forced_target(
    ctx: SchedulingContext,
    candidates: List[Subject],
    preferred: Optional[Subject],
    rng: random.Random,
) -> Subject:
    # Se fuerza un laboratorio solo si el departamento no tiene otro tipo de curso
    if preferred is not None and not preferred.is_lab:
        return preferred
    for subject in candidates:
        if not subject.is_lab:
            return subject
    if any(not s.is_lab for s in ctx.subjects):
        return _filler_subject(ctx, rng)
    if preferred is not None:
        return preferred
    return candidates[0] if candidates else _filler_subject(ctx, rng)


def fill_cell(
    ind: Individual,
    day: int,
    period: int,
    rng: random.Random,
    preferred: Optional[Subject] = None,
) -> None:
    """
    Ocupa una celda vacía. Primero los cursos con déficit (mayor déficit
    primero, ``preferred`` adelante si también tiene déficit), con docente y
    aula y luego solo con aula; si nada cabe, asignación forzada.
    """
    if not ind.is_empty(day, period):
        return
    ctx = ind.ctx
    candidates = _deficit_order(ind)
    if preferred is not None and preferred in candidates:
        candidates.remove(preferred)
        candidates.insert(0, preferred)

    for subject in candidates:
        teacher = ctx.teacher_for(subject)
        if teacher is not None and try_place_at(ind, subject, teacher, day, period, rng):
            return
        if try_place_at(ind, subject, None, day, period, rng):
            return

    force_place(ind, day, period, _forced_target(ctx, candidates, preferred, rng), rng)


def fill_empty_slots(ind: Individual, rng: random.Random) -> None:
    for day, period in ind.empty_slots():
        fill_cell(ind, day, period, rng)


def build_individual(ctx: SchedulingContext, rng: random.Random) -> Individual:
    cfg = ctx.cfg
    ind = Individual(ctx)

    with_teacher = [(s, ctx.teacher_for(s)) for s in ctx.subjects if ctx.teacher_for(s) is not None]
    without_teacher = [s for s in ctx.subjects if ctx.teacher_for(s) is None]

    for subject, teacher in with_teacher:
        if subject.is_lab:
            sample_placements(ind, subject, teacher, cfg.lab_attempts, rng)
    for subject, teacher in with_teacher:
        if not subject.is_lab:
            sample_placements(ind, subject, teacher, cfg.theory_attempts, rng)
    for subject in without_teacher:
        sample_placements(ind, subject, None, cfg.unassigned_attempts, rng)

    fill_empty_slots(ind, rng)
    return ind


def build_initial_population(ctx: SchedulingContext, pop_size: int, rng: random.Random) -> List[Individual]:
    population = [build_individual(ctx, rng) for _ in range(pop_size)]
    logger.debug("Población inicial de %d individuos para el semestre %s", pop_size, ctx.semester)
    return population
