# timetable_ga/evaluation.py
from dataclasses import dataclass, field, asdict
from typing import Dict
from collections import Counter, defaultdict

import numpy as np

from .config import GAConfig
from .model import Assignment
from .schedule import Individual


# Clave interna -> clave del diagnóstico publicado
DIAGNOSTIC_KEYS = {
    "unscheduled_periods": "unscheduledPeriods",
    "teacher_conflicts": "teacherConflicts",
    "room_conflicts": "roomConflicts",
    "back_to_back_conflicts": "backToBackConflicts",
    "multi_lab_per_day": "multiLabPerDay",
    "teacher_overloads": "teacherOverloads",
    "subject_distribution_issues": "subjectDistributionIssues",
    "empty_slots": "emptySlots",
    "non_consecutive_labs": "nonConsecutiveLabs",
    "unassigned_periods": "unassignedPeriods",
    "forced_placements": "forcedPlacements",
}


@dataclass
class EvaluationResult:
    fitness: int
    period_mismatch: int = 0
    unscheduled_periods: int = 0
    empty_slots: int = 0
    teacher_conflicts: int = 0
    room_conflicts: int = 0
    back_to_back_conflicts: int = 0
    multi_lab_per_day: int = 0
    non_consecutive_labs: int = 0
    teacher_overloads: int = 0
    subject_distribution_issues: int = 0
    unassigned_periods: int = 0
    forced_placements: int = 0
    scheduled: Dict[str, int] = field(default_factory=dict)

    def counts(self) -> Dict[str, int]:
        data = asdict(self)
        data.pop("fitness")
        data.pop("scheduled")
        return data

    def diagnostics(self) -> Dict[str, int]:
        return {public: getattr(self, key) for key, public in DIAGNOSTIC_KEYS.items()}


def score(counts: Dict[str, int], cfg: GAConfig) -> int:
    """Fitness base menos las penalizaciones ponderadas, con piso 0."""
    penalty = sum(weight * counts.get(key, 0) for key, weight in cfg.weights().items())
    return max(0, cfg.base_fitness - penalty)


def count_violations(ind: Individual) -> EvaluationResult:
    """
    Cuenta las violaciones recorriendo la rejilla desde cero. No consulta los
    trackers del individuo: el evaluador es la única fuente de verdad sobre
    conflictos.
    """
    ctx = ind.ctx
    cfg = ctx.cfg
    n_days, n_periods = ctx.shape

    teacher_occ = np.zeros((len(ctx.teachers), n_days, n_periods), dtype=np.int16)
    room_occ = np.zeros((len(ctx.rooms), n_days, n_periods), dtype=np.int16)
    scheduled: Counter = Counter()
    subject_daily: Dict[str, Counter] = defaultdict(Counter)
    res = EvaluationResult(fitness=0)

    for day, period, cell in ind.assignments():
        if cell.forced:
            res.forced_placements += 1
        else:
            scheduled[cell.subject_id] += 1
        subject_daily[cell.subject_id][day] += 1
        if cell.teacher_id is None:
            res.unassigned_periods += 1
        else:
            teacher_occ[ctx.teacher_index[cell.teacher_id], day, period] += 1
        if cell.room_id is not None:
            room_occ[ctx.room_index[cell.room_id], day, period] += 1

    for subject in ctx.subjects:
        diff = scheduled[subject.id] - subject.periods_per_week
        res.period_mismatch += abs(diff)
        res.unscheduled_periods += max(0, -diff)
    res.scheduled = {s.id: scheduled[s.id] for s in ctx.subjects}

    res.empty_slots = len(ind.empty_slots())

    # Choques dentro del horario o contra la ocupación reservada por otros semestres
    res.teacher_conflicts = int(np.count_nonzero((teacher_occ > 0) & (teacher_occ + ctx.reserved_teacher > 1)))
    res.room_conflicts = int(np.count_nonzero((room_occ > 0) & (room_occ + ctx.reserved_room > 1)))

    for day, row in enumerate(ind.grid):
        for period in range(n_periods - 1):
            a, b = row[period], row[period + 1]
            if not (isinstance(a, Assignment) and isinstance(b, Assignment)):
                continue
            if a.subject_id != b.subject_id:
                continue
            if ind.lab_partner(day, period) == (day, period + 1):
                continue
            res.back_to_back_conflicts += 1

        lab_cells = Counter(c.subject_id for c in row if isinstance(c, Assignment) and c.is_lab)
        if lab_cells:
            res.multi_lab_per_day += len(lab_cells) - 1
            if any(n > 2 for n in lab_cells.values()):
                res.multi_lab_per_day += 1
        for period, cell in enumerate(row):
            if isinstance(cell, Assignment) and cell.is_lab and ind.lab_partner(day, period) is None:
                res.non_consecutive_labs += 1

    teacher_daily = teacher_occ.sum(axis=2)
    res.teacher_overloads = int(np.count_nonzero(teacher_daily > cfg.max_teacher_periods_per_day))
    res.subject_distribution_issues = sum(
        1
        for per_day in subject_daily.values()
        for n in per_day.values()
        if n > cfg.max_subject_periods_per_day
    )
    return res


def evaluate(ind: Individual) -> EvaluationResult:
    res = count_violations(ind)
    res.fitness = score(res.counts(), ind.ctx.cfg)
    ind.fitness = res.fitness
    return res
