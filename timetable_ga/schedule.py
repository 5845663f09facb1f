# timetable_ga/schedule.py
"""
Rejilla de un horario candidato y sus estructuras de seguimiento.

La rejilla es la única fuente de verdad. Los trackers son cachés derivadas:
toda escritura pasa por ``place``/``clear`` (que los actualizan en la misma
operación) o se re-derivan completos con ``build_trackers``.
"""
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

import numpy as np

from .config import GAConfig
from .domains import SchedulingContext
from .model import Assignment, BREAK, Cell, Subject

Slot = Tuple[int, int]


@dataclass(eq=False)
class Trackers:
    teacher_busy: np.ndarray    # [docente][día][periodo]
    room_busy: np.ndarray       # [aula][día][periodo]
    subject_count: np.ndarray   # [curso] periodos que cuentan para periods_per_week
    teacher_daily: np.ndarray   # [docente][día]
    subject_daily: np.ndarray   # [curso][día]

    @classmethod
    def empty(cls, ctx: SchedulingContext) -> "Trackers":
        n_days, n_periods = ctx.shape
        n_t, n_r, n_s = len(ctx.teachers), len(ctx.rooms), len(ctx.subjects)
        return cls(
            teacher_busy=np.zeros((n_t, n_days, n_periods), dtype=np.int16),
            room_busy=np.zeros((n_r, n_days, n_periods), dtype=np.int16),
            subject_count=np.zeros(n_s, dtype=np.int32),
            teacher_daily=np.zeros((n_t, n_days), dtype=np.int16),
            subject_daily=np.zeros((n_s, n_days), dtype=np.int16),
        )

    def copy(self) -> "Trackers":
        return Trackers(
            teacher_busy=self.teacher_busy.copy(),
            room_busy=self.room_busy.copy(),
            subject_count=self.subject_count.copy(),
            teacher_daily=self.teacher_daily.copy(),
            subject_daily=self.subject_daily.copy(),
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, Trackers):
            return NotImplemented
        return (
            np.array_equal(self.teacher_busy, other.teacher_busy)
            and np.array_equal(self.room_busy, other.room_busy)
            and np.array_equal(self.subject_count, other.subject_count)
            and np.array_equal(self.teacher_daily, other.teacher_daily)
            and np.array_equal(self.subject_daily, other.subject_daily)
        )


def _apply(tr: Trackers, ctx: SchedulingContext, cell: Assignment, day: int, period: int, delta: int) -> None:
    s = ctx.subject_index[cell.subject_id]
    if not cell.forced:
        tr.subject_count[s] += delta
    tr.subject_daily[s, day] += delta
    if cell.teacher_id is not None:
        t = ctx.teacher_index[cell.teacher_id]
        tr.teacher_busy[t, day, period] += delta
        tr.teacher_daily[t, day] += delta
    if cell.room_id is not None:
        r = ctx.room_index[cell.room_id]
        tr.room_busy[r, day, period] += delta


def empty_grid(cfg: GAConfig) -> List[List[Cell]]:
    return [
        [BREAK if cfg.is_break(p) else None for p in range(cfg.n_periods_per_day)]
        for _ in range(cfg.n_days)
    ]


def build_trackers(grid: List[List[Cell]], ctx: SchedulingContext) -> Trackers:
    """Re-deriva todos los trackers recorriendo la rejilla desde cero."""
    tr = Trackers.empty(ctx)
    for day, row in enumerate(grid):
        for period, cell in enumerate(row):
            if isinstance(cell, Assignment):
                _apply(tr, ctx, cell, day, period, +1)
    return tr


class Individual:
    """Un horario semanal candidato para un semestre."""

    def __init__(self, ctx: SchedulingContext, grid=None, trackers: Optional[Trackers] = None, fitness: int = 0):
        self.ctx = ctx
        self.semester = ctx.semester
        self.grid = grid if grid is not None else empty_grid(ctx.cfg)
        self.trackers = trackers if trackers is not None else build_trackers(self.grid, ctx)
        self.fitness = fitness

    def __repr__(self):
        return f"Individual(semester={self.semester!r}, fitness={self.fitness})"

    # --- consultas -------------------------------------------------------

    def cell(self, day: int, period: int) -> Cell:
        return self.grid[day][period]

    def is_empty(self, day: int, period: int) -> bool:
        """Celda asignable y todavía vacía (los recesos nunca lo son)."""
        n_days, n_periods = self.ctx.shape
        if not (0 <= day < n_days and 0 <= period < n_periods):
            return False
        return self.grid[day][period] is None

    def is_free(self, teacher_id: Optional[str], room_id: Optional[str], day: int, period: int) -> bool:
        ctx = self.ctx
        if teacher_id is not None:
            t = ctx.teacher_index[teacher_id]
            if self.trackers.teacher_busy[t, day, period] or ctx.reserved_teacher[t, day, period]:
                return False
        if room_id is not None:
            r = ctx.room_index[room_id]
            if self.trackers.room_busy[r, day, period] or ctx.reserved_room[r, day, period]:
                return False
        return True

    def teacher_load(self, teacher_id: str, day: int) -> int:
        return int(self.trackers.teacher_daily[self.ctx.teacher_index[teacher_id], day])

    def subject_load(self, subject_id: str, day: int) -> int:
        return int(self.trackers.subject_daily[self.ctx.subject_index[subject_id], day])

    def scheduled_count(self, subject_id: str) -> int:
        return int(self.trackers.subject_count[self.ctx.subject_index[subject_id]])

    def deficit(self, subject: Subject) -> int:
        return subject.periods_per_week - self.scheduled_count(subject.id)

    def assignments(self) -> Iterator[Tuple[int, int, Assignment]]:
        for day, row in enumerate(self.grid):
            for period, cell in enumerate(row):
                if isinstance(cell, Assignment):
                    yield day, period, cell

    def empty_slots(self) -> List[Slot]:
        return [
            (d, p)
            for d, row in enumerate(self.grid)
            for p, cell in enumerate(row)
            if cell is None
        ]

    def lab_partner(self, day: int, period: int) -> Optional[Slot]:
        """La otra mitad del bloque de laboratorio, si la celda pertenece a uno."""
        cell = self.grid[day][period]
        if not isinstance(cell, Assignment) or cell.pair_offset == 0:
            return None
        other_period = period + cell.pair_offset
        if not 0 <= other_period < self.ctx.cfg.n_periods_per_day:
            return None
        other = self.grid[day][other_period]
        if (
            isinstance(other, Assignment)
            and other.subject_id == cell.subject_id
            and other.pair_offset == -cell.pair_offset
        ):
            return day, other_period
        return None

    # --- escritura -------------------------------------------------------

    def _check_writable(self, day: int, period: int) -> None:
        if not 0 <= period < self.ctx.cfg.n_periods_per_day or self.ctx.cfg.is_break(period):
            raise ValueError(f"Periodo {period} no asignable")
        if self.grid[day][period] is not None:
            raise ValueError(f"La celda ({day}, {period}) ya está ocupada")

    def place(
        self,
        subject: Subject,
        teacher_id: Optional[str],
        room_id: Optional[str],
        day: int,
        period: int,
        forced: bool = False,
        pair_offset: int = 0,
    ) -> Assignment:
        self._check_writable(day, period)
        cell = Assignment(
            subject_id=subject.id,
            is_lab=subject.is_lab,
            teacher_id=teacher_id,
            room_id=room_id,
            forced=forced,
            pair_offset=pair_offset,
        )
        self.grid[day][period] = cell
        _apply(self.trackers, self.ctx, cell, day, period, +1)
        return cell

    def place_lab(
        self,
        subject: Subject,
        teacher_id: Optional[str],
        room_id: Optional[str],
        day: int,
        period: int,
        forced: bool = False,
    ):
        """Bloque de laboratorio en ``period`` y ``period + 1`` del mismo día."""
        self._check_writable(day, period)
        self._check_writable(day, period + 1)
        first = self.place(subject, teacher_id, room_id, day, period, forced=forced, pair_offset=+1)
        second = self.place(subject, teacher_id, room_id, day, period + 1, forced=forced, pair_offset=-1)
        return first, second

    def clear(self, day: int, period: int) -> List[Slot]:
        """
        Vacía la celda y, si es media sesión de laboratorio, también su pareja.
        Primero se detectan las celdas y luego se limpian; recesos y celdas
        vacías no se tocan.
        """
        if not isinstance(self.grid[day][period], Assignment):
            return []
        targets = [(day, period)]
        partner = self.lab_partner(day, period)
        if partner is not None:
            targets.append(partner)

        for d, p in targets:
            cell = self.grid[d][p]
            _apply(self.trackers, self.ctx, cell, d, p, -1)
            self.grid[d][p] = None
        return targets

    def rebuild_trackers(self) -> None:
        self.trackers = build_trackers(self.grid, self.ctx)

    def copy(self) -> "Individual":
        return Individual(
            self.ctx,
            grid=[list(row) for row in self.grid],
            trackers=self.trackers.copy(),
            fitness=self.fitness,
        )
