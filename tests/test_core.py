import random
import unittest

import numpy as np

from timetable_ga.config import GAConfig
from timetable_ga.domains import build_context, find_preferred_teacher
from timetable_ga.evaluation import count_violations, evaluate, score
from timetable_ga.initial_population import build_individual, fill_cell, day_has_lab
from timetable_ga.model import Assignment, BREAK, Room, Subject, Teacher
from timetable_ga.operators import day_crossover, mutate, tournament_selection
from timetable_ga.schedule import Individual, build_trackers


def sample_entities():
    subjects = [
        Subject("CS301", "Data Structures", "Theory", 3, "CSE", 4),
        Subject("CS302", "Discrete Mathematics", "Theory", 3, "CSE", 4),
        Subject("CS303", "Computer Organization", "Theory", 3, "CSE", 3),
        Subject("CS305", "Data Structures Lab", "Lab", 3, "CSE", 4),
        Subject("CS306", "OOP Lab", "Lab", 3, "CSE", 2),
        Subject("HS301", "Professional Ethics", "Elective", 3, "CSE", 2),
    ]
    teachers = [
        Teacher("T01", "Anitha", "CSE", ("CS301", "CS305")),
        Teacher("T02", "Suresh", "CSE", ("discrete mathematics",)),
        Teacher("T03", "Meera", "CSE", ("cs303", "CS306", "NOPE")),
    ]
    rooms = [Room("A101", "Theory"), Room("A102", "Theory"), Room("L201", "Lab")]
    return subjects, teachers, rooms


def sample_context(cfg=None, **kwargs):
    subjects, teachers, rooms = sample_entities()
    return build_context(3, subjects, teachers, rooms, cfg or GAConfig(), **kwargs)


def non_break_slots(cfg):
    return [(d, p) for d in range(cfg.n_days) for p in range(cfg.n_periods_per_day) if not cfg.is_break(p)]


class ScheduleGridTests(unittest.TestCase):
    def setUp(self):
        self.ctx = sample_context()
        self.ind = Individual(self.ctx)

    def test_empty_grid_marks_breaks(self):
        for row in self.ind.grid:
            for p, cell in enumerate(row):
                if p in (2, 5, 8):
                    self.assertIs(cell, BREAK)
                else:
                    self.assertIsNone(cell)

    def test_place_updates_trackers_atomically(self):
        math = self.ctx.subject("CS301")
        self.ind.place(math, "T01", "A101", 0, 0)
        self.assertFalse(self.ind.is_free("T01", None, 0, 0))
        self.assertFalse(self.ind.is_free(None, "A101", 0, 0))
        self.assertTrue(self.ind.is_free("T02", "A102", 0, 0))
        self.assertEqual(self.ind.scheduled_count("CS301"), 1)
        self.assertEqual(self.ind.teacher_load("T01", 0), 1)
        self.assertEqual(self.ind.subject_load("CS301", 0), 1)
        self.assertEqual(build_trackers(self.ind.grid, self.ctx), self.ind.trackers)

    def test_break_and_occupied_cells_are_write_protected(self):
        math = self.ctx.subject("CS301")
        with self.assertRaises(ValueError):
            self.ind.place(math, "T01", "A101", 0, 2)
        self.ind.place(math, "T01", "A101", 0, 0)
        with self.assertRaises(ValueError):
            self.ind.place(math, "T01", "A102", 0, 0)
        with self.assertRaises(ValueError):
            # el bloque cruzaría el receso del periodo 2
            self.ind.place_lab(self.ctx.subject("CS305"), "T01", "L201", 0, 1)
        self.assertIsNone(self.ind.cell(0, 1))

    def test_clear_lab_half_clears_pair(self):
        lab = self.ctx.subject("CS305")
        self.ind.place_lab(lab, "T01", "L201", 1, 3)
        cleared = self.ind.clear(1, 4)
        self.assertEqual(sorted(cleared), [(1, 3), (1, 4)])
        self.assertIsNone(self.ind.cell(1, 3))
        self.assertIsNone(self.ind.cell(1, 4))
        self.assertEqual(self.ind.scheduled_count("CS305"), 0)
        self.assertEqual(build_trackers(self.ind.grid, self.ctx), self.ind.trackers)
        self.assertEqual(self.ind.clear(1, 4), [])
        self.assertEqual(self.ind.clear(1, 5), [])

    def test_rebuild_after_direct_grid_edit(self):
        self.ind.grid[4][10] = Assignment("CS302", False, "T02", "A102")
        self.assertNotEqual(build_trackers(self.ind.grid, self.ctx), self.ind.trackers)
        self.ind.rebuild_trackers()
        self.assertEqual(build_trackers(self.ind.grid, self.ctx), self.ind.trackers)
        self.assertFalse(self.ind.is_free("T02", None, 4, 10))

    def test_forced_cells_do_not_count_for_weekly_periods(self):
        math = self.ctx.subject("CS301")
        self.ind.place(math, None, "A101", 0, 0, forced=True)
        self.assertEqual(self.ind.scheduled_count("CS301"), 0)
        self.assertEqual(self.ind.subject_load("CS301", 0), 1)

    def test_reserved_occupancy_blocks_slots(self):
        cfg = GAConfig()
        reserved_t = np.zeros((3, cfg.n_days, cfg.n_periods_per_day), dtype=np.int16)
        reserved_t[0, 2, 4] = 1
        ctx = sample_context(cfg, reserved_teacher=reserved_t)
        ind = Individual(ctx)
        self.assertFalse(ind.is_free("T01", "A101", 2, 4))
        self.assertTrue(ind.is_free("T02", "A101", 2, 4))

    def test_reserved_occupancy_is_copied_not_frozen_in_place(self):
        cfg = GAConfig()
        reserved_t = np.zeros((3, cfg.n_days, cfg.n_periods_per_day), dtype=np.int16)
        ctx = sample_context(cfg, reserved_teacher=reserved_t)
        self.assertTrue(reserved_t.flags.writeable)
        self.assertFalse(ctx.reserved_teacher.flags.writeable)
        self.assertFalse(ctx.reserved_room.flags.writeable)
        reserved_t[1, 0, 0] = 1
        self.assertTrue(Individual(ctx).is_free("T02", None, 0, 0))


class DomainTests(unittest.TestCase):
    def test_preference_lookup_by_id_or_name_case_insensitive(self):
        subjects, teachers, _ = sample_entities()
        by_id = {s.id: s for s in subjects}
        self.assertEqual(find_preferred_teacher(by_id["CS301"], teachers).id, "T01")
        self.assertEqual(find_preferred_teacher(by_id["CS302"], teachers).id, "T02")
        self.assertEqual(find_preferred_teacher(by_id["CS303"], teachers).id, "T03")
        self.assertIsNone(find_preferred_teacher(by_id["HS301"], teachers))

    def test_empty_semester_is_rejected(self):
        with self.assertRaises(ValueError):
            build_context(1, [], [], [], GAConfig())


class HeuristicTests(unittest.TestCase):
    def test_construction_leaves_no_empty_cell(self):
        ctx = sample_context()
        rng = random.Random(7)
        for _ in range(5):
            ind = build_individual(ctx, rng)
            self.assertEqual(ind.empty_slots(), [])
            for row in ind.grid:
                for p in ctx.cfg.break_periods:
                    self.assertIs(row[p], BREAK)
            self.assertEqual(build_trackers(ind.grid, ctx), ind.trackers)

    def test_scheduled_labs_are_consecutive_blocks_one_per_day(self):
        ctx = sample_context()
        ind = build_individual(ctx, random.Random(3))
        for day, row in enumerate(ind.grid):
            scheduled_labs = {
                c.subject_id for c in row if isinstance(c, Assignment) and c.is_lab and not c.forced
            }
            self.assertLessEqual(len(scheduled_labs), 1)
            for period, cell in enumerate(row):
                if isinstance(cell, Assignment) and cell.is_lab and not cell.forced:
                    self.assertIsNotNone(ind.lab_partner(day, period))

    def test_subject_without_teacher_is_unassigned(self):
        ctx = sample_context()
        ind = build_individual(ctx, random.Random(11))
        ethics = [c for _, _, c in ind.assignments() if c.subject_id == "HS301"]
        self.assertTrue(ethics)
        self.assertTrue(all(c.teacher_id is None for c in ethics))

    def test_fill_cell_forces_when_nothing_fits(self):
        cfg = GAConfig()
        ctx = build_context(1, [Subject("M", "Math", "Theory", 1, "X", 1)], [], [], cfg)
        ind = Individual(ctx)
        fill_cell(ind, 0, 0, random.Random(0))
        cell = ind.cell(0, 0)
        self.assertTrue(cell.forced)
        self.assertIsNone(cell.room_id)
        self.assertIsNone(cell.teacher_id)

    def test_forced_cells_do_not_block_lab_day(self):
        ctx = sample_context()
        ind = Individual(ctx)
        ind.place(ctx.subject("CS306"), None, "L201", 0, 0, forced=True)
        self.assertFalse(day_has_lab(ind, 0))
        ind.place_lab(ctx.subject("CS305"), "T01", "L201", 0, 3)
        self.assertTrue(day_has_lab(ind, 0))

    def test_forced_filler_never_splits_a_lab_when_theory_exists(self):
        subjects = [
            Subject("L1", "Physics Lab", "Lab", 1, "SCI", 10),
            Subject("L2", "Chemistry Lab", "Lab", 1, "SCI", 4),
            Subject("M1", "Math", "Theory", 1, "SCI", 3),
        ]
        teachers = [Teacher("T1", "Ada", "SCI", ("L1", "L2"))]
        rooms = [Room("LAB1", "Lab"), Room("R1", "Theory")]
        ctx = build_context(1, subjects, teachers, rooms, GAConfig())
        rng = random.Random(0)
        for _ in range(3):
            ind = build_individual(ctx, rng)
            for _ in range(30):
                mutate(ind, rng)
            self.assertEqual(ind.empty_slots(), [])
            for day, period, cell in ind.assignments():
                if cell.is_lab:
                    self.assertIsNotNone(ind.lab_partner(day, period), (day, period, cell))
            self.assertEqual(count_violations(ind).non_consecutive_labs, 0)

    def test_forced_lab_is_a_block_when_only_labs_exist(self):
        lab = Subject("L1", "Physics Lab", "Lab", 1, "SCI", 2)
        ctx = build_context(1, [lab], [], [], GAConfig())
        ind = Individual(ctx)
        fill_cell(ind, 0, 3, random.Random(0))
        self.assertEqual(ind.lab_partner(0, 3), (0, 4))
        self.assertTrue(ind.cell(0, 3).forced and ind.cell(0, 4).forced)
        # sin vecina libre a la derecha se usa la de la izquierda
        fill_cell(ind, 0, 7, random.Random(0))
        self.assertEqual(ind.lab_partner(0, 7), (0, 6))
        self.assertEqual(build_trackers(ind.grid, ctx), ind.trackers)

    def test_tight_caps_hold_for_every_scheduled_cell(self):
        cfg = GAConfig(max_teacher_periods_per_day=2, max_subject_periods_per_day=1)
        ctx = sample_context(cfg)
        rng = random.Random(5)
        for _ in range(4):
            ind = build_individual(ctx, rng)
            for _ in range(20):
                mutate(ind, rng)
            teacher_daily = {}
            subject_daily = {}
            for day, period, cell in ind.assignments():
                if cell.forced:
                    continue
                if cell.teacher_id is not None:
                    key = (cell.teacher_id, day)
                    teacher_daily[key] = teacher_daily.get(key, 0) + 1
                key = (cell.subject_id, day)
                subject_daily[key] = subject_daily.get(key, 0) + 1

                nxt = ind.cell(day, period + 1) if period + 1 < cfg.n_periods_per_day else None
                if isinstance(nxt, Assignment) and not nxt.forced and nxt.subject_id == cell.subject_id:
                    self.assertEqual(ind.lab_partner(day, period), (day, period + 1))

            self.assertTrue(all(n <= 2 for n in teacher_daily.values()), teacher_daily)
            for (subject_id, _), n in subject_daily.items():
                # un laboratorio ocupa un bloque de dos periodos por día
                cap = 2 if ctx.subject(subject_id).is_lab else 1
                self.assertLessEqual(n, cap, subject_id)


class EvaluationTests(unittest.TestCase):
    def test_score_is_monotonic_in_each_penalty(self):
        cfg = GAConfig(base_fitness=100000)
        base_counts = {k: 1 for k in cfg.weights()}
        base_score = score(base_counts, cfg)
        for key in cfg.weights():
            worse = dict(base_counts)
            worse[key] += 1
            self.assertLess(score(worse, cfg), base_score, key)

    def test_score_has_floor_zero(self):
        cfg = GAConfig()
        self.assertEqual(score({"period_mismatch": 5}, cfg), 0)
        self.assertEqual(score({}, cfg), cfg.base_fitness)

    def test_counts_on_hand_built_grid(self):
        cfg = GAConfig(max_teacher_periods_per_day=2)
        ctx = sample_context(cfg)
        ind = Individual(ctx)
        ds = ctx.subject("CS301")
        ind.place(ds, "T01", "A101", 0, 0)
        ind.place(ds, "T01", "A101", 0, 1)          # consecutivo
        ind.place(ds, "T01", "A101", 0, 3)          # tercera carga diaria del docente
        ind.place_lab(ctx.subject("CS305"), "T01", "L201", 1, 0)
        ind.place_lab(ctx.subject("CS306"), "T03", "L201", 1, 3)   # segundo lab el mismo día
        ind.place(ctx.subject("CS306"), None, "L201", 2, 0, forced=True)  # lab suelto

        res = count_violations(ind)
        self.assertEqual(res.back_to_back_conflicts, 1)
        self.assertEqual(res.multi_lab_per_day, 1)
        self.assertEqual(res.non_consecutive_labs, 1)
        self.assertEqual(res.teacher_overloads, 1)
        self.assertEqual(res.forced_placements, 1)
        self.assertEqual(res.unassigned_periods, 1)
        self.assertEqual(res.scheduled["CS301"], 3)
        self.assertEqual(res.unscheduled_periods, 1 + 4 + 3 + 2 + 0 + 2)
        self.assertEqual(res.teacher_conflicts, 0)
        self.assertEqual(res.empty_slots, len(non_break_slots(cfg)) - 8)

    def test_conflicts_against_reserved_occupancy(self):
        cfg = GAConfig()
        reserved_t = np.zeros((3, cfg.n_days, cfg.n_periods_per_day), dtype=np.int16)
        reserved_r = np.zeros((3, cfg.n_days, cfg.n_periods_per_day), dtype=np.int16)
        reserved_t[0, 0, 0] = 1
        reserved_r[0, 0, 0] = 1
        ctx = sample_context(cfg, reserved_teacher=reserved_t, reserved_room=reserved_r)
        ind = Individual(ctx)
        ind.place(ctx.subject("CS301"), "T01", "A101", 0, 0)
        res = count_violations(ind)
        self.assertEqual(res.teacher_conflicts, 1)
        self.assertEqual(res.room_conflicts, 1)

    def test_evaluate_is_side_effect_free_except_score(self):
        ctx = sample_context()
        ind = build_individual(ctx, random.Random(5))
        grid_before = [list(row) for row in ind.grid]
        trackers_before = ind.trackers.copy()
        first = evaluate(ind)
        second = evaluate(ind)
        self.assertEqual(first, second)
        self.assertEqual(ind.fitness, first.fitness)
        self.assertEqual(ind.grid, grid_before)
        self.assertEqual(ind.trackers, trackers_before)


class OperatorTests(unittest.TestCase):
    def setUp(self):
        self.ctx = sample_context()
        self.rng = random.Random(21)
        self.p1 = build_individual(self.ctx, self.rng)
        self.p2 = build_individual(self.ctx, self.rng)

    def test_day_crossover_takes_whole_days_and_rebuilds_trackers(self):
        child = day_crossover(self.p1, self.p2, self.rng)
        for day, row in enumerate(child.grid):
            self.assertTrue(row == self.p1.grid[day] or row == self.p2.grid[day])
            self.assertIsNot(row, self.p1.grid[day])
            self.assertIsNot(row, self.p2.grid[day])
        self.assertEqual(build_trackers(child.grid, self.ctx), child.trackers)
        self.assertEqual(child.empty_slots(), [])

    def test_mutation_keeps_grid_complete_and_trackers_consistent(self):
        ind = self.p1.copy()
        for _ in range(40):
            mutate(ind, self.rng)
            self.assertEqual(ind.empty_slots(), [])
            self.assertEqual(build_trackers(ind.grid, self.ctx), ind.trackers)
            for row in ind.grid:
                for p in self.ctx.cfg.break_periods:
                    self.assertIs(row[p], BREAK)

    def test_copy_is_independent(self):
        clone = self.p1.copy()
        day, period = non_break_slots(self.ctx.cfg)[0]
        clone.clear(day, period)
        self.assertIsNotNone(self.p1.cell(day, period))
        self.assertEqual(build_trackers(self.p1.grid, self.ctx), self.p1.trackers)

    def test_tournament_prefers_fitter(self):
        self.p1.fitness, self.p2.fitness = 10, 900
        third = self.p1.copy()
        third.fitness = 50
        population = [self.p1, self.p2, third]
        self.assertIs(tournament_selection(population, 200, self.rng), self.p2)
        self.assertIn(tournament_selection(population, 1, self.rng), population)


if __name__ == "__main__":
    unittest.main()
