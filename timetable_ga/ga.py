import logging
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence

from .config import GAConfig
from .domains import SchedulingContext, build_context
from .evaluation import EvaluationResult, evaluate
from .initial_population import build_initial_population
from .model import Room, Subject, Teacher
from .operators import day_crossover, mutate, tournament_selection
from .schedule import Individual

logger = logging.getLogger(__name__)


class RunState(Enum):
    INIT = "init"
    EVOLVING = "evolving"
    CONVERGED = "converged"
    GENERATION_LIMIT_REACHED = "generation_limit_reached"
    DONE = "done"


@dataclass
class ScheduleResult:
    semester: int
    best: Individual
    evaluation: EvaluationResult
    termination: RunState
    generations_run: int
    history: List[Dict] = field(default_factory=list)

    @property
    def fitness(self) -> int:
        return self.evaluation.fitness

    @property
    def diagnostics(self) -> Dict[str, int]:
        return self.evaluation.diagnostics()


class Population:
    """Conjunto de individuos de tamaño fijo para un semestre."""

    def __init__(self, ctx: SchedulingContext, rng: random.Random, individuals: Optional[List[Individual]] = None):
        self.ctx = ctx
        self.cfg = ctx.cfg
        self.rng = rng
        if individuals is None:
            individuals = build_initial_population(ctx, self.cfg.population_size, rng)
        self.individuals = individuals
        for ind in self.individuals:
            evaluate(ind)

    def __len__(self):
        return len(self.individuals)

    def sort(self) -> None:
        self.individuals.sort(key=lambda ind: ind.fitness, reverse=True)

    def best(self) -> Individual:
        self.sort()
        return self.individuals[0]

    def average_fitness(self) -> float:
        return sum(ind.fitness for ind in self.individuals) / len(self.individuals)

    def _make_child(self) -> Individual:
        cfg, rng = self.cfg, self.rng
        p1 = tournament_selection(self.individuals, cfg.tournament_size, rng)
        p2 = tournament_selection(self.individuals, cfg.tournament_size, rng)
        if rng.random() < cfg.crossover_rate:
            child = day_crossover(p1, p2, rng)
        else:
            # Siempre una copia: los padres (y las élites) no se modifican
            child = (p1 if rng.random() < 0.5 else p2).copy()
        if rng.random() < cfg.mutation_rate:
            mutate(child, rng)
        evaluate(child)
        return child

    def evolve(self) -> None:
        self.sort()
        size = len(self.individuals)
        # Élites: pasan sin cambios y nadie las muta después
        new_individuals = self.individuals[: min(self.cfg.elite_size, size)]
        while len(new_individuals) < size:
            new_individuals.append(self._make_child())
        self.individuals = new_individuals


class GeneticSolver:
    """
    Corre el AG de un semestre. ``run`` hace todo el ciclo; quien necesite
    cortar por tiempo puede llamar ``start``/``step``/``finish`` y detenerse
    entre generaciones.
    """

    def __init__(self, ctx: SchedulingContext, rng: Optional[random.Random] = None):
        self.ctx = ctx
        self.cfg = ctx.cfg
        self.rng = rng if rng is not None else random.Random(self.cfg.seed)
        self.state = RunState.INIT
        self.termination: Optional[RunState] = None
        self.population: Optional[Population] = None
        self.best: Optional[Individual] = None
        self.generation = 0
        self.stagnation = 0
        self.history: List[Dict] = []

    @property
    def best_fitness(self) -> int:
        return self.best.fitness if self.best is not None else 0

    def _stop(self, reason: RunState) -> bool:
        self.termination = reason
        return False

    def start(self) -> None:
        self.population = Population(self.ctx, self.rng)
        self.best = self.population.best().copy()
        self.state = RunState.EVOLVING
        logger.info(
            "Semestre %s: población inicial de %d, mejor fitness=%d",
            self.ctx.semester, len(self.population), self.best_fitness,
        )

    def step(self) -> bool:
        """Evoluciona una generación. Devuelve False cuando la corrida terminó."""
        if self.state is not RunState.EVOLVING:
            raise RuntimeError("step() requiere una corrida iniciada con start()")
        if self.best_fitness >= self.cfg.base_fitness:
            return self._stop(RunState.CONVERGED)
        if self.generation >= self.cfg.generations:
            return self._stop(RunState.GENERATION_LIMIT_REACHED)

        self.population.evolve()
        current = self.population.best()
        if current.fitness > self.best_fitness:
            self.best = current.copy()
            self.stagnation = 0
            logger.info("Semestre %s, generación %d: nuevo mejor fitness=%d",
                        self.ctx.semester, self.generation, self.best_fitness)
        else:
            self.stagnation += 1

        avg = self.population.average_fitness()
        self.history.append({
            "semester": self.ctx.semester,
            "gen": self.generation,
            "best_fitness": self.best_fitness,
            "avg_fitness": avg,
        })
        if self.generation % 5 == 0:
            logger.debug("Gen %d: mejor=%d promedio=%.2f", self.generation, self.best_fitness, avg)
        self.generation += 1

        if self.stagnation >= self.cfg.max_stagnation:
            logger.info("Semestre %s: parada temprana en la generación %d", self.ctx.semester, self.generation - 1)
            return self._stop(RunState.CONVERGED)
        return True

    def finish(self) -> ScheduleResult:
        if self.termination is None:
            self.termination = RunState.GENERATION_LIMIT_REACHED
        evaluation = evaluate(self.best)
        self.state = RunState.DONE
        return ScheduleResult(
            semester=self.ctx.semester,
            best=self.best,
            evaluation=evaluation,
            termination=self.termination,
            generations_run=self.generation,
            history=self.history,
        )

    def run(self) -> ScheduleResult:
        self.start()
        while self.step():
            pass
        return self.finish()


def schedule_department(
    subjects: Sequence[Subject],
    teachers: Sequence[Teacher],
    rooms: Sequence[Room],
    cfg: GAConfig,
    department: Optional[str] = None,
) -> List[ScheduleResult]:
    """
    Un horario por semestre. Con ``cfg.share_resources`` la ocupación de cada
    semestre terminado se reserva para los siguientes, porque docentes y aulas
    se comparten dentro del departamento.
    """
    if department is not None:
        subjects = [s for s in subjects if s.department == department]
        teachers = [t for t in teachers if t.department == department]

    semesters = sorted({s.semester for s in subjects})
    reserved_teacher = reserved_room = None
    results: List[ScheduleResult] = []
    for i, semester in enumerate(semesters):
        logger.info("Generando horario del semestre %s", semester)
        ctx = build_context(
            semester,
            [s for s in subjects if s.semester == semester],
            teachers,
            rooms,
            cfg,
            reserved_teacher=reserved_teacher,
            reserved_room=reserved_room,
        )
        result = GeneticSolver(ctx, random.Random(cfg.seed + i)).run()
        results.append(result)
        if cfg.share_resources:
            reserved_teacher = ctx.reserved_teacher + result.best.trackers.teacher_busy
            reserved_room = ctx.reserved_room + result.best.trackers.room_busy
    return results
