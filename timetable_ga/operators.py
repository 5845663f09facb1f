import random
from typing import List, Sequence

from .initial_population import fill_cell
from .model import Assignment
from .schedule import Individual


def tournament_selection(population: Sequence[Individual], k: int, rng: random.Random) -> Individual:
    """Sortea k individuos (con reemplazo) y devuelve el de mayor fitness."""
    tournament = [population[rng.randrange(len(population))] for _ in range(k)]
    return max(tournament, key=lambda ind: ind.fitness)


def day_crossover(p1: Individual, p2: Individual, rng: random.Random) -> Individual:
    """
    Cruce por días: cada fila (día) completa se toma de uno u otro padre.
    Los trackers del hijo se re-derivan desde la rejilla, nunca se mezclan.
    """
    grid = [list((p1 if rng.random() < 0.5 else p2).grid[day]) for day in range(len(p1.grid))]
    return Individual(p1.ctx, grid=grid)


def mutate(ind: Individual, rng: random.Random) -> List[tuple]:
    """
    Vacía una celda aleatoria (y su pareja de laboratorio) y la vuelve a
    ocupar con la lógica de colocación de una celda. Devuelve las celdas
    tocadas.
    """
    cfg = ind.ctx.cfg
    slots = [
        (d, p)
        for d in range(cfg.n_days)
        for p in range(cfg.n_periods_per_day)
        if not cfg.is_break(p)
    ]
    if not slots:
        return []
    day, period = rng.choice(slots)
    cell = ind.cell(day, period)
    if not isinstance(cell, Assignment):
        fill_cell(ind, day, period, rng)
        return [(day, period)]

    subject = ind.ctx.subject(cell.subject_id)
    cleared = sorted(ind.clear(day, period))
    for d, p in cleared:
        fill_cell(ind, d, p, rng, preferred=subject)
    return cleared
