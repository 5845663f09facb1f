"""
Configuración del algoritmo genético de horarios.

Incluye un cargador desde YAML para dejar los parámetros reproducibles y
configurables. La rejilla (días, periodos, recesos) también es configuración.
"""
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Dict, Tuple, Any

import yaml


DEFAULT_BREAK_PERIODS: Tuple[int, ...] = (2, 5, 8)


@dataclass
class GAConfig:
    # Rejilla
    n_days: int = 5
    n_periods_per_day: int = 11
    break_periods: Tuple[int, ...] = field(default_factory=lambda: DEFAULT_BREAK_PERIODS)

    # Límites diarios
    max_teacher_periods_per_day: int = 5
    max_subject_periods_per_day: int = 3

    # Reintentos acotados de la heurística constructiva
    lab_attempts: int = 100
    theory_attempts: int = 200
    unassigned_attempts: int = 100

    # Algoritmo genético
    population_size: int = 100
    generations: int = 500
    mutation_rate: float = 0.1
    crossover_rate: float = 0.8
    elitism_fraction: float = 0.1
    tournament_size: int = 5
    max_stagnation: int = 50
    seed: int = 42
    share_resources: bool = True

    # Pesos y fitness
    base_fitness: int = 1000
    weight_period_mismatch: int = 1000
    weight_empty_slot: int = 200
    weight_teacher_conflict: int = 50
    weight_room_conflict: int = 50
    weight_back_to_back: int = 40
    weight_lab_violation: int = 60
    weight_teacher_overload: int = 30
    weight_subject_distribution: int = 20

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GAConfig":
        merged = asdict(cls())
        for k, v in data.items():
            if k in merged:
                merged[k] = v
        return cls(**merged)

    def __post_init__(self):
        self.break_periods = tuple(sorted(int(p) for p in self.break_periods))
        if self.n_days <= 0 or self.n_periods_per_day <= 0:
            raise ValueError("La rejilla necesita al menos un día y un periodo")
        for p in self.break_periods:
            if not 0 <= p < self.n_periods_per_day:
                raise ValueError(f"Receso fuera de la rejilla: {p}")
        if self.population_size <= 0 or self.generations < 0:
            raise ValueError("population_size debe ser > 0 y generations >= 0")
        for name in ("mutation_rate", "crossover_rate", "elitism_fraction"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} debe estar en [0, 1], se recibió {value}")
        if self.tournament_size < 1:
            raise ValueError("tournament_size debe ser >= 1")
        if self.max_stagnation < 1:
            raise ValueError("max_stagnation debe ser >= 1")

    @property
    def elite_size(self) -> int:
        if self.elitism_fraction <= 0:
            return 0
        # Al menos una élite para que el mejor nunca se pierda
        return max(1, int(self.population_size * self.elitism_fraction))

    def is_break(self, period: int) -> bool:
        return period in self.break_periods

    def weights(self) -> Dict[str, int]:
        """Peso de cada categoría de violación, por clave de diagnóstico."""
        return {
            "period_mismatch": self.weight_period_mismatch,
            "empty_slots": self.weight_empty_slot,
            "teacher_conflicts": self.weight_teacher_conflict,
            "room_conflicts": self.weight_room_conflict,
            "back_to_back_conflicts": self.weight_back_to_back,
            "multi_lab_per_day": self.weight_lab_violation,
            "non_consecutive_labs": self.weight_lab_violation,
            "teacher_overloads": self.weight_teacher_overload,
            "subject_distribution_issues": self.weight_subject_distribution,
        }


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    return yaml.safe_load(path.read_text(encoding="utf-8")) or {}


def load_config(path: str = "config.yaml") -> GAConfig:
    data = _load_yaml(Path(path))
    if not isinstance(data, dict):
        raise ValueError("config.yaml debe contener un objeto mapeo")
    return GAConfig.from_dict(data)
