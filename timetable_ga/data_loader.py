# timetable_ga/data_loader.py
from dataclasses import dataclass
from typing import List, Tuple
import json
import logging

import pandas as pd

from .model import Room, Subject, Teacher, SUBJECT_TYPES, ROOM_TYPES, THEORY

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DataBundle:
    subjects: List[Subject]
    teachers: List[Teacher]
    rooms: List[Room]


def parse_preferences(raw) -> Tuple[str, ...]:
    """
    Las preferencias llegan como lista JSON (formato guardado por el sistema
    de gestión), como texto separado por ``;`` o ``,``, o vacías. Cualquier
    valor malformado equivale a "sin preferencias".
    """
    if raw is None or (isinstance(raw, float) and pd.isna(raw)):
        return ()
    if isinstance(raw, (list, tuple)):
        return tuple(str(p).strip() for p in raw if str(p).strip())
    text = str(raw).strip()
    if not text:
        return ()
    if text.startswith("["):
        try:
            values = json.loads(text)
        except json.JSONDecodeError:
            logger.warning("Preferencias malformadas ignoradas: %r", text)
            return ()
        if not isinstance(values, list):
            return ()
        return tuple(str(p).strip() for p in values if str(p).strip())
    sep = ";" if ";" in text else ","
    return tuple(p.strip() for p in text.split(sep) if p.strip())


def _normalize_type(value, allowed, default=THEORY) -> str:
    text = str(value).strip().capitalize()
    if text not in allowed:
        logger.warning("Tipo desconocido %r, se usa %s", value, default)
        return default
    return text


def subjects_from_frame(df: pd.DataFrame) -> List[Subject]:
    subjects = []
    for r in df.itertuples(index=False):
        periods = int(r.periods_per_week)
        if periods <= 0:
            logger.warning("Curso %s con periods_per_week=%d ignorado", r.id, periods)
            continue
        subjects.append(
            Subject(
                id=str(r.id),
                name=str(r.name),
                type=_normalize_type(r.type, SUBJECT_TYPES),
                semester=int(r.semester),
                department=str(r.department),
                periods_per_week=periods,
            )
        )
    return subjects


def teachers_from_frame(df: pd.DataFrame) -> List[Teacher]:
    prefs = df["preferences"] if "preferences" in df.columns else [None] * len(df)
    return [
        Teacher(
            id=str(r.id),
            name=str(r.name),
            department=str(r.department),
            preferences=parse_preferences(p),
        )
        for r, p in zip(df.itertuples(index=False), prefs)
    ]


def rooms_from_frame(df: pd.DataFrame) -> List[Room]:
    return [Room(id=str(r.id), type=_normalize_type(r.type, ROOM_TYPES)) for r in df.itertuples(index=False)]


def load_data(data_dir: str) -> DataBundle:
    subjects = pd.read_csv(f"{data_dir}/subjects.csv")
    teachers = pd.read_csv(f"{data_dir}/teachers.csv", dtype={"id": str})
    rooms = pd.read_csv(f"{data_dir}/rooms.csv", dtype={"id": str})
    subjects["id"] = subjects["id"].astype(str)

    return DataBundle(
        subjects=subjects_from_frame(subjects),
        teachers=teachers_from_frame(teachers),
        rooms=rooms_from_frame(rooms),
    )
