# timetable_ga/report.py
"""
Salida de la corrida: rejilla serializable, lista plana de asignaciones
(filtrable por docente), vista por docente y exportación a CSV/JSON.
"""
import json
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pandas as pd

from .ga import ScheduleResult
from .model import Assignment, BREAK, NOT_ASSIGNED

BREAK_LABEL = "BREAK"


def _cell_payload(result: ScheduleResult, cell: Assignment) -> Dict:
    ctx = result.best.ctx
    subject = ctx.subject(cell.subject_id)
    teacher = ctx.teacher(cell.teacher_id)
    return {
        "subjectId": subject.id,
        "subjectName": subject.name,
        "isLab": cell.is_lab,
        "teacherId": cell.teacher_id,
        "teacherName": teacher.name if teacher is not None else NOT_ASSIGNED,
        "roomNo": cell.room_id,
        "forced": cell.forced,
    }


def grid_payload(result: ScheduleResult) -> List[List[Optional[object]]]:
    grid = []
    for row in result.best.grid:
        out_row = []
        for cell in row:
            if cell is BREAK:
                out_row.append(BREAK_LABEL)
            elif isinstance(cell, Assignment):
                out_row.append(_cell_payload(result, cell))
            else:
                out_row.append(None)
        grid.append(out_row)
    return grid


def flat_assignments(result: ScheduleResult) -> List[Dict]:
    rows = []
    for day, period, cell in result.best.assignments():
        item = {"semester": result.semester, "day": day, "period": period}
        item.update(_cell_payload(result, cell))
        rows.append(item)
    return rows


def to_output(result: ScheduleResult, department: Optional[str] = None) -> Dict:
    return {
        "semester": result.semester,
        "department": department,
        "grid": grid_payload(result),
        "assignments": flat_assignments(result),
        "fitness": result.fitness,
        "diagnostics": result.diagnostics,
        "termination": result.termination.value,
        "generations": result.generations_run,
    }


def lecturer_timetable(outputs: Sequence[Dict], teacher_id: str) -> List[List[Optional[Dict]]]:
    """Rejilla con solo las clases del docente, juntando todos los semestres."""
    if not outputs:
        return []
    n_days = len(outputs[0]["grid"])
    n_periods = len(outputs[0]["grid"][0]) if n_days else 0
    grid: List[List[Optional[Dict]]] = [[None] * n_periods for _ in range(n_days)]
    for out in outputs:
        for item in out["assignments"]:
            if item["teacherId"] == teacher_id:
                cell = dict(item)
                grid[item["day"]][item["period"]] = cell
    return grid


def individual_to_dataframe(result: ScheduleResult) -> pd.DataFrame:
    columns = ["semester", "day", "period", "subjectId", "subjectName", "isLab",
               "teacherId", "teacherName", "roomNo", "forced"]
    return pd.DataFrame(flat_assignments(result), columns=columns)


def export_outputs(results: Sequence[ScheduleResult], out_dir: Path, department: Optional[str] = None) -> List[Dict]:
    out_dir.mkdir(parents=True, exist_ok=True)
    outputs = [to_output(r, department) for r in results]
    (out_dir / "timetable.json").write_text(json.dumps(outputs, indent=2), encoding="utf-8")

    frames = [individual_to_dataframe(r) for r in results]
    schedule = pd.concat(frames, ignore_index=True) if frames else pd.DataFrame()
    schedule.to_csv(out_dir / "schedule.csv", index=False)

    diagnostics = pd.DataFrame(
        [{"semester": r.semester, "fitness": r.fitness, **r.diagnostics} for r in results]
    )
    diagnostics.to_csv(out_dir / "diagnostics.csv", index=False)

    history = [row for r in results for row in r.history]
    pd.DataFrame(history).to_csv(out_dir / "history.csv", index=False)
    return outputs
