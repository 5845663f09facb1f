import argparse
import logging
import time
from pathlib import Path

from timetable_ga.config import load_config
from timetable_ga.data_loader import load_data
from timetable_ga.ga import schedule_department
from timetable_ga.report import export_outputs


def print_grid(output, n_cols: int = 12):
    print(f"\nSemestre {output['semester']} | fitness={output['fitness']}")
    for day, row in enumerate(output["grid"]):
        cells = []
        for cell in row:
            if cell is None:
                cells.append("-")
            elif cell == "BREAK":
                cells.append("| |")
            else:
                label = cell["subjectId"] + ("*" if cell["forced"] else "")
                cells.append(label[:n_cols])
        print(f"D{day + 1}: " + " ".join(f"{c:<{n_cols}}" for c in cells))


def main():
    parser = argparse.ArgumentParser(description="Generación de horarios por semestre con algoritmo genético")
    parser.add_argument("--config", default="config.yaml", help="Ruta al archivo de configuración")
    parser.add_argument("--data_dir", default="data", help="Directorio con subjects.csv, teachers.csv y rooms.csv")
    parser.add_argument("--department", default=None, help="Departamento a programar (por defecto todos)")
    parser.add_argument("--out", default="outputs", help="Directorio de salida")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log detallado por generación")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    cfg = load_config(args.config)
    print("Cargando datos...")
    bundle = load_data(args.data_dir)
    print(f"Cursos: {len(bundle.subjects)} | Docentes: {len(bundle.teachers)} | Aulas: {len(bundle.rooms)}")
    print(f"Generaciones: {cfg.generations} | Población: {cfg.population_size}")

    start = time.perf_counter()
    results = schedule_department(bundle.subjects, bundle.teachers, bundle.rooms, cfg, department=args.department)
    elapsed = time.perf_counter() - start

    outputs = export_outputs(results, Path(args.out), department=args.department)
    for out in outputs:
        print_grid(out)
        print("Diagnóstico: " + ", ".join(f"{k}={v}" for k, v in out["diagnostics"].items()))

    print(f"\nTiempo: {elapsed:.2f}s")
    print(f"Se guardaron resultados en {args.out}/timetable.json y {args.out}/schedule.csv")


if __name__ == "__main__":
    main()
