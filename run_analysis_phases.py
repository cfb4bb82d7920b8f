#!/usr/bin/env python3
"""Orchestrate the analysis phases for the first-stage mortality/risk project."""

from __future__ import annotations

import argparse
import json
import logging
import os
import subprocess
import sys
from pathlib import Path

ROOT_PATH = Path(__file__).resolve().parent
SRC_PATH = ROOT_PATH / "src"
for path in (SRC_PATH, ROOT_PATH):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

import pandas as pd

from analysis.common import OUT, ensure_outdir, load_data, validate, write_json
from analysis.specs import available_models


def build_phases(models: list[str]) -> list[tuple[str, list[str]]]:
    return [
        ("Descriptive statistics", ["analysis.eda"]),
        ("Sample construction", ["analysis.sample_construction"]),
        ("First-stage estimation", ["analysis.first_stage_estimation", *models]),
    ]


def run_phase(description: str, module_args: list[str]) -> None:
    logging.info("Starting phase: %s", description)
    cmd = [sys.executable, "-m", *module_args]
    env = os.environ.copy()
    env["PYTHONPATH"] = os.pathsep.join([str(SRC_PATH), str(ROOT_PATH), env.get("PYTHONPATH", "")]).strip(os.pathsep)
    result = subprocess.run(cmd, env=env)
    if result.returncode != 0:
        raise SystemExit(f"Phase failed: {description} ({' '.join(cmd)})")
    logging.info("Completed phase: %s", description)


def write_report(validation: dict, models: list[str], out_dir: Path = OUT) -> Path:
    lines = []
    lines.append("# First-stage analysis report\n\n")
    lines.append("## Data validation\n")
    lines.append("```json\n" + json.dumps(validation, indent=2) + "\n```\n\n")

    sample_table = out_dir / "sample_construction_table.csv"
    if sample_table.exists():
        lines.append("## Sample construction\n\n")
        lines.append(pd.read_csv(sample_table).to_markdown(index=False))
        lines.append("\n\n")

    for name in models:
        table_path = out_dir / f"first_stage_estimation_{name}.csv"
        if not table_path.exists():
            logging.warning("No first-stage table for model %s", name)
            continue
        lines.append(f"## First stage: {name}\n\n")
        table = pd.read_csv(table_path, index_col=0)
        lines.append(table.to_markdown(floatfmt=".3f", missingval=""))
        lines.append("\n\n")

    path = out_dir / "analysis_report.md"
    path.write_text("".join(lines), encoding="utf-8")
    return path


def main() -> None:
    parser = argparse.ArgumentParser(description="Run descriptive statistics, sample construction and first stages.")
    parser.add_argument(
        "--models",
        nargs="+",
        default=None,
        help="Model specifications to estimate (defaults to every JSON spec).",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="[%(asctime)s] %(levelname)s:%(message)s")
    ensure_outdir()
    models = args.models or available_models()

    try:
        df = load_data()
    except FileNotFoundError as exc:
        raise SystemExit(str(exc)) from exc
    validation = validate(df)
    write_json(OUT / "data_validation.json", validation)

    for description, module_args in build_phases(models):
        run_phase(description, module_args)

    write_report(validation, models)
    logging.info("Analysis phases completed. Outputs in: %s", OUT)


if __name__ == "__main__":
    main()
