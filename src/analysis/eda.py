from __future__ import annotations

import argparse
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from config.config import DATA_FILE, MODEL_SPECS_DIR

from .common import OUT, ensure_outdir, formula_terms, load_data
from .specs import SpecificationError, available_models, load_geography, load_model_spec


def model_variables(specs_dir: Path = MODEL_SPECS_DIR) -> list[str]:
    """Every variable named by a shipped model or geography, in first-seen order."""
    names: list[str] = []
    for name in available_models(specs_dir):
        model = load_model_spec(name, specs_dir)
        names += [model.instd, model.insts] + formula_terms(model.dummies)
    for geo in load_geography(specs_dir):
        names += formula_terms(geo.controls)
    return list(dict.fromkeys(names))


def run_eda(df: pd.DataFrame, out_dir: Path = OUT, specs_dir: Path = MODEL_SPECS_DIR) -> None:
    stats_vars = [c for c in model_variables(specs_dir) if c in df.columns]
    df[stats_vars].describe(percentiles=[0.01, 0.05, 0.5, 0.95, 0.99]).T.to_csv(out_dir / "eda_summary_stats.csv")

    base = load_model_spec("baseline", specs_dir)
    d = df.dropna(subset=[base.insts, base.instd])
    slope, intercept = np.polyfit(d[base.insts], d[base.instd], 1)
    grid = np.linspace(d[base.insts].min(), d[base.insts].max(), 50)

    plt.figure(figsize=(6, 6))
    plt.scatter(d[base.insts], d[base.instd])
    plt.plot(grid, intercept + slope * grid, linewidth=1)
    plt.title("Expropriation risk vs log settler mortality")
    plt.xlabel(base.insts)
    plt.ylabel(base.instd)
    plt.tight_layout()
    plt.savefig(out_dir / "eda_first_stage_scatter.png", dpi=160)
    plt.close()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Descriptive statistics for the first-stage variables.")
    parser.add_argument("--data", type=Path, default=DATA_FILE)
    parser.add_argument("--out", type=Path, default=OUT)
    parser.add_argument("--specs-dir", type=Path, default=MODEL_SPECS_DIR)
    args = parser.parse_args(argv)

    out_dir = ensure_outdir(args.out)
    try:
        df = load_data(args.data)
        run_eda(df, out_dir, args.specs_dir)
    except (FileNotFoundError, SpecificationError) as exc:
        raise SystemExit(str(exc)) from exc
    print("EDA outputs saved to", out_dir)


if __name__ == "__main__":
    main()
