from __future__ import annotations

import argparse
from pathlib import Path

import pandas as pd

from config.config import DATA_FILE, MODEL_SPECS_DIR

from .common import OUT, apply_condition, ensure_outdir, formula_terms, load_data
from .specs import GeographySpec, ModelSpec, SpecificationError, available_models, load_geography, load_model_spec


def build_step_table(df: pd.DataFrame, model: ModelSpec, geography: GeographySpec) -> dict[str, int | str]:
    row: dict[str, int | str] = {
        "model": model.name,
        "geography": geography.index,
        "label": geography.label,
        "all_obs": int(len(df)),
    }

    # Step 1: model restriction
    d = apply_condition(df, model.keep_condition)
    row["after_model_condition"] = int(len(d))

    # Step 2: geographic restriction
    d = apply_condition(d, geography.keep_condition)
    row["after_geo_condition"] = int(len(d))

    # Step 3: complete cases in regression variables
    cols = [model.instd, model.insts] + formula_terms(model.dummies) + formula_terms(geography.controls)
    missing = [c for c in cols if c not in d.columns]
    if missing:
        raise SpecificationError(f"Columns not in data for model '{model.name}': {', '.join(missing)}")
    d = d.dropna(subset=cols)
    row["estimation_obs"] = int(len(d))
    row["mortality_clusters"] = int(d[model.insts].nunique())

    row["dropped_total"] = row["all_obs"] - row["estimation_obs"]
    return row


def sample_construction_table(
    df: pd.DataFrame, models: list[ModelSpec], geographies: list[GeographySpec]
) -> pd.DataFrame:
    rows = [build_step_table(df, m, g) for m in models for g in geographies]
    return pd.DataFrame(rows)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Count observations through each sample restriction.")
    parser.add_argument("--data", type=Path, default=DATA_FILE)
    parser.add_argument("--out", type=Path, default=OUT)
    parser.add_argument("--specs-dir", type=Path, default=MODEL_SPECS_DIR)
    args = parser.parse_args(argv)

    out_dir = ensure_outdir(args.out)
    try:
        df = load_data(args.data)
        models = [load_model_spec(name, args.specs_dir) for name in available_models(args.specs_dir)]
        table = sample_construction_table(df, models, load_geography(args.specs_dir))
    except (FileNotFoundError, SpecificationError) as exc:
        raise SystemExit(str(exc)) from exc

    table.to_csv(out_dir / "sample_construction_table.csv", index=False)
    print("Saved sample construction table to", out_dir / "sample_construction_table.csv")


if __name__ == "__main__":
    main()
