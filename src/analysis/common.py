from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import pandas as pd

from config.config import DATA_FILE, OUT_DIR

from .specs import SpecificationError

OUT = OUT_DIR


def ensure_outdir(out_dir: Path = OUT) -> Path:
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    return out_dir


def write_json(path: Path, obj: dict) -> None:
    path.write_text(json.dumps(obj, indent=2, default=str), encoding="utf-8")


def load_data(path: Path = DATA_FILE) -> pd.DataFrame:
    """Read the whitespace-delimited country table (header row, ``NA`` for missing)."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing analysis data: {path}")

    df = pd.read_csv(path, sep=r"\s+", na_values=["NA", "."])
    num_cols = df.select_dtypes(include="number").columns
    df[num_cols] = df[num_cols].replace([np.inf, -np.inf], np.nan)
    return df


def validate(df: pd.DataFrame) -> dict:
    return {
        "rows_total": int(len(df)),
        "columns": list(df.columns),
        "duplicate_countries": bool(df["shortnam"].duplicated().any()) if "shortnam" in df else None,
        "missing_by_col": {k: int(v) for k, v in df.isna().sum().to_dict().items()},
    }


def apply_condition(df: pd.DataFrame, condition: str) -> pd.DataFrame:
    """Keep the rows satisfying ``condition``; blank conditions keep everything."""
    if not condition or not condition.strip():
        return df
    # R-style ``data$col`` references from older spec files
    expr = condition.replace("data$", "").strip()
    try:
        return df.query(expr)
    except (SyntaxError, NameError, KeyError, ValueError, TypeError) as exc:
        raise SpecificationError(f"Cannot apply sample condition {condition!r}: {exc}") from exc


def formula_terms(fragment: str) -> list[str]:
    """Split a ``+ a + b`` formula fragment into its terms (parentheses kept intact)."""
    terms, depth, current = [], 0, []
    for char in fragment:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        if char == "+" and depth == 0:
            terms.append("".join(current))
            current = []
        else:
            current.append(char)
    terms.append("".join(current))
    return [t.strip() for t in terms if t.strip()]


def build_formula(instd: str, insts: str, dummies: str = "", geo_controls: str = "") -> str:
    rhs = formula_terms(insts) + formula_terms(dummies) + formula_terms(geo_controls)
    if not instd.strip() or not rhs:
        raise SpecificationError("A regression formula needs a dependent variable and at least one regressor")
    return f"{instd.strip()} ~ " + " + ".join(rhs)


def save_summary(model, path: Path) -> None:
    Path(path).write_text(model.summary().as_text(), encoding="utf-8")
