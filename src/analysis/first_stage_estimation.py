"""Regress expropriation risk on log settler mortality across the geographic variants.

For one model specification, every geography in ``geography.json`` gets its own
OLS fit of ``INSTD ~ INSTS + DUMMIES + GEO_CONTROLS`` on the restricted sample.
The instrument coefficient is reported with homoscedastic, HC1 and
mortality-clustered standard errors, followed by three p-values:

- the instrument, on clustered (t, N-K df) or HC1 (normal) errors depending on
  the model's ``PVALUE_SE``,
- the indicators, a clustered Wald F-test on every regressor after the
  instrument (only for models with ``TEST_INDICATORS``),
- the geographic controls, an HC1 Wald F-test (only for geographies with
  controls).

Usage::

    python -m analysis.first_stage_estimation baseline addindic
    python -m analysis.first_stage_estimation --all --summaries
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import scipy.stats as st
import statsmodels.formula.api as smf
from patsy import PatsyError

from config.config import CLUSTER_DF_CORRECTION, DATA_FILE, MODEL_SPECS_DIR, RESULT_LABELS

from .common import (
    OUT,
    apply_condition,
    build_formula,
    ensure_outdir,
    formula_terms,
    load_data,
    save_summary,
)
from .specs import (
    GeographySpec,
    ModelSpec,
    SpecificationError,
    available_models,
    load_geography,
    load_model_spec,
)

INSTRUMENT_POS = 1


class EstimationError(RuntimeError):
    """The restricted sample cannot support the requested regression."""


@dataclass
class GeographyResult:
    geography: GeographySpec
    fit: object
    n_obs: int
    n_clusters: int
    beta: float
    se_homoscedastic: float
    se_robust: float
    se_clustered: float
    pvalue_instrument: float
    pvalue_indicators: float = np.nan
    pvalue_controls: float = np.nan

    def as_column(self) -> list[float]:
        return [
            self.beta,
            self.se_homoscedastic,
            self.se_robust,
            self.se_clustered,
            self.pvalue_instrument,
            self.pvalue_indicators,
            self.pvalue_controls,
        ]


def restrict_sample(data: pd.DataFrame, model: ModelSpec, geography: GeographySpec) -> pd.DataFrame:
    sample = apply_condition(data.copy(), model.keep_condition)
    return apply_condition(sample, geography.keep_condition)


def term_columns(fit, terms: list[str]) -> list[int]:
    """Positions of the coefficients belonging to ``terms`` (categoricals expand to several)."""
    names = list(fit.model.exog_names)
    cols = []
    for term in terms:
        key = term.replace(" ", "")
        matched = [
            i for i, name in enumerate(names)
            if name.replace(" ", "") == key or name.replace(" ", "").startswith(key + "[")
        ]
        if not matched:
            raise SpecificationError(f"Term {term!r} does not appear among the coefficients {names}")
        cols.extend(matched)
    return sorted(set(cols))


def wald_pvalue(fit, columns: list[int], cov: np.ndarray) -> float:
    """F-form Wald test that the coefficients in ``columns`` are jointly zero under ``cov``."""
    if not columns:
        return np.nan
    r_matrix = np.eye(len(fit.params))[columns]
    test = fit.wald_test(r_matrix, cov_p=np.asarray(cov), use_f=True, scalar=True)
    return float(test.pvalue)


def clustered_cov(fit, groups: np.ndarray) -> np.ndarray:
    codes, _ = pd.factorize(groups)
    res = fit.get_robustcov_results(cov_type="cluster", groups=codes, use_correction=True)
    return np.asarray(res.cov_params()) * CLUSTER_DF_CORRECTION


def estimate_geography(data: pd.DataFrame, model: ModelSpec, geography: GeographySpec) -> GeographyResult:
    sample = restrict_sample(data, model, geography)
    formula = build_formula(model.instd, model.insts, model.dummies, geography.controls)
    where = f"model '{model.name}', geography {geography.index} ({geography.label})"
    if sample.empty:
        raise EstimationError(f"No observations left for {where}")

    try:
        fit = smf.ols(formula, data=sample).fit()
    except PatsyError as exc:
        raise SpecificationError(f"Cannot build {formula!r} for {where}: {exc}") from exc
    except ValueError as exc:
        # every remaining row has a missing regression variable
        raise EstimationError(f"No complete observations left for {where}: {exc}") from exc

    n_obs = int(fit.nobs)
    k = len(fit.params)
    if n_obs <= k:
        raise EstimationError(f"{n_obs} observations for {k} coefficients in {where}")

    # clusters are the distinct instrument values in the estimation sample
    groups = np.asarray(fit.model.exog)[:, INSTRUMENT_POS]
    n_clusters = int(len(np.unique(groups)))
    if n_clusters < 2:
        raise EstimationError(f"Need at least two mortality clusters in {where}")

    rank = int(np.linalg.matrix_rank(np.asarray(fit.model.exog)))
    if rank < k:
        names = ", ".join(fit.model.exog_names)
        raise EstimationError(f"Regressors [{names}] are collinear (rank {rank} < {k}) in {where}")

    cov_robust = np.asarray(fit.cov_HC1)
    cov_clu = clustered_cov(fit, groups)

    beta = float(np.asarray(fit.params)[INSTRUMENT_POS])
    se_homo = float(np.asarray(fit.bse)[INSTRUMENT_POS])
    se_rob = float(np.sqrt(cov_robust[INSTRUMENT_POS, INSTRUMENT_POS]))
    se_clu = float(np.sqrt(cov_clu[INSTRUMENT_POS, INSTRUMENT_POS]))

    if model.pvalue_se == "clustered":
        t = beta / se_clu if se_clu != 0 else np.nan
        p_inst = float(2 * (1 - st.t.cdf(abs(t), df=fit.df_resid)))
    else:
        z = beta / se_rob if se_rob != 0 else np.nan
        p_inst = float(2 * (1 - st.norm.cdf(abs(z))))

    result = GeographyResult(
        geography=geography,
        fit=fit,
        n_obs=n_obs,
        n_clusters=n_clusters,
        beta=beta,
        se_homoscedastic=se_homo,
        se_robust=se_rob,
        se_clustered=se_clu,
        pvalue_instrument=p_inst,
    )

    if model.test_indicators:
        result.pvalue_indicators = wald_pvalue(fit, list(range(INSTRUMENT_POS + 1, k)), cov_clu)
    if geography.has_controls:
        cols = term_columns(fit, formula_terms(geography.controls))
        result.pvalue_controls = wald_pvalue(fit, cols, cov_robust)
    return result


def run_first_stage(
    data: pd.DataFrame, model: ModelSpec, geographies: list[GeographySpec]
) -> tuple[pd.DataFrame, list[GeographyResult]]:
    results = [estimate_geography(data, model, geo) for geo in geographies]
    table = pd.DataFrame(
        {res.geography.label: res.as_column() for res in results},
        index=pd.Index(RESULT_LABELS, name="statistic"),
    )
    return table, results


def save_results(table: pd.DataFrame, model_name: str, out_dir: Path = OUT) -> Path:
    out_dir = ensure_outdir(out_dir)
    base = out_dir / f"first_stage_estimation_{model_name}"
    table.to_csv(base.with_suffix(".csv"))
    base.with_suffix(".md").write_text(
        table.to_markdown(floatfmt=".3f", missingval="") + "\n", encoding="utf-8"
    )
    return base.with_suffix(".csv")


def save_coefficient_plot(table: pd.DataFrame, model_name: str, out_dir: Path = OUT) -> Path:
    out_dir = ensure_outdir(out_dir)
    beta = table.loc[RESULT_LABELS[0]]
    se = table.loc[RESULT_LABELS[3]]
    positions = np.arange(1, len(beta) + 1)

    plt.figure(figsize=(8, 4))
    plt.errorbar(positions, beta.values, yerr=1.96 * se.values, fmt="o")
    plt.axhline(0, linewidth=1)
    plt.xticks(positions, [f"({i})" for i in positions])
    plt.title(f"First stage: log mortality coefficient ({model_name})")
    plt.xlabel("Geographic specification")
    plt.ylabel("beta (95% CI, clustered)")
    plt.tight_layout()
    path = out_dir / f"first_stage_estimation_{model_name}.png"
    plt.savefig(path, dpi=160)
    plt.close()
    return path


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Estimate the first stage of log mortality on expropriation risk for each geography."
    )
    parser.add_argument("models", nargs="*", help="Model specification names (JSON files in the specs directory).")
    parser.add_argument("--all", action="store_true", help="Run every model found in the specs directory.")
    parser.add_argument("--data", type=Path, default=DATA_FILE, help="Whitespace-delimited input table.")
    parser.add_argument("--out", type=Path, default=OUT, help="Output directory.")
    parser.add_argument("--specs-dir", type=Path, default=MODEL_SPECS_DIR, help="Directory holding the JSON specs.")
    parser.add_argument(
        "--summaries",
        action="store_true",
        help="Also save the statsmodels summary of every regression.",
    )
    args = parser.parse_args(argv)
    if args.all and args.models:
        parser.error("Pass model names or --all, not both.")
    if not args.all and not args.models:
        parser.error("Name at least one model or pass --all.")
    return args


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    models = available_models(args.specs_dir) if args.all else args.models

    try:
        data = load_data(args.data)
        geographies = load_geography(args.specs_dir)
        for name in models:
            model = load_model_spec(name, args.specs_dir)
            table, results = run_first_stage(data, model, geographies)
            save_results(table, name, args.out)
            save_coefficient_plot(table, name, args.out)
            if args.summaries:
                for res in results:
                    save_summary(res.fit, args.out / f"first_stage_{name}_geo{res.geography.index}.txt")
            print(f"First-stage results for {name} saved to", args.out)
    except (FileNotFoundError, SpecificationError, EstimationError) as exc:
        raise SystemExit(str(exc)) from exc


if __name__ == "__main__":
    main()
