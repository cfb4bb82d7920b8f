"""Shared pytest fixtures for the first-stage estimation tests."""

import json

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from config.config import MODEL_SPECS_DIR


@pytest.fixture
def country_data():
    """Synthetic country table with the columns used by the shipped specs."""
    rng = np.random.default_rng(42)
    n = 80

    # Mortality rates are shared across neighbouring countries, giving fewer clusters than countries
    mortality_levels = np.round(rng.uniform(2.0, 7.5, size=45), 2)
    logmort0 = rng.choice(mortality_levels, size=n)

    continent = rng.choice(["africa", "asia", "other", "america"], size=n, p=[0.35, 0.2, 0.1, 0.35])
    latitude = np.round(rng.uniform(0.0, 0.7, size=n), 3)
    neoeuro = np.zeros(n, dtype=int)
    neoeuro[:4] = 1
    continent[:4] = "other"

    campaign = rng.integers(0, 2, size=n)
    slave = rng.integers(0, 2, size=n)
    risk = 9.5 - 0.6 * logmort0 + 1.5 * latitude + 0.3 * campaign + rng.normal(0, 1, size=n)

    df = pd.DataFrame({
        "shortnam": [f"C{i:02d}" for i in range(n)],
        "risk": np.round(risk, 3),
        "logmort0": logmort0,
        "logmortnew": np.round(logmort0 + rng.normal(0, 0.3, size=n), 2),
        "campaign": campaign,
        "slave": slave,
        "campaignnew": rng.integers(0, 2, size=n),
        "slavenew": rng.integers(0, 2, size=n),
        "source0": (rng.uniform(size=n) > 0.3).astype(int),
        "latitude": latitude,
        "neoeuro": neoeuro,
        "africa": (continent == "africa").astype(int),
        "asia": (continent == "asia").astype(int),
        "other": (continent == "other").astype(int),
    })
    df.loc[10, "latitude"] = np.nan
    return df


@pytest.fixture
def data_file(tmp_path, country_data):
    """The synthetic table written the way the analysis expects it on disk."""
    path = tmp_path / "ajrcomment_all.txt"
    country_data.to_csv(path, sep=" ", index=False, na_rep="NA")
    return path


@pytest.fixture
def specs_dir():
    return MODEL_SPECS_DIR


@pytest.fixture
def tmp_specs_dir(tmp_path):
    """Empty specs directory with a copy of the shipped geography file."""
    path = tmp_path / "specs"
    path.mkdir()
    (path / "geography.json").write_text(
        (MODEL_SPECS_DIR / "geography.json").read_text(encoding="utf-8"), encoding="utf-8"
    )
    return path


@pytest.fixture
def write_model(tmp_specs_dir):
    """Write a model JSON into ``tmp_specs_dir``."""

    def _write(name, **fields):
        (tmp_specs_dir / f"{name}.json").write_text(json.dumps(fields), encoding="utf-8")
        return tmp_specs_dir

    return _write
