"""Model and geography specifications read from the JSON files in ``MODEL_SPECS_DIR``.

A model file (``<model>.json``) defines

- ``INSTD``: dependent variable of the first stage,
- ``INSTS``: the instrument,
- ``KEEP_CONDITION``: sample restriction (``""`` for none),
- ``DUMMIES``: extra dummy controls as a ``+ a + b`` formula fragment,

and may state its inference choices with ``PVALUE_SE`` (``"clustered"`` or
``"robust"``) and ``TEST_INDICATORS``. ``geography.json`` holds
``GEO_KEEP_CONDITION_i`` / ``GEO_CONTROLS_i`` (and optionally ``GEO_LABEL_i``)
for each of the geographic variants.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

from config.config import (
    CLUSTERED_PVALUE_MODELS,
    GEOGRAPHY_FILE,
    INDICATOR_TEST_MODELS,
    MODEL_SPECS_DIR,
    N_GEOGRAPHIES,
)

MODEL_KEYS = ["INSTD", "INSTS", "KEEP_CONDITION", "DUMMIES"]
PVALUE_SE_CHOICES = ("clustered", "robust")


class SpecificationError(ValueError):
    """A model, geography or formula specification cannot be used."""


@dataclass(frozen=True)
class ModelSpec:
    name: str
    instd: str
    insts: str
    keep_condition: str = ""
    dummies: str = ""
    pvalue_se: str = "robust"
    test_indicators: bool = False


@dataclass(frozen=True)
class GeographySpec:
    index: int
    label: str
    keep_condition: str = ""
    controls: str = ""

    @property
    def has_controls(self) -> bool:
        return bool(self.controls.strip())


def _read_json(path: Path) -> dict:
    if not path.exists():
        raise FileNotFoundError(f"Missing specification file: {path}")
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise SpecificationError(f"Invalid JSON in {path}: {exc}") from exc


def available_models(specs_dir: Path = MODEL_SPECS_DIR) -> list[str]:
    return sorted(p.stem for p in Path(specs_dir).glob("*.json") if p.name != GEOGRAPHY_FILE)


def load_model_spec(name: str, specs_dir: Path = MODEL_SPECS_DIR) -> ModelSpec:
    raw = _read_json(Path(specs_dir) / f"{name}.json")

    missing = [key for key in MODEL_KEYS if key not in raw]
    if missing:
        raise SpecificationError(f"Model '{name}' is missing keys: {', '.join(missing)}")
    if not str(raw["INSTD"]).strip() or not str(raw["INSTS"]).strip():
        raise SpecificationError(f"Model '{name}' needs non-empty INSTD and INSTS")

    pvalue_se = raw.get("PVALUE_SE", "clustered" if name in CLUSTERED_PVALUE_MODELS else "robust")
    if pvalue_se not in PVALUE_SE_CHOICES:
        raise SpecificationError(
            f"Model '{name}': PVALUE_SE must be one of {PVALUE_SE_CHOICES}, got {pvalue_se!r}"
        )

    return ModelSpec(
        name=name,
        instd=str(raw["INSTD"]).strip(),
        insts=str(raw["INSTS"]).strip(),
        keep_condition=str(raw["KEEP_CONDITION"]),
        dummies=str(raw["DUMMIES"]),
        pvalue_se=pvalue_se,
        test_indicators=bool(raw.get("TEST_INDICATORS", name in INDICATOR_TEST_MODELS)),
    )


def load_geography(specs_dir: Path = MODEL_SPECS_DIR) -> list[GeographySpec]:
    raw = _read_json(Path(specs_dir) / GEOGRAPHY_FILE)

    geographies = []
    for i in range(1, N_GEOGRAPHIES + 1):
        cond_key = f"GEO_KEEP_CONDITION_{i}"
        ctrl_key = f"GEO_CONTROLS_{i}"
        missing = [key for key in (cond_key, ctrl_key) if key not in raw]
        if missing:
            raise SpecificationError(f"{GEOGRAPHY_FILE} is missing keys: {', '.join(missing)}")
        geographies.append(
            GeographySpec(
                index=i,
                label=str(raw.get(f"GEO_LABEL_{i}", f"({i})")),
                keep_condition=str(raw[cond_key]),
                controls=str(raw[ctrl_key]),
            )
        )
    return geographies
