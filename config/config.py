"""Project-wide configuration for the first-stage mortality/risk estimation.

Update these values (or the matching environment variables) to point the
analysis at another data file or output folder.
"""

import os
from pathlib import Path

# Base directory for the analysis dataset
DATA_DIR = Path(os.getenv("FIRST_STAGE_DATA_DIR", "data"))
DATA_FILE = Path(os.getenv("FIRST_STAGE_DATA_FILE", DATA_DIR / "ajrcomment_all.txt"))

# Tables, figures and regression summaries end up here
OUT_DIR = Path(os.getenv("FIRST_STAGE_OUT_DIR", "outputs"))

# JSON files describing the models and the geographic variants
MODEL_SPECS_DIR = Path(
    os.getenv("FIRST_STAGE_MODEL_SPECS_DIR", Path(__file__).resolve().parent / "model_specs")
)
GEOGRAPHY_FILE = "geography.json"

N_GEOGRAPHIES = 7

RESULT_LABELS = [
    "Log mortality($\\beta$)",
    "~~ \\{homoscedastic standard errors\\}",
    "~~ (heteroscedastic standard errors)",
    "~~ (heteroscedastic-clustered SE)",
    "p-value of log mortality",
    "p-value of indicators",
    "p-value of controls",
]

# Extra weight on the clustered covariance on top of the G/(G-1)*(N-1)/(N-K) correction
CLUSTER_DF_CORRECTION = 1.0

# Inference choices for model files that do not state them explicitly
CLUSTERED_PVALUE_MODELS = ("baseline", "addindic")
INDICATOR_TEST_MODELS = ("addindic", "rmconj_addindic", "newdata")
