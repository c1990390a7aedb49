from __future__ import annotations

import os
from pathlib import Path

# Paths and filenames
PROJECT_ROOT = Path(__file__).resolve().parent.parent
SAMPLE_DIR = PROJECT_ROOT / "data"
TREE_PATH = Path(os.environ.get("TRAIT_EXPLORER_TREE", SAMPLE_DIR / "mammals.tre"))
TRAITS_PATH = Path(os.environ.get("TRAIT_EXPLORER_TRAITS", SAMPLE_DIR / "mammal_mass.csv"))

# Trait table columns
SPECIES_COLUMN = "species"
MASS_COLUMN = "mass"
LOG_MASS_COLUMN = "log_mass"
TRAIT_UNITS = "log10 body mass (g)"

# Curve sampling
CURVE_PADDING = 3.0
CURVE_STEP = 0.01
Y_RANGE = [0.0, 1.0]

# Parameter defaults and bounds
MODE_FREE = "free"
MODE_CONSTRAINED = "constrained"
DEFAULT_MODE = MODE_FREE
DEFAULT_PARAMS = {
    "start": 0.9,
    "end": 0.1,
    "slope": 2.0,
    "shift": 2.0,
    "slope_factor": 1.0,
}
PARAM_BOUNDS = {
    "start": {"min": 0.0, "max": 1.0, "step": 0.01},
    "end": {"min": 0.0, "max": 1.0, "step": 0.01},
    "slope": {"min": 0.0, "max": 100.0, "step": 0.1},
    "shift": {"min": -2.0, "max": 10.0, "step": 0.01},
    "slope_factor": {"min": 0.5, "max": 10.0, "step": 0.1},
}
PARAM_LABELS = {
    "start": "Start (low-trait asymptote)",
    "end": "End (high-trait asymptote)",
    "slope": "Slope",
    "shift": "Shift (inflection point)",
    "slope_factor": "Slope factor",
}

# UI, schema
UI_BASE_TOKEN = "sigmoid-"
DEFAULT_UI_NONCE = "0"
SCHEMA_VERSION = 1

# Logging
LOG_HISTORY_CAPACITY = 500
LOG_PREVIEW_CAPACITY = 5

# CSV column order
SCHEMA_COLUMNS = [
    "schema_version",
    "session_id",
    "t_server_iso",
    "seq",
    "event",
    "param_name",
    "old_value",
    "new_value",
    "source",
    "start",
    "end",
    "slope",
    "shift",
    "slope_factor",
    "effective_slope",
    "mode",
    "elapsed_time_ms",
    "uirevision",
    "export_type",
]

# Plot palette and styles (Okabe-Ito)
FIGURE_COLORS = {
    "curve": "#0072B2",
    "points": "#D55E00",
    "density": "rgba(0,158,115,0.25)",
    "density_line": "#009E73",
    "shift": "#777777",
    "missing": "#BBBBBB",
    "branch": "#999999",
}
CURVE_LINE_STYLE = {"color": FIGURE_COLORS["curve"], "width": 3}
POINT_MARKER_STYLE = {
    "color": FIGURE_COLORS["points"],
    "size": 8,
    "symbol": "circle",
    "line": {"color": "#ffffff", "width": 1},
}
DENSITY_LINE_STYLE = {"color": FIGURE_COLORS["density_line"], "width": 1.5}
SHIFT_LINE_STYLE = {"color": FIGURE_COLORS["shift"], "width": 1, "dash": "dot"}
AXIS_LINE_STYLE = {"zerolinecolor": "#777777"}
TREE_COLORSCALE = "Viridis"
TREE_MARKER_SIZE = 7
TREE_BRANCH_WIDTH = 2
TREE_ARC_SAMPLES = 24
TREE_LABEL_OFFSET = 0.04

