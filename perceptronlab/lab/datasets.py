"""
perceptronlab/lab/datasets.py

Dataset presets, blob generation and JSON/CSV import/export for the lab.
Every generator takes a numpy Generator so a seed reproduces the same set.
"""
from __future__ import annotations

import io
import json
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

PRESET_KINDS = ("separable", "xor", "noisy", "custom")
CSV_COLUMNS  = ["x1", "x2", "y"]
MAX_POINTS   = 5_000


class DatasetError(ValueError):
    """Raised when imported points do not match [{x: [x1, x2], y: 0|1}]."""


@dataclass(frozen=True)
class LabeledPoint:
    x: Tuple[float, float]
    y: int

    def to_dict(self) -> Dict:
        return {"x": [self.x[0], self.x[1]], "y": self.y}


def seeded_rng(seed: Optional[int]) -> np.random.Generator:
    """numpy Generator for any integer seed; negatives wrap to 32 bits like LcgRandom."""
    if seed is None:
        return np.random.default_rng()
    return np.random.default_rng(int(seed) & 0xFFFFFFFF)


# ── Presets ───────────────────────────────────────────────────────────────────

def make_separable(rng: np.random.Generator) -> List[LabeledPoint]:
    """40 class-0 points in [-1, -0.1]² and 40 class-1 points in [0.2, 1.1]²."""
    low  = -1.0 + rng.random((40, 2)) * 0.9
    high =  0.2 + rng.random((40, 2)) * 0.9
    return (
        [LabeledPoint(x=(float(a), float(b)), y=0) for a, b in low]
        + [LabeledPoint(x=(float(a), float(b)), y=1) for a, b in high]
    )


XOR_CORNERS = [
    (-0.8, -0.8, 0),
    (-0.8,  0.8, 1),
    ( 0.8, -0.8, 1),
    ( 0.8,  0.8, 0),
]


def make_xor(rng: np.random.Generator) -> List[LabeledPoint]:
    points = []
    for cx, cy, label in XOR_CORNERS:
        jitter = (rng.random((30, 2)) - 0.5) * 0.3
        for dx, dy in jitter:
            points.append(LabeledPoint(x=(cx + float(dx), cy + float(dy)), y=label))
    return points


def make_noisy(rng: np.random.Generator, flip_fraction: float = 0.1) -> List[LabeledPoint]:
    """Separable set with a random tenth of the labels flipped."""
    points = make_separable(rng)
    flip_count = max(1, round(len(points) * flip_fraction))
    flipped = set(int(i) for i in rng.choice(len(points), size=flip_count, replace=False))
    return [
        LabeledPoint(x=p.x, y=1 - p.y) if i in flipped else p
        for i, p in enumerate(points)
    ]


def make_blob(center: Sequence[float], label: int, count: int = 30,
              rng: Optional[np.random.Generator] = None,
              spread: float = 0.4) -> List[LabeledPoint]:
    if label not in (0, 1):
        raise DatasetError("Blob label must be 0 or 1.")
    if count < 1:
        raise DatasetError("Blob needs at least one point.")
    rng = rng or seeded_rng(None)
    cx, cy = float(center[0]), float(center[1])
    offsets = (rng.random((count, 2)) - 0.5) * spread
    return [LabeledPoint(x=(cx + float(dx), cy + float(dy)), y=label) for dx, dy in offsets]


_PRESETS = {
    "separable": make_separable,
    "xor":       make_xor,
    "noisy":     make_noisy,
}


def make_preset(kind: str, seed: Optional[int] = None) -> List[LabeledPoint]:
    if kind == "custom":
        return []
    try:
        factory = _PRESETS[kind]
    except KeyError:
        raise DatasetError(
            f"Unknown dataset kind '{kind}'. Expected one of: {', '.join(PRESET_KINDS)}"
        ) from None
    return factory(seeded_rng(seed))


# ── Import / export ───────────────────────────────────────────────────────────

def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and np.isfinite(value)


def parse_points(value) -> List[LabeledPoint]:
    """Validate a decoded JSON value as [{x: [x1, x2], y: 0|1}, ...]."""
    if not isinstance(value, list):
        raise DatasetError("Expected an array of { x: [number, number], y } objects")
    if len(value) > MAX_POINTS:
        raise DatasetError(f"Datasets are limited to {MAX_POINTS} points.")

    points = []
    for i, entry in enumerate(value):
        if not isinstance(entry, dict):
            raise DatasetError(f"Point {i} is not an object.")
        x, y = entry.get("x"), entry.get("y")
        if not isinstance(x, (list, tuple)) or len(x) != 2 or not all(_is_number(v) for v in x):
            raise DatasetError(f"Point {i} needs x as [number, number].")
        if isinstance(y, bool) or y not in (0, 1):
            raise DatasetError(f"Point {i} needs y equal to 0 or 1.")
        points.append(LabeledPoint(x=(float(x[0]), float(x[1])), y=int(y)))
    return points


def points_to_json(points: Sequence[LabeledPoint]) -> str:
    return json.dumps([p.to_dict() for p in points], indent=2)


def points_from_json(text: str) -> List[LabeledPoint]:
    try:
        decoded = json.loads(text)
    except json.JSONDecodeError as exc:
        raise DatasetError(f"Invalid JSON: {exc}") from exc
    return parse_points(decoded)


def points_to_csv(points: Sequence[LabeledPoint]) -> str:
    df = pd.DataFrame(
        [(p.x[0], p.x[1], p.y) for p in points],
        columns=CSV_COLUMNS,
    )
    return df.to_csv(index=False)


def points_from_csv(source) -> List[LabeledPoint]:
    """Read x1,x2,y columns from a CSV path, buffer or string."""
    if isinstance(source, str) and "\n" in source:
        source = io.StringIO(source)
    try:
        # One extra row tells an oversized file apart from one at the limit
        df = pd.read_csv(source, nrows=MAX_POINTS + 1)
    except (ValueError, pd.errors.ParserError) as exc:
        raise DatasetError(f"Could not parse CSV: {exc}") from exc

    if len(df) > MAX_POINTS:
        raise DatasetError(f"Datasets are limited to {MAX_POINTS} points.")

    missing = [c for c in CSV_COLUMNS if c not in df.columns]
    if missing:
        raise DatasetError(f"CSV is missing columns: {', '.join(missing)}")

    try:
        df = df[CSV_COLUMNS].apply(pd.to_numeric)
    except (ValueError, TypeError) as exc:
        raise DatasetError(f"CSV values must be numeric: {exc}") from exc

    blank = df.isna().any(axis=1).to_numpy().nonzero()[0]
    if len(blank):
        raise DatasetError(f"CSV row {int(blank[0]) + 1} has an empty value.")

    records = [
        {"x": [float(row.x1), float(row.x2)], "y": int(row.y) if row.y in (0, 1) else row.y}
        for row in df.itertuples(index=False)
    ]
    return parse_points(records)
