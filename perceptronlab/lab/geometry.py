"""
perceptronlab/lab/geometry.py

Decision-boundary geometry for the chart layer: the line w·x + b = 0
clipped to the plot bounds, the τ-shifted bias and the 1/‖w‖ margin band.
"""
from __future__ import annotations

import math
from typing import List, Optional, Sequence, Tuple

from perceptronlab.lab.metrics import predict_scores
from perceptronlab.lab.neuron import logit

Bounds = Tuple[float, float, float, float]   # (xmin, xmax, ymin, ymax)
Segment = Tuple[Tuple[float, float], Tuple[float, float]]

DEFAULT_BOUNDS: Bounds = (-1.5, 1.5, -1.5, 1.5)
MIN_NORM = 1e-6


def effective_bias(params, threshold: float, activation: str,
                   use_threshold: bool = True) -> float:
    """p >= τ  ⇔  z >= logit(τ), so the τ-boundary uses b′ = b − logit(τ)."""
    if activation == "sigmoid" and use_threshold:
        return params.b - logit(threshold)
    return params.b


def margin_half_width(w: Sequence[float]) -> Optional[float]:
    norm = math.hypot(w[0], w[1])
    if norm <= MIN_NORM:
        return None
    return 1.0 / norm


def boundary_segment(w: Sequence[float], b: float,
                     bounds: Bounds = DEFAULT_BOUNDS) -> Optional[Segment]:
    """Clip w₁x + w₂y + b = 0 to the box; None if degenerate or outside."""
    w1, w2 = w[0], w[1]
    if math.hypot(w1, w2) <= MIN_NORM:
        return None
    xmin, xmax, ymin, ymax = bounds

    hits: List[Tuple[float, float]] = []
    if abs(w2) > MIN_NORM:
        for x in (xmin, xmax):
            y = -(w1 * x + b) / w2
            if ymin <= y <= ymax:
                hits.append((x, y))
    if abs(w1) > MIN_NORM:
        for y in (ymin, ymax):
            x = -(w2 * y + b) / w1
            if xmin <= x <= xmax:
                hits.append((x, y))

    unique: List[Tuple[float, float]] = []
    for pt in hits:
        if not any(math.isclose(pt[0], q[0], abs_tol=1e-9) and
                   math.isclose(pt[1], q[1], abs_tol=1e-9) for q in unique):
            unique.append(pt)
    if len(unique) < 2:
        return None
    return unique[0], unique[1]


def misclassified(params, data: Sequence, threshold: float,
                  activation: str) -> List[int]:
    """Indices of points on the wrong side of the active boundary."""
    scores = predict_scores(params, data, activation)
    cut = threshold if activation == "sigmoid" else 0.5
    return [
        i for i, (score, point) in enumerate(zip(scores, data))
        if int(score >= cut) != point.y
    ]
