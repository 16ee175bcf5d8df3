"""
perceptronlab/lab/metrics.py

Accuracy/loss for the trainer plus thresholded metrics (confusion counts,
precision/recall/specificity/F1) and a full ROC sweep with trapezoidal AUC.
Params only need `.w` and `.b`, so this module has no trainer import.
"""
from __future__ import annotations

from typing import Dict, List, Sequence

import numpy as np

LOSS_EPS = 1e-12


def linear_score(params, x) -> float:
    return params.w[0] * x[0] + params.w[1] * x[1] + params.b


def _arrays(data):
    X = np.array([p.x for p in data], dtype=float).reshape(-1, 2)
    y = np.array([p.y for p in data], dtype=int)
    return X, y


def _z(params, X: np.ndarray) -> np.ndarray:
    return X @ np.array(params.w, dtype=float) + params.b


def _sigmoid(z: np.ndarray) -> np.ndarray:
    return 0.5 * (1.0 + np.tanh(0.5 * z))


def compute_metrics(params, data: Sequence, activation: str) -> Dict[str, float]:
    """
    Mean loss and accuracy over the whole dataset.
    sigmoid → binary cross-entropy, class 1 when p >= 0.5
    step    → perceptron criterion max(0, -t·z), class 1 when z > 0
    """
    if len(data) == 0:
        return {"acc": 0.0, "loss": 0.0}

    X, y = _arrays(data)
    z = _z(params, X)

    if activation == "sigmoid":
        p = np.clip(_sigmoid(z), LOSS_EPS, 1 - LOSS_EPS)
        losses = -(y * np.log(p) + (1 - y) * np.log(1 - p))
        predicted = (_sigmoid(z) >= 0.5).astype(int)
    else:
        target = np.where(y == 1, 1.0, -1.0)
        losses = np.maximum(0.0, -target * z)
        predicted = (z > 0).astype(int)

    return {
        "acc":  float(np.mean(predicted == y)),
        "loss": float(np.mean(losses)),
    }


def predict_scores(params, data: Sequence, activation: str = "sigmoid") -> np.ndarray:
    """Sigmoid probabilities, or hard 0/1 predictions for the step activation."""
    if len(data) == 0:
        return np.zeros(0)
    X, _ = _arrays(data)
    z = _z(params, X)
    if activation == "sigmoid":
        return _sigmoid(z)
    return (z > 0).astype(float)


def _ratio(num: int, den: int) -> float:
    return num / den if den else 0.0


def _counts(scores: np.ndarray, y: np.ndarray, threshold: float) -> Dict[str, int]:
    predicted = scores >= threshold
    actual = y == 1
    return {
        "TP": int(np.sum(predicted & actual)),
        "TN": int(np.sum(~predicted & ~actual)),
        "FP": int(np.sum(predicted & ~actual)),
        "FN": int(np.sum(~predicted & actual)),
    }


def compute_confusion(params, data: Sequence, threshold: float,
                      activation: str = "sigmoid") -> Dict[str, float]:
    scores = predict_scores(params, data, activation)
    y = np.array([p.y for p in data], dtype=int)
    c = _counts(scores, y, threshold)
    tp, tn, fp, fn = c["TP"], c["TN"], c["FP"], c["FN"]

    precision = _ratio(tp, tp + fp)
    recall    = _ratio(tp, tp + fn)
    f1 = (
        2 * precision * recall / (precision + recall)
        if precision + recall > 0 else 0.0
    )
    return {
        **c,
        "accuracy":    _ratio(tp + tn, tp + tn + fp + fn),
        "precision":   precision,
        "recall":      recall,
        "specificity": _ratio(tn, tn + fp),
        "f1":          f1,
    }


def trapezoid_area(xs: Sequence[float], ys: Sequence[float]) -> float:
    area = 0.0
    for i in range(1, len(xs)):
        area += (xs[i] - xs[i - 1]) * (ys[i] + ys[i - 1]) / 2
    return area


def compute_roc(params, data: Sequence, steps: int = 101,
                activation: str = "sigmoid") -> Dict:
    """
    Sweep τ from 1 down to 0 in `steps` evenly spaced values.
    Returns {"points": [{fpr, tpr, threshold}], "auc": float | None};
    both classes must be present, otherwise points=[] and auc=None.
    """
    if steps < 2:
        raise ValueError("ROC sweep needs at least 2 thresholds.")

    y = np.array([p.y for p in data], dtype=int)
    positives = int(np.sum(y == 1))
    negatives = int(np.sum(y == 0))
    if positives == 0 or negatives == 0:
        return {"points": [], "auc": None}

    scores = predict_scores(params, data, activation)
    points: List[Dict[str, float]] = []
    for tau in np.linspace(1.0, 0.0, steps):
        c = _counts(scores, y, tau)
        points.append({
            "fpr":       c["FP"] / negatives,
            "tpr":       c["TP"] / positives,
            "threshold": float(tau),
        })

    # τ = 1 can still admit p == 1.0 scores; anchor the curve at both corners
    if points[0]["fpr"] > 0 or points[0]["tpr"] > 0:
        points.insert(0, {"fpr": 0.0, "tpr": 0.0, "threshold": 1.0})
    if points[-1]["fpr"] < 1 or points[-1]["tpr"] < 1:
        points.append({"fpr": 1.0, "tpr": 1.0, "threshold": 0.0})

    points.sort(key=lambda pt: (pt["fpr"], pt["tpr"]))
    auc = trapezoid_area([pt["fpr"] for pt in points], [pt["tpr"] for pt in points])
    return {"points": points, "auc": auc}
