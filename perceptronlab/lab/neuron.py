"""
perceptronlab/lab/neuron.py

Single-neuron primitives shared by the classic dial simulator and the
2-D trainer: weighted sum, activations, truth tables.
"""
from __future__ import annotations

import math
from typing import Dict, List, Sequence, Tuple

LOGIT_EPS = 1e-6


def weighted_sum(x: Sequence[float], w: Sequence[float], b: float) -> float:
    """z = Σ wᵢxᵢ + b. Weights missing for an input count as zero."""
    total = b
    for i, xi in enumerate(x):
        wi = w[i] if i < len(w) else 0.0
        total += wi * xi
    return total


def binary_combinations(n: int) -> List[List[int]]:
    """All 2**n bit rows, most significant bit first."""
    return [
        [(idx >> (n - 1 - i)) & 1 for i in range(n)]
        for idx in range(1 << n)
    ]


def step(z: float) -> int:
    return 1 if z >= 0 else 0


def sigmoid(z: float) -> float:
    # Split on sign so exp() never overflows
    if z >= 0:
        return 1.0 / (1.0 + math.exp(-z))
    ez = math.exp(z)
    return ez / (1.0 + ez)


def logit(p: float) -> float:
    p = min(1 - LOGIT_EPS, max(LOGIT_EPS, p))
    return math.log(p / (1 - p))


ACTIVATIONS = {
    "step":    step,
    "sigmoid": sigmoid,
}


def activate(z: float, activation: str) -> float:
    try:
        return ACTIVATIONS[activation](z)
    except KeyError:
        raise ValueError(f"Unknown activation: {activation}") from None


def truth_table(w: Sequence[float], b: float, activation: str = "step") -> List[Dict]:
    """Row-by-row z and φ(z) for every binary input combination."""
    rows = []
    for combo in binary_combinations(len(w)):
        z = weighted_sum(combo, w, b)
        rows.append({"x": combo, "z": z, "y": activate(z, activation)})
    return rows


def train_truth_table_epoch(w: Sequence[float], b: float,
                            targets: Sequence[int], lr: float) -> Tuple[List[float], float]:
    """
    One error-driven pass over the truth table using the step activation.
    targets[i] is the desired output for row i of binary_combinations(len(w)).
    """
    next_w = list(w)
    next_b = b
    for row_index, row in enumerate(binary_combinations(len(w))):
        target = targets[row_index] if row_index < len(targets) else 0
        error = target - step(weighted_sum(row, next_w, next_b))
        for bit_index, bit in enumerate(row):
            next_w[bit_index] += lr * error * bit
        next_b += lr * error
    return next_w, next_b
