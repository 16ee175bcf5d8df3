"""
perceptronlab/lab/charts.py

Server-side rendering of the lab visuals. Every chart returns a base64
PNG string the page drops into an <img src="data:image/png;base64,...">.
"""
from __future__ import annotations

import base64
import io
from typing import Dict, List, Optional, Sequence

import numpy as np
import matplotlib
matplotlib.use('Agg')  # non-interactive backend, set before importing pyplot
import matplotlib.pyplot as plt
import seaborn as sns

from perceptronlab.lab.geometry import (
    DEFAULT_BOUNDS, boundary_segment, effective_bias,
    margin_half_width, misclassified,
)
from perceptronlab.lab.neuron import logit

PALETTE = {
    "primary":  "#1a2535",
    "accent":   "#b84c27",
    "green":    "#27a35a",
    "blue":     "#3b82f6",
    "muted":    "#6b7280",
    "bg":       "#f7f5f0",
    "grid":     "#e5e0d8",
}

CLASS_COLORS = {0: "#3b82f6", 1: "#b84c27"}

# Snapshot overlay styles: colour + dash pattern
OVERLAY_STYLES = {
    "init":  {"color": "#7c3aed", "dash": (4, 4)},
    "mid":   {"color": "#0ea5e9", "dash": (2, 6)},
    "final": {"color": "#22c55e", "dash": (8, 4)},
}

sns.set_theme(style="whitegrid", palette="muted")


def _fig_to_b64(fig) -> str:
    buf = io.BytesIO()
    fig.savefig(buf, format="png", bbox_inches="tight",
                facecolor=fig.get_facecolor(), dpi=110)
    plt.close(fig)
    buf.seek(0)
    return base64.b64encode(buf.read()).decode()


def _style_axes(ax, title: str) -> None:
    ax.set_facecolor("#fff")
    ax.set_title(title, fontsize=11, fontweight="bold", color=PALETTE["primary"])
    ax.tick_params(labelsize=8, colors=PALETTE["primary"])
    for spine in ax.spines.values():
        spine.set_edgecolor(PALETTE["grid"])


def _draw_line(ax, w, b, bounds, **kwargs) -> None:
    segment = boundary_segment(w, b, bounds)
    if segment is None:
        return
    (x0, y0), (x1, y1) = segment
    ax.plot([x0, x1], [y0, y1], **kwargs)


def decision_boundary_chart(
    params,
    data: Sequence,
    activation: str,
    threshold: float = 0.5,
    show_margin_band: bool = False,
    use_threshold_boundary: bool = False,
    show_baseline_boundary: bool = True,
    snapshots: Optional[List[Dict]] = None,
    bounds=DEFAULT_BOUNDS,
) -> str:
    """
    Scatter of both classes with the current boundary.
    snapshots: [{"label": "init"|"mid"|"final", "params": Params}] overlays.
    """
    xmin, xmax, ymin, ymax = bounds
    fig, ax = plt.subplots(figsize=(5.2, 5.2))
    fig.patch.set_facecolor(PALETTE["bg"])
    _style_axes(ax, "Decision boundary")
    ax.set_xlim(xmin, xmax)
    ax.set_ylim(ymin, ymax)
    ax.set_aspect("equal")

    bias = effective_bias(params, threshold, activation, use_threshold_boundary)

    if show_margin_band:
        half = margin_half_width(params.w)
        if half is not None:
            # w·x + b = ±1 lies 1/‖w‖ either side of the boundary
            _draw_line(ax, params.w, bias + 1, bounds,
                       color=PALETTE["blue"], alpha=.35, linewidth=1)
            _draw_line(ax, params.w, bias - 1, bounds,
                       color=PALETTE["blue"], alpha=.35, linewidth=1)
            xs = np.linspace(xmin, xmax, 200)
            if abs(params.w[1]) > 1e-6:
                lo = -(params.w[0] * xs + bias + 1) / params.w[1]
                hi = -(params.w[0] * xs + bias - 1) / params.w[1]
                ax.fill_between(xs, lo, hi, color=PALETTE["blue"], alpha=.12)

    wrong = set(misclassified(params, data, threshold, activation)) if show_margin_band else set()
    for label in (0, 1):
        pts = [p for p in data if p.y == label]
        if not pts:
            continue
        xy = np.array([p.x for p in pts])
        ax.scatter(xy[:, 0], xy[:, 1], s=22, color=CLASS_COLORS[label],
                   edgecolor="white", linewidth=.5, label=f"class {label}", zorder=3)
    if wrong:
        halo = np.array([data[i].x for i in sorted(wrong)])
        ax.scatter(halo[:, 0], halo[:, 1], s=120, facecolors="none",
                   edgecolors=PALETTE["accent"], linewidth=1.2, zorder=2)

    for snap in snapshots or []:
        style = OVERLAY_STYLES.get(snap["label"], OVERLAY_STYLES["final"])
        p = snap["params"]
        _draw_line(ax, p.w, p.b, bounds, color=style["color"], linewidth=1.5,
                   linestyle=(0, style["dash"]), label=f"snapshot: {snap['label']}")

    _draw_line(ax, params.w, bias, bounds, color="#111827", linewidth=2,
               label="boundary" if not use_threshold_boundary else f"τ = {threshold:.2f}")

    if activation == "sigmoid" and show_baseline_boundary and use_threshold_boundary:
        _draw_line(ax, params.w, params.b - logit(0.5), bounds,
                   color=PALETTE["muted"], linewidth=2, linestyle="--", label="τ = 0.50")

    ax.legend(loc="upper left", fontsize=7, frameon=False)
    fig.tight_layout()
    return _fig_to_b64(fig)


def loss_sparkline_chart(values: Sequence[float], title: str = "Loss") -> str:
    fig, ax = plt.subplots(figsize=(4.8, 1.4))
    fig.patch.set_facecolor(PALETTE["bg"])
    _style_axes(ax, title)
    if len(values) > 0:
        ax.plot(np.arange(len(values)), values, color=PALETTE["accent"], linewidth=1.4)
        ax.fill_between(np.arange(len(values)), values, min(values),
                        color=PALETTE["accent"], alpha=.12)
        ax.annotate(f"{values[-1]:.3f}", xy=(len(values) - 1, values[-1]),
                    fontsize=7, color=PALETTE["primary"])
    ax.set_xticks([])
    ax.grid(False)
    fig.tight_layout()
    return _fig_to_b64(fig)


def roc_curve_chart(points: Sequence[Dict], auc: Optional[float],
                    threshold: Optional[float] = None) -> str:
    fig, ax = plt.subplots(figsize=(4.2, 4.2))
    fig.patch.set_facecolor(PALETTE["bg"])
    title = "ROC curve" if auc is None else f"ROC curve (AUC = {auc:.3f})"
    _style_axes(ax, title)
    ax.plot([0, 1], [0, 1], color=PALETTE["grid"], linestyle="--", linewidth=1)

    if points:
        fpr = [pt["fpr"] for pt in points]
        tpr = [pt["tpr"] for pt in points]
        ax.plot(fpr, tpr, color=PALETTE["primary"], linewidth=2)
        ax.fill_between(fpr, tpr, color=PALETTE["primary"], alpha=.08)

        if threshold is not None:
            nearest = min(points, key=lambda pt: abs(pt["threshold"] - threshold))
            ax.scatter([nearest["fpr"]], [nearest["tpr"]], s=50,
                       color=PALETTE["accent"], zorder=3)
            ax.annotate(f"τ = {threshold:.2f}", xy=(nearest["fpr"], nearest["tpr"]),
                        xytext=(6, -12), textcoords="offset points", fontsize=8,
                        color=PALETTE["accent"])

    ax.set_xlim(0, 1)
    ax.set_ylim(0, 1.02)
    ax.set_xlabel("False positive rate", fontsize=9, color=PALETTE["muted"])
    ax.set_ylabel("True positive rate", fontsize=9, color=PALETTE["muted"])
    fig.tight_layout()
    return _fig_to_b64(fig)


def confusion_matrix_chart(confusion: Dict) -> str:
    cm = np.array([
        [confusion["TN"], confusion["FP"]],
        [confusion["FN"], confusion["TP"]],
    ])
    labels = ["0", "1"]
    fig, ax = plt.subplots(figsize=(3.6, 3.2))
    fig.patch.set_facecolor(PALETTE["bg"])
    ax.set_facecolor(PALETTE["bg"])

    sns.heatmap(cm, annot=True, fmt="d", cmap="Blues",
                xticklabels=labels, yticklabels=labels,
                linewidths=.5, linecolor=PALETTE["grid"], ax=ax,
                annot_kws={"size": 10}, cbar=False)
    ax.set_xlabel("Predicted", fontsize=10, color=PALETTE["primary"])
    ax.set_ylabel("Actual", fontsize=10, color=PALETTE["primary"])
    ax.set_title("Confusion Matrix", fontsize=12, fontweight="bold", color=PALETTE["primary"])
    ax.tick_params(labelsize=8, colors=PALETTE["primary"])
    fig.tight_layout()
    return _fig_to_b64(fig)
