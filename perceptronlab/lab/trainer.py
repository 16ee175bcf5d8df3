"""
perceptronlab/lab/trainer.py

Incremental online-learning trainer for a 2-D linear model.

The trainer owns (w, b), walks the dataset one sample at a time in a
seeded shuffle order and applies either the perceptron mistake-driven rule
(step activation) or a logistic gradient step (sigmoid activation).
It never schedules itself: a caller drives it with step_once() or, while
running, with one run_frame() per tick.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from perceptronlab.lab.datasets import LabeledPoint
from perceptronlab.lab.metrics import compute_metrics, linear_score
from perceptronlab.lab.neuron import sigmoid

DEFAULT_SEED = 12345
ACTIVATIONS = ("step", "sigmoid")


@dataclass(frozen=True)
class Params:
    w: Tuple[float, float] = (0.0, 0.0)
    b: float = 0.0

    def to_dict(self) -> Dict:
        return {"w": [self.w[0], self.w[1]], "b": self.b}

    @classmethod
    def from_dict(cls, data) -> "Params":
        """Build Params from {"w": [w1, w2], "b": b}; raises ValueError."""
        if not isinstance(data, dict):
            raise ValueError("Params must be an object with 'w' and 'b'.")
        w, b = data.get("w"), data.get("b")
        if (
            not isinstance(w, (list, tuple)) or len(w) != 2
            or not all(_is_number(v) for v in w)
            or not _is_number(b)
        ):
            raise ValueError("Params must look like {\"w\": [w1, w2], \"b\": b}.")
        return cls(w=(float(w[0]), float(w[1])), b=float(b))


@dataclass
class TrainerState:
    running: bool = False
    epoch:   int = 0
    step:    int = 0
    params:  Params = field(default_factory=Params)
    acc:     float = 0.0
    loss:    float = 0.0

    def to_dict(self) -> Dict:
        return {
            "running": self.running,
            "epoch":   self.epoch,
            "step":    self.step,
            "params":  self.params.to_dict(),
            "acc":     self.acc,
            "loss":    self.loss,
        }


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


# ── PRNG ──────────────────────────────────────────────────────────────────────

class LcgRandom:
    """32-bit linear congruential generator returning floats in [0, 1]."""

    def __init__(self, seed: int = DEFAULT_SEED) -> None:
        self._state = int(seed) & 0xFFFFFFFF

    def __call__(self) -> float:
        self._state = (1664525 * self._state + 1013904223) & 0xFFFFFFFF
        return self._state / 0xFFFFFFFF


def shuffle_in_place(values: List, rng: Callable[[], float]) -> None:
    """Fisher–Yates from the end, drawing j = floor(rng() · (i + 1))."""
    for i in range(len(values) - 1, 0, -1):
        # rng() may return exactly 1.0
        j = min(int(rng() * (i + 1)), i)
        values[i], values[j] = values[j], values[i]


# ── Update rules ──────────────────────────────────────────────────────────────

def perceptron_update(params: Params, point: LabeledPoint, lr: float) -> Params:
    target = 1 if point.y == 1 else -1
    z = linear_score(params, point.x)
    if target * z <= 0:
        return Params(
            w=(params.w[0] + lr * target * point.x[0],
               params.w[1] + lr * target * point.x[1]),
            b=params.b + lr * target,
        )
    return params


def logistic_update(params: Params, point: LabeledPoint, lr: float) -> Params:
    gradient = point.y - sigmoid(linear_score(params, point.x))
    return Params(
        w=(params.w[0] + lr * gradient * point.x[0],
           params.w[1] + lr * gradient * point.x[1]),
        b=params.b + lr * gradient,
    )


UPDATE_RULES = {
    "step":    perceptron_update,
    "sigmoid": logistic_update,
}


def default_learning_rate(activation: str) -> float:
    return 0.5 if activation == "sigmoid" else 0.1


# ── Trainer ───────────────────────────────────────────────────────────────────

class Trainer:
    def __init__(
        self,
        data: Sequence[LabeledPoint],
        initial: Optional[Params] = None,
        activation: str = "step",
        lr: float = 0.1,
        epochs: int = 50,
        shuffle: bool = True,
        rng_seed: int = DEFAULT_SEED,
        steps_per_frame: int = 1,
        on_epoch_end: Optional[Callable[[Dict], None]] = None,
    ) -> None:
        if activation not in ACTIVATIONS:
            raise ValueError(f"Unknown activation: {activation}")
        if steps_per_frame < 1:
            raise ValueError("steps_per_frame must be at least 1.")

        self.data            = list(data)
        self.initial         = initial or Params()
        self.activation      = activation
        self.lr              = float(lr)
        self.epochs          = int(epochs)
        self.shuffle         = shuffle
        self.rng_seed        = int(rng_seed)
        self.steps_per_frame = int(steps_per_frame)
        self.on_epoch_end    = on_epoch_end

        self._rng         = LcgRandom(self.rng_seed)
        self._order:      List[int] = []
        self._order_ready = False
        self._index       = 0
        self._epoch       = 0
        self._running     = False
        self.params       = self.initial

        metrics = compute_metrics(self.params, self.data, self.activation)
        self.state = TrainerState(
            running=False, epoch=0, step=0, params=self.params,
            acc=metrics["acc"], loss=metrics["loss"],
        )

    # ── Queries ───────────────────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._running

    @property
    def finished(self) -> bool:
        return self._epoch >= self.epochs

    def predict(self, x: Tuple[float, float]) -> float:
        z = linear_score(self.params, x)
        if self.activation == "sigmoid":
            return sigmoid(z)
        return 1 if z > 0 else 0

    # ── Internals ─────────────────────────────────────────────────────────

    def _ensure_order(self) -> None:
        order = list(range(len(self.data)))
        if self.shuffle and len(order) > 1:
            shuffle_in_place(order, self._rng)
        self._order = order
        self._order_ready = True
        self._index = 0

    def _publish(self, step: int, metrics: Dict) -> None:
        self.state = TrainerState(
            running=self._running,
            epoch=self._epoch,
            step=step,
            params=self.params,
            acc=metrics["acc"],
            loss=metrics["loss"],
        )

    def _apply_step(self) -> bool:
        """Apply one update. Returns False when training should stop."""
        if not self.data:
            self._publish(0, compute_metrics(self.params, self.data, self.activation))
            return False
        if self.finished:
            return False

        if not self._order_ready or self._index >= len(self.data):
            self._ensure_order()

        point = self.data[self._order[self._index]]
        self.params = UPDATE_RULES[self.activation](self.params, point, self.lr)
        self._index += 1
        completed_epoch = self._index >= len(self.data)

        metrics = compute_metrics(self.params, self.data, self.activation)

        if completed_epoch:
            self._epoch += 1
            if self.on_epoch_end is not None:
                self.on_epoch_end({
                    "epoch":   self._epoch,
                    "params":  self.params,
                    "metrics": metrics,
                })
            if self.finished:
                self._publish(len(self.data), metrics)
                return False
            self._ensure_order()

        self._publish(0 if completed_epoch else self._index, metrics)
        return True

    # ── Controls ──────────────────────────────────────────────────────────

    def start(self) -> bool:
        """Mark the trainer running. Returns False if it cannot start."""
        if self._running or self.finished:
            return False
        if not self._order_ready:
            self._ensure_order()
        self._running = True
        self.state.running = True
        return True

    def pause(self) -> None:
        self._running = False
        self.state.running = False

    def run_frame(self) -> bool:
        """Apply up to steps_per_frame updates; returns whether still running."""
        if not self._running:
            return False
        keep_running = True
        for _ in range(self.steps_per_frame):
            keep_running = self._apply_step()
            if not keep_running:
                break
        if keep_running and self._running:
            return True
        self.pause()
        return False

    def step_once(self) -> TrainerState:
        if not self._running:
            self._apply_step()
        return self.state

    def reset(self, params: Optional[Params] = None) -> TrainerState:
        self._running = False
        self._epoch = 0
        self._index = 0
        self._order = []
        self._order_ready = False
        self._rng = LcgRandom(self.rng_seed)
        self.params = params or self.initial
        self._publish(0, compute_metrics(self.params, self.data, self.activation))
        return self.state

    def set_lr(self, lr: float) -> None:
        self.lr = float(lr)

    def set_epochs(self, epochs: int) -> None:
        self.epochs = int(epochs)

    def set_seed(self, seed: int) -> TrainerState:
        self.rng_seed = int(seed)
        return self.reset()

    def set_data(self, data: Sequence[LabeledPoint]) -> TrainerState:
        self.data = list(data)
        return self.reset()

    def set_activation(self, activation: str) -> TrainerState:
        if activation not in ACTIVATIONS:
            raise ValueError(f"Unknown activation: {activation}")
        self.activation = activation
        return self.reset()
