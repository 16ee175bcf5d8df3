"""
perceptronlab/lab/session.py

Trainer sessions and the frame loop that replaces the browser's
animation-frame scheduling:
  1. LabSession       — one trainer plus the dataset, loss histories and
                        boundary snapshots the page displays.
  2. SessionRegistry  — lock-protected registry; `start` launches a
                        background task that calls run_frame() once per tick
                        and pushes `trainer_state` to the session's room.
  3. Socket.IO events — join/start/pause/step/reset from the page.
"""
from __future__ import annotations

import logging
import time
from threading import Lock
from typing import Dict, List, Optional, Sequence
from uuid import uuid4

from flask import current_app
from flask_socketio import emit, join_room

from perceptronlab import socketio
from perceptronlab.lab.data import (
    LOSS_EPOCH_CAP, LOSS_STEP_CAP, SNAPSHOT_LABELS, SNAPSHOT_LIMIT,
)
from perceptronlab.lab.datasets import LabeledPoint, make_blob, make_preset, seeded_rng
from perceptronlab.lab.trainer import (
    ACTIVATIONS, Params, Trainer, default_learning_rate,
)

log = logging.getLogger(__name__)

DEFAULT_INITIAL = Params(w=(0.2, -0.4), b=0.0)
MAX_SESSIONS    = 200


def _room(session_id: str) -> str:
    return f"trainer-{session_id}"


def _append_capped(history: List[float], value: float, cap: int) -> None:
    history.append(value)
    if len(history) > cap:
        del history[: len(history) - cap]


# ── Session ───────────────────────────────────────────────────────────────────

class LabSession:
    def __init__(
        self,
        client_id: str,
        dataset_kind: str = "separable",
        data: Optional[Sequence[LabeledPoint]] = None,
        activation: str = "step",
        lr: Optional[float] = None,
        epochs: int = 50,
        seed: int = 12345,
        shuffle: bool = True,
        steps_per_frame: int = 1,
    ) -> None:
        self.id           = uuid4().hex
        self.client_id    = client_id
        self.dataset_kind = dataset_kind
        self.seed         = seed
        self.created_at   = time.time()
        self.loop_active  = False

        if data is None:
            data = make_preset(dataset_kind, seed)

        self.loss_by_step:  List[float] = []
        self.loss_by_epoch: List[float] = []
        self.snapshots:     List[Dict] = []
        self.visible_overlay_ids: List[str] = []

        self.trainer = Trainer(
            data,
            initial=DEFAULT_INITIAL,
            activation=activation,
            lr=default_learning_rate(activation) if lr is None else lr,
            epochs=epochs,
            shuffle=shuffle,
            rng_seed=seed,
            steps_per_frame=steps_per_frame,
            on_epoch_end=self._record_epoch,
        )
        self.record_frame()

    # ── Histories ─────────────────────────────────────────────────────────

    def _record_epoch(self, summary: Dict) -> None:
        _append_capped(self.loss_by_epoch, summary["metrics"]["loss"], LOSS_EPOCH_CAP)

    def record_frame(self) -> None:
        _append_capped(self.loss_by_step, self.trainer.state.loss, LOSS_STEP_CAP)

    def _reset_histories(self, keep_snapshots: bool = False) -> None:
        self.loss_by_step = []
        self.loss_by_epoch = []
        if not keep_snapshots:
            self.snapshots = []
            self.visible_overlay_ids = []

    # ── Controls ──────────────────────────────────────────────────────────

    def step(self) -> None:
        self.trainer.step_once()
        self.record_frame()

    def reset(self, params: Optional[Params] = None, keep_snapshots: bool = False) -> None:
        self.trainer.reset(params)
        self._reset_histories(keep_snapshots=keep_snapshots)
        self.record_frame()

    def reset_to_snapshot(self, snapshot_id: str) -> None:
        snap = self.find_snapshot(snapshot_id)
        if snap is None:
            raise KeyError(snapshot_id)
        self.reset(snap["params"], keep_snapshots=True)

    def set_activation(self, activation: str) -> None:
        if activation not in ACTIVATIONS:
            raise ValueError(f"Unknown activation: {activation}")
        self.trainer.set_lr(default_learning_rate(activation))
        self.trainer.set_activation(activation)
        self._reset_histories()
        self.record_frame()

    def set_seed(self, seed: int) -> None:
        self.seed = int(seed)
        self.trainer.set_seed(self.seed)
        self._reset_histories()
        self.record_frame()

    # ── Dataset studio ────────────────────────────────────────────────────

    def set_dataset(self, kind: str, points: Optional[Sequence[LabeledPoint]] = None) -> None:
        """Replace the dataset; any change resets the trainer and histories."""
        self.dataset_kind = kind
        if points is None:
            points = make_preset(kind, self.seed)
        self.trainer.set_data(points)
        self._reset_histories()
        self.record_frame()

    def add_point(self, point: LabeledPoint) -> None:
        self.set_dataset("custom", self.trainer.data + [point])

    def add_blob(self, center, label: int, count: int = 30) -> None:
        rng = seeded_rng(self.seed + len(self.trainer.data))
        blob = make_blob(center, label, count=count, rng=rng)
        self.set_dataset("custom", self.trainer.data + blob)

    def clear_dataset(self) -> None:
        self.set_dataset("custom", [])

    # ── Snapshots ─────────────────────────────────────────────────────────

    def find_snapshot(self, snapshot_id: str) -> Optional[Dict]:
        return next((s for s in self.snapshots if s["id"] == snapshot_id), None)

    def save_snapshot(self) -> Dict:
        """
        Keep at most SNAPSHOT_LIMIT snapshots, relabelled init/mid/final by
        position. An overlay stays visible if its label was visible before.
        """
        active_labels = {s["label"] for s in self.snapshots if s["id"] in self.visible_overlay_ids}
        entry = {
            "id":     uuid4().hex[:12],
            "label":  "final",
            "params": self.trainer.params,
        }
        appended = (self.snapshots + [entry])[-SNAPSHOT_LIMIT:]
        for index, item in enumerate(appended):
            item["label"] = SNAPSHOT_LABELS[min(index, len(SNAPSHOT_LABELS) - 1)]
        self.snapshots = appended
        self.visible_overlay_ids = [s["id"] for s in appended if s["label"] in active_labels]
        return entry

    def delete_snapshot(self, snapshot_id: str) -> bool:
        before = len(self.snapshots)
        self.snapshots = [s for s in self.snapshots if s["id"] != snapshot_id]
        self.visible_overlay_ids = [i for i in self.visible_overlay_ids if i != snapshot_id]
        return len(self.snapshots) < before

    def set_overlays(self, ids: Sequence[str]) -> None:
        known = {s["id"] for s in self.snapshots}
        self.visible_overlay_ids = [i for i in ids if i in known]

    def visible_snapshots(self) -> List[Dict]:
        return [s for s in self.snapshots if s["id"] in self.visible_overlay_ids]

    # ── Payloads ──────────────────────────────────────────────────────────

    def state_payload(self) -> Dict:
        return {
            "session_id": self.id,
            "state":      self.trainer.state.to_dict(),
            "finished":   self.trainer.finished,
            "last_loss":  self.loss_by_step[-1] if self.loss_by_step else None,
        }

    def to_dict(self, include_dataset: bool = False) -> Dict:
        t = self.trainer
        data = {
            "id":              self.id,
            "activation":      t.activation,
            "lr":              t.lr,
            "epochs":          t.epochs,
            "seed":            self.seed,
            "shuffle":         t.shuffle,
            "steps_per_frame": t.steps_per_frame,
            "dataset_kind":    self.dataset_kind,
            "dataset_size":    len(t.data),
            "state":           t.state.to_dict(),
            "finished":        t.finished,
            "loss_by_step":    list(self.loss_by_step),
            "loss_by_epoch":   list(self.loss_by_epoch),
            "snapshots": [
                {"id": s["id"], "label": s["label"], "params": s["params"].to_dict()}
                for s in self.snapshots
            ],
            "visible_overlay_ids": list(self.visible_overlay_ids),
        }
        if include_dataset:
            data["dataset"] = [p.to_dict() for p in t.data]
        return data


# ── Registry ──────────────────────────────────────────────────────────────────

class SessionRegistry:
    def __init__(self) -> None:
        self._lock = Lock()
        self.sessions: Dict[str, LabSession] = {}

    @property
    def lock(self) -> Lock:
        return self._lock

    def create(self, **kwargs) -> LabSession:
        lab = LabSession(**kwargs)
        with self._lock:
            if len(self.sessions) >= MAX_SESSIONS:
                oldest = min(self.sessions.values(), key=lambda s: s.created_at)
                oldest.trainer.pause()
                self.sessions.pop(oldest.id, None)
                log.info("Evicted trainer session %s", oldest.id)
            self.sessions[lab.id] = lab
        return lab

    def get(self, session_id: str) -> Optional[LabSession]:
        return self.sessions.get(session_id)

    def drop(self, session_id: str) -> bool:
        with self._lock:
            lab = self.sessions.pop(session_id, None)
        if lab is None:
            return False
        lab.trainer.pause()
        return True

    # ── Frame loop ────────────────────────────────────────────────────────

    def start(self, session_id: str, fps: int = 60) -> bool:
        """Start training and make sure exactly one frame loop is running."""
        with self._lock:
            lab = self.sessions.get(session_id)
            if lab is None:
                raise KeyError(session_id)
            if not lab.trainer.start():
                return lab.trainer.running
            if lab.loop_active:
                return True
            lab.loop_active = True

        socketio.start_background_task(self._run_loop, session_id, max(1, fps))
        return True

    def pause(self, session_id: str) -> None:
        with self._lock:
            lab = self.sessions.get(session_id)
            if lab is None:
                raise KeyError(session_id)
            lab.trainer.pause()

    def tick(self, session_id: str) -> Optional[Dict]:
        """Run one frame. Returns the state payload, or None when the loop should end."""
        with self._lock:
            lab = self.sessions.get(session_id)
            if lab is None:
                return None
            running = lab.trainer.run_frame()
            lab.record_frame()
            payload = lab.state_payload()
            if not running:
                lab.loop_active = False
        payload["running"] = running
        return payload

    def _run_loop(self, session_id: str, fps: int) -> None:
        interval = 1.0 / fps
        while True:
            try:
                payload = self.tick(session_id)
            except Exception:
                log.exception("Trainer loop crashed for session %s", session_id)
                with self._lock:
                    lab = self.sessions.get(session_id)
                    if lab is not None:
                        lab.trainer.pause()
                        lab.loop_active = False
                socketio.emit("trainer_error", {"message": "Training loop stopped unexpectedly."},
                              to=_room(session_id))
                return
            if payload is None:
                return
            socketio.emit("trainer_state", payload, to=_room(session_id))
            if not payload["running"]:
                return
            socketio.sleep(interval)


# ── Singleton ─────────────────────────────────────────────────────────────────

registry = SessionRegistry()


# ── SocketIO event handlers ───────────────────────────────────────────────────

def _session_from(data) -> Optional[LabSession]:
    session_id = data.get("session_id", "") if isinstance(data, dict) else ""
    lab = registry.get(session_id)
    if lab is None:
        emit("trainer_error", {"message": "Unknown trainer session."})
        return None
    join_room(_room(lab.id))
    return lab


@socketio.on("join_trainer")
def handle_join_trainer(data):
    lab = _session_from(data)
    if lab is None:
        return
    emit("trainer_state", lab.state_payload())


@socketio.on("trainer_start")
def handle_trainer_start(data):
    lab = _session_from(data)
    if lab is None:
        return
    registry.start(lab.id, fps=current_app.config.get("TRAINER_FPS", 60))


@socketio.on("trainer_pause")
def handle_trainer_pause(data):
    lab = _session_from(data)
    if lab is None:
        return
    registry.pause(lab.id)
    emit("trainer_state", lab.state_payload(), to=_room(lab.id))


@socketio.on("trainer_step")
def handle_trainer_step(data):
    lab = _session_from(data)
    if lab is None:
        return
    with registry.lock:
        lab.step()
    emit("trainer_state", lab.state_payload(), to=_room(lab.id))


@socketio.on("trainer_reset")
def handle_trainer_reset(data):
    lab = _session_from(data)
    if lab is None:
        return
    params = None
    if isinstance(data.get("params"), dict):
        try:
            params = Params.from_dict(data["params"])
        except ValueError as exc:
            emit("trainer_error", {"message": str(exc)})
            return
    with registry.lock:
        lab.reset(params)
    emit("trainer_state", lab.state_payload(), to=_room(lab.id))
