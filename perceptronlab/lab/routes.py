from __future__ import annotations

import io
import json
import math

from flask import (render_template, request, jsonify, session,
                   current_app, Response)

from perceptronlab import db
from perceptronlab.models import SavedDataset
from perceptronlab.lab import lab
from perceptronlab.lab.charts import (
    confusion_matrix_chart, decision_boundary_chart,
    loss_sparkline_chart, roc_curve_chart,
)
from perceptronlab.lab.data import (
    CLASSIC_INPUTS, GLOSSARY, HELP, MAX_EPOCHS, ROC_STEPS,
)
from perceptronlab.lab.datasets import (
    PRESET_KINDS, DatasetError, parse_points,
    points_from_csv, points_from_json, points_to_csv, points_to_json,
)
from perceptronlab.lab.metrics import compute_confusion, compute_roc
from perceptronlab.lab.neuron import (
    train_truth_table_epoch, truth_table, weighted_sum, activate,
)
from perceptronlab.lab.session import registry
from perceptronlab.lab.settings import SettingsError, load_settings, save_settings
from perceptronlab.lab.trainer import ACTIVATIONS, Params


# ── Helpers ───────────────────────────────────────────────────────────────────

def _client_id() -> str:
    return session["client_id"]


def _error(message: str, status: int = 400):
    return jsonify({"error": message}), status


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _find_session(session_id: str):
    return registry.get(session_id)


def _is_number(value) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _is_bit(value) -> bool:
    # bool is an int subclass, so True would pass `in (0, 1)`
    return not isinstance(value, bool) and value in (0, 1)


def _threshold_arg(default: float) -> float:
    raw = request.args.get("threshold", type=float)
    if raw is None or not math.isfinite(raw):
        return default
    return min(1.0, max(0.0, raw))


def _flag_arg(name: str, default: bool) -> bool:
    raw = request.args.get(name)
    if raw is None:
        return default
    return raw.lower() in ("1", "true", "yes", "on")


def _session_response(lab_session, status: int = 200, include_dataset: bool = False):
    return jsonify(lab_session.to_dict(include_dataset=include_dataset)), status


# ── Pages ─────────────────────────────────────────────────────────────────────

@lab.route("/lab")
def index():
    settings = load_settings(_client_id())
    return render_template(
        "lab/index.html",
        title="Perceptron Lab",
        settings=settings,
        presets=PRESET_KINDS,
        help=HELP,
    )


@lab.route("/lab/help")
def help_text():
    return jsonify({"help": HELP, "glossary": GLOSSARY})


# ── Settings ──────────────────────────────────────────────────────────────────

@lab.route("/lab/settings", methods=["GET"])
def get_settings():
    return jsonify(load_settings(_client_id()))


@lab.route("/lab/settings", methods=["PUT"])
def put_settings():
    data = request.get_json(silent=True)
    try:
        settings = save_settings(_client_id(), data)
    except SettingsError as exc:
        return _error(str(exc))
    return jsonify(settings)


# ── Trainer sessions ──────────────────────────────────────────────────────────

@lab.route("/lab/sessions", methods=["POST"])
def create_session():
    """Create a trainer session; unspecified options fall back to stored settings."""
    data = _json_body()
    settings = load_settings(_client_id())

    activation = data.get("activation", settings["activation"])
    kind       = data.get("dataset_kind", settings["datasetKind"])
    epochs     = data.get("epochs", settings["epochs"])
    seed       = data.get("seed", settings["seed"])
    lr         = data.get("lr", settings["lr"] if "activation" not in data else None)
    shuffle    = data.get("shuffle", True)
    steps      = data.get("steps_per_frame", current_app.config.get("TRAINER_STEPS_PER_FRAME", 4))

    if activation not in ACTIVATIONS:
        return _error(f"activation must be one of {', '.join(ACTIVATIONS)}")
    if kind not in PRESET_KINDS:
        return _error(f"dataset_kind must be one of {', '.join(PRESET_KINDS)}")
    if not _is_number(epochs) or int(epochs) != epochs or not 1 <= epochs <= MAX_EPOCHS:
        return _error(f"epochs must be an integer between 1 and {MAX_EPOCHS}")
    if not _is_number(seed) or int(seed) != seed:
        return _error("seed must be an integer")
    if lr is not None and (not _is_number(lr) or lr <= 0):
        return _error("lr must be a positive number")
    if not isinstance(shuffle, bool):
        return _error("shuffle must be true or false")
    if not _is_number(steps) or int(steps) != steps or steps < 1:
        return _error("steps_per_frame must be a positive integer")

    points = None
    if "points" in data:
        try:
            points = parse_points(data["points"])
        except DatasetError as exc:
            return _error(str(exc))
        kind = "custom"

    lab_session = registry.create(
        client_id=_client_id(),
        dataset_kind=kind,
        data=points,
        activation=activation,
        lr=lr,
        epochs=int(epochs),
        seed=int(seed),
        shuffle=shuffle,
        steps_per_frame=int(steps),
    )
    current_app.logger.info("Created trainer session %s (%s, %s)",
                            lab_session.id, activation, kind)
    return _session_response(lab_session, 201, include_dataset=True)


@lab.route("/lab/sessions/<session_id>", methods=["GET"])
def get_session(session_id):
    lab_session = _find_session(session_id)
    if lab_session is None:
        return _error("Session not found", 404)
    include = _flag_arg("include_dataset", False)
    return _session_response(lab_session, include_dataset=include)


@lab.route("/lab/sessions/<session_id>", methods=["DELETE"])
def delete_session(session_id):
    if not registry.drop(session_id):
        return _error("Session not found", 404)
    return jsonify({"success": True})


@lab.route("/lab/sessions/<session_id>", methods=["PATCH"])
def update_session(session_id):
    """Change lr / epochs / seed / activation on a live session."""
    lab_session = _find_session(session_id)
    if lab_session is None:
        return _error("Session not found", 404)

    data = _json_body()
    unknown = set(data) - {"lr", "epochs", "seed", "activation"}
    if unknown:
        return _error(f"Unknown fields: {', '.join(sorted(unknown))}")

    if "activation" in data and data["activation"] not in ACTIVATIONS:
        return _error(f"activation must be one of {', '.join(ACTIVATIONS)}")
    if "lr" in data and (not _is_number(data["lr"]) or data["lr"] <= 0):
        return _error("lr must be a positive number")
    if "epochs" in data:
        epochs = data["epochs"]
        if not _is_number(epochs) or int(epochs) != epochs or not 1 <= epochs <= MAX_EPOCHS:
            return _error(f"epochs must be an integer between 1 and {MAX_EPOCHS}")
    if "seed" in data and (not _is_number(data["seed"]) or int(data["seed"]) != data["seed"]):
        return _error("seed must be an integer")

    # Activation first: switching it restores that activation's default lr
    with registry.lock:
        if "activation" in data:
            lab_session.set_activation(data["activation"])
        if "lr" in data:
            lab_session.trainer.set_lr(data["lr"])
        if "epochs" in data:
            lab_session.trainer.set_epochs(int(data["epochs"]))
        if "seed" in data:
            lab_session.set_seed(int(data["seed"]))

    return _session_response(lab_session)


@lab.route("/lab/sessions/<session_id>/start", methods=["POST"])
def start_session(session_id):
    if _find_session(session_id) is None:
        return _error("Session not found", 404)
    running = registry.start(session_id, fps=current_app.config.get("TRAINER_FPS", 60))
    return jsonify({"running": running, **registry.get(session_id).state_payload()})


@lab.route("/lab/sessions/<session_id>/pause", methods=["POST"])
def pause_session(session_id):
    lab_session = _find_session(session_id)
    if lab_session is None:
        return _error("Session not found", 404)
    registry.pause(session_id)
    return jsonify(lab_session.state_payload())


@lab.route("/lab/sessions/<session_id>/step", methods=["POST"])
def step_session(session_id):
    lab_session = _find_session(session_id)
    if lab_session is None:
        return _error("Session not found", 404)
    with registry.lock:
        lab_session.step()
    return jsonify(lab_session.state_payload())


@lab.route("/lab/sessions/<session_id>/reset", methods=["POST"])
def reset_session(session_id):
    """Reset to the initial params, explicit params, or a saved snapshot."""
    lab_session = _find_session(session_id)
    if lab_session is None:
        return _error("Session not found", 404)

    data = _json_body()
    with registry.lock:
        if data.get("snapshot_id"):
            try:
                lab_session.reset_to_snapshot(data["snapshot_id"])
            except KeyError:
                return _error("Snapshot not found", 404)
        elif "params" in data:
            try:
                params = Params.from_dict(data["params"])
            except ValueError as exc:
                return _error(str(exc))
            lab_session.reset(params)
        else:
            lab_session.reset()
    return _session_response(lab_session)


# ── Dataset studio ────────────────────────────────────────────────────────────

@lab.route("/lab/sessions/<session_id>/dataset", methods=["PUT"])
def replace_dataset(session_id):
    """
    Replace the dataset from one of:
      - JSON {"kind": "separable" | "xor" | "noisy" | "custom"}
      - JSON {"points": [{x: [x1, x2], y}]}
      - multipart upload of a .json or .csv file under "file"
    """
    lab_session = _find_session(session_id)
    if lab_session is None:
        return _error("Session not found", 404)

    try:
        if "file" in request.files:
            upload = request.files["file"]
            filename = (upload.filename or "").lower()
            if filename.endswith(".csv"):
                points = points_from_csv(io.StringIO(upload.read().decode("utf-8")))
            elif filename.endswith(".json"):
                points = points_from_json(upload.read().decode("utf-8"))
            else:
                return _error("Please upload a .csv or .json file")
            kind = "custom"
        else:
            data = _json_body()
            if "points" in data:
                points = parse_points(data["points"])
                kind = "custom"
            elif data.get("kind") in PRESET_KINDS:
                points = None
                kind = data["kind"]
            else:
                return _error(f"Provide points or a kind ({', '.join(PRESET_KINDS)})")
    except DatasetError as exc:
        return _error(f"Import failed: {exc}")
    except UnicodeDecodeError:
        return _error("Import failed: file is not UTF-8 text")

    with registry.lock:
        lab_session.set_dataset(kind, points)
    return _session_response(lab_session, include_dataset=True)


@lab.route("/lab/sessions/<session_id>/dataset", methods=["DELETE"])
def clear_dataset(session_id):
    lab_session = _find_session(session_id)
    if lab_session is None:
        return _error("Session not found", 404)
    with registry.lock:
        lab_session.clear_dataset()
    return _session_response(lab_session, include_dataset=True)


@lab.route("/lab/sessions/<session_id>/points", methods=["POST"])
def add_point(session_id):
    lab_session = _find_session(session_id)
    if lab_session is None:
        return _error("Session not found", 404)
    try:
        point = parse_points([request.get_json(silent=True)])[0]
    except DatasetError as exc:
        return _error(str(exc))
    with registry.lock:
        lab_session.add_point(point)
    return _session_response(lab_session, include_dataset=True)


@lab.route("/lab/sessions/<session_id>/blob", methods=["POST"])
def add_blob(session_id):
    lab_session = _find_session(session_id)
    if lab_session is None:
        return _error("Session not found", 404)

    data = _json_body()
    center = data.get("center")
    label = data.get("label")
    count = data.get("count", 30)
    if not isinstance(center, list) or len(center) != 2 or not all(_is_number(c) for c in center):
        return _error("center must be [x, y]")
    if not _is_number(count) or int(count) != count or not 1 <= count <= 500:
        return _error("count must be an integer between 1 and 500")
    try:
        with registry.lock:
            lab_session.add_blob(center, label, count=int(count))
    except DatasetError as exc:
        return _error(str(exc))
    return _session_response(lab_session, include_dataset=True)


@lab.route("/lab/sessions/<session_id>/dataset.json")
def export_dataset_json(session_id):
    lab_session = _find_session(session_id)
    if lab_session is None:
        return _error("Session not found", 404)
    return Response(
        points_to_json(lab_session.trainer.data),
        mimetype="application/json",
        headers={"Content-Disposition": "attachment; filename=dataset.json"},
    )


@lab.route("/lab/sessions/<session_id>/dataset.csv")
def export_dataset_csv(session_id):
    lab_session = _find_session(session_id)
    if lab_session is None:
        return _error("Session not found", 404)
    return Response(
        points_to_csv(lab_session.trainer.data),
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=dataset.csv"},
    )


# ── Snapshots ─────────────────────────────────────────────────────────────────

@lab.route("/lab/sessions/<session_id>/snapshots", methods=["POST"])
def save_snapshot(session_id):
    lab_session = _find_session(session_id)
    if lab_session is None:
        return _error("Session not found", 404)
    with registry.lock:
        entry = lab_session.save_snapshot()
    payload = lab_session.to_dict()
    payload["saved_id"] = entry["id"]
    return jsonify(payload), 201


@lab.route("/lab/sessions/<session_id>/snapshots/<snapshot_id>", methods=["DELETE"])
def delete_snapshot(session_id, snapshot_id):
    lab_session = _find_session(session_id)
    if lab_session is None:
        return _error("Session not found", 404)
    with registry.lock:
        removed = lab_session.delete_snapshot(snapshot_id)
    if not removed:
        return _error("Snapshot not found", 404)
    return _session_response(lab_session)


@lab.route("/lab/sessions/<session_id>/overlays", methods=["PUT"])
def set_overlays(session_id):
    lab_session = _find_session(session_id)
    if lab_session is None:
        return _error("Session not found", 404)
    ids = _json_body().get("ids")
    if not isinstance(ids, list) or not all(isinstance(i, str) for i in ids):
        return _error("ids must be a list of snapshot ids")
    with registry.lock:
        lab_session.set_overlays(ids)
    try:
        save_settings(_client_id(), {"snapshotOverlayIds": lab_session.visible_overlay_ids})
    except SettingsError as exc:
        return _error(str(exc))
    return _session_response(lab_session)


# ── Metrics & charts ──────────────────────────────────────────────────────────

def _metrics_payload(lab_session, threshold: float) -> dict:
    trainer = lab_session.trainer
    if trainer.activation != "sigmoid" or not trainer.data:
        return {"threshold": threshold, "confusion": None, "roc": {"points": [], "auc": None}}
    return {
        "threshold": threshold,
        "confusion": compute_confusion(trainer.params, trainer.data, threshold),
        "roc":       compute_roc(trainer.params, trainer.data, ROC_STEPS),
    }


@lab.route("/lab/sessions/<session_id>/metrics")
def session_metrics(session_id):
    lab_session = _find_session(session_id)
    if lab_session is None:
        return _error("Session not found", 404)
    settings = load_settings(_client_id())
    threshold = _threshold_arg(settings["tau"])
    with registry.lock:
        payload = _metrics_payload(lab_session, threshold)
    payload["state"] = lab_session.trainer.state.to_dict()
    return jsonify(payload)


@lab.route("/lab/sessions/<session_id>/charts")
def session_charts(session_id):
    """Render every lab chart for the current state as base64 PNGs."""
    lab_session = _find_session(session_id)
    if lab_session is None:
        return _error("Session not found", 404)

    settings = load_settings(_client_id())
    threshold = _threshold_arg(settings["tau"])
    loss_mode = request.args.get("loss", settings["lossGranularity"])

    with registry.lock:
        trainer  = lab_session.trainer
        params   = trainer.params
        data     = list(trainer.data)
        activation = trainer.activation
        overlays = lab_session.visible_snapshots()
        losses   = list(lab_session.loss_by_epoch if loss_mode == "epochs"
                        else lab_session.loss_by_step)
        metrics  = _metrics_payload(lab_session, threshold)

    try:
        charts = {
            "boundary": decision_boundary_chart(
                params, data, activation,
                threshold=threshold,
                show_margin_band=_flag_arg("margin", settings["showMarginBand"]),
                use_threshold_boundary=_flag_arg("tau_boundary", False),
                show_baseline_boundary=_flag_arg("baseline", True),
                snapshots=overlays,
            ),
            "loss": loss_sparkline_chart(
                losses, title="Loss per epoch" if loss_mode == "epochs" else "Loss per step"
            ),
            "roc":       None,
            "confusion": None,
        }
        if metrics["confusion"] is not None:
            charts["confusion"] = confusion_matrix_chart(metrics["confusion"])
        if metrics["roc"]["points"]:
            charts["roc"] = roc_curve_chart(metrics["roc"]["points"], metrics["roc"]["auc"], threshold)
    except Exception:
        current_app.logger.exception("Chart rendering failed for session %s", session_id)
        return _error("Chart rendering failed", 500)

    return jsonify({"threshold": threshold, "charts": charts})


# ── Saved datasets ────────────────────────────────────────────────────────────

@lab.route("/lab/datasets", methods=["GET"])
def list_datasets():
    rows = (
        SavedDataset.query
        .filter_by(client_id=_client_id())
        .order_by(SavedDataset.created_at.desc())
        .all()
    )
    return jsonify({"datasets": [r.to_dict() for r in rows]})


@lab.route("/lab/datasets", methods=["POST"])
def save_dataset():
    data = _json_body()
    name = (data.get("name") or "").strip()
    if not name or len(name) > 100:
        return _error("name is required (max 100 characters)")

    if data.get("session_id"):
        lab_session = registry.get(data["session_id"])
        if lab_session is None:
            return _error("Session not found", 404)
        points = list(lab_session.trainer.data)
        kind = lab_session.dataset_kind
    else:
        try:
            points = parse_points(data.get("points"))
        except DatasetError as exc:
            return _error(str(exc))
        kind = "custom"

    row = SavedDataset(
        client_id=_client_id(),
        name=name,
        kind=kind,
        points=json.dumps([p.to_dict() for p in points]),
    )
    db.session.add(row)
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Could not save dataset '%s'", name)
        return _error("Could not save dataset", 500)
    return jsonify(row.to_dict()), 201


@lab.route("/lab/datasets/<int:dataset_id>", methods=["GET"])
def load_dataset(dataset_id):
    row = SavedDataset.query.filter_by(id=dataset_id, client_id=_client_id()).first()
    if row is None:
        return _error("Dataset not found", 404)
    return jsonify(row.to_dict(include_points=True))


# ── Classic dial simulator ────────────────────────────────────────────────────

def _classic_inputs(data: dict):
    weights = data.get("weights", [0.5] * CLASSIC_INPUTS)
    bias = data.get("bias", 0.0)
    activation = data.get("activation", "step")
    if (
        not isinstance(weights, list) or not 1 <= len(weights) <= 6
        or not all(_is_number(w) for w in weights)
    ):
        raise ValueError("weights must be a list of 1 to 6 numbers")
    if not _is_number(bias):
        raise ValueError("bias must be a number")
    if activation not in ACTIVATIONS:
        raise ValueError(f"activation must be one of {', '.join(ACTIVATIONS)}")
    return [float(w) for w in weights], float(bias), activation


@lab.route("/lab/classic/evaluate", methods=["POST"])
def classic_evaluate():
    data = _json_body()
    try:
        weights, bias, activation = _classic_inputs(data)
    except ValueError as exc:
        return _error(str(exc))

    inputs = data.get("inputs", [0] * len(weights))
    if not isinstance(inputs, list) or len(inputs) != len(weights) or not all(_is_bit(i) for i in inputs):
        return _error("inputs must be a list of 0/1 values, one per weight")

    z = weighted_sum(inputs, weights, bias)
    y = activate(z, activation)
    return jsonify({
        "z":     z,
        "y":     y,
        "on":    y >= 0.5,
        "table": truth_table(weights, bias, activation),
    })


@lab.route("/lab/classic/train_epoch", methods=["POST"])
def classic_train_epoch():
    data = _json_body()
    try:
        weights, bias, activation = _classic_inputs(data)
    except ValueError as exc:
        return _error(str(exc))

    targets = data.get("targets", [])
    lr = data.get("lr", 0.1)
    epoch = data.get("epoch", 0)
    rows = 1 << len(weights)
    if not isinstance(targets, list) or len(targets) != rows or not all(_is_bit(t) for t in targets):
        return _error(f"targets must be a list of {rows} values of 0 or 1")
    if not _is_number(lr) or lr <= 0:
        return _error("lr must be a positive number")

    new_weights, new_bias = train_truth_table_epoch(weights, bias, targets, lr)
    return jsonify({
        "weights": new_weights,
        "bias":    new_bias,
        "epoch":   int(epoch) + 1 if _is_number(epoch) else 1,
        "table":   truth_table(new_weights, new_bias, activation),
    })
