"""
perceptronlab/lab/settings.py

Per-client key-value settings backed by the LabSetting table.
"""
from __future__ import annotations

import json
import math
from typing import Any, Dict

from perceptronlab import db
from perceptronlab.models import LabSetting
from perceptronlab.lab.data import LOSS_MODES, MAX_EPOCHS, SETTING_DEFAULTS
from perceptronlab.lab.datasets import PRESET_KINDS
from perceptronlab.lab.trainer import ACTIVATIONS


class SettingsError(ValueError):
    pass


def _finite(value) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _coerce(key: str, value: Any, current: Any) -> Any:
    """Validate one incoming setting. Raises SettingsError on a bad value."""
    if key == "activation":
        if value not in ACTIVATIONS:
            raise SettingsError(f"activation must be one of {', '.join(ACTIVATIONS)}")
        return value
    if key == "datasetKind":
        if value not in PRESET_KINDS:
            raise SettingsError(f"datasetKind must be one of {', '.join(PRESET_KINDS)}")
        return value
    if key == "lossGranularity":
        if value not in LOSS_MODES:
            raise SettingsError(f"lossGranularity must be one of {', '.join(LOSS_MODES)}")
        return value
    if key == "epochs":
        if not _finite(value) or int(value) != value or not 1 <= value <= MAX_EPOCHS:
            raise SettingsError(f"epochs must be an integer between 1 and {MAX_EPOCHS}")
        return int(value)
    if key == "seed":
        if not _finite(value) or int(value) != value:
            raise SettingsError("seed must be an integer")
        return int(value)
    if key == "lr":
        if not _finite(value) or value <= 0:
            raise SettingsError("lr must be a positive number")
        return float(value)
    if key == "tau":
        # Non-numeric input keeps the stored threshold
        if not _finite(value):
            return current
        return min(1.0, max(0.0, float(value)))
    if key == "showMarginBand":
        if not isinstance(value, bool):
            raise SettingsError("showMarginBand must be true or false")
        return value
    if key == "snapshotOverlayIds":
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise SettingsError("snapshotOverlayIds must be a list of strings")
        return value
    raise SettingsError(f"Unknown setting '{key}'")


def load_settings(client_id: str) -> Dict[str, Any]:
    """Stored values merged over the defaults."""
    settings = {k: (list(v) if isinstance(v, list) else v) for k, v in SETTING_DEFAULTS.items()}
    rows = LabSetting.query.filter_by(client_id=client_id).all()
    for row in rows:
        if row.key in settings:
            settings[row.key] = row.decoded
    return settings


def save_settings(client_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
    """Validate every update first, then write them in one commit."""
    if not isinstance(updates, dict):
        raise SettingsError("Settings must be a JSON object")

    current = load_settings(client_id)
    coerced = {key: _coerce(key, value, current.get(key)) for key, value in updates.items()}

    for key, value in coerced.items():
        row = LabSetting.query.filter_by(client_id=client_id, key=key).first()
        encoded = json.dumps(value)
        if row:
            row.value = encoded
        else:
            db.session.add(LabSetting(client_id=client_id, key=key, value=encoded))
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current.update(coerced)
    return current
