"""
perceptronlab/prompts/heuristics.py

Rule-based diagnosis of a draft prompt. Every criterion gets a score in
[0, 1] from the summed weights of the SIGNALS patterns it matches.
"""
from __future__ import annotations

import re
from typing import Dict, List

from perceptronlab.prompts.data import (
    CRITERION_KEYS, NOTES, PASS_SCORE, SIGNALS,
)

_COMPILED = {
    key: [(re.compile(pattern, re.IGNORECASE), weight) for pattern, weight in patterns]
    for key, patterns in SIGNALS.items()
}


def score_criterion(key: str, text: str) -> float:
    total = sum(weight for regex, weight in _COMPILED[key] if regex.search(text))
    return round(min(1.0, total), 4)


def diagnose(text: str) -> Dict:
    """
    Returns:
      {
        "scores":  {criterion: 0..1},
        "overall": mean of the scores,
        "missing": criteria below PASS_SCORE, weakest first,
        "notes":   [advice for each missing criterion],
      }
    """
    text = (text or "").strip()
    scores = {key: (score_criterion(key, text) if text else 0.0) for key in CRITERION_KEYS}
    overall = round(sum(scores.values()) / len(scores), 4)

    missing: List[str] = sorted(
        (key for key in CRITERION_KEYS if scores[key] < PASS_SCORE),
        key=lambda k: (scores[k], CRITERION_KEYS.index(k)),
    )
    return {
        "scores":  scores,
        "overall": overall,
        "missing": missing,
        "notes":   [NOTES[key] for key in missing],
    }
