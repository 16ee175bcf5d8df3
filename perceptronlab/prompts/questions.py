from __future__ import annotations

from typing import Dict, List

from perceptronlab.prompts.data import (
    CRITERION_KEYS, DEFAULT_MAX_QUESTIONS, QUESTION_TEMPLATES,
)


def generate_questions(diagnosis: Dict, max_questions: int = DEFAULT_MAX_QUESTIONS) -> List[Dict]:
    """One question per imperfect criterion, weakest first, ties in criterion order."""
    if max_questions <= 0:
        return []

    scores = diagnosis["scores"]
    weak = sorted(
        (key for key in CRITERION_KEYS if scores.get(key, 0.0) < 1.0),
        key=lambda k: (scores.get(k, 0.0), CRITERION_KEYS.index(k)),
    )

    questions = []
    for key in weak[:max_questions]:
        template = QUESTION_TEMPLATES[key]
        questions.append({
            "key":      key,
            "question": template["question"],
            "hint":     template["hint"],
            "options":  list(template["options"]),
        })
    return questions
