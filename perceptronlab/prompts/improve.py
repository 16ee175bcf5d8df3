"""
perceptronlab/prompts/improve.py

Turns a draft prompt plus clarifying answers into a sectioned prompt
contract, then re-scores the result.
"""
from __future__ import annotations

import re
from typing import Dict, List, Optional

from perceptronlab.prompts.contract import build_prompt
from perceptronlab.prompts.data import (
    CRITERION_KEYS, LIST_SECTIONS, SECTION_KEYS,
)
from perceptronlab.prompts.heuristics import diagnose
from perceptronlab.prompts.questions import generate_questions

_RUBRIC_WORDS = re.compile(r"\b(rubric|criteria|pass(es)?|fail(s)?|judge|score|graded?)\b", re.IGNORECASE)


class PromptError(ValueError):
    pass


def split_items(text: str) -> List[str]:
    """Split an answer on newlines and semicolons, dropping blanks and bullets."""
    items = []
    for part in re.split(r"[\n;]", text or ""):
        part = part.strip().lstrip("-*•").strip()
        if part:
            items.append(part)
    return items


def validate_answers(answers) -> Dict[str, str]:
    if answers is None:
        return {}
    if not isinstance(answers, dict):
        raise PromptError("answers must be an object of criterion → text")
    cleaned = {}
    for key, value in answers.items():
        if key not in CRITERION_KEYS:
            raise PromptError(
                f'Unknown criterion key "{key}". Expected one of: {", ".join(CRITERION_KEYS)}'
            )
        if not isinstance(value, str):
            raise PromptError(f'Answer for "{key}" must be a string.')
        cleaned[key] = value.strip()
    return cleaned


def validate_sections(sections) -> Dict:
    """Section overrides: each value a string or a list of strings; None is skipped."""
    if sections is None:
        return {}
    if not isinstance(sections, dict):
        raise PromptError("defaults must be an object")
    cleaned = {}
    for key, value in sections.items():
        if value is None:
            continue
        if isinstance(value, str):
            cleaned[key] = value
        elif isinstance(value, list) and all(isinstance(v, str) for v in value):
            cleaned[key] = list(value)
        else:
            raise PromptError(f'Field "{key}" must be a string or string array.')
    return cleaned


def _apply_answers(sections: Dict, original: str, answers: Dict[str, str]) -> None:
    if answers.get("outcome"):
        sections["objective"] = answers["outcome"]
    if answers.get("outputFormat"):
        sections["outputFormat"] = split_items(answers["outputFormat"])
    if answers.get("constraints"):
        sections["constraints"] = split_items(answers["constraints"])
    if answers.get("uncertainty"):
        sections["uncertainty"] = answers["uncertainty"]

    # The draft itself always leads the context
    context = [f"Original request: {original}"]
    if answers.get("context"):
        context += split_items(answers["context"])
    else:
        existing = sections.get("context")
        if isinstance(existing, str):
            context.append(existing)
        elif existing:
            context += existing
    sections["context"] = context

    if answers.get("processRubric"):
        items = split_items(answers["processRubric"])
        rubric  = [i for i in items if _RUBRIC_WORDS.search(i)]
        process = [i for i in items if not _RUBRIC_WORDS.search(i)]
        if process:
            sections["process"] = process
        if rubric:
            sections["rubric"] = rubric


def improve(original: str, answers: Optional[Dict[str, str]] = None,
            defaults: Optional[Dict] = None,
            questions: Optional[List[Dict]] = None) -> Dict:
    """
    Build the improved prompt. Answers override defaults criterion by
    criterion; list-valued sections accept newline/semicolon separated text.
    """
    original = (original or "").strip()
    if not original:
        raise PromptError("Original prompt is required.")

    answers = validate_answers(answers)
    sections = {
        key: (list(value) if isinstance(value, list) else value)
        for key, value in validate_sections(defaults).items()
        if key in SECTION_KEYS
    }
    _apply_answers(sections, original, answers)

    for key in LIST_SECTIONS:
        if isinstance(sections.get(key), str):
            sections[key] = split_items(sections[key])

    before = diagnose(original)
    improved_prompt = build_prompt(sections)
    return {
        "improvedPrompt":  improved_prompt,
        "sections":        sections,
        "diagnosisBefore": before,
        "diagnosisAfter":  diagnose(improved_prompt),
        "questionsAsked":  questions if questions is not None else generate_questions(before),
    }
