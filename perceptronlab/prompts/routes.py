from __future__ import annotations

from flask import render_template, request, jsonify, current_app

from perceptronlab.prompts import prompts
from perceptronlab.prompts.data import (
    API_DEFAULT_SECTIONS, CRITERION_LABELS, DEFAULT_MAX_QUESTIONS,
)
from perceptronlab.prompts.heuristics import diagnose
from perceptronlab.prompts.improve import PromptError, improve, validate_sections
from perceptronlab.prompts.llm import attach_polish
from perceptronlab.prompts.questions import generate_questions


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _original_prompt(data: dict) -> str:
    original = data.get("original")
    return original.strip() if isinstance(original, str) else ""


@prompts.route("/prompts")
def index():
    return render_template("prompts/index.html", title="Prompt Maker",
                           criteria=CRITERION_LABELS)


@prompts.route("/api/diagnose", methods=["POST"])
def api_diagnose():
    data = _json_body()
    original = _original_prompt(data)
    if not original:
        return jsonify({"error": "Original prompt is required."}), 400

    max_questions = data.get("maxQuestions", DEFAULT_MAX_QUESTIONS)
    if not isinstance(max_questions, int) or isinstance(max_questions, bool) or max_questions < 0:
        return jsonify({"error": "maxQuestions must be a non-negative integer."}), 400

    diagnosis = diagnose(original)
    return jsonify({
        "diagnosis": diagnosis,
        "questions": generate_questions(diagnosis, max_questions),
    })


@prompts.route("/api/improve", methods=["POST"])
def api_improve():
    """
    Build the improved prompt. With {"polish": true} also runs the LLM pass;
    polish failures come back as polishError next to the unpolished result.
    """
    data = _json_body()
    original = _original_prompt(data)
    if not original:
        return jsonify({"error": "Original prompt is required."}), 400

    try:
        defaults = {**API_DEFAULT_SECTIONS, **validate_sections(data.get("defaults"))}
        result = improve(original, data.get("answers"), defaults)
    except PromptError as e:
        return jsonify({"error": str(e)}), 400

    if data.get("polish"):
        attach_polish(
            result, original,
            model=current_app.config.get("GROQ_MODEL"),
            api_key=current_app.config.get("GROQ_API_KEY"),
        )
        if "polishError" in result:
            current_app.logger.warning("Prompt polish failed: %s", result["polishError"])

    return jsonify(result)
