"""Prompt maker command line: diagnose a draft prompt, ask clarifying questions, improve it."""

from __future__ import annotations

import argparse
import json
import pathlib
import sys
from typing import Any, Dict, List, Optional

from perceptronlab.prompts.data import (
    CRITERION_KEYS, CRITERION_LABELS, DEFAULT_MAX_QUESTIONS, DEFAULT_SECTIONS,
)
from perceptronlab.prompts.heuristics import diagnose
from perceptronlab.prompts.improve import PromptError, improve, validate_answers, validate_sections
from perceptronlab.prompts.llm import attach_polish
from perceptronlab.prompts.questions import generate_questions

RULE = "────────────────────────────"


class CliError(Exception):
    pass


class _Parser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        raise CliError(message)


def _non_negative_int(value: str) -> int:
    try:
        count = int(value, 10)
    except ValueError:
        count = -1
    if count < 0:
        raise argparse.ArgumentTypeError("--max-questions must be a non-negative integer.")
    return count


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = _Parser(prog="prompt-maker", description="Prompt Maker CLI")
    parser.add_argument("-p", "--prompt", help="Inline prompt text")
    parser.add_argument("-f", "--prompt-file", help="Read prompt from file")
    parser.add_argument("--answers-json", help="Provide clarifying answers as JSON")
    parser.add_argument("--answers-file", help="Provide clarifying answers JSON file")
    parser.add_argument("--defaults-file", help="Override contract defaults via JSON file")
    parser.add_argument(
        "-q",
        "--max-questions",
        type=_non_negative_int,
        default=DEFAULT_MAX_QUESTIONS,
        help=f"Number of clarifying questions (default {DEFAULT_MAX_QUESTIONS})",
    )
    parser.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    parser.add_argument(
        "--no-interactive",
        dest="interactive",
        action="store_false",
        help="Disable interactive questions even in a TTY",
    )
    parser.add_argument("--polish", action="store_true", help="Run LLM polish pass (requires GROQ_API_KEY)")
    parser.add_argument("--model", help="Override the Groq model used for polishing")
    return parser.parse_args(argv)


# ── Input ─────────────────────────────────────────────────────────────────────

def _read_text(path: str) -> str:
    try:
        return pathlib.Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise CliError(f"Could not read {path}: {exc.strerror or exc}") from exc


def _read_json_file(path: str) -> Any:
    text = _read_text(path)
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise CliError(f"Failed to parse JSON from {path}: {exc}") from exc


def resolve_prompt(args: argparse.Namespace, interactive: bool) -> str:
    """Prompt from --prompt, then --prompt-file, then piped stdin, then typed lines."""
    if args.prompt and args.prompt.strip():
        return args.prompt.strip()

    if args.prompt_file:
        text = _read_text(args.prompt_file).strip()
        if not text:
            raise CliError(f"Prompt file {args.prompt_file} is empty.")
        return text

    if not sys.stdin.isatty():
        piped = sys.stdin.read().strip()
        if piped:
            return piped

    if not interactive:
        raise CliError("Prompt text is required. Use --prompt, --prompt-file, or pipe stdin.")

    print("Paste your draft prompt. Submit an empty line to finish.")
    lines = []
    while True:
        line = input("> ")
        if not line.strip():
            break
        lines.append(line)

    prompt = "\n".join(lines).strip()
    if not prompt:
        raise CliError("Prompt cannot be empty.")
    return prompt


def load_answers(args: argparse.Namespace) -> Dict[str, str]:
    answers: Dict[str, str] = {}
    try:
        if args.answers_file:
            answers.update(validate_answers(_read_json_file(args.answers_file)))
        if args.answers_json:
            try:
                parsed = json.loads(args.answers_json)
            except json.JSONDecodeError as exc:
                raise CliError(f"Failed to parse JSON in --answers-json: {exc}") from exc
            answers.update(validate_answers(parsed))
    except PromptError as exc:
        raise CliError(str(exc)) from exc
    return answers


def load_defaults(args: argparse.Namespace) -> Dict:
    if not args.defaults_file:
        return {}
    try:
        return validate_sections(_read_json_file(args.defaults_file))
    except PromptError as exc:
        raise CliError(f"{exc} (defaults file)") from exc


def collect_answers_interactively(questions: List[Dict], answers: Dict[str, str]) -> None:
    print("\nAnswer the clarifying questions below. Leave blank to keep existing answers.")
    for question in questions:
        existing = answers.get(question["key"])
        print(f"\n{question['question']}")
        if question.get("hint"):
            print(f"Hint: {question['hint']}")
        if question.get("options"):
            print("Options:")
            for option in question["options"]:
                print(f"  - {option}")
        if existing:
            print(f"Current answer: {existing}")
        print("Enter response (blank line to skip):")
        response = input("> ").strip()
        if response:
            answers[question["key"]] = response


# ── Output ────────────────────────────────────────────────────────────────────

def _pct(value: float) -> str:
    return f"{round(value * 100)}%"


def display_human_readable(payload: Dict) -> None:
    questions = payload["questions"]
    answers   = payload["answers"]
    result    = payload["result"]
    before    = result["diagnosisBefore"]
    after     = result["diagnosisAfter"]

    print("\nPrompt Maker CLI Results")
    print(RULE)
    print(f"Original prompt length: {len(payload['prompt'])} chars")
    print(f"Baseline overall: {_pct(before['overall'])}")
    print(f"Improved overall: {_pct(after['overall'])} (Δ {_pct(after['overall'] - before['overall'])})")

    print("\nCriterion scores:")
    for key in CRITERION_KEYS:
        print(f"{CRITERION_LABELS[key]:<18} {_pct(before['scores'][key])}")

    if questions:
        print("\nClarifying questions:")
        for index, question in enumerate(questions, start=1):
            print(f"\n{index}. {question['question']}")
            if question.get("hint"):
                print(f"   Hint: {question['hint']}")
            if question.get("options"):
                print(f"   Options: {' | '.join(question['options'])}")
            print(f"   Answer: {answers.get(question['key']) or '(not provided)'}")
    else:
        print("\nNo clarifying questions needed: prompt covers all criteria sufficiently.")

    print("\nImproved prompt:")
    print(RULE)
    print(result["improvedPrompt"])

    if result.get("polishedPrompt"):
        print("\nPolished prompt:")
        print(RULE)
        print(result["polishedPrompt"])
        if result.get("model"):
            print(f"(Model: {result['model']})")
    elif result.get("polishError"):
        print("\nPolish error:")
        print(result["polishError"])


# ── Entry point ───────────────────────────────────────────────────────────────

def run(args: argparse.Namespace) -> Dict:
    interactive = args.interactive and sys.stdin.isatty() and sys.stdout.isatty()
    prompt   = resolve_prompt(args, interactive)
    answers  = load_answers(args)
    defaults = load_defaults(args)

    diagnosis = diagnose(prompt)
    questions = generate_questions(diagnosis, args.max_questions)
    if interactive and questions:
        collect_answers_interactively(questions, answers)

    try:
        result = improve(prompt, answers, {**DEFAULT_SECTIONS, **defaults}, questions=questions)
    except PromptError as exc:
        raise CliError(str(exc)) from exc

    if args.polish:
        attach_polish(result, prompt, model=args.model)

    return {
        "prompt":    prompt,
        "diagnosis": diagnosis,
        "questions": questions,
        "answers":   answers,
        "result":    result,
    }


def main(argv: Optional[List[str]] = None) -> int:
    try:
        args = parse_args(argv)
        payload = run(args)
    except (CliError, EOFError, KeyboardInterrupt) as exc:
        message = str(exc) or "Input cancelled."
        print(f"Error: {message}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(payload, indent=2, ensure_ascii=False))
    else:
        display_human_readable(payload)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
