"""
perceptronlab/prompts/data.py
Criteria, scoring signals, question templates and contract defaults for
the prompt maker.
"""

CRITERION_LABELS = {
    "outcome":       "Outcome",
    "outputFormat":  "Output Format",
    "constraints":   "Constraints",
    "context":       "Context",
    "processRubric": "Process & Rubric",
    "uncertainty":   "Uncertainty",
}

CRITERION_KEYS = list(CRITERION_LABELS)

# (label, sections key) in the order the contract is rendered
SECTION_ORDER = [
    ("Role",           "role"),
    ("Objective",      "objective"),
    ("Audience & Use", "audienceUse"),
    ("Context",        "context"),
    ("Constraints",    "constraints"),
    ("Output Format",  "outputFormat"),
    ("Process",        "process"),
    ("Rubric",         "rubric"),
    ("Uncertainty",    "uncertainty"),
]

SECTION_KEYS = [key for _, key in SECTION_ORDER]
LIST_SECTIONS = {"context", "constraints", "outputFormat", "process", "rubric"}

# Defaults the web API always applies under caller overrides
API_DEFAULT_SECTIONS = {
    "constraints":  ["Functional TypeScript", "No classes", "No 'any'"],
    "outputFormat": ["Exact sections with headings", "One ```ts``` block when code is requested"],
    "process":      ["Assumptions→Plan→Draft→Critique→Final"],
    "rubric":       ["Concrete, balanced, actionable; fails if generic."],
}

# The CLI additionally fills in the prose sections
DEFAULT_SECTIONS = {
    **API_DEFAULT_SECTIONS,
    "audienceUse": "For immediate decision or copy/paste into tools.",
    "role":        "Senior assistant tuned for accuracy and specificity",
    "objective":   "Produce a clear, testable deliverable.",
    "uncertainty": "If data is missing, ask 3 clarifying questions and propose safe defaults.",
}

DEFAULT_MAX_QUESTIONS = 4
PASS_SCORE = 0.5

# ── Scoring signals ───────────────────────────────────────────────────────────
# Each criterion: list of (regex, weight). Weights of every matching pattern
# are summed and capped at 1.0.

SIGNALS = {
    "outcome": [
        (r"\b(objective|goal|outcome|deliverable)\b", 0.5),
        (r"\b(produce|write|create|generate|build|draft|design|summari[sz]e|explain|list)\b", 0.3),
        (r"\b(so that|in order to|success (is|means)|done when)\b", 0.3),
    ],
    "outputFormat": [
        (r"\b(output format|format|formatted as|respond (in|with)|return)\b", 0.4),
        (r"\b(json|markdown|table|bullet(s| points)?|csv|yaml|headings?|sections?|code block)\b", 0.4),
        (r"\b(\d+\s*(words|sentences|paragraphs|bullets|items)|max(imum)? length|under \d+)\b", 0.3),
    ],
    "constraints": [
        (r"\b(constraints?|must|must not|never|avoid|do not|don't|only|without)\b", 0.4),
        (r"\b(limit|no more than|at most|at least|required?|forbidden)\b", 0.3),
        (r"\b(tone|style|language|version|budget|deadline)\b", 0.3),
    ],
    "context": [
        (r"\b(context|background|audience|for (a|an|the) \w+|users?|customers?|team)\b", 0.4),
        (r"\b(because|currently|we (are|have)|our|existing|given)\b", 0.3),
        (r"\b(data|example|e\.g\.|such as|input)\b", 0.3),
    ],
    "processRubric": [
        (r"\b(steps?|process|plan|approach|first|then|finally)\b", 0.4),
        (r"\b(rubric|criteria|evaluate|check|verify|critique|review)\b", 0.4),
        (r"\b(think|reason|assumptions?)\b", 0.2),
    ],
    "uncertainty": [
        (r"\b(if (unsure|unclear|uncertain|missing|unknown)|uncertain(ty)?)\b", 0.5),
        (r"\b(clarifying questions?|ask (me|questions?)|assumptions?)\b", 0.4),
        (r"\b(state|flag|note) (any )?(gaps|limitations|confidence)\b", 0.3),
    ],
}

NOTES = {
    "outcome":       "State the deliverable and what success looks like.",
    "outputFormat":  "Specify the exact shape of the answer (sections, length, format).",
    "constraints":   "List hard rules the answer must respect.",
    "context":       "Give background: who it is for and what already exists.",
    "processRubric": "Describe the working steps and how the result will be judged.",
    "uncertainty":   "Say what to do when information is missing or unclear.",
}

# ── Clarifying question templates ─────────────────────────────────────────────

QUESTION_TEMPLATES = {
    "outcome": {
        "question": "What exact deliverable do you want, and how will you know it is done?",
        "hint":     "One sentence naming the artifact and its success condition.",
        "options":  ["A ready-to-send draft", "A decision with rationale", "Working code with tests"],
    },
    "outputFormat": {
        "question": "What format should the answer take?",
        "hint":     "Sections, length limits, file type or code fences.",
        "options":  ["Markdown with headings", "JSON object", "Bullet list under 200 words"],
    },
    "constraints": {
        "question": "Which constraints must the answer respect?",
        "hint":     "Separate multiple constraints with semicolons or new lines.",
        "options":  ["Plain language; no jargon", "Cite sources", "Stay within the given budget"],
    },
    "context": {
        "question": "What background should the model know?",
        "hint":     "Audience, current situation, relevant data or examples.",
        "options":  ["Audience is non-technical", "Existing codebase in TypeScript", "Internal team memo"],
    },
    "processRubric": {
        "question": "How should the work be approached and judged?",
        "hint":     "Describe the steps, then the rubric the result must pass.",
        "options":  ["Plan, draft, critique, finalize", "Compare options before deciding"],
    },
    "uncertainty": {
        "question": "What should happen when information is missing?",
        "hint":     "For example ask questions, state assumptions, or stop.",
        "options":  ["Ask up to 3 clarifying questions", "State assumptions and continue"],
    },
}

POLISH_SYSTEM_PROMPT = (
    "You refine prompt contracts for language models. Preserve headings, bullet ordering, "
    "and constraints. Only tighten wording and fix inconsistencies."
)
