"""
perceptronlab/prompts/llm.py

Optional polish pass over an improved prompt through Groq chat completions.
"""
from __future__ import annotations

import logging
import os
from typing import Dict, List, Optional

from groq import Groq

from perceptronlab.prompts.data import POLISH_SYSTEM_PROMPT

log = logging.getLogger(__name__)

DEFAULT_MODEL = "llama-3.3-70b-versatile"


class LLMError(RuntimeError):
    pass


def default_model() -> str:
    return os.environ.get("GROQ_MODEL", DEFAULT_MODEL)


def call_llm(messages: List[Dict], model: str, api_key: Optional[str] = None) -> str:
    """Send chat messages and return the reply text. Raises LLMError."""
    api_key = api_key or os.environ.get("GROQ_API_KEY")
    if not api_key:
        raise LLMError("GROQ_API_KEY not configured")

    client = Groq(api_key=api_key)
    try:
        resp = client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=0.2,
            max_tokens=2000,
        )
    except Exception as e:
        log.warning("Groq request failed (%s): %s", model, e)
        raise LLMError(f"Groq error: {e}") from e

    content = (resp.choices[0].message.content or "").strip() if resp.choices else ""
    if not content:
        raise LLMError("LLM returned an empty response.")
    return content


def polish_messages(original: str, improved_prompt: str) -> List[Dict]:
    return [
        {"role": "system", "content": POLISH_SYSTEM_PROMPT},
        {"role": "user", "content": "\n".join([
            "Original prompt:",
            original,
            "---",
            "Improved prompt candidate:",
            improved_prompt,
            "---",
            "Return the polished prompt text, preserving exact sections.",
        ])},
    ]


def polish(original: str, improved_prompt: str, model: Optional[str] = None,
           api_key: Optional[str] = None) -> str:
    return call_llm(polish_messages(original, improved_prompt), model or default_model(), api_key)


def attach_polish(result: Dict, original: str, model: Optional[str] = None,
                  api_key: Optional[str] = None) -> Dict:
    """Add polishedPrompt/model to result, or polishError when the call fails."""
    model = model or default_model()
    try:
        result["polishedPrompt"] = polish(original, result["improvedPrompt"], model, api_key)
        result["model"] = model
        result.pop("polishError", None)
    except LLMError as e:
        result["polishError"] = str(e)
    return result
