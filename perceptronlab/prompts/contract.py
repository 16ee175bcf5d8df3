from __future__ import annotations

from typing import Dict, List, Union

from perceptronlab.prompts.data import SECTION_ORDER

SectionValue = Union[str, List[str], None]


def render_section(label: str, value: SectionValue) -> str:
    if not value:
        return ""
    if isinstance(value, list):
        return f"{label}:\n- " + "\n- ".join(value) + "\n"
    return f"{label}: {value}\n"


def build_prompt(sections: Dict[str, SectionValue]) -> str:
    """Render the prompt contract; empty sections are left out."""
    blocks = [render_section(label, sections.get(key)) for label, key in SECTION_ORDER]
    return "\n".join(block for block in blocks if block)
