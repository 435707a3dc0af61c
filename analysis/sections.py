"""
Split an AI answer into its "## SECTION N: NAME" blocks.
"""

import re

_SECTION_RE = re.compile(
    r"^#{2,}[ \t]*section[ \t]*\d+[ \t]*[:.\-]?[ \t]*([^\n]+?)[ \t]*$"
    r"(.*?)"
    r"(?=^#{2,}\s*section\s*\d+|\Z)",
    re.IGNORECASE | re.MULTILINE | re.DOTALL,
)


def parse_sections(text: str) -> dict[str, str]:
    """
    Return {SECTION NAME: content}. Names are upper-cased; an answer without
    any section header yields an empty dict.
    """
    sections = {}
    for m in _SECTION_RE.finditer(text or ""):
        title = m.group(1).strip().upper()
        if title:
            sections[title] = m.group(2).strip()
    return sections
