"""
Content Analysis - best-effort segmentation of free-form analyst output.

The model is asked for four blank-line separated sections (summary, key
concepts, suggestions, readability). Models do not always comply, so this
is a heuristic: it never raises and returns empty fields for anything it
cannot find.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List

_BULLET_RE = re.compile(r"^\s*[•\-*]\s*(.+?)\s*$", re.MULTILINE)

MIN_CONTENT_LENGTH = 10


@dataclass
class ContentAnalysis:
    summary: str = ""
    key_concepts: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    readability_assessment: str = ""
    source_provider: str = "none"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary,
            "keyConcepts": self.key_concepts,
            "suggestions": self.suggestions,
            "readabilityAssessment": self.readability_assessment,
            "sourceProvider": self.source_provider,
        }


def extract_bullet_points(text: str) -> List[str]:
    """Lines starting with a bullet character, bullet stripped."""
    if not isinstance(text, str):
        return []
    return [m.group(1) for m in _BULLET_RE.finditer(text) if m.group(1)]


def segment_analysis(text: str, source_provider: str = "none") -> ContentAnalysis:
    """Split analyst output into its four sections."""
    if not isinstance(text, str) or not text.strip():
        return ContentAnalysis(source_provider=source_provider)

    sections = [s.strip() for s in text.strip().split("\n\n")]

    def section(i: int) -> str:
        return sections[i] if i < len(sections) else ""

    return ContentAnalysis(
        summary=section(0),
        key_concepts=extract_bullet_points(section(1)),
        suggestions=extract_bullet_points(section(2)),
        readability_assessment=section(3),
        source_provider=source_provider,
    )
