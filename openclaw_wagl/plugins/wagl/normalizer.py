"""Normalization of `wagl recall` output into injectable text.

wagl prints either a JSON object ({"canonical": {...}, "related": [...]})
or plain prose. The raw text is first classified into a tagged output and
each variant is then formatted on its own.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

# Plain-text output must be longer than this to count as a memory
MIN_TEXT_LENGTH = 10

# Fields that may carry a related entry's text, in order of preference
RELATED_TEXT_FIELDS = ("text", "content", "summary")


@dataclass(frozen=True)
class StructuredOutput:
    """Recall output that parsed as a JSON object."""
    payload: Dict[str, Any]


@dataclass(frozen=True)
class TextOutput:
    """Recall output that is not a JSON object."""
    text: str


RecallOutput = Union[StructuredOutput, TextOutput]


def classify_output(raw: Optional[str]) -> RecallOutput:
    """Tag raw recall output as structured or plain text.

    Only a JSON object counts as structured; arrays, scalars and anything
    that fails to parse are treated as text.
    """
    text = raw or ""
    stripped = text.strip()
    if stripped.startswith("{"):
        try:
            payload = json.loads(stripped)
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            return StructuredOutput(payload)
    return TextOutput(text)


def _compact(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _canonical_lines(canonical: Any) -> List[str]:
    if not isinstance(canonical, dict):
        return []

    lines = []
    for key, value in canonical.items():
        if isinstance(value, str):
            rendered = value.strip()
            if not rendered:
                continue
        elif value is None:
            continue
        else:
            rendered = _compact(value)
        lines.append(f"**{key}:** {rendered}")
    return lines


def related_text(entry: Any) -> Optional[str]:
    """Resolve the display text of a related entry.

    Entries are either flat ({"text": ...}) or wrapped in an item envelope
    ({"item": {"text": ...}}); the envelope wins when both are present.
    """
    if not isinstance(entry, dict):
        return None

    candidates = []
    item = entry.get("item")
    if isinstance(item, dict):
        candidates.append(item)
    candidates.append(entry)

    for source in candidates:
        for name in RELATED_TEXT_FIELDS:
            value = source.get(name)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return None


def _related_lines(related: Any) -> List[str]:
    if not isinstance(related, list):
        return []

    lines = []
    for entry in related:
        text = related_text(entry)
        if text:
            lines.append(f"- {text}")
    return lines


def format_structured(payload: Dict[str, Any]) -> Optional[str]:
    """Render canonical facts and related items as markdown lines.

    Returns:
        The joined lines, or None if nothing displayable was found.
    """
    lines = _canonical_lines(payload.get("canonical"))
    lines.extend(_related_lines(payload.get("related")))
    return "\n".join(lines) if lines else None


def format_text(text: str) -> Optional[str]:
    """Return trimmed prose, or None if it is too short to be a memory."""
    trimmed = text.strip()
    return trimmed if len(trimmed) > MIN_TEXT_LENGTH else None


def normalize_recall(raw: Optional[str]) -> Optional[str]:
    """Reduce raw recall stdout to a display string, or None.

    Never raises: malformed or unexpected shapes degrade to None.
    """
    output = classify_output(raw)
    if isinstance(output, StructuredOutput):
        return format_structured(output.payload)
    return format_text(output.text)
