"""
Answer -> presentation card mapping.

Sections come out in a fixed order, each tagged with a confidence: factual
sections (summary, key provisions, local impact) are "verified", argument
framing is "inferred". Sources are renumbered 1-based and `[n]` markers in
the prose are rewritten to the new numbering.
"""
import re
from typing import Optional

from clearpolicy_core.models import (
    Answer,
    Confidence,
    PresentationCard,
    PresentationSection,
    PresentationSource,
)

SOURCE_KINDS = {
    "Federal": "federal_bill",
    "State": "state_bill",
    "Local": "local_government",
    "Web": "web_search",
}

BULLET = "• "

_MARKER = re.compile(r"\[(\d+)\]")
_SPACE_BEFORE_PUNCT = re.compile(r"\s+([.,;:!?])")
_SPACES = re.compile(r"[ \t]{2,}")


def _renumber(answer: Answer) -> dict[int, int]:
    """Original source id -> 1-based position. First occurrence of an id wins."""
    positions: dict[int, int] = {}
    for position, source in enumerate(answer.sources, start=1):
        positions.setdefault(source.id, position)
    return positions


def remap_markers(text: str, positions: dict[int, int]) -> tuple[str, list[int]]:
    """Rewrite `[n]` markers to renumbered positions and drop those with no source."""
    cited: list[int] = []

    def replace(match: re.Match) -> str:
        position = positions.get(int(match.group(1)))
        if position is None:
            return ""
        if position not in cited:
            cited.append(position)
        return f"[{position}]"

    rewritten = _MARKER.sub(replace, text)
    rewritten = _SPACES.sub(" ", _SPACE_BEFORE_PUNCT.sub(r"\1", rewritten))
    return rewritten.strip(), cited


def _bullets(items: Optional[list[str]]) -> str:
    return "\n".join(f"{BULLET}{item}" for item in items or [] if item.strip())


def _section(heading: str, content: str, confidence: Confidence, positions: dict[int, int]) -> Optional[PresentationSection]:
    if not content or not content.strip():
        return None
    content, cited = remap_markers(content, positions)
    return PresentationSection(heading=heading, content=content, citations=cited, confidence=confidence)


def answer_to_sections(answer: Answer) -> list[PresentationSection]:
    positions = _renumber(answer)
    sections = answer.sections
    local = sections.local_impact

    candidates = [
        ("Summary", sections.summary or "", "verified"),
        ("Key provisions", _bullets(sections.key_provisions), "verified"),
        (f"Local impact · {local.zip_code}" if local else "", local.content if local else "", "verified"),
        ("Arguments for", _bullets(sections.arguments_for), "inferred"),
        ("Arguments against", _bullets(sections.arguments_against), "inferred"),
    ]
    built = [s for s in (_section(h, c, conf, positions) for h, c, conf in candidates) if s is not None]
    if built:
        return built

    content, cited = remap_markers(answer.full_text_summary, positions)
    return [PresentationSection(heading="Overview", content=content, citations=cited, confidence="verified")]


def answer_to_sources(answer: Answer) -> list[PresentationSource]:
    return [
        PresentationSource(
            id=position,
            type=SOURCE_KINDS.get(source.type, "web_search"),
            title=source.title,
            url=source.url,
            publisher=source.domain,
            verified=source.verified,
        )
        for position, source in enumerate(answer.sources, start=1)
    ]


def answer_to_card(answer: Answer) -> PresentationCard:
    return PresentationCard(
        heading=answer.policy_name,
        sections=answer_to_sections(answer),
        sources=answer_to_sources(answer),
    )
