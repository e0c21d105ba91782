"""
Source coverage scoring.

A canonical section counts as covered when a genuine citation carries its
location tag. Placeholder citations never count. The score is advisory and is
recomputed from the text it describes, never stored on its own.
"""
import logging
from typing import Any, Iterable, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from clearpolicy_core.models import CANONICAL_LOCATIONS, Citation, SummaryLike

logger = logging.getLogger(__name__)


def is_genuine(citation: Citation) -> bool:
    return citation.is_genuine


def _coerce_citations(citations: Optional[Iterable[Any]]) -> list[Citation]:
    coerced: list[Citation] = []
    for item in citations or []:
        if isinstance(item, Citation):
            coerced.append(item)
        elif isinstance(item, dict):
            try:
                coerced.append(Citation.model_validate(item))
            except PydanticValidationError:
                logger.debug("Skipping malformed citation: %r", item)
    return coerced


def populated_slots(section_texts: Optional[Sequence[Any]]) -> list[str]:
    """Canonical slot names whose positional text is non-blank."""
    slots = []
    for slot, text in zip(CANONICAL_LOCATIONS, section_texts or []):
        if isinstance(text, str) and text.strip():
            slots.append(slot)
    return slots


def covered_locations(citations: Iterable[Citation]) -> set[str]:
    return {c.location for c in citations if c.location and c.is_genuine}


def source_ratio_from(section_texts: Optional[Sequence[Any]], citations: Optional[Iterable[Any]]) -> float:
    """
    Fraction of populated canonical sections backed by a genuine citation.

    When no citation carries a location tag at all (flat source lists from
    live registries), falls back to genuine citations clipped to the number of
    populated sections. A tagged placeholder still selects located mode.
    Returns a value in [0, 1] and never raises.
    """
    try:
        slots = populated_slots(section_texts)
        if not slots:
            return 0.0

        coerced = _coerce_citations(citations)
        genuine = [c for c in coerced if c.is_genuine]
        if any(c.location for c in coerced):
            covered = covered_locations(genuine)
            ratio = sum(1 for slot in slots if slot in covered) / len(slots)
        else:
            ratio = min(len(genuine), len(slots)) / len(slots)
        return max(0.0, min(1.0, ratio))
    except Exception as e:
        logger.warning("Coverage scoring failed, reporting 0: %s", e)
        return 0.0


def coverage_count(summary: SummaryLike) -> int:
    """Number of populated sections covered by a located genuine citation."""
    covered = covered_locations(summary.citations)
    return sum(1 for slot in populated_slots(summary.section_texts()) if slot in covered)


def with_coverage(summary: SummaryLike) -> SummaryLike:
    """Return a copy whose source_ratio and source_count match its current text."""
    return summary.model_copy(update={
        "source_ratio": source_ratio_from(summary.section_texts(), summary.citations),
        "source_count": coverage_count(summary),
    })
