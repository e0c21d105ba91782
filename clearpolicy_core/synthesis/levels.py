"""
Reading-level rewrites for presentation cards.

The completion service may regenerate a card at level 5 or 12. Its output
is accepted only when it returns the same number of sections with the same
headings; anything else falls back to the deterministic transform.
"""
import logging
from typing import Optional, Sequence

from clearpolicy_core.exceptions import ClearPolicyError
from clearpolicy_core.llm.clients import CompletionClient
from clearpolicy_core.llm.prompts import REWRITE_SCHEMA, REWRITE_SYSTEM_PROMPT, build_rewrite_prompt
from clearpolicy_core.models import PresentationCard, PresentationSection
from clearpolicy_core.presentation import BULLET
from clearpolicy_core.reading import READING_LEVELS, simplify

logger = logging.getLogger(__name__)

REGENERATED_LEVELS = ("5", "12")


async def regenerate_sections(
    client: Optional[CompletionClient],
    title: str,
    sections: Sequence[PresentationSection],
    level: str,
) -> Optional[list[PresentationSection]]:
    """
    Ask the completion service to rewrite sections at `level`.

    Returns:
        Rewritten sections (citations and confidence kept), or None on any failure
    """
    if client is None or level not in REGENERATED_LEVELS or not sections:
        return None

    try:
        payload = await client.complete_json(
            REWRITE_SYSTEM_PROMPT,
            build_rewrite_prompt(title, [(s.heading, s.content) for s in sections], level),
            schema=REWRITE_SCHEMA,
            temperature=0.4,
            max_tokens=4000,
        )
    except ClearPolicyError as e:
        logger.warning("Level %s rewrite failed: %s", level, e)
        return None

    raw_sections = payload.get("sections")
    if not isinstance(raw_sections, list) or len(raw_sections) != len(sections):
        logger.warning("Level %s rewrite returned a different section count; discarding", level)
        return None

    rewritten: list[PresentationSection] = []
    for original, item in zip(sections, raw_sections):
        if not isinstance(item, dict):
            return None
        heading = item.get("heading")
        content = item.get("content")
        if not isinstance(content, str) or not content.strip():
            logger.warning("Level %s rewrite left %r empty; discarding", level, original.heading)
            return None
        if not isinstance(heading, str) or heading.strip().lower() != original.heading.lower():
            logger.warning("Level %s rewrite changed heading %r; discarding", level, original.heading)
            return None
        rewritten.append(original.model_copy(update={"content": content.strip()}))
    return rewritten


def _simplify_content(content: str, level: str) -> str:
    lines = []
    for line in content.splitlines():
        line = line.strip()
        if not line:
            continue
        if line.startswith(BULLET):
            lines.append(BULLET + simplify(line[len(BULLET):], level))
        else:
            lines.append(simplify(line, level))
    return "\n".join(lines)


def simplify_card(card: PresentationCard, level: str) -> PresentationCard:
    """Deterministic level view of a card."""
    sections = [
        section.model_copy(update={"content": _simplify_content(section.content, level)})
        for section in card.sections
    ]
    return card.model_copy(update={"sections": sections})


async def rewrite_card_for_level(
    card: PresentationCard,
    level: str,
    client: Optional[CompletionClient] = None,
) -> PresentationCard:
    if level not in READING_LEVELS:
        raise ValueError(f"Unknown reading level: {level!r}")

    regenerated = await regenerate_sections(client, card.heading, card.sections, level)
    if regenerated is not None:
        return card.model_copy(update={"sections": regenerated})
    return simplify_card(card, level)
