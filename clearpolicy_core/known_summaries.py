"""
Curated known-summary table and structural matcher.

Matching is identity only: instrument type + number (with year and state
filters when the request names them), or an entry's exact official short
title. No fuzzy or topic matching, so a hit can be served as verified
content without any model involved.
"""
import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Optional

import yaml

from clearpolicy_core.evidence.coverage import with_coverage
from clearpolicy_core.instruments import (
    InstrumentRef,
    detect_state,
    extract_year,
    parse_identifier,
    parse_instrument_refs,
)
from clearpolicy_core.models import KnownSummary, SummaryLike, SummaryRequest

logger = logging.getLogger(__name__)

KNOWN_SUMMARIES_PATH = Path(__file__).parent / "data" / "known_summaries.yaml"


@lru_cache(maxsize=4)
def load_known_summaries(path: str = str(KNOWN_SUMMARIES_PATH)) -> tuple[KnownSummary, ...]:
    """Load and validate the curated table (cached per path)."""
    with open(path, "r") as f:
        raw = yaml.safe_load(f) or []
    entries = tuple(KnownSummary.model_validate(entry) for entry in raw)
    logger.debug("Loaded %d known summaries from %s", len(entries), path)
    return entries


def _normalize_phrase(text: str) -> str:
    return re.sub(r"\s+", " ", re.sub(r"[^\w\s]", " ", text or "").lower()).strip()


def _entry_refs(entry: KnownSummary) -> list[InstrumentRef]:
    refs: list[InstrumentRef] = []
    for identifier in entry.identifiers:
        refs.extend(parse_instrument_refs(identifier))
    return refs


def _names_alias(entry: KnownSummary, normalized_text: str) -> bool:
    padded = f" {normalized_text} "
    return any(f" {_normalize_phrase(alias)} " in padded for alias in entry.aliases if alias.strip())


def match_known_summary(
    request: SummaryRequest,
    table: Optional[Iterable[KnownSummary]] = None,
) -> Optional[KnownSummary]:
    """
    Return the curated entry structurally identical to the request, or None.

    Instrument references come from the identifier (a bare number is read
    with request.type) and the title. A requested year or named state that
    differs from the entry's rules the entry out.
    """
    entries = tuple(table) if table is not None else load_known_summaries()
    text = " ".join(part for part in (request.identifier or "", request.title) if part)

    refs: list[InstrumentRef] = []
    identifier_ref = parse_identifier(request.identifier, request.type)
    if identifier_ref:
        refs.append(identifier_ref)
    refs.extend(r for r in parse_instrument_refs(request.title) if r not in refs)

    year = request.year or extract_year(text)
    state = detect_state(text)
    normalized_text = _normalize_phrase(text)

    for entry in entries:
        if year and entry.year and year != entry.year:
            continue
        if state and entry.jurisdiction != "US" and state != entry.jurisdiction:
            continue
        entry_refs = _entry_refs(entry)
        if any(ref in entry_refs for ref in refs) or _names_alias(entry, normalized_text):
            logger.info("Known summary match: %s", entry.key)
            return entry
    return None


def known_summary_by_key(key: str) -> Optional[KnownSummary]:
    return next((entry for entry in load_known_summaries() if entry.key == key), None)


def known_level_summary(entry: KnownSummary, level: str = "12") -> SummaryLike:
    """Curated level content as a cited SummaryLike with coverage computed."""
    content = entry.levels[str(level)]
    return with_coverage(SummaryLike(
        tldr=content.tldr,
        what_it_does=content.what_it_does,
        who_affected=content.who_affected,
        pros="\n".join(content.pros),
        cons="\n".join(content.cons),
        citations=entry.citations,
    ))
