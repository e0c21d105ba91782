"""
Answer builders for each resolution tier.

Every builder returns a fully valid Answer with at least one source. The
completion-tier builders never trust field types from the model: each field
is checked and defaulted on its own, and a payload with no usable text is
rejected so the caller can fall back to the stub.
"""
import logging
import re
import uuid
from typing import Any, Optional

from clearpolicy_core.evidence.coverage import with_coverage
from clearpolicy_core.exceptions import LLMResponseError
from clearpolicy_core.llm.prompts import GOVERNMENT_LEVELS, SOURCE_TYPES
from clearpolicy_core.models import (
    PLACEHOLDER_URL,
    Answer,
    AnswerSections,
    AnswerSource,
    Citation,
    FollowUpAnswer,
    KnownSummary,
    LocalImpact,
    PolicyRecord,
    SummaryLike,
)
from clearpolicy_core.synthesis.extraction import record_category
from clearpolicy_core.utils import domain_from_url

logger = logging.getLogger(__name__)

MAX_SOURCES = 6
MAX_GENERAL_SOURCES = 4
MAX_KEY_FACTS = 3
MAX_POLICY_NAME_CHARS = 100
MAX_SUGGESTIONS = 3
STUB_MARKER = "[stub]"
PLACEHOLDER_SOURCE_TITLE = "No verified source available"

DEFAULT_SUGGESTIONS = [
    "How does this affect renters?",
    "What are the main criticisms?",
    "Compare to similar policies",
]
FALLBACK_SUGGESTIONS = ["Try again", "Ask a different question"]

_SLUG = re.compile(r"[^a-z0-9]+")


def new_policy_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def _slug(text: str) -> str:
    return _SLUG.sub("-", text.lower()).strip("-")


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def _lines(text: str) -> list[str]:
    return [line.strip() for line in (text or "").splitlines() if line.strip()]


def _is_placeholder(url: str) -> bool:
    return url.strip().rstrip("/").lower() == PLACEHOLDER_URL


def placeholder_source(source_id: int = 1) -> AnswerSource:
    """Low-confidence stand-in used when nothing verifiable backs an answer."""
    return AnswerSource(
        id=source_id,
        title=PLACEHOLDER_SOURCE_TITLE,
        url=PLACEHOLDER_URL,
        domain=domain_from_url(PLACEHOLDER_URL),
        type="Web",
        verified=False,
    )


def normalize_sources(raw_sources: Any, limit: int = MAX_SOURCES) -> list[AnswerSource]:
    """
    Validate model-supplied sources one at a time.

    Entries without a usable URL, or pointing at the placeholder URL, are
    dropped. Unknown types become "Web". Sources from the model are never
    marked verified. Returns a single placeholder when nothing survives.
    """
    sources: list[AnswerSource] = []
    items = raw_sources if isinstance(raw_sources, list) else []
    for item in items:
        if not isinstance(item, dict):
            continue
        url = _text(item.get("url"))
        if not url or _is_placeholder(url):
            continue
        source_type = item.get("type") if item.get("type") in SOURCE_TYPES else "Web"
        sources.append(AnswerSource(
            id=len(sources) + 1,
            title=_text(item.get("title")) or "Source",
            url=url,
            domain=_text(item.get("domain")) or domain_from_url(url) or "source",
            type=source_type,
            verified=False,
        ))
        if len(sources) == limit:
            break

    if not sources:
        logger.info("Completion supplied no usable sources; adding placeholder")
        return [placeholder_source()]
    return sources


def answer_from_known(entry: KnownSummary) -> Answer:
    """Curated entry as an Answer; each curated citation becomes one verified source."""
    content = entry.authoritative
    sources = [
        AnswerSource(
            id=i,
            title=citation.source_name,
            url=citation.url,
            domain=domain_from_url(citation.url),
            type=entry.level,
            verified=True,
        )
        for i, citation in enumerate(entry.citations, start=1)
    ]
    return Answer(
        policy_id=f"known-{entry.key}",
        policy_name=entry.title,
        level=entry.level,
        category=entry.category,
        full_text_summary=" ".join(p for p in (content.tldr, content.what_it_does) if p),
        sections=AnswerSections(
            summary=content.tldr,
            key_provisions=[p for p in (content.what_it_does, content.who_affected) if p],
            arguments_for=list(content.pros) or None,
            arguments_against=list(content.cons) or None,
        ),
        sources=sources,
    )


def answer_from_record(record: PolicyRecord, summary: SummaryLike) -> Answer:
    """Registry record plus its extracted summary as an Answer."""
    if record.url:
        sources = [AnswerSource(
            id=1,
            title=f"{record.identifier}: {record.title}",
            url=record.url,
            domain=domain_from_url(record.url),
            type="Federal" if record.is_federal else "State",
            verified=True,
        )]
    else:
        sources = [placeholder_source()]

    provisions = [p for p in (summary.what_it_does, summary.who_affected) if p]
    return Answer(
        policy_id=f"live-{_slug(record.jurisdiction)}-{_slug(record.identifier)}",
        policy_name=f"{record.identifier}: {record.title}"[:MAX_POLICY_NAME_CHARS],
        level="Federal" if record.is_federal else "State",
        category=record_category(record),
        full_text_summary=" ".join(p for p in (summary.tldr, summary.what_it_does) if p),
        sections=AnswerSections(
            summary=summary.tldr or None,
            key_provisions=provisions or None,
            arguments_for=_lines(summary.pros) or None,
            arguments_against=_lines(summary.cons) or None,
        ),
        sources=sources,
    )


def _local_impact(raw: Any, zip_code: Optional[str]) -> Optional[LocalImpact]:
    if not isinstance(raw, dict):
        return None
    content = _text(raw.get("content"))
    zip_value = _text(raw.get("zipCode")) or _text(raw.get("zip")) or (zip_code or "")
    if not content or not zip_value:
        return None
    return LocalImpact(
        zip_code=zip_value,
        location=_text(raw.get("location")) or f"ZIP {zip_value}",
        content=content,
    )


def _completion_sections(payload: dict[str, Any], zip_code: Optional[str] = None) -> AnswerSections:
    raw = payload.get("sections") if isinstance(payload.get("sections"), dict) else {}
    return AnswerSections(
        summary=_text(raw.get("summary")) or _text(payload.get("fullTextSummary")) or None,
        key_provisions=_string_list(raw.get("keyProvisions")) or None,
        local_impact=_local_impact(raw.get("localImpact"), zip_code),
        arguments_for=_string_list(raw.get("argumentsFor")) or None,
        arguments_against=_string_list(raw.get("argumentsAgainst")) or None,
    )


def answer_from_completion(payload: dict[str, Any], query: str, zip_code: Optional[str] = None) -> Answer:
    """
    Validate a completion payload field by field into an Answer.

    Raises:
        LLMResponseError: If the payload carries no usable text at all
    """
    sections = _completion_sections(payload, zip_code)
    full_text = _text(payload.get("fullTextSummary")) or (sections.summary or "")
    if not full_text and sections.is_empty():
        raise LLMResponseError("Completion payload has no usable answer text")

    level = payload.get("level") if payload.get("level") in GOVERNMENT_LEVELS else "State"
    return Answer(
        policy_id=new_policy_id("policy"),
        policy_name=(_text(payload.get("policyName")) or query.strip())[:MAX_POLICY_NAME_CHARS],
        level=level,
        category=_text(payload.get("category")) or "General",
        full_text_summary=full_text,
        sections=sections,
        sources=normalize_sources(payload.get("sources")),
    )


def answer_from_general(payload: dict[str, Any], query: str) -> Answer:
    """
    General-knowledge payload (title, answer, keyFacts, sources) as an Answer.

    The answer text becomes the summary and the key facts become key
    provisions; no arguments or local impact are produced.

    Raises:
        LLMResponseError: If the payload carries no answer text
    """
    answer_text = _text(payload.get("answer"))
    if not answer_text:
        raise LLMResponseError("General payload has no answer text")

    key_facts = _string_list(payload.get("keyFacts"))[:MAX_KEY_FACTS]
    return Answer(
        policy_id=new_policy_id("general"),
        policy_name=(_text(payload.get("title")) or query.strip())[:MAX_POLICY_NAME_CHARS],
        level="Federal",
        category=_text(payload.get("category")) or "General",
        full_text_summary=answer_text,
        sections=AnswerSections(summary=answer_text, key_provisions=key_facts or None),
        sources=normalize_sources(payload.get("sources"), limit=MAX_GENERAL_SOURCES),
    )


def stub_answer(query: str, zip_code: Optional[str] = None) -> Answer:
    """Clearly marked placeholder answer for when every upstream tier is unavailable."""
    title = query.strip()[:MAX_POLICY_NAME_CHARS] or "Policy overview"
    summary = (
        f'{STUB_MARKER} We\'re currently unable to generate a detailed analysis for "{title}". '
        "Our AI service may be temporarily unavailable. Please try again in a moment, or refine your search."
    )
    local_impact = None
    if zip_code:
        local_impact = LocalImpact(
            zip_code=zip_code,
            location=f"ZIP {zip_code}",
            content=f"{STUB_MARKER} Local details for ZIP {zip_code} are not available right now.",
        )
    return Answer(
        policy_id=new_policy_id("fallback"),
        policy_name=f"{STUB_MARKER} {title}",
        level="State",
        category="General",
        full_text_summary=summary,
        sections=AnswerSections(summary=summary, local_impact=local_impact),
        sources=[placeholder_source()],
    )


def summary_from_answer(answer: Answer) -> SummaryLike:
    """
    Five-section view of a completion or stub answer.

    Sources carry no section locations, so coverage falls back to the
    genuine-source heuristic; placeholder sources contribute nothing.
    """
    sections = answer.sections
    citations = [
        Citation(quote=source.title, source_name=source.domain or source.title, url=source.url)
        for source in answer.sources
    ]
    return with_coverage(SummaryLike(
        tldr=sections.summary or answer.full_text_summary,
        what_it_does="\n".join(sections.key_provisions or []),
        who_affected=sections.local_impact.content if sections.local_impact else "",
        pros="\n".join(sections.arguments_for or []),
        cons="\n".join(sections.arguments_against or []),
        citations=citations,
    ))


def follow_up_from_completion(payload: dict[str, Any]) -> FollowUpAnswer:
    """
    Raises:
        LLMResponseError: If the payload carries no usable text at all
    """
    sections = _completion_sections(payload)
    full_text = _text(payload.get("fullTextSummary")) or (sections.summary or "")
    if not full_text and sections.is_empty():
        raise LLMResponseError("Follow-up payload has no usable answer text")

    suggestions = _string_list(payload.get("suggestions"))[:MAX_SUGGESTIONS] or list(DEFAULT_SUGGESTIONS)
    answer = Answer(
        policy_id=new_policy_id("followup"),
        policy_name=(_text(payload.get("policyName")) or "Follow-up")[:MAX_POLICY_NAME_CHARS],
        level="State",
        category="General",
        full_text_summary=full_text,
        sections=sections,
        sources=normalize_sources(payload.get("sources")),
    )
    return FollowUpAnswer(answer=answer, suggestions=suggestions)


def stub_follow_up() -> FollowUpAnswer:
    summary = (
        f"{STUB_MARKER} We're currently unable to generate a follow-up answer. "
        "Our AI service may be temporarily unavailable. Please try again in a moment."
    )
    answer = Answer(
        policy_id=new_policy_id("fallback-followup"),
        policy_name=f"{STUB_MARKER} Follow-up unavailable",
        level="State",
        category="General",
        full_text_summary=summary,
        sections=AnswerSections(summary=summary),
        sources=[placeholder_source()],
    )
    return FollowUpAnswer(answer=answer, suggestions=list(FALLBACK_SUGGESTIONS))
