"""
Claim-level evidence checking.

Splits prose into short claims and looks for the citation quote that best
supports each one. Scoring is lexical: stopword-filtered token overlap with
the claim (weight 0.6) plus Jaccard similarity (weight 0.4), with a small
bonus when both mention the same number. Placeholder citations are never
accepted as support.
"""
import re
from dataclasses import dataclass
from typing import Iterable, Literal, Optional

from clearpolicy_core.models import Citation

MAX_CLAIMS = 6
DEFAULT_SUPPORT_THRESHOLD = 0.35

STOPWORDS: frozenset[str] = frozenset({
    "a", "an", "the", "and", "or", "but", "to", "of", "in", "on", "for",
    "with", "by", "from", "that", "this", "these", "those", "is", "are",
    "was", "were", "be", "been", "being", "will", "shall", "may", "can",
    "could", "should", "would", "it", "its", "as", "at",
})

_NUMBER = re.compile(r"\b\d+(?:\.\d+)?\b")
_BULLET_SPLIT = re.compile(r"\n+|\s-\s|\s•\s")
_SENTENCE_SPLIT = re.compile(r"[.;!?]+")
_MERGE_LEADERS = ("and", "or", "but", "also", "with")


@dataclass(frozen=True)
class EvidenceMatch:
    score: float
    overlap: float
    has_number_match: bool


@dataclass(frozen=True)
class AnnotatedClaim:
    claim: str
    status: Literal["supported", "unverified"]
    score: float
    overlap: float
    best_citation: Optional[Citation] = None

    @property
    def supported(self) -> bool:
        return self.status == "supported"


def _normalize(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def tokenize(text: str) -> list[str]:
    cleaned = re.sub(r"[^\w\s]", " ", _normalize(text).lower())
    return [w for w in cleaned.split() if w not in STOPWORDS]


def _has_number(text: str) -> bool:
    return bool(_NUMBER.search(text))


def split_into_claims(text: str) -> list[str]:
    """Split bullets or sentences into at most MAX_CLAIMS meaningful claims."""
    normalized = _normalize(text)
    if not normalized:
        return []

    lines = "\n".join(_normalize(line) for line in (text or "").splitlines())
    if "\n" in lines.strip() or " - " in normalized or " • " in normalized:
        raw_parts = [p.strip() for p in _BULLET_SPLIT.split(lines) if p.strip()]
    else:
        raw_parts = [p.strip() for p in _SENTENCE_SPLIT.split(normalized) if p.strip()]

    if len(raw_parts) <= 1:
        return [normalized]

    merged: list[str] = []
    buffer = ""
    for part in raw_parts:
        if not re.search(r"[a-z0-9]", part, re.IGNORECASE):
            continue
        if not tokenize(part) and not _has_number(part):
            continue
        words = part.split()
        # Short fragments and connective leads belong to the previous claim
        if len(words) < 6 or words[0].lower() in _MERGE_LEADERS:
            if merged:
                merged[-1] = f"{merged[-1]} {part}"
            else:
                buffer = f"{buffer} {part}".strip()
            continue
        merged.append(f"{buffer} {part}".strip())
        buffer = ""

    if buffer:
        if merged:
            merged[-1] = f"{merged[-1]} {buffer}"
        else:
            merged.append(buffer)

    cleaned = [p for p in merged if _has_number(p) or len(p.split()) >= 3]
    return cleaned[:MAX_CLAIMS] if cleaned else [normalized]


def match_claim_to_quote(claim: str, quote: str) -> EvidenceMatch:
    claim_set = set(tokenize(claim))
    quote_set = set(tokenize(quote))
    shared = claim_set & quote_set
    union = claim_set | quote_set

    jaccard = len(shared) / len(union) if union else 0.0
    overlap = len(shared) / len(claim_set) if claim_set else 0.0
    has_number_match = bool(set(_NUMBER.findall(claim)) & set(_NUMBER.findall(quote)))

    score = 0.6 * overlap + 0.4 * jaccard
    if has_number_match:
        score += 0.1
    return EvidenceMatch(
        score=max(0.0, min(1.0, score)),
        overlap=overlap,
        has_number_match=has_number_match,
    )


def dedupe_citations(citations: Iterable[Citation]) -> list[Citation]:
    """Drop citations whose normalized quote (or source name) was already seen."""
    seen: set[str] = set()
    unique = []
    for citation in citations or []:
        key = _normalize(citation.quote or citation.source_name).lower()
        if not key or key in seen:
            continue
        seen.add(key)
        unique.append(citation)
    return unique


def find_best_evidence(claim: str, citations: Iterable[Citation]) -> tuple[Optional[Citation], EvidenceMatch]:
    best: Optional[Citation] = None
    best_match = EvidenceMatch(score=0.0, overlap=0.0, has_number_match=False)
    for citation in dedupe_citations(citations):
        if not citation.quote or not citation.is_genuine:
            continue
        match = match_claim_to_quote(claim, citation.quote)
        if match.score > best_match.score:
            best, best_match = citation, match
    return best, best_match


def annotate_claims(
    claims: Iterable[str],
    citations: Iterable[Citation],
    threshold: float = DEFAULT_SUPPORT_THRESHOLD,
) -> list[AnnotatedClaim]:
    """
    Mark each claim supported or unverified against the citation quotes.

    Short claims (4 tokens or fewer) need 60% of their tokens in the quote;
    longer claims need 35%, on top of the score threshold.
    """
    citations = list(citations or [])
    annotated = []
    for claim in claims or []:
        best, match = find_best_evidence(claim, citations)
        min_overlap = 0.6 if len(tokenize(claim)) <= 4 else 0.35
        supported = best is not None and match.score >= threshold and match.overlap >= min_overlap
        annotated.append(AnnotatedClaim(
            claim=claim,
            status="supported" if supported else "unverified",
            score=match.score,
            overlap=match.overlap,
            best_citation=best if supported else None,
        ))
    return annotated
